"""Tests for the semantic diff engine and the version history store."""

import itertools
import json

import pytest

from n4l_editor.core.exceptions import VersionNotFoundError
from n4l_editor.core.persistence import JsonFilePersistence
from n4l_editor.core.versioning import (
    VersionHistory,
    calculate_confidence,
    calculate_graph_hash,
    calculate_impact,
    classify_event_type,
    compare_graphs,
    detect_insights,
    detect_semantic_changes,
    generate_tags,
    is_eureka_moment,
)

from conftest import make_graph


@pytest.fixture
def history(tmp_path):
    return VersionHistory(
        JsonFilePersistence(tmp_path / "versions.json"),
        clock=itertools.count(1000).__next__,
    )


def changes_of(changes, kind):
    return [c for c in changes if c["type"] == kind]


# ============================================================================
# Diff engine
# ============================================================================

def test_added_node_is_reported_once():
    previous = make_graph([("A", "B")])
    current = make_graph([("A", "B")], isolated=["X"])

    added = changes_of(detect_semantic_changes(current, previous), "node_added")

    assert len(added) == 1
    assert added[0]["element_id"] == "X"
    assert added[0]["impact"] == "low"


def test_deletions_are_left_to_compare_graphs():
    previous = make_graph([("A", "B"), ("B", "C"), ("C", "D"), ("D", "E")])
    current = make_graph([("A", "B"), ("B", "C"), ("C", "D")])

    changes = detect_semantic_changes(current, previous)

    assert changes == []


def test_deletion_only_save_is_not_an_expansion():
    previous = make_graph([], isolated=[f"X{i}" for i in range(6)])
    current = make_graph([])

    changes = detect_semantic_changes(current, previous)
    insights = detect_insights(changes, current, previous)

    assert [c["type"] for c in changes] == ["structural_change"]
    assert not any(i.startswith("Expansion") for i in insights)


def test_trimming_a_leaf_is_a_checkpoint():
    previous = make_graph([("A", "B"), ("B", "C"), ("C", "D"), ("D", "E"), ("E", "F"), ("F", "G")])
    current = make_graph([("A", "B"), ("B", "C"), ("C", "D"), ("D", "E"), ("E", "F")])

    changes = detect_semantic_changes(current, previous)
    insights = detect_insights(changes, current, previous)
    version = {"changes": changes, "is_eureka_moment": is_eureka_moment(changes, insights)}

    assert insights == []
    assert classify_event_type(version) == "checkpoint"
    assert calculate_impact(version) == "low"


def test_cross_context_edges_are_high_impact():
    contexts = {"Jean": "Personnages", "Bar": "Lieux", "Marie": "Personnages"}
    current = make_graph([("Jean", "Bar"), ("Jean", "Marie")], contexts=contexts)

    impacts = {c["element_id"]: c["impact"] for c in changes_of(detect_semantic_changes(current, None), "edge_added")}

    assert impacts == {"Jean->Bar": "high", "Jean->Marie": "medium"}


def test_relabeled_edge_is_not_a_change():
    previous = make_graph([("A", "B")], label="connaît")
    current = make_graph([("A", "B")], label="aime")

    assert detect_semantic_changes(current, previous) == []


def test_density_jump_is_structural():
    previous = make_graph([], isolated=["A", "B", "C"])
    current = make_graph([("A", "B"), ("B", "C"), ("C", "A")])

    structural = changes_of(detect_semantic_changes(current, previous), "structural_change")

    assert len(structural) == 1
    assert structural[0]["impact"] == "high"


def test_bridge_insight_needs_both_contexts_to_exist_before():
    contexts = {"Jean": "Personnages", "Bar": "Lieux"}
    previous = make_graph([], isolated=["Jean", "Bar"], contexts=contexts)
    current = make_graph([("Jean", "Bar")], contexts=contexts)

    changes = detect_semantic_changes(current, previous)
    insights = detect_insights(changes, current, previous)

    assert "Pont conceptuel créé: Nouvelle relation: Jean -> lié à -> Bar" in insights
    fresh = detect_insights(detect_semantic_changes(current, None), current, None)
    assert not any(i.startswith("Pont conceptuel") for i in fresh)


def test_confidence():
    assert calculate_confidence({}) == 0.0
    assert calculate_confidence(make_graph([("A", "B"), ("B", "C"), ("C", "D")])) == pytest.approx(0.25)
    assert calculate_confidence(make_graph([("A", "B")], isolated=["C", "D"])) == pytest.approx(1 / 4 / 3 * 0.75)
    dense = make_graph([("A", "B")] * 10)
    assert calculate_confidence(dense) == 1.0


def test_hash_ignores_key_order():
    first = {"nodes": [{"id": "A", "label": "A"}], "edges": []}
    second = {"edges": [], "nodes": [{"label": "A", "id": "A"}]}

    assert calculate_graph_hash(first) == calculate_graph_hash(second)
    assert calculate_graph_hash(first) != calculate_graph_hash({"nodes": [], "edges": []})


def test_eureka_and_tags():
    many_high = [{"type": "edge_added", "impact": "high"}] * 5
    assert is_eureka_moment(many_high, [])
    assert is_eureka_moment([{"type": "structural_change", "impact": "high"}], [])
    assert is_eureka_moment([], ["a", "b", "c"])
    assert not is_eureka_moment([{"type": "node_added", "impact": "low"}], ["a"])

    changes = [{"type": "node_added", "impact": "low"}, {"type": "edge_added", "impact": "medium"}]
    assert generate_tags(changes, []) == ["expansion", "connexion"]
    assert generate_tags([{"type": "structural_change", "impact": "high"}], ["x"]) == [
        "restructuration", "insight",
    ]


def test_compare_graphs():
    first = make_graph([("A", "B")])
    second = make_graph([("A", "C")])

    comparison = compare_graphs(first, second)

    assert [n["id"] for n in comparison["added_nodes"]] == ["C"]
    assert [n["id"] for n in comparison["removed_nodes"]] == ["B"]
    assert [(e["from"], e["to"]) for e in comparison["added_edges"]] == [("A", "C")]
    assert [(e["from"], e["to"]) for e in comparison["removed_edges"]] == [("A", "B")]


@pytest.mark.parametrize("version,event_type", [
    ({"is_eureka_moment": True, "is_restore": True, "changes": []}, "eureka"),
    ({"is_restore": True, "changes": []}, "restore"),
    ({"changes": []}, "checkpoint"),
    ({"changes": [{}] * 3}, "minor"),
    ({"changes": [{}] * 10}, "major"),
    ({"changes": [{}] * 11}, "massive"),
])
def test_classify_event_type(version, event_type):
    assert classify_event_type(version) == event_type


def test_calculate_impact():
    assert calculate_impact({"changes": [{"impact": "high"}] * 3}) == "high"
    assert calculate_impact({"changes": [], "is_eureka_moment": True}) == "high"
    assert calculate_impact({"changes": [{"impact": "high"}]}) == "medium"
    assert calculate_impact({"changes": [{"impact": "low"}] * 5}) == "medium"
    assert calculate_impact({"changes": []}) == "low"


# ============================================================================
# History store
# ============================================================================

def test_save_version_records_diff_and_metrics(history, chain_graph):
    version = history.save_version(chain_graph, description="départ")

    assert version["id"] == "v1"
    assert version["timestamp"] == 1000
    assert version["description"] == "départ"
    assert version["metrics"]["node_count"] == 4
    assert version["metrics"]["density"] == 0.5
    assert version["graph_hash"] == calculate_graph_hash(chain_graph)
    assert len(changes_of(version["changes"], "node_added")) == 4
    assert "expansion" in version["tags"]


def test_saved_graph_is_a_copy(history, chain_graph):
    version = history.save_version(chain_graph)
    chain_graph["nodes"].append({"id": "Z", "label": "Z", "context": "general"})

    assert len(version["graph_data"]["nodes"]) == 4


def test_history_survives_reload(tmp_path, chain_graph):
    path = tmp_path / "versions.json"
    VersionHistory(JsonFilePersistence(path)).save_version(chain_graph)

    reloaded = VersionHistory(JsonFilePersistence(path))

    assert reloaded.count() == 1
    assert reloaded.list_versions()[0]["id"] == "v1"
    assert json.loads(path.read_text(encoding="utf-8"))[0]["graph_data"] == chain_graph


def test_ids_do_not_collide_after_delete(history, chain_graph):
    for _ in range(3):
        history.save_version(chain_graph)

    history.delete_version("v2")
    version = history.save_version(chain_graph)

    assert version["id"] == "v4"
    assert [v["id"] for v in history.list_versions()] == ["v4", "v3", "v1"]


def test_restore_appends_copy(history, chain_graph, star_graph):
    history.save_version(chain_graph)
    history.save_version(star_graph, previous=chain_graph)

    restored = history.restore_version("v1")

    assert restored["id"] == "v3"
    assert restored["is_restore"] is True
    assert restored["restored_from"] == "v1"
    assert restored["description"] == "Restauration de v1"
    assert restored["graph_data"] == chain_graph
    assert restored["changes"] == []
    assert history.count() == 3


def test_unknown_versions_raise(history):
    with pytest.raises(VersionNotFoundError):
        history.restore_version("v9")
    with pytest.raises(VersionNotFoundError):
        history.delete_version("v9")
    with pytest.raises(VersionNotFoundError):
        history.compare_versions("v1", "v2")


def test_compare_versions(history, chain_graph):
    history.save_version(make_graph([("A", "B")]))
    history.save_version(chain_graph)

    comparison = history.compare_versions("v1", "v2")

    assert [n["id"] for n in comparison["added_nodes"]] == ["C", "D"]
    assert comparison["removed_nodes"] == []
    assert comparison["metrics_delta"]["node_count_delta"] == 2
    assert comparison["metrics_delta"]["edge_count_delta"] == 2
    assert comparison["version1"]["id"] == "v1"


def test_compare_recomputes_missing_metrics(tmp_path):
    path = tmp_path / "versions.json"
    path.write_text(json.dumps([
        {"id": "v1", "timestamp": 1, "graph_data": make_graph([("A", "B")])},
        {"id": "v2", "timestamp": 2, "graph_data": make_graph([("A", "B"), ("B", "C")])},
    ]), encoding="utf-8")
    history = VersionHistory(JsonFilePersistence(path))

    delta = history.compare_versions("v1", "v2")["metrics_delta"]

    assert delta["node_count_delta"] == 1
    assert delta["edge_count_delta"] == 1
    assert delta["components_delta"] == 0


def test_clear_empties_file(tmp_path, chain_graph):
    path = tmp_path / "versions.json"
    history = VersionHistory(JsonFilePersistence(path))
    history.save_version(chain_graph)

    history.clear()

    assert history.count() == 0
    assert json.loads(path.read_text(encoding="utf-8")) == []


def test_failed_write_keeps_versions_in_memory(tmp_path, chain_graph):
    # The target path is a directory, so the atomic replace fails
    history = VersionHistory(JsonFilePersistence(tmp_path))

    history.save_version(chain_graph)

    assert history.count() == 1
    assert tmp_path.is_dir()


def test_evolution_timeline(history, chain_graph):
    history.save_version(chain_graph)
    history.save_version(chain_graph, previous=chain_graph)
    history.restore_version("v1")

    timeline = history.evolution_timeline()

    assert [e["version_id"] for e in timeline] == ["v1", "v2", "v3"]
    # First snapshot of a connected graph is a structural jump from nothing
    assert [e["type"] for e in timeline] == ["eureka", "checkpoint", "restore"]
    assert timeline[0]["impact"] == "high"
    assert timeline[0]["delta_from_previous"] is None
    assert timeline[1]["insights"] == []
    assert timeline[1]["delta_from_previous"] == {
        "time_elapsed": 1,
        "changes_count": 0,
        "confidence_delta": 0.0,
    }
