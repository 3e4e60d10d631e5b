"""Tests for the consistency heuristics."""

import pytest

from n4l_editor.core.consistency import ConsistencyChecker

from conftest import make_graph, relation


@pytest.fixture
def checker():
    return ConsistencyChecker()


def kinds(issues):
    return [issue["type"] for issue in issues]


def test_temporal_cycle_is_reported(checker):
    graph = make_graph([("A", "B"), ("B", "C"), ("C", "A")], label="précède")

    issues = checker.detect_temporal_cycles(graph)

    assert len(issues) == 1
    assert issues[0]["severity"] == "error"
    assert issues[0]["nodes"] == ["A", "B", "C", "A"]
    assert "A → B → C → A" in issues[0]["description"]


def test_temporal_chain_without_cycle_is_clean(checker):
    graph = make_graph([("A", "B"), ("B", "C"), ("A", "C")], label="précède")

    assert checker.detect_temporal_cycles(graph) == []


def test_cycle_through_non_temporal_labels_is_ignored(checker):
    graph = make_graph([("A", "B"), ("B", "C"), ("C", "A")], label="connaît")

    assert checker.detect_temporal_cycles(graph) == []


def test_cycle_mixing_temporal_keywords(checker):
    graph = make_graph([])
    graph["nodes"] = [{"id": n, "label": n, "context": "general"} for n in ("X", "Y")]
    graph["edges"] = [relation("X", "Y", "puis"), relation("Y", "X", "avant le départ")]

    assert kinds(checker.check(graph)) == ["temporal_cycle"]


def test_contradictory_relations(checker):
    graph = {
        "nodes": [{"id": n, "label": n, "context": "general"} for n in ("Pluie", "Sortie")],
        "edges": [relation("Pluie", "Sortie", "cause"), relation("Pluie", "Sortie", "empêche")],
    }

    issues = checker.detect_contradictory_relations(graph)

    assert len(issues) == 1
    assert issues[0]["nodes"] == ["Pluie", "Sortie"]
    assert issues[0]["severity"] == "warning"
    assert "'cause' et 'empêche'" in issues[0]["description"]


def test_relations_in_opposite_directions_are_not_compared(checker):
    graph = {
        "nodes": [{"id": n, "label": n, "context": "general"} for n in ("A", "B")],
        "edges": [relation("A", "B", "cause"), relation("B", "A", "empêche")],
    }

    assert checker.detect_contradictory_relations(graph) == []


def test_inconsistent_equivalence(checker):
    edges = [
        relation("Jean", "Johnny", "", "equivalence"),
        relation("Jean", "Paris", "habite"),
        relation("Jean", "Casino", "fréquente"),
        relation("Jean", "Victor", "neveu de"),
    ]
    nodes = {e["from"] for e in edges} | {e["to"] for e in edges}
    graph = {"nodes": [{"id": n, "label": n, "context": "general"} for n in sorted(nodes)], "edges": edges}

    issues = checker.detect_inconsistent_equivalences(graph)

    assert len(issues) == 1
    assert issues[0]["nodes"] == ["Jean", "Johnny"]
    assert issues[0]["severity"] == "info"


def test_equivalence_with_small_difference_is_accepted(checker):
    edges = [
        relation("Jean", "Johnny", "", "equivalence"),
        relation("Jean", "Paris", "habite"),
        relation("Johnny", "Casino", "fréquente"),
    ]
    graph = {"nodes": [], "edges": edges}

    assert checker.detect_inconsistent_equivalences(graph) == []


def test_important_orphans(checker):
    graph = {
        "nodes": [
            {"id": "Victor", "label": "Victor", "context": "general"},
            {"id": "détail", "label": "détail", "context": "general"},
            {"id": "indice clé", "label": "indice clé", "context": "general"},
            {"id": "une longue remarque", "label": "une longue remarque", "context": "Lieux"},
            {"id": "une longue remarque bis", "label": "une longue remarque bis", "context": "general"},
        ],
        "edges": [],
    }

    issues = checker.detect_important_orphans(graph)

    assert [issue["nodes"] for issue in issues] == [["Victor"], ["indice clé"], ["une longue remarque"]]
    assert all(issue["type"] == "orphan_node" for issue in issues)


def test_connected_nodes_are_never_orphans(checker):
    graph = make_graph([("Victor", "Jean")])

    assert checker.detect_important_orphans(graph) == []


def test_disconnected_group(checker):
    members = ["m1", "m2", "m3", "m4"]
    graph = make_graph([("G", m) for m in members], edge_type="group", label="contient")

    issues = checker.detect_disconnected_groups(graph)

    assert len(issues) == 1
    assert issues[0]["nodes"] == ["G", *members]


def test_small_or_linked_groups_are_accepted(checker):
    small = make_graph([("G", m) for m in ("m1", "m2", "m3")], edge_type="group", label="contient")
    assert checker.detect_disconnected_groups(small) == []

    linked = make_graph([("G", m) for m in ("m1", "m2", "m3", "m4")], edge_type="group", label="contient")
    linked["edges"].append(relation("m4", "m2", "connaît"))
    assert checker.detect_disconnected_groups(linked) == []


def test_check_concatenates_heuristics_in_order(checker):
    graph = make_graph([("A", "B"), ("B", "A")], label="précède", isolated=["Orphelin"])
    graph["edges"].append(relation("A", "B", "suit"))

    assert kinds(checker.check(graph)) == ["temporal_cycle", "contradictory_relations", "orphan_node"]


def test_empty_graph_has_no_issues(checker):
    assert checker.check({"nodes": [], "edges": []}) == []
