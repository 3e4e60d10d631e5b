"""Shared fixtures and graph builders."""

import pytest

from n4l_editor.core.utils import edge_storage_key


def make_graph(edges, isolated=(), contexts=None, edge_type="relation", label="lié à"):
    """Graph from (from, to) pairs; nodes appear in first-mention order."""
    contexts = contexts or {}
    node_ids = []
    for source, target in edges:
        for node_id in (source, target):
            if node_id not in node_ids:
                node_ids.append(node_id)
    for node_id in isolated:
        if node_id not in node_ids:
            node_ids.append(node_id)

    return {
        "nodes": [
            {"id": n, "label": n, "context": contexts.get(n, "general")}
            for n in node_ids
        ],
        "edges": [
            {
                "id": edge_storage_key(s, t, label),
                "from": s,
                "to": t,
                "label": label,
                "type": edge_type,
                "context": contexts.get(s, "general"),
            }
            for s, t in edges
        ],
    }


def relation(source, target, label, edge_type="relation", context="general"):
    return {
        "id": edge_storage_key(source, target, label),
        "from": source,
        "to": target,
        "label": label,
        "type": edge_type,
        "context": context,
    }


@pytest.fixture
def chain_graph():
    """A-B-C-D path."""
    return make_graph([("A", "B"), ("B", "C"), ("C", "D")])


@pytest.fixture
def star_graph():
    """Hub connected to five leaves."""
    return make_graph([("hub", f"leaf{i}") for i in range(5)])


@pytest.fixture
def investigation_notes():
    return {
        "Personnages": [
            "Victor -> âge -> 67 ans",
            "Jean -> neveu de -> Victor",
            "Suspects => { Jean; Elodie }",
        ],
        "Lieux": [
            "Jean -> fréquente -> Bar Le Diplomate",
        ],
    }
