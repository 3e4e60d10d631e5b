"""Semantic consistency checks over a graph snapshot."""

import logging

from .constants import (
    TEMPORAL_RELATION_KEYWORDS,
    ANTONYM_PAIRS,
    IMPORTANCE_KEYWORDS,
    DEFAULT_CONTEXT,
    EDGE_RELATION,
    EDGE_EQUIVALENCE,
    EDGE_GROUP,
    MIN_GROUP_SIZE_FOR_CHECK,
    EQUIVALENCE_DIFF_THRESHOLD,
)
from .graph import find_orphans
from .types import GraphData
from .utils import is_capitalized

logger = logging.getLogger(__name__)


def _issue(kind: str, description: str, nodes: list[str], severity: str, suggestion: str) -> dict:
    return {
        "type": kind,
        "description": description,
        "nodes": nodes,
        "severity": severity,
        "suggestion": suggestion,
    }


class ConsistencyChecker:
    """Runs independent heuristics and concatenates their findings."""

    def __init__(self, temporal_keywords=TEMPORAL_RELATION_KEYWORDS,
                 antonym_pairs=ANTONYM_PAIRS, importance_keywords=IMPORTANCE_KEYWORDS):
        self.temporal_keywords = temporal_keywords
        self.antonym_pairs = antonym_pairs
        self.importance_keywords = importance_keywords

    def check(self, graph: GraphData) -> list[dict]:
        issues = []
        issues.extend(self.detect_temporal_cycles(graph))
        issues.extend(self.detect_contradictory_relations(graph))
        issues.extend(self.detect_inconsistent_equivalences(graph))
        issues.extend(self.detect_important_orphans(graph))
        issues.extend(self.detect_disconnected_groups(graph))
        logger.debug(f"Consistency check found {len(issues)} issues")
        return issues

    def detect_temporal_cycles(self, graph: GraphData) -> list[dict]:
        """Report the first cycle among time-ordering relations, if any."""
        successors: dict[str, list[str]] = {}
        for edge in graph.get("edges") or []:
            if edge["type"] != EDGE_RELATION:
                continue
            label = edge["label"].lower()
            if any(keyword in label for keyword in self.temporal_keywords):
                successors.setdefault(edge["from"], []).append(edge["to"])

        cycle = _find_cycle(successors)
        if not cycle:
            return []
        return [_issue(
            "temporal_cycle",
            f"Boucle temporelle détectée : {' → '.join(cycle)}",
            cycle,
            "error",
            "Vérifiez l'ordre chronologique des événements. "
            "Un événement ne peut pas précéder et suivre le même élément.",
        )]

    def detect_contradictory_relations(self, graph: GraphData) -> list[dict]:
        labels_by_pair: dict[tuple[str, str], list[str]] = {}
        for edge in graph.get("edges") or []:
            if edge["type"] == EDGE_RELATION:
                labels_by_pair.setdefault((edge["from"], edge["to"]), []).append(edge["label"])

        issues = []
        for (source, target), labels in labels_by_pair.items():
            for i in range(len(labels)):
                for j in range(i + 1, len(labels)):
                    first, second = labels[i].lower(), labels[j].lower()
                    for word_a, word_b in self.antonym_pairs:
                        if ((word_a in first and word_b in second)
                                or (word_b in first and word_a in second)):
                            issues.append(_issue(
                                "contradictory_relations",
                                f"{source} a des relations contradictoires avec {target} : "
                                f"'{labels[i]}' et '{labels[j]}'",
                                [source, target],
                                "warning",
                                "Clarifiez la nature de la relation entre ces éléments.",
                            ))
        return issues

    def detect_inconsistent_equivalences(self, graph: GraphData) -> list[dict]:
        """Equivalent nodes whose outgoing relations differ by more than two."""
        edges = graph.get("edges") or []
        groups: list[list[str]] = []
        for edge in edges:
            if edge["type"] != EDGE_EQUIVALENCE:
                continue
            for group in groups:
                if edge["from"] in group or edge["to"] in group:
                    for member in (edge["from"], edge["to"]):
                        if member not in group:
                            group.append(member)
                    break
            else:
                groups.append([edge["from"], edge["to"]])

        outgoing: dict[str, set[str]] = {}
        for edge in edges:
            if edge["type"] == EDGE_RELATION:
                outgoing.setdefault(edge["from"], set()).add(f"{edge['to']}:{edge['label']}")

        issues = []
        for group in groups:
            for i in range(len(group)):
                for j in range(i + 1, len(group)):
                    a, b = group[i], group[j]
                    diff = len(outgoing.get(a, set()) ^ outgoing.get(b, set()))
                    if diff > EQUIVALENCE_DIFF_THRESHOLD:
                        issues.append(_issue(
                            "inconsistent_equivalence",
                            f"{a} et {b} sont marqués comme équivalents mais ont des relations très différentes",
                            [a, b],
                            "info",
                            "Vérifiez si ces éléments sont vraiment équivalents "
                            "ou s'il s'agit d'une relation différente.",
                        ))
        return issues

    def detect_important_orphans(self, graph: GraphData) -> list[dict]:
        nodes_by_id = {node["id"]: node for node in graph.get("nodes") or []}
        issues = []
        for orphan in find_orphans(graph):
            node = nodes_by_id[orphan]
            if self.is_likely_important(node.get("label", ""), node.get("context", "")):
                issues.append(_issue(
                    "orphan_node",
                    f"'{node['label']}' semble important mais n'a aucune connexion",
                    [orphan],
                    "info",
                    "Considérez ajouter des relations pour connecter cet élément au reste du graphe.",
                ))
        return issues

    def is_likely_important(self, label: str, context: str) -> bool:
        if is_capitalized(label):
            return True
        if len(label) > 10 and context and context != DEFAULT_CONTEXT:
            return True
        lower = label.lower()
        return any(keyword in lower for keyword in self.importance_keywords)

    def detect_disconnected_groups(self, graph: GraphData) -> list[dict]:
        """Groups of more than three members with no edge between any two members."""
        edges = graph.get("edges") or []
        members_by_parent: dict[str, list[str]] = {}
        for edge in edges:
            if edge["type"] == EDGE_GROUP:
                members_by_parent.setdefault(edge["from"], []).append(edge["to"])

        linked_pairs = {
            frozenset((edge["from"], edge["to"]))
            for edge in edges if edge["from"] != edge["to"]
        }

        issues = []
        for parent, members in members_by_parent.items():
            if len(members) <= MIN_GROUP_SIZE_FOR_CHECK:
                continue
            internal = any(
                frozenset((a, b)) in linked_pairs
                for i, a in enumerate(members)
                for b in members[i + 1:]
                if a != b
            )
            if not internal:
                issues.append(_issue(
                    "disconnected_group",
                    f"Le groupe '{parent}' contient des éléments sans relations entre eux",
                    [parent, *members],
                    "info",
                    "Les membres d'un groupe devraient avoir des relations ou propriétés communes.",
                ))
        return issues


def _find_cycle(successors: dict[str, list[str]]) -> list[str] | None:
    """
    First directed cycle found by DFS, as [start, ..., start].

    Iterative white/gray/black traversal; roots are tried in insertion
    order and neighbors in edge order.
    """
    finished: set[str] = set()
    for root in successors:
        if root in finished:
            continue
        path = [root]
        on_path = {root}
        stack = [iter(successors.get(root, []))]
        while stack:
            for target in stack[-1]:
                if target in on_path:
                    return path[path.index(target):] + [target]
                if target not in finished:
                    path.append(target)
                    on_path.add(target)
                    stack.append(iter(successors.get(target, [])))
                    break
            else:
                stack.pop()
                done = path.pop()
                on_path.discard(done)
                finished.add(done)
    return None
