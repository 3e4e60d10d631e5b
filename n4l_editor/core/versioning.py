"""Semantic versioning of graph snapshots.

The module-level functions form the diff engine and are pure. The
VersionHistory class owns the ordered list of versions and its file.
"""

import copy
import hashlib
import json
import logging
import threading
import time

from .constants import (
    STRUCTURAL_COMPONENT_DELTA,
    STRUCTURAL_DENSITY_DELTA,
    EUREKA_MIN_INSIGHTS,
    EUREKA_MIN_HIGH_IMPACT,
    INSIGHT_MIN_HIGH_IMPACT,
    INSIGHT_MIN_CHANGES,
)
from .exceptions import VersionNotFoundError
from .graph import (
    average_degree,
    clustering_coefficient,
    connected_components,
    find_orphans,
    global_density,
    max_path_length,
)
from .persistence import JsonFilePersistence
from .types import GraphData, GraphMetrics, SemanticChange, SemanticVersion
from .utils import edge_pair_key

logger = logging.getLogger(__name__)

EMPTY_GRAPH: GraphData = {"nodes": [], "edges": []}


# ============================================================================
# Diff engine
# ============================================================================

def calculate_graph_hash(graph: GraphData) -> str:
    """MD5 of the graph's canonical JSON form."""
    canonical = json.dumps(graph, sort_keys=True, ensure_ascii=False, separators=(",", ":"))
    return hashlib.md5(canonical.encode("utf-8")).hexdigest()


def calculate_metrics(graph: GraphData) -> GraphMetrics:
    return {
        "node_count": len(graph.get("nodes") or []),
        "edge_count": len(graph.get("edges") or []),
        "density": global_density(graph),
        "components": len(connected_components(graph)),
        "average_degree": average_degree(graph),
        "orphan_nodes": len(find_orphans(graph)),
        "max_path_length": max_path_length(graph),
        "clustering_coeff": clustering_coefficient(graph),
    }


def _node_contexts(graph: GraphData) -> dict[str, str]:
    return {node["id"]: node.get("context", "") for node in graph.get("nodes") or []}


def _edges_by_key(graph: GraphData) -> dict[str, dict]:
    edges = {}
    for edge in graph.get("edges") or []:
        edges.setdefault(edge_pair_key(edge["from"], edge["to"]), edge)
    return edges


def is_cross_context(edge: dict, contexts: dict[str, str]) -> bool:
    """True when both endpoints have known, different, non-empty contexts."""
    source = contexts.get(edge["from"], "")
    target = contexts.get(edge["to"], "")
    return bool(source) and bool(target) and source != target


def detect_structural_change(current: GraphData, previous: GraphData) -> bool:
    current_components = len(connected_components(current))
    previous_components = len(connected_components(previous))
    if abs(current_components - previous_components) >= STRUCTURAL_COMPONENT_DELTA:
        return True
    return abs(global_density(current) - global_density(previous)) > STRUCTURAL_DENSITY_DELTA


def detect_semantic_changes(current: GraphData, previous: GraphData | None) -> list[SemanticChange]:
    """
    Diff two snapshots into semantic change records.

    Only additions are recorded; compare_graphs reports removals. Edges are
    identified by their endpoints ("from->to"), so relabeling an edge is not
    a change.
    """
    previous = previous or EMPTY_GRAPH
    changes: list[SemanticChange] = []

    current_nodes = {node["id"]: node for node in current.get("nodes") or []}
    previous_nodes = {node["id"]: node for node in previous.get("nodes") or []}

    for node_id, node in current_nodes.items():
        if node_id not in previous_nodes:
            changes.append({
                "type": "node_added",
                "element_id": node_id,
                "description": f"Ajout du concept '{node.get('label', node_id)}'",
                "impact": "low",
            })

    current_edges = _edges_by_key(current)
    previous_edges = _edges_by_key(previous)
    contexts = _node_contexts(current)

    for key, edge in current_edges.items():
        if key not in previous_edges:
            changes.append({
                "type": "edge_added",
                "element_id": key,
                "description": f"Nouvelle relation: {edge['from']} -> {edge.get('label', '')} -> {edge['to']}",
                "impact": "high" if is_cross_context(edge, contexts) else "medium",
            })

    if detect_structural_change(current, previous):
        changes.append({
            "type": "structural_change",
            "element_id": "graph",
            "description": "Changement structurel majeur détecté",
            "impact": "high",
        })

    return changes


def calculate_confidence(graph: GraphData) -> float:
    """Edge richness discounted by the orphan share, in [0, 1]."""
    node_count = len(graph.get("nodes") or [])
    if node_count == 0:
        return 0.0
    edge_ratio = len(graph.get("edges") or []) / node_count
    orphan_ratio = len(find_orphans(graph)) / node_count
    return min(edge_ratio / 3 * (1 - orphan_ratio * 0.5), 1.0)


def detect_insights(changes: list[SemanticChange], current: GraphData,
                    previous: GraphData | None) -> list[str]:
    insights = []
    high_impact = sum(1 for c in changes if c["impact"] == "high")
    if high_impact >= INSIGHT_MIN_HIGH_IMPACT:
        insights.append("Connexions multiples établies - pattern émergent détecté")
    if len(changes) > INSIGHT_MIN_CHANGES:
        insights.append("Expansion rapide du graphe - nouvelle zone de connaissance explorée")

    # A bridge joins two contexts that both existed before this change
    known_contexts = {c for c in _node_contexts(previous or EMPTY_GRAPH).values() if c}
    contexts = _node_contexts(current)
    current_edges = _edges_by_key(current)
    for change in changes:
        if change["type"] != "edge_added":
            continue
        edge = current_edges.get(change["element_id"])
        if (edge and is_cross_context(edge, contexts)
                and contexts[edge["from"]] in known_contexts
                and contexts[edge["to"]] in known_contexts):
            insights.append(f"Pont conceptuel créé: {change['description']}")
    return insights


def is_eureka_moment(changes: list[SemanticChange], insights: list[str]) -> bool:
    if len(insights) >= EUREKA_MIN_INSIGHTS:
        return True
    if any(c["type"] == "structural_change" for c in changes):
        return True
    return sum(1 for c in changes if c["impact"] == "high") >= EUREKA_MIN_HIGH_IMPACT


def generate_tags(changes: list[SemanticChange], insights: list[str]) -> list[str]:
    kinds = {c["type"] for c in changes}
    tags = []
    if "node_added" in kinds:
        tags.append("expansion")
    if "edge_added" in kinds:
        tags.append("connexion")
    if "structural_change" in kinds:
        tags.append("restructuration")
    if insights:
        tags.append("insight")
    return tags


def compare_graphs(first: GraphData, second: GraphData) -> dict:
    """Nodes and edges present in one snapshot but not the other."""
    first_nodes = {node["id"]: node for node in first.get("nodes") or []}
    second_nodes = {node["id"]: node for node in second.get("nodes") or []}
    first_edges = _edges_by_key(first)
    second_edges = _edges_by_key(second)
    return {
        "added_nodes": [n for k, n in second_nodes.items() if k not in first_nodes],
        "removed_nodes": [n for k, n in first_nodes.items() if k not in second_nodes],
        "added_edges": [e for k, e in second_edges.items() if k not in first_edges],
        "removed_edges": [e for k, e in first_edges.items() if k not in second_edges],
    }


def _metrics_of(version: SemanticVersion) -> GraphMetrics:
    """Stored metrics, recomputed for records persisted without them."""
    return version.get("metrics") or calculate_metrics(version.get("graph_data") or EMPTY_GRAPH)


def metrics_delta(first: GraphMetrics, second: GraphMetrics) -> dict:
    return {
        "node_count_delta": second["node_count"] - first["node_count"],
        "edge_count_delta": second["edge_count"] - first["edge_count"],
        "density_delta": second["density"] - first["density"],
        "components_delta": second["components"] - first["components"],
    }


def classify_event_type(version: SemanticVersion) -> str:
    if version.get("is_eureka_moment"):
        return "eureka"
    if version.get("is_restore"):
        return "restore"
    count = len(version.get("changes") or [])
    if count == 0:
        return "checkpoint"
    if count <= 3:
        return "minor"
    if count <= 10:
        return "major"
    return "massive"


def calculate_impact(version: SemanticVersion) -> str:
    changes = version.get("changes") or []
    high_impact = sum(1 for c in changes if c["impact"] == "high")
    if high_impact >= 3 or version.get("is_eureka_moment"):
        return "high"
    if high_impact >= 1 or len(changes) >= 5:
        return "medium"
    return "low"


# ============================================================================
# History store
# ============================================================================

class VersionHistory:
    """
    Ordered list of semantic versions backed by a JSON file.

    Every public method takes the lock; the file is rewritten after
    each mutation. A failed write is logged and the in-memory list kept.
    """

    def __init__(self, persistence: JsonFilePersistence, clock=time.time):
        self.persistence = persistence
        self.clock = clock
        self.lock = threading.RLock()
        loaded = persistence.load(default=[])
        self._versions: list[SemanticVersion] = loaded if isinstance(loaded, list) else []
        logger.info(f"Version history ready: {len(self._versions)} versions")

    def _next_id(self) -> str:
        """Next "vN" id. Caller must hold lock."""
        highest = 0
        for version in self._versions:
            suffix = version["id"][1:]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"v{highest + 1}"

    def _find(self, version_id: str) -> SemanticVersion:
        """Look up a version. Caller must hold lock."""
        for version in self._versions:
            if version["id"] == version_id:
                return version
        raise VersionNotFoundError(version_id)

    def _persist(self) -> bool:
        """Write the list to disk. Caller must hold lock."""
        saved = self.persistence.save(self._versions)
        if not saved:
            logger.error("Version history kept in memory only; write failed")
        return saved

    def save_version(self, graph: GraphData, previous: GraphData | None = None,
                     description: str = "") -> SemanticVersion:
        """Record a snapshot with its diff against `previous`."""
        changes = detect_semantic_changes(graph, previous)
        insights = detect_insights(changes, graph, previous)

        with self.lock:
            version: SemanticVersion = {
                "id": self._next_id(),
                "timestamp": self.clock(),
                "graph_hash": calculate_graph_hash(graph),
                "graph_data": copy.deepcopy(graph),
                "changes": changes,
                "insights": insights,
                "confidence": calculate_confidence(graph),
                "description": description,
                "tags": generate_tags(changes, insights),
                "metrics": calculate_metrics(graph),
                "is_eureka_moment": is_eureka_moment(changes, insights),
            }
            self._versions.append(version)
            self._persist()

        logger.info(f"Saved version {version['id']} ({len(changes)} changes)")
        return version

    def restore_version(self, version_id: str) -> SemanticVersion:
        """Append a new version that copies an older one's graph."""
        with self.lock:
            target = self._find(version_id)
            graph = copy.deepcopy(target["graph_data"])
            version: SemanticVersion = {
                "id": self._next_id(),
                "timestamp": self.clock(),
                "graph_hash": calculate_graph_hash(graph),
                "graph_data": graph,
                "changes": [],
                "insights": [],
                "confidence": calculate_confidence(graph),
                "description": f"Restauration de {target['id']}",
                "tags": [],
                "metrics": calculate_metrics(graph),
                "is_eureka_moment": False,
                "is_restore": True,
                "restored_from": target["id"],
            }
            self._versions.append(version)
            self._persist()

        logger.info(f"Restored {version_id} as {version['id']}")
        return version

    def compare_versions(self, first_id: str, second_id: str) -> dict:
        with self.lock:
            first = self._find(first_id)
            second = self._find(second_id)
            comparison = compare_graphs(first["graph_data"], second["graph_data"])
            comparison.update({
                "version1": first,
                "version2": second,
                "metrics_delta": metrics_delta(_metrics_of(first), _metrics_of(second)),
            })
            return comparison

    def delete_version(self, version_id: str) -> None:
        with self.lock:
            self._find(version_id)
            self._versions = [v for v in self._versions if v["id"] != version_id]
            self._persist()
        logger.info(f"Deleted version {version_id}")

    def clear(self) -> None:
        with self.lock:
            self._versions = []
            self._persist()
        logger.info("Version history cleared")

    def list_versions(self) -> list[SemanticVersion]:
        """All versions, newest first."""
        with self.lock:
            return sorted(reversed(self._versions), key=lambda v: v["timestamp"], reverse=True)

    def count(self) -> int:
        with self.lock:
            return len(self._versions)

    def evolution_timeline(self) -> list[dict]:
        """One event per version in recording order, with deltas to the previous one."""
        with self.lock:
            timeline = []
            previous = None
            for version in self._versions:
                event = {
                    "timestamp": version["timestamp"],
                    "version_id": version["id"],
                    "type": classify_event_type(version),
                    "description": version.get("description", ""),
                    "impact": calculate_impact(version),
                    "metrics": version.get("metrics"),
                    "insights": version.get("insights", []) if version.get("is_eureka_moment") else [],
                    "delta_from_previous": None,
                }
                if previous is not None:
                    event["delta_from_previous"] = {
                        "time_elapsed": version["timestamp"] - previous["timestamp"],
                        "changes_count": len(version.get("changes") or []),
                        "confidence_delta": version.get("confidence", 0.0) - previous.get("confidence", 0.0),
                    }
                timeline.append(event)
                previous = version
            return timeline
