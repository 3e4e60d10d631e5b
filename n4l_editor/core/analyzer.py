"""Graph analyzer: expansion cones, term clusters, paths, layers and questions."""

import logging
from collections import deque

from .constants import (
    LAYERS,
    LAYER_RULES,
    DEFAULT_LAYER,
    LAYER_SPACING_X,
    NODE_BASE_SIZE,
    NODE_SIZE_PER_EDGE,
    DEFAULT_CONTEXT,
    MAX_INVESTIGATION_QUESTIONS,
    PRIORITY_ORDER,
)
from .graph import (
    build_adjacency,
    connected_components,
    find_orphans,
    find_path,
)
from .parser import N4LParser
from .types import Edge, GraphData
from .utils import is_capitalized

logger = logging.getLogger(__name__)


class GraphAnalyzer:
    """
    Read-only analyses over a graph snapshot.

    Holds no state between calls beyond its configuration tables.
    """

    def __init__(self, parser: N4LParser | None = None,
                 layer_rules=LAYER_RULES, layers=LAYERS):
        self.parser = parser or N4LParser()
        self.layer_rules = layer_rules
        self.layers = layers

    # ========================================================================
    # Neighborhoods and paths
    # ========================================================================

    def get_expansion_cone(self, node_id: str, depth: int,
                           graph: GraphData) -> tuple[list[str], list[Edge]]:
        """
        Nodes within `depth` undirected hops of node_id, plus the edges
        whose endpoints both lie in that set.

        A node reached at level `depth` is included but not expanded.
        """
        adjacency = build_adjacency(graph)
        cone = [node_id]
        seen = {node_id}
        queue = deque([(node_id, 0)])

        while queue:
            current, level = queue.popleft()
            if level >= depth:
                continue
            for neighbor in adjacency.get(current, []):
                if neighbor not in seen:
                    seen.add(neighbor)
                    cone.append(neighbor)
                    queue.append((neighbor, level + 1))

        edges = [
            edge for edge in graph.get("edges") or []
            if edge["from"] in seen and edge["to"] in seen
        ]
        return cone, edges

    def find_clusters_and_paths(self, terms: list[str],
                                graph: GraphData) -> tuple[dict[str, list[str]], list[list[str]]]:
        """
        Group nodes whose label matches any term into connected clusters,
        then link each pair of clusters by the shortest path in the full graph.
        """
        lowered = [term.lower() for term in terms if term]
        matching = [
            node["id"] for node in graph.get("nodes") or []
            if any(term in node["label"].lower() for term in lowered)
        ]
        matching_set = set(matching)

        adjacency = build_adjacency(graph)
        clusters: dict[str, list[str]] = {}
        visited: set[str] = set()

        for node_id in matching:
            if node_id in visited:
                continue
            visited.add(node_id)
            component = []
            stack = [node_id]
            while stack:
                current = stack.pop()
                component.append(current)
                for neighbor in adjacency.get(current, []):
                    if neighbor in matching_set and neighbor not in visited:
                        visited.add(neighbor)
                        stack.append(neighbor)
            clusters[f"cluster-{len(clusters)}"] = component

        paths = []
        members = list(clusters.values())
        for i in range(len(members)):
            for j in range(i + 1, len(members)):
                shortest = self._shortest_between(members[i], members[j], adjacency)
                if shortest:
                    paths.append(shortest)

        logger.debug(f"Term search {terms}: {len(clusters)} clusters, {len(paths)} paths")
        return clusters, paths

    def _shortest_between(self, cluster_a: list[str], cluster_b: list[str],
                          adjacency: dict[str, list[str]]) -> list[str] | None:
        shortest = None
        for start in cluster_a:
            for end in cluster_b:
                path = find_path(start, end, adjacency)
                if path and (shortest is None or len(path) < len(shortest)):
                    shortest = path
        return shortest

    def find_all_paths(self, notes: dict[str, list[str]]) -> list[list[str]]:
        """Shortest path for every node pair, kept when it has more than 2 nodes."""
        graph = self.parser.parse_to_graph(notes)
        adjacency = build_adjacency(graph)
        nodes = list(adjacency)

        paths = []
        for i in range(len(nodes)):
            for j in range(i + 1, len(nodes)):
                path = find_path(nodes[i], nodes[j], adjacency)
                if path and len(path) > 2:
                    paths.append(path)
        return paths

    # ========================================================================
    # Layered layout
    # ========================================================================

    def classify_layer(self, label: str, context: str) -> str:
        """First matching rule wins; rule order is part of the contract."""
        lower_label = label.lower()
        lower_context = context.lower()

        if is_capitalized(label) and " " not in lower_label:
            return "actors"

        for layer, context_words, label_words in self.layer_rules:
            if any(word in lower_context for word in context_words):
                return layer
            if any(word in lower_label for word in label_words):
                return layer
        return DEFAULT_LAYER

    def get_layered_graph(self, graph: GraphData) -> dict:
        """Assign nodes to horizontal layers and center each layer on x=0."""
        edges = graph.get("edges") or []
        degrees: dict[str, int] = {}
        for edge in edges:
            degrees[edge["from"]] = degrees.get(edge["from"], 0) + 1
            degrees[edge["to"]] = degrees.get(edge["to"], 0) + 1

        assigned = [
            (node, self.classify_layer(node["label"], node.get("context", "")))
            for node in graph.get("nodes") or []
        ]
        layer_sizes: dict[str, int] = {}
        for _, layer in assigned:
            layer_sizes[layer] = layer_sizes.get(layer, 0) + 1

        placed: dict[str, int] = {}
        nodes = []
        for node, layer in assigned:
            index = placed.get(layer, 0)
            placed[layer] = index + 1
            start_x = -(layer_sizes[layer] * LAYER_SPACING_X) // 2
            layer_info = self.layers[layer]
            nodes.append({
                "id": node["id"],
                "label": node["label"],
                "context": node.get("context", ""),
                "layer": layer,
                "x": float(start_x + index * LAYER_SPACING_X),
                "y": float(layer_info["y"]),
                "color": layer_info["color"],
                "shape": layer_info["shape"],
                "size": NODE_BASE_SIZE + NODE_SIZE_PER_EDGE * degrees.get(node["id"], 0),
            })

        layers = {
            key: {"y": layer_info["y"], "color": layer_info["color"], "label": layer_info["name"]}
            for key, layer_info in self.layers.items()
        }
        return {"nodes": nodes, "edges": edges, "layers": layers}

    # ========================================================================
    # Investigation questions
    # ========================================================================

    def generate_investigation_questions(self, graph: GraphData) -> list[dict]:
        """
        Ranked questions about gaps in the graph: important orphans,
        under-connected nodes and disconnected clusters. At most ten.
        """
        nodes_by_id = {node["id"]: node for node in graph.get("nodes") or []}
        questions = []

        for orphan in find_orphans(graph):
            importance = self._node_importance(nodes_by_id[orphan])
            if importance > 0.5:
                questions.append({
                    "question": f"Comment '{orphan}' est-il lié aux autres éléments ?",
                    "type": "orphan",
                    "priority": _priority_from_importance(importance),
                    "context": "Connexions manquantes",
                    "nodes": [orphan],
                    "hint": "Cet élément semble isolé. Cherchez des relations possibles.",
                })

        questions.extend(self._pattern_questions(graph))

        large = [c for c in connected_components(graph) if len(c) > 1]
        for i in range(len(large)):
            for j in range(i + 1, len(large)):
                questions.append({
                    "question": (
                        "Quelle connexion existe entre ces groupes : "
                        f"{large[i][0]} et {large[j][0]} ?"
                    ),
                    "type": "missing_link",
                    "priority": "medium",
                    "context": "Groupes isolés",
                    "nodes": large[i] + large[j],
                    "hint": "Ces éléments forment des groupes séparés qui pourraient être liés.",
                })

        questions.sort(key=lambda q: PRIORITY_ORDER[q["priority"]])
        return questions[:MAX_INVESTIGATION_QUESTIONS]

    def _node_importance(self, node: dict) -> float:
        label = node.get("label", "")
        context = node.get("context", "")
        importance = 0.3
        if is_capitalized(label):
            importance += 0.3
        if len(label) > 10:
            importance += 0.2
        if context and context != DEFAULT_CONTEXT:
            importance += 0.2
        return importance

    def _pattern_questions(self, graph: GraphData) -> list[dict]:
        in_counts: dict[str, int] = {}
        out_counts: dict[str, int] = {}
        # Edges touching a node, a self-loop counted once
        touching: dict[str, int] = {}
        for edge in graph.get("edges") or []:
            out_counts[edge["from"]] = out_counts.get(edge["from"], 0) + 1
            in_counts[edge["to"]] = in_counts.get(edge["to"], 0) + 1
            for node_id in {edge["from"], edge["to"]}:
                touching[node_id] = touching.get(node_id, 0) + 1

        classes: dict[str, list[str]] = {}
        for node_id in (node["id"] for node in graph.get("nodes") or []):
            pattern = connection_pattern(in_counts.get(node_id, 0), out_counts.get(node_id, 0))
            classes.setdefault(pattern, []).append(node_id)

        questions = []
        for members in classes.values():
            totals = {m: touching.get(m, 0) for m in members}
            average = sum(totals.values()) / len(members)
            for member in members:
                if totals[member] < average * 0.5:
                    questions.append({
                        "question": (
                            f"Pourquoi '{member}' a-t-il moins de connexions "
                            "que les autres éléments similaires ?"
                        ),
                        "type": "pattern",
                        "priority": "medium",
                        "context": "Pattern incomplet",
                        "nodes": [member],
                        "hint": (
                            f"Cet élément a {totals[member]} connexions alors que "
                            f"la moyenne est {average:.1f}"
                        ),
                    })
        return questions


def connection_pattern(in_count: int, out_count: int) -> str:
    """Name a node's connection shape from its in/out degrees."""
    if in_count > out_count * 2:
        return "receiver"
    if out_count > in_count * 2:
        return "emitter"
    if in_count + out_count > 5:
        return "hub"
    if in_count + out_count == 0:
        return "isolated"
    return "standard"


def _priority_from_importance(importance: float) -> str:
    if importance > 0.7:
        return "high"
    if importance > 0.5:
        return "medium"
    return "low"
