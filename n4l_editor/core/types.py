"""Type definitions for N4L graphs and versions."""

from typing import TypedDict, NotRequired


class Node(TypedDict):
    """Node in the semantic graph. The label is the identity."""
    id: str
    label: str
    context: str


# 'from' is a keyword, hence the functional form
Edge = TypedDict("Edge", {
    "id": str,
    "from": str,
    "to": str,
    "label": str,
    "type": str,
    "context": str,
})


class Position(TypedDict):
    x: float
    y: float


class GraphData(TypedDict):
    """Graph exchanged with clients."""
    nodes: list[Node]
    edges: list[Edge]
    positions: NotRequired[dict[str, Position]]


class ParseResult(TypedDict):
    subjects: list[str]
    notes: dict[str, list[str]]


class GraphMetrics(TypedDict):
    node_count: int
    edge_count: int
    density: float
    components: int
    average_degree: float
    orphan_nodes: int
    max_path_length: int
    clustering_coeff: float


class SemanticChange(TypedDict):
    type: str
    element_id: str
    description: str
    impact: str


class SemanticVersion(TypedDict):
    """Snapshot of a graph with its diff against the previous state."""
    id: str
    timestamp: float
    graph_hash: str
    graph_data: GraphData
    changes: list[SemanticChange]
    insights: list[str]
    confidence: float
    description: str
    tags: list[str]
    metrics: GraphMetrics
    is_eureka_moment: bool
    is_restore: NotRequired[bool]
    restored_from: NotRequired[str]
