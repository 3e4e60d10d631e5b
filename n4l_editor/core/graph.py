"""Traversal primitives and structural metrics over GraphData.

Everything here treats the graph as undirected and works on plain
dicts, so the same helpers serve the analyzers, the density map and
the version diff engine.
"""

from collections import deque

from .types import GraphData


def build_adjacency(graph: GraphData) -> dict[str, list[str]]:
    """Undirected adjacency lists, neighbors in edge order."""
    adjacency: dict[str, list[str]] = {}
    for edge in graph.get("edges") or []:
        adjacency.setdefault(edge["from"], []).append(edge["to"])
        adjacency.setdefault(edge["to"], []).append(edge["from"])
    return adjacency


def node_ids(graph: GraphData) -> list[str]:
    return [node["id"] for node in graph.get("nodes") or []]


def node_degrees(graph: GraphData) -> dict[str, int]:
    """Degree of every listed node; self-loops count twice."""
    degrees = {node_id: 0 for node_id in node_ids(graph)}
    for edge in graph.get("edges") or []:
        degrees[edge["from"]] = degrees.get(edge["from"], 0) + 1
        degrees[edge["to"]] = degrees.get(edge["to"], 0) + 1
    return degrees


def find_orphans(graph: GraphData) -> list[str]:
    """Listed nodes that no edge touches."""
    connected = set()
    for edge in graph.get("edges") or []:
        connected.add(edge["from"])
        connected.add(edge["to"])
    return [node_id for node_id in node_ids(graph) if node_id not in connected]


def find_path(start: str, end: str, adjacency: dict[str, list[str]]) -> list[str] | None:
    """Shortest path by BFS, or None when end is unreachable."""
    if start == end:
        return [start]

    parents: dict[str, str | None] = {start: None}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for neighbor in adjacency.get(current, []):
            if neighbor in parents:
                continue
            parents[neighbor] = current
            if neighbor == end:
                path = [end]
                while parents[path[-1]] is not None:
                    path.append(parents[path[-1]])
                return path[::-1]
            queue.append(neighbor)
    return None


def bfs_distances(start: str, adjacency: dict[str, list[str]]) -> dict[str, int]:
    distances = {start: 0}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        for neighbor in adjacency.get(current, []):
            if neighbor not in distances:
                distances[neighbor] = distances[current] + 1
                queue.append(neighbor)
    return distances


def dfs_order(start: str, adjacency: dict[str, list[str]], visited: set[str]) -> list[str]:
    """
    Pre-order DFS from start, marking nodes in visited.

    Uses an explicit stack of neighbor iterators so the visit order is
    the one a recursive edge-scan DFS produces.
    """
    visited.add(start)
    order = [start]
    stack = [iter(adjacency.get(start, []))]
    while stack:
        for neighbor in stack[-1]:
            if neighbor not in visited:
                visited.add(neighbor)
                order.append(neighbor)
                stack.append(iter(adjacency.get(neighbor, [])))
                break
        else:
            stack.pop()
    return order


def connected_components(graph: GraphData) -> list[list[str]]:
    """Components in node-list order. Each node appears in exactly one."""
    adjacency = build_adjacency(graph)
    visited: set[str] = set()
    components = []
    for node_id in node_ids(graph):
        if node_id not in visited:
            components.append(dfs_order(node_id, adjacency, visited))
    return components


def count_internal_edges(nodes: list[str], graph: GraphData) -> int:
    members = set(nodes)
    return sum(
        1 for edge in graph.get("edges") or []
        if edge["from"] in members and edge["to"] in members
    )


def cluster_density(nodes: list[str], graph: GraphData) -> float:
    """Internal edges over n(n-1)/2, capped at 1."""
    n = len(nodes)
    if n < 2:
        return 0.0
    return min(count_internal_edges(nodes, graph) / (n * (n - 1) / 2), 1.0)


def global_density(graph: GraphData) -> float:
    """E / (n(n-1)/2), capped at 1; 0 for graphs with fewer than two nodes."""
    n = len(graph.get("nodes") or [])
    if n < 2:
        return 0.0
    return min(len(graph.get("edges") or []) / (n * (n - 1) / 2), 1.0)


def average_degree(graph: GraphData) -> float:
    n = len(graph.get("nodes") or [])
    if n == 0:
        return 0.0
    return 2 * len(graph.get("edges") or []) / n


def clustering_coefficient(graph: GraphData) -> float:
    """Mean local clustering coefficient over nodes with two or more neighbors."""
    ids = node_ids(graph)
    if not ids:
        return 0.0

    neighbors: dict[str, set[str]] = {node_id: set() for node_id in ids}
    for edge in graph.get("edges") or []:
        if edge["from"] == edge["to"]:
            continue
        neighbors.setdefault(edge["from"], set()).add(edge["to"])
        neighbors.setdefault(edge["to"], set()).add(edge["from"])

    total = 0.0
    counted = 0
    for node_id in ids:
        adjacent = list(neighbors[node_id])
        k = len(adjacent)
        if k < 2:
            continue
        counted += 1
        links = sum(
            1
            for i in range(k)
            for j in range(i + 1, k)
            if adjacent[j] in neighbors[adjacent[i]]
        )
        total += links / (k * (k - 1) / 2)
    return total / counted if counted else 0.0


def max_path_length(graph: GraphData) -> int:
    """Longest shortest-path length, in edges, between any reachable pair."""
    adjacency = build_adjacency(graph)
    longest = 0
    for node_id in node_ids(graph):
        distances = bfs_distances(node_id, adjacency)
        longest = max(longest, max(distances.values()))
    return longest
