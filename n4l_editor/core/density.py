"""Density map, conceptual territories and exploration suggestions."""

import logging
import math

from .constants import (
    GRID_SPACING,
    EMPTY_ZONE_GRID,
    ZONE_RADIUS_PADDING,
    HIGH_DENSITY_COLOR,
    MEDIUM_DENSITY_COLOR,
    LOW_DENSITY_COLOR,
    ISOLATED_TERRITORY_OFFSET,
    DEFAULT_BALANCE_SCORE,
)
from .graph import (
    average_degree,
    build_adjacency,
    cluster_density,
    clustering_coefficient,
    connected_components,
    count_internal_edges,
    find_orphans,
    global_density,
    node_degrees,
)
from .types import GraphData, Position

logger = logging.getLogger(__name__)


class DensityAnalyzer:
    """
    Measures where a graph is dense or sparse and what to connect next.

    Clusters are the graph's connected components; thresholds are relative
    to the average cluster density so classification adapts to each graph.
    """

    # ========================================================================
    # Clusters
    # ========================================================================

    def identify_clusters(self, graph: GraphData) -> list[list[str]]:
        return connected_components(graph)

    def average_cluster_density(self, graph: GraphData,
                                clusters: list[list[str]] | None = None) -> float:
        """Summed density of multi-node clusters over the count of all clusters."""
        if clusters is None:
            clusters = self.identify_clusters(graph)
        if not clusters:
            return 0.0
        total = sum(cluster_density(c, graph) for c in clusters if len(c) > 1)
        return total / len(clusters)

    # ========================================================================
    # Density map
    # ========================================================================

    def calculate_density_map(self, graph: GraphData) -> dict:
        """Zones per cluster, per-node heat intensity and empty grid cells."""
        density_map = {"zones": [], "heatmap_data": [], "global_density": 0.0, "empty_zones": []}
        nodes = graph.get("nodes") or []
        if not nodes:
            return density_map

        positions = graph.get("positions") or _grid_positions(nodes)
        degrees = node_degrees(graph)
        clusters = self.identify_clusters(graph)
        avg_density = self.average_cluster_density(graph, clusters)

        density_map["zones"] = [
            self._density_zone(cluster, graph, positions, avg_density)
            for cluster in clusters
        ]

        adjacency = build_adjacency(graph)
        max_degree = max(degrees.values(), default=0)
        for node in nodes:
            position = positions.get(node["id"])
            if position is None:
                continue
            density_map["heatmap_data"].append({
                "x": position["x"],
                "y": position["y"],
                "intensity": _node_intensity(node["id"], degrees, adjacency, max_degree),
                "node_id": node["id"],
                "node_label": node["label"],
            })

        density_map["global_density"] = global_density(graph)
        density_map["empty_zones"] = find_empty_zones(positions)
        return density_map

    def _density_zone(self, cluster: list[str], graph: GraphData,
                      positions: dict[str, Position], avg_density: float) -> dict:
        zone = {"nodes": cluster, "center_x": 0.0, "center_y": 0.0, "radius": 0.0,
                "density": 0.0, "type": "", "color": ""}
        placed = [positions[n] for n in cluster if n in positions]
        if not placed:
            return zone

        center_x = sum(p["x"] for p in placed) / len(placed)
        center_y = sum(p["y"] for p in placed) / len(placed)
        max_dist = max(math.hypot(p["x"] - center_x, p["y"] - center_y) for p in placed)
        density = cluster_density(cluster, graph)

        if density > avg_density * 1.5:
            zone_type, color = "high", HIGH_DENSITY_COLOR
        elif density > avg_density * 0.7:
            zone_type, color = "medium", MEDIUM_DENSITY_COLOR
        else:
            zone_type, color = "low", LOW_DENSITY_COLOR

        zone.update({
            "center_x": center_x,
            "center_y": center_y,
            "radius": max_dist + ZONE_RADIUS_PADDING,
            "density": density,
            "type": zone_type,
            "color": color,
        })
        return zone

    # ========================================================================
    # Territories
    # ========================================================================

    def identify_territories(self, graph: GraphData) -> dict:
        """
        Classify clusters as explored, frontier or unexplored.

        Orphan nodes are appended to unexplored as "isolated" territories.
        """
        territories = {"explored": [], "unexplored": [], "frontier": []}
        clusters = self.identify_clusters(graph)
        avg_density = self.average_cluster_density(graph, clusters)
        explored_threshold = max(avg_density * 1.5, 0.2)
        unexplored_threshold = min(avg_density * 0.7, 0.1)
        degrees = node_degrees(graph)

        for index, cluster in enumerate(clusters):
            density = cluster_density(cluster, graph)
            internal = count_internal_edges(cluster, graph)
            external = _count_external_edges(cluster, graph)
            territory = {
                "id": index,
                "nodes": cluster,
                "density": density,
                "size": len(cluster),
                "central_node": _central_node(cluster, graph),
                "metrics": {
                    "internal_edges": internal,
                    "external_edges": external,
                    "average_degree": sum(degrees.get(n, 0) for n in cluster) / len(cluster),
                    "centrality": external / (internal + external) if internal + external else 0.0,
                },
            }

            if density > explored_threshold:
                territory["type"] = "explored"
                territory["description"] = "Zone bien explorée avec de nombreuses connexions"
            elif density < unexplored_threshold and len(cluster) > 1:
                territory["type"] = "unexplored"
                territory["description"] = "Territoire peu exploré nécessitant plus de connexions"
            else:
                territory["type"] = "frontier"
                territory["description"] = "Zone frontière avec potentiel d'expansion"
            territories[territory["type"]].append(territory)

        for orphan in find_orphans(graph):
            territories["unexplored"].append({
                "id": len(territories["unexplored"]) + ISOLATED_TERRITORY_OFFSET,
                "type": "isolated",
                "nodes": [orphan],
                "density": 0.0,
                "size": 1,
                "description": "Nœud isolé sans connexions",
                "central_node": orphan,
                "metrics": {"internal_edges": 0, "external_edges": 0,
                            "average_degree": 0.0, "centrality": 0.0},
            })

        return territories

    # ========================================================================
    # Suggestions
    # ========================================================================

    def generate_exploration_suggestions(self, graph: GraphData) -> dict:
        suggestions = {"priority_connections": [], "bridge_opportunities": [], "density_balancing": []}
        territories = self.identify_territories(graph)
        avg_density = self.average_cluster_density(graph)
        degrees = node_degrees(graph)
        avg_degree = average_degree(graph)

        for territory in territories["unexplored"]:
            anchor = territory["nodes"][0]
            for target in _high_degree_nodes(anchor, graph, degrees, avg_degree):
                suggestions["priority_connections"].append({
                    "from": anchor,
                    "to": target,
                    "reason": "Connecter zone isolée au réseau principal",
                    "impact": "high",
                    "priority": 1,
                })

        every = territories["explored"] + territories["frontier"] + territories["unexplored"]
        for i, first in enumerate(every):
            for second in every[i + 1:]:
                # An orphan is filed both as a frontier and as an isolated territory
                if set(first["nodes"]) & set(second["nodes"]):
                    continue
                if _clusters_connected(first["nodes"], second["nodes"], graph):
                    continue
                suggestions["bridge_opportunities"].append({
                    "cluster1": first["nodes"],
                    "cluster2": second["nodes"],
                    "suggested_node1": first["central_node"],
                    "suggested_node2": second["central_node"],
                    "impact": _bridge_impact(first, second),
                    "description": "Créer un pont entre deux zones thématiques",
                })

        for territory in territories["explored"]:
            if territory["density"] > avg_density * 1.5:
                suggestions["density_balancing"].append({
                    "zone": territory["nodes"],
                    "current_density": territory["density"],
                    "target_density": avg_density,
                    "action": "distribute",
                    "description": "Zone surdense - envisager de créer des sous-groupes",
                })
        for territory in territories["unexplored"]:
            if territory["density"] < avg_density * 0.5 and len(territory["nodes"]) > 1:
                suggestions["density_balancing"].append({
                    "zone": territory["nodes"],
                    "current_density": territory["density"],
                    "target_density": avg_density,
                    "action": "densify",
                    "description": "Zone sous-dense - ajouter des connexions internes",
                })

        suggestions["priority_connections"].sort(key=lambda s: s["priority"])
        suggestions["bridge_opportunities"].sort(key=lambda s: s["impact"], reverse=True)
        return suggestions

    # ========================================================================
    # Metrics
    # ========================================================================

    def calculate_density_metrics(self, graph: GraphData) -> dict:
        metrics = {
            "global_density": 0.0,
            "average_degree": 0.0,
            "clustering_coefficient": 0.0,
            "degree_distribution": {},
            "hubs": [],
            "peripherals": [],
            "high_density_zones": 0,
            "low_density_zones": 0,
            "frontier_zones": 0,
            "balance_score": 0.0,
            "recommendations": [],
        }
        nodes = graph.get("nodes") or []
        if not nodes:
            return metrics

        degrees = node_degrees(graph)
        avg_degree = average_degree(graph)
        distribution: dict[int, int] = {}
        for node in nodes:
            degree = degrees[node["id"]]
            distribution[degree] = distribution.get(degree, 0) + 1

        territories = self.identify_territories(graph)
        metrics.update({
            "global_density": global_density(graph),
            "average_degree": avg_degree,
            "clustering_coefficient": clustering_coefficient(graph),
            "degree_distribution": distribution,
            "hubs": [n["id"] for n in nodes if degrees[n["id"]] > avg_degree * 1.5 + 1],
            "peripherals": [n["id"] for n in nodes if degrees[n["id"]] <= 1],
            "high_density_zones": len(territories["explored"]),
            "low_density_zones": len(territories["unexplored"]),
            "frontier_zones": len(territories["frontier"]),
            "balance_score": balance_score(territories),
        })
        metrics["recommendations"] = _recommendations(metrics, len(nodes))
        return metrics


def balance_score(territories: dict) -> float:
    """1 / (1 + coefficient of variation) of multi-node territory sizes."""
    sizes = [
        t["size"]
        for key in ("explored", "frontier", "unexplored")
        for t in territories[key]
        if t["size"] > 1
    ]
    if len(sizes) < 2:
        return DEFAULT_BALANCE_SCORE

    mean = sum(sizes) / len(sizes)
    if mean == 0:
        return 0.0
    variance = sum((s - mean) ** 2 for s in sizes) / len(sizes)
    return 1.0 / (1.0 + math.sqrt(variance) / mean)


def find_empty_zones(positions: dict[str, Position]) -> list[dict]:
    """Unoccupied cells of a 200-unit grid around the occupied bounding box."""
    if not positions:
        return []

    grid = float(EMPTY_ZONE_GRID)
    xs = [p["x"] for p in positions.values()]
    ys = [p["y"] for p in positions.values()]
    occupied = {
        f"{math.floor(p['x'] / grid)},{math.floor(p['y'] / grid)}"
        for p in positions.values()
    }

    zones = []
    for x in range(math.floor(min(xs) / grid) - 1, math.ceil(max(xs) / grid) + 2):
        for y in range(math.floor(min(ys) / grid) - 1, math.ceil(max(ys) / grid) + 2):
            if f"{x},{y}" not in occupied:
                zones.append({
                    "x": x * grid + grid / 2,
                    "y": y * grid + grid / 2,
                    "radius": grid / 2,
                })
    return zones


def _grid_positions(nodes: list[dict]) -> dict[str, Position]:
    size = math.ceil(math.sqrt(len(nodes)))
    return {
        node["id"]: {"x": float((i % size) * GRID_SPACING), "y": float((i // size) * GRID_SPACING)}
        for i, node in enumerate(nodes)
    }


def _node_intensity(node_id: str, degrees: dict[str, int],
                    adjacency: dict[str, list[str]], max_degree: int) -> float:
    intensity = degrees.get(node_id, 0) * 0.5
    for neighbor in set(adjacency.get(node_id, [])):
        intensity += degrees.get(neighbor, 0) * 0.2
    if max_degree > 0:
        intensity /= max_degree * 2
    return min(intensity, 1.0)


def _count_external_edges(cluster: list[str], graph: GraphData) -> int:
    members = set(cluster)
    return sum(
        1 for edge in graph.get("edges") or []
        if (edge["from"] in members) != (edge["to"] in members)
    )


def _central_node(cluster: list[str], graph: GraphData) -> str:
    """Member with the most edges inside the cluster; first wins ties."""
    if not cluster:
        return ""
    members = set(cluster)
    internal_degree = {node: 0 for node in cluster}
    for edge in graph.get("edges") or []:
        if edge["from"] in members and edge["to"] in members:
            internal_degree[edge["from"]] += 1
            internal_degree[edge["to"]] += 1
    best = cluster[0]
    for node in cluster:
        if internal_degree[node] > internal_degree[best]:
            best = node
    return best


def _high_degree_nodes(exclude: str, graph: GraphData, degrees: dict[str, int],
                       avg_degree: float, limit: int = 3) -> list[str]:
    candidates = []
    for node in graph.get("nodes") or []:
        if node["id"] != exclude and degrees.get(node["id"], 0) > avg_degree * 1.2:
            candidates.append(node["id"])
            if len(candidates) >= limit:
                break
    return candidates


def _clusters_connected(first: list[str], second: list[str], graph: GraphData) -> bool:
    a, b = set(first), set(second)
    return any(
        (edge["from"] in a and edge["to"] in b) or (edge["from"] in b and edge["to"] in a)
        for edge in graph.get("edges") or []
    )


def _bridge_impact(first: dict, second: dict) -> float:
    size_impact = math.log(first["size"] * second["size"] + 1)
    density_impact = (first["density"] + second["density"]) / 2.0
    return min(size_impact * 0.4 + density_impact * 0.6, 1.0)


def _recommendations(metrics: dict, node_count: int) -> list[str]:
    recommendations = []
    if metrics["global_density"] < 0.01:
        recommendations.append(
            "Le graphe est très peu dense. Ajoutez plus de connexions entre les concepts.")
    elif metrics["global_density"] > 0.2:
        recommendations.append(
            "Le graphe est très dense. Envisagez de créer des sous-groupes ou des contextes pour clarifier.")
    if len(metrics["peripherals"]) > node_count // 2:
        recommendations.append(
            "Plus de la moitié des nœuds sont périphériques ou isolés. "
            "Intégrez-les davantage au cœur du graphe.")
    if metrics["balance_score"] < 0.4:
        recommendations.append(
            "Le graphe est déséquilibré, avec des zones de tailles très différentes. "
            "Essayez d'équilibrer les territoires.")
    if metrics["low_density_zones"] > metrics["high_density_zones"] + metrics["frontier_zones"]:
        recommendations.append(
            "Beaucoup de territoires sont inexplorés. Concentrez-vous sur le développement de ces zones.")
    return recommendations
