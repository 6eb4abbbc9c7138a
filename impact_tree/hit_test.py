"""Hit detection for nodes and relationships in canvas coordinates."""

import math
from typing import Optional, Tuple

from impact_tree.edit.constants import NODE_RADIUS, RELATIONSHIP_HIT_TOLERANCE
from impact_tree.graph_store import GraphState


def point_to_segment_distance(point: Tuple[float, float],
                              start: Tuple[float, float],
                              end: Tuple[float, float]) -> Tuple[float, float]:
    """Return (distance, t) where t in [0, 1] is the projection along the segment."""
    px, py = point
    x1, y1 = start
    x2, y2 = end
    dx, dy = x2 - x1, y2 - y1

    if dx == 0 and dy == 0:
        return math.hypot(px - x1, py - y1), 0.0

    t = max(0.0, min(1.0, ((px - x1) * dx + (py - y1) * dy) / (dx * dx + dy * dy)))
    return math.hypot(px - (x1 + t * dx), py - (y1 + t * dy)), t


def node_at(state: GraphState, x: float, y: float,
            radius: float = NODE_RADIUS, exclude: Optional[str] = None) -> Optional[str]:
    closest = None
    closest_dist = float('inf')
    for node in state.nodes.values():
        if node.id == exclude:
            continue
        dist = math.hypot(x - node.position_x, y - node.position_y)
        if dist <= radius and dist < closest_dist:
            closest_dist = dist
            closest = node.id
    return closest


def relationship_at(state: GraphState, x: float, y: float,
                    tolerance: float = RELATIONSHIP_HIT_TOLERANCE) -> Optional[str]:
    closest = None
    closest_dist = float('inf')
    for rel in state.relationships.values():
        source = state.nodes.get(rel.source_node_id)
        target = state.nodes.get(rel.target_node_id)
        if source is None or target is None:
            continue
        dist, _ = point_to_segment_distance((x, y), source.position, target.position)
        if dist <= tolerance and dist < closest_dist:
            closest_dist = dist
            closest = rel.id
    return closest
