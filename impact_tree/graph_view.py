"""
Graph view that produces SVG content for NiceGUI's interactive_image.

This implementation uses NetworkX to hold the drawable graph (nodes plus
the relationships whose endpoints both exist); the output is a plain SVG
fragment in screen coordinates which is layered over a blank image.

Visual cues:
- Nodes are drawn in their own color and shape (rectangle or ellipse)
- The selected node or relationship gets a highlight ring
- The pending connect source gets a dashed outline
- A small dot shows measurement performance (green on track, red behind)
"""

import logging
from html import escape
from typing import Optional

import networkx as nx

from impact_tree.edit.constants import NODE_RADIUS
from impact_tree.edit.controller import InteractionState
from impact_tree.graph_store import GraphState
from impact_tree.viewport import ViewportModel

logger = logging.getLogger(__name__)

SELECTION_COLOR = '#FFC107'
CONNECT_SOURCE_COLOR = '#7B1FA2'
ON_TRACK_COLOR = '#4CAF50'
BEHIND_COLOR = '#F44336'
LABEL_MAX_LENGTH = 20


def truncate(text: str, max_length: int = LABEL_MAX_LENGTH) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + "..."


class GraphView:
    """
    Build SVG for the current graph, viewport and interaction state.

    Relationships naming a node that does not exist (possible after
    importing a hand-edited file) are left out of the drawable graph.
    """

    def __init__(self):
        self.G = nx.DiGraph()

    def build_graph(self, state: GraphState) -> nx.DiGraph:
        self.G = nx.DiGraph()
        for node in state.nodes.values():
            self.G.add_node(node.id, node=node, performance=state.node_performance(node.id))

        skipped = 0
        for rel in state.relationships.values():
            # Only add edges if both nodes exist
            if rel.source_node_id in self.G.nodes and rel.target_node_id in self.G.nodes:
                self.G.add_edge(rel.source_node_id, rel.target_node_id, relationship=rel)
            else:
                skipped += 1
        if skipped:
            logger.debug(f"Skipped {skipped} relationship(s) with missing endpoints")
        return self.G

    def render_svg(self, state: GraphState, viewport: ViewportModel,
                   interaction: Optional[InteractionState] = None) -> str:
        interaction = interaction or InteractionState()
        graph = self.build_graph(state)
        scale = viewport.scale
        radius = NODE_RADIUS * scale
        parts = [
            '<defs><marker id="arrow" viewBox="0 0 10 10" refX="10" refY="5" '
            'markerWidth="6" markerHeight="6" orient="auto-start-reverse">'
            '<path d="M 0 0 L 10 5 L 0 10 z" fill="#616161"/></marker></defs>'
        ]

        for src, tgt, attrs in graph.edges(data=True):
            rel = attrs['relationship']
            x1, y1 = viewport.canvas_to_screen(*graph.nodes[src]['node'].position)
            x2, y2 = viewport.canvas_to_screen(*graph.nodes[tgt]['node'].position)
            selected = rel.id == interaction.selected_relationship_id
            width = (4 if selected else 2) * scale
            dash = ' stroke-dasharray="6 4"' if rel.relationship_type == 'undesirable_effect' else ''
            if selected:
                parts.append(
                    f'<line x1="{x1:.1f}" y1="{y1:.1f}" x2="{x2:.1f}" y2="{y2:.1f}" '
                    f'stroke="{SELECTION_COLOR}" stroke-width="{width + 4 * scale:.1f}" opacity="0.6"/>'
                )
            parts.append(
                f'<line x1="{x1:.1f}" y1="{y1:.1f}" x2="{x2:.1f}" y2="{y2:.1f}" '
                f'stroke="{rel.color}" stroke-width="{width:.1f}"{dash} marker-end="url(#arrow)"/>'
            )

        for node_id, attrs in graph.nodes(data=True):
            node = attrs['node']
            cx, cy = viewport.canvas_to_screen(*node.position)
            if node_id == interaction.selected_node_id:
                parts.append(self._shape(node.shape, cx, cy, radius + 5 * scale,
                                         f'fill="none" stroke="{SELECTION_COLOR}" stroke-width="3"'))
            if node_id == interaction.connect_source:
                parts.append(self._shape(node.shape, cx, cy, radius + 5 * scale,
                                         f'fill="none" stroke="{CONNECT_SOURCE_COLOR}" '
                                         f'stroke-width="3" stroke-dasharray="5 3"'))
            parts.append(self._shape(node.shape, cx, cy, radius,
                                     f'fill="{node.color}" stroke="#212121" stroke-width="1"'))
            parts.append(
                f'<text x="{cx:.1f}" y="{cy + radius + 14 * scale:.1f}" text-anchor="middle" '
                f'font-size="{12 * scale:.1f}" fill="#212121">{escape(truncate(node.name))}</text>'
            )
            performance = attrs['performance']
            if performance is not None:
                color = ON_TRACK_COLOR if performance else BEHIND_COLOR
                parts.append(
                    f'<circle cx="{cx + radius:.1f}" cy="{cy - radius:.1f}" r="{5 * scale:.1f}" '
                    f'fill="{color}"/>'
                )

        return '\n'.join(parts)

    @staticmethod
    def _shape(shape: str, cx: float, cy: float, radius: float, style: str) -> str:
        if shape == 'ellipse':
            return (f'<ellipse cx="{cx:.1f}" cy="{cy:.1f}" rx="{radius * 1.5:.1f}" '
                    f'ry="{radius:.1f}" {style}/>')
        return (f'<rect x="{cx - radius * 1.5:.1f}" y="{cy - radius:.1f}" '
                f'width="{radius * 3:.1f}" height="{radius * 2:.1f}" rx="6" {style}/>')
