"""
Relationship type inference.

The nature of an edge follows from the tier of its cause (source) node;
the target is never consulted.
"""

from typing import Tuple

from impact_tree.models import Node

DESIRABLE_GREEN = '#4CAF50'
PRODUCT_BLUE = '#2196F3'
FALLBACK_GRAY = '#9E9E9E'


def infer_relationship(source: Node) -> Tuple[str, str]:
    """Return (relationship_type, color) for an edge starting at source."""
    if source.level == 1:
        # Business metrics drive product metrics
        return 'desirable_effect', DESIRABLE_GREEN
    if source.level == 2:
        return 'desirable_effect', PRODUCT_BLUE
    if source.level == 3:
        # Initiatives roll up in their own color
        return 'rollup', source.color
    return 'desirable_effect', FALLBACK_GRAY
