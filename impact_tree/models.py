"""
Record types for the impact graph.

All records are frozen dataclasses; the store replaces them instead of
mutating them. Field names follow the snapshot schema so records convert
to and from snapshot dicts without renaming.
"""

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple

NODE_TYPES = frozenset(['business_metric', 'product_metric', 'initiative'])
SHAPES = frozenset(['rectangle', 'ellipse'])
RELATIONSHIP_TYPES = frozenset(['desirable_effect', 'undesirable_effect', 'rollup'])
IMPACT_TYPES = frozenset(['proximate', 'downstream'])
MEASUREMENT_PERIODS = frozenset(['daily', 'weekly', 'monthly', 'quarterly', 'yearly'])


def new_id(prefix: str) -> str:
    """Collision-resistant identifier, e.g. 'node_3f2a...'."""
    return f"{prefix}_{uuid.uuid4().hex}"


@dataclass(frozen=True)
class ImpactTree:
    id: str
    name: str
    description: str
    created_date: str
    updated_date: str
    owner: str

    @classmethod
    def create(cls, name: str = "New Impact Tree",
               description: str = "A new impact analysis tree",
               owner: str = "User") -> 'ImpactTree':
        today = date.today().isoformat()
        return cls(
            id=new_id("tree"),
            name=name,
            description=description,
            created_date=today,
            updated_date=today,
            owner=owner,
        )


@dataclass(frozen=True)
class Node:
    id: str
    name: str
    description: str
    node_type: str
    level: int
    position_x: float
    position_y: float
    color: str
    shape: str

    @property
    def tier(self) -> int:
        return self.level

    @property
    def position(self) -> Tuple[float, float]:
        return (self.position_x, self.position_y)


@dataclass(frozen=True)
class Relationship:
    id: str
    source_node_id: str
    target_node_id: str
    relationship_type: str
    color: str
    strength: float = 1.0


@dataclass(frozen=True)
class Measurement:
    id: str
    node_id: str
    metric_name: str
    expected_value: float
    actual_value: float
    measurement_date: str
    impact_type: str = 'proximate'
    measurement_period: Optional[str] = None
    order: Optional[int] = None


@dataclass(frozen=True)
class Bounds:
    """Axis-aligned bounding box in canvas units."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.min_x + self.max_x) / 2, (self.min_y + self.max_y) / 2)
