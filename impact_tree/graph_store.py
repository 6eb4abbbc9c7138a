import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from impact_tree.errors import (
    NodeNotFoundError,
    RelationshipValidationError,
    ValidationReason,
)
from impact_tree.inference import infer_relationship
from impact_tree.models import (
    Bounds,
    ImpactTree,
    Measurement,
    Node,
    Relationship,
    new_id,
)
from impact_tree.node_types import NodeTypeCatalog, get_node_type_catalog

logger = logging.getLogger(__name__)

# Fields a property edit may change
EDITABLE_NODE_FIELDS = frozenset([
    'name', 'description', 'node_type', 'position_x', 'position_y', 'color', 'shape',
])

# Node performance is "on track" at or above this actual/expected ratio
PERFORMANCE_THRESHOLD = 0.8


def _frozen(items: Mapping) -> Mapping:
    return MappingProxyType(dict(items))


@dataclass(frozen=True)
class GraphState:
    """
    Immutable snapshot of the whole graph.

    Every with_*/without_* call returns a new GraphState; the receiver is
    never modified, so holders of an old snapshot can detect change by
    identity comparison.
    """
    tree: ImpactTree
    nodes: Mapping[str, Node] = field(default_factory=lambda: _frozen({}))
    relationships: Mapping[str, Relationship] = field(default_factory=lambda: _frozen({}))
    measurements: Mapping[str, Measurement] = field(default_factory=lambda: _frozen({}))

    @classmethod
    def build(cls, tree: ImpactTree,
              nodes: Iterable[Node] = (),
              relationships: Iterable[Relationship] = (),
              measurements: Iterable[Measurement] = ()) -> 'GraphState':
        return cls(
            tree=tree,
            nodes=_frozen({n.id: n for n in nodes}),
            relationships=_frozen({r.id: r for r in relationships}),
            measurements=_frozen({m.id: m for m in measurements}),
        )

    # --- Derived snapshots ---

    def with_node(self, node: Node) -> 'GraphState':
        nodes = dict(self.nodes)
        nodes[node.id] = node
        return replace(self, nodes=_frozen(nodes))

    def without_node(self, node_id: str) -> 'GraphState':
        """Remove a node together with every relationship and measurement naming it."""
        if node_id not in self.nodes:
            return self
        nodes = {nid: n for nid, n in self.nodes.items() if nid != node_id}
        relationships = {
            rid: r for rid, r in self.relationships.items()
            if r.source_node_id != node_id and r.target_node_id != node_id
        }
        measurements = {mid: m for mid, m in self.measurements.items() if m.node_id != node_id}
        return replace(
            self,
            nodes=_frozen(nodes),
            relationships=_frozen(relationships),
            measurements=_frozen(measurements),
        )

    def with_relationship(self, relationship: Relationship) -> 'GraphState':
        self.check_relationship(relationship.source_node_id, relationship.target_node_id)
        relationships = dict(self.relationships)
        relationships[relationship.id] = relationship
        return replace(self, relationships=_frozen(relationships))

    def without_relationship(self, relationship_id: str) -> 'GraphState':
        if relationship_id not in self.relationships:
            return self
        relationships = {rid: r for rid, r in self.relationships.items() if rid != relationship_id}
        return replace(self, relationships=_frozen(relationships))

    def with_measurement(self, measurement: Measurement) -> 'GraphState':
        if measurement.node_id not in self.nodes:
            raise NodeNotFoundError(measurement.node_id)
        measurements = dict(self.measurements)
        measurements[measurement.id] = measurement
        return replace(self, measurements=_frozen(measurements))

    def without_measurement(self, measurement_id: str) -> 'GraphState':
        if measurement_id not in self.measurements:
            return self
        measurements = {mid: m for mid, m in self.measurements.items() if mid != measurement_id}
        return replace(self, measurements=_frozen(measurements))

    # --- Validation ---

    def check_relationship(self, source_id: str, target_id: str) -> None:
        """
        Raise RelationshipValidationError if source -> target cannot be added.

        Checked in order: both endpoints exist, no self-loop, no existing
        relationship with the same ordered pair.
        """
        missing = [nid for nid in (source_id, target_id) if nid not in self.nodes]
        if missing:
            raise RelationshipValidationError(
                ValidationReason.DANGLING_ENDPOINT,
                f"Relationship endpoint does not exist: {', '.join(missing)}",
            )
        if source_id == target_id:
            raise RelationshipValidationError(
                ValidationReason.SELF_LOOP,
                "Cannot create relationship from a node to itself",
            )
        if self.find_relationship(source_id, target_id) is not None:
            raise RelationshipValidationError(
                ValidationReason.DUPLICATE_EDGE,
                "Relationship already exists between these nodes",
            )

    # --- Queries ---

    def find_relationship(self, source_id: str, target_id: str) -> Optional[Relationship]:
        for rel in self.relationships.values():
            if rel.source_node_id == source_id and rel.target_node_id == target_id:
                return rel
        return None

    def relationships_for(self, node_id: str) -> List[Relationship]:
        return [
            r for r in self.relationships.values()
            if r.source_node_id == node_id or r.target_node_id == node_id
        ]

    def measurements_for(self, node_id: str) -> List[Measurement]:
        """A node's measurements, ordered by display order then date."""
        owned = [m for m in self.measurements.values() if m.node_id == node_id]
        return sorted(owned, key=lambda m: (m.order is None, m.order or 0, m.measurement_date))

    def node_performance(self, node_id: str) -> Optional[bool]:
        """
        True when the node's measurements average at least 80% of expected.

        Measurements with an expected value of zero are ignored; returns
        None when nothing usable remains.
        """
        ratios = [
            abs(m.actual_value / m.expected_value)
            for m in self.measurements.values()
            if m.node_id == node_id and m.expected_value
        ]
        if not ratios:
            return None
        return sum(ratios) / len(ratios) >= PERFORMANCE_THRESHOLD

    def bounds(self) -> Optional[Bounds]:
        if not self.nodes:
            return None
        xs = [n.position_x for n in self.nodes.values()]
        ys = [n.position_y for n in self.nodes.values()]
        return Bounds(min(xs), min(ys), max(xs), max(ys))


class GraphStore:
    """
    Owner of the current GraphState.

    Mutations build a new snapshot and swap it in; the previous snapshot is
    left untouched. Listeners registered with set_on_change receive each new
    snapshot. Deletes are idempotent: unknown ids are a silent no-op.
    """

    def __init__(self, state: Optional[GraphState] = None,
                 catalog: Optional[NodeTypeCatalog] = None):
        self._catalog = catalog or get_node_type_catalog()
        self._state = state or GraphState(tree=ImpactTree.create())
        self._on_change: Optional[Callable[[GraphState], None]] = None

    @property
    def state(self) -> GraphState:
        return self._state

    @property
    def catalog(self) -> NodeTypeCatalog:
        return self._catalog

    def set_on_change(self, callback: Optional[Callable[[GraphState], None]]):
        self._on_change = callback

    def _commit(self, state: GraphState) -> GraphState:
        if state is not self._state:
            self._state = state
            if self._on_change:
                self._on_change(state)
        return state

    # --- Nodes ---

    def add_node(self, node: Node) -> Node:
        if node.id in self._state.nodes:
            raise ValueError(f"Node id already exists: {node.id}")
        self._commit(self._state.with_node(node))
        logger.debug(f"Added node {node.id} ({node.node_type}) at ({node.position_x}, {node.position_y})")
        return node

    def create_node(self, category: str, x: float, y: float,
                    name: str = "New Node", description: str = "") -> Node:
        """Build a node with the category's tier, color and shape and add it."""
        config = self._catalog.get(category)
        node = Node(
            id=new_id("node"),
            name=name,
            description=description,
            node_type=config.node_type,
            level=config.level,
            position_x=x,
            position_y=y,
            color=config.color,
            shape=config.shape,
        )
        return self.add_node(node)

    def update_node(self, node_id: str, **fields: Any) -> Node:
        """
        Apply a partial edit to a node.

        Changing node_type (a stored type or a category such as
        'initiative_negative') re-derives level, color and shape; an explicit
        color or shape in the same call wins over the derived one.
        """
        node = self._state.nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)

        unknown = set(fields) - EDITABLE_NODE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update node field(s): {', '.join(sorted(unknown))}")

        changes: Dict[str, Any] = {}
        if 'node_type' in fields:
            config = self._catalog.get(fields['node_type'])
            changes.update(node_type=config.node_type, level=config.level,
                           color=config.color, shape=config.shape)
        changes.update({k: v for k, v in fields.items() if k != 'node_type'})

        updated = replace(node, **changes)
        if updated == node:
            return node
        self._commit(self._state.with_node(updated))
        return updated

    def move_node(self, node_id: str, x: float, y: float) -> Node:
        return self.update_node(node_id, position_x=x, position_y=y)

    def delete_node(self, node_id: str) -> None:
        state = self._state.without_node(node_id)
        if state is self._state:
            return
        removed_rels = len(self._state.relationships) - len(state.relationships)
        removed_meas = len(self._state.measurements) - len(state.measurements)
        self._commit(state)
        logger.debug(
            f"Deleted node {node_id} with {removed_rels} relationship(s) and {removed_meas} measurement(s)"
        )

    # --- Relationships ---

    def add_relationship(self, source_id: str, target_id: str, relationship_type: str,
                         color: str, strength: float = 1.0) -> Relationship:
        relationship = Relationship(
            id=new_id("rel"),
            source_node_id=source_id,
            target_node_id=target_id,
            relationship_type=relationship_type,
            color=color,
            strength=strength,
        )
        try:
            state = self._state.with_relationship(relationship)
        except RelationshipValidationError as e:
            logger.info(f"Rejected relationship {source_id} -> {target_id}: {e.reason.value}")
            raise
        self._commit(state)
        logger.debug(f"Added {relationship_type} relationship {source_id} -> {target_id}")
        return relationship

    def delete_relationship(self, relationship_id: str) -> None:
        self._commit(self._state.without_relationship(relationship_id))

    # --- Measurements ---

    def add_measurement(self, measurement: Measurement) -> Measurement:
        self._commit(self._state.with_measurement(measurement))
        return measurement

    def delete_measurement(self, measurement_id: str) -> None:
        self._commit(self._state.without_measurement(measurement_id))

    # --- Whole-store operations ---

    def load(self, state: GraphState) -> None:
        """Replace the entire store with an already validated snapshot."""
        self._commit(state)
        logger.info(
            f"Loaded tree '{state.tree.name}': {len(state.nodes)} nodes, "
            f"{len(state.relationships)} relationships, {len(state.measurements)} measurements"
        )

    def new_tree(self, name: str = "New Impact Tree", owner: str = "User") -> GraphState:
        return self._commit(GraphState(tree=ImpactTree.create(name=name, owner=owner)))

    def seed_demo_data(self) -> None:
        """Populate with a small example tree if the store is empty."""
        if self._state.nodes:
            return

        logger.info("Seeding demo data...")
        revenue = self.create_node('business_metric', 600, 100, name="Monthly Revenue")
        conversion = self.create_node('product_metric', 400, 300, name="Checkout Conversion")
        retention = self.create_node('product_metric', 800, 300, name="30-day Retention")
        redesign = self.create_node('initiative_positive', 400, 500, name="Checkout Redesign")
        price_rise = self.create_node('initiative_negative', 800, 500, name="Price Increase")

        for source, target in [(revenue, conversion), (revenue, retention),
                               (redesign, conversion), (price_rise, retention)]:
            rel_type, color = infer_relationship(source)
            self.add_relationship(source.id, target.id, rel_type, color)

        self.add_measurement(Measurement(
            id=new_id("meas"),
            node_id=conversion.id,
            metric_name="Conversion rate (%)",
            expected_value=4.0,
            actual_value=3.6,
            measurement_date=self._state.tree.created_date,
            measurement_period='monthly',
            impact_type='proximate',
            order=1,
        ))
