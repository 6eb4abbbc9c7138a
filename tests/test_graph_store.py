import pytest

from impact_tree.errors import NodeNotFoundError, RelationshipValidationError, ValidationReason
from impact_tree.graph_store import GraphState
from impact_tree.models import ImpactTree, Measurement, Node, new_id


def make_measurement(node_id, expected=10.0, actual=9.0, **kwargs):
    return Measurement(
        id=new_id("meas"),
        node_id=node_id,
        metric_name="Metric",
        expected_value=expected,
        actual_value=actual,
        measurement_date=kwargs.pop('measurement_date', '2024-01-01'),
        **kwargs,
    )


@pytest.fixture
def two_nodes(store):
    a = store.create_node('business_metric', 400, 100, name="Revenue")
    b = store.create_node('product_metric', 200, 250, name="Conversion")
    return a, b


class TestNodes:

    def test_create_node_derives_type_fields(self, store):
        node = store.create_node('initiative_negative', 10, 20)
        assert node.node_type == 'initiative'
        assert node.level == 3
        assert node.color == '#D32F2F'
        assert node.shape == 'ellipse'
        assert store.state.nodes[node.id] == node

    def test_unknown_category_falls_back_to_product_metric(self, store):
        node = store.create_node('mystery', 0, 0)
        assert (node.node_type, node.level, node.color, node.shape) == \
            ('product_metric', 2, '#1976D2', 'rectangle')

    def test_ids_are_unique_under_rapid_creation(self, store):
        ids = {store.create_node('product_metric', 0, 0).id for _ in range(200)}
        assert len(ids) == 200

    def test_add_node_rejects_duplicate_id(self, store, two_nodes):
        a, _ = two_nodes
        with pytest.raises(ValueError):
            store.add_node(a)

    def test_mutation_returns_new_snapshot(self, store):
        before = store.state
        store.create_node('business_metric', 0, 0)
        after = store.state
        assert after is not before
        assert len(before.nodes) == 0
        assert len(after.nodes) == 1

    def test_update_node_type_rederives_color_shape_tier(self, store, two_nodes):
        a, _ = two_nodes
        updated = store.update_node(a.id, node_type='initiative')
        assert (updated.level, updated.color, updated.shape) == (3, '#FF6F00', 'ellipse')

    def test_update_node_explicit_color_wins(self, store, two_nodes):
        a, _ = two_nodes
        updated = store.update_node(a.id, node_type='product_metric', color='#123456')
        assert updated.color == '#123456'
        assert updated.level == 2

    def test_update_unknown_node_raises_not_found(self, store):
        with pytest.raises(NodeNotFoundError):
            store.update_node('missing', name='x')

    def test_update_rejects_unknown_fields(self, store, two_nodes):
        a, _ = two_nodes
        with pytest.raises(ValueError):
            store.update_node(a.id, id='other')

    def test_noop_update_keeps_snapshot(self, store, two_nodes):
        a, _ = two_nodes
        before = store.state
        store.update_node(a.id, name=a.name)
        assert store.state is before

    def test_move_node_changes_position_only(self, store, two_nodes):
        a, _ = two_nodes
        moved = store.move_node(a.id, 50, 60)
        assert moved.position == (50, 60)
        assert moved.color == a.color


class TestDelete:

    def test_delete_node_is_idempotent(self, store, two_nodes):
        a, _ = two_nodes
        store.delete_node(a.id)
        once = store.state
        store.delete_node(a.id)
        assert store.state is once

    def test_delete_cascades_in_one_transition(self, store, two_nodes):
        a, b = two_nodes
        store.add_relationship(a.id, b.id, 'desirable_effect', '#4CAF50')
        store.add_relationship(b.id, a.id, 'desirable_effect', '#2196F3')
        store.add_measurement(make_measurement(a.id))
        kept = store.add_measurement(make_measurement(b.id))

        seen = []
        store.set_on_change(seen.append)
        store.delete_node(a.id)

        assert len(seen) == 1
        state = seen[0]
        assert list(state.nodes) == [b.id]
        assert state.relationships == {}
        assert list(state.measurements) == [kept.id]
        assert state.nodes[b.id] == b

    def test_delete_unknown_ids_are_noops(self, store):
        before = store.state
        store.delete_node('nope')
        store.delete_relationship('nope')
        store.delete_measurement('nope')
        assert store.state is before


class TestRelationships:

    def test_self_loop_rejected(self, store, two_nodes):
        a, _ = two_nodes
        with pytest.raises(RelationshipValidationError) as exc:
            store.add_relationship(a.id, a.id, 'desirable_effect', '#4CAF50')
        assert exc.value.reason is ValidationReason.SELF_LOOP
        assert store.state.relationships == {}

    def test_duplicate_edge_rejected(self, store, two_nodes):
        a, b = two_nodes
        store.add_relationship(a.id, b.id, 'desirable_effect', '#4CAF50')
        with pytest.raises(RelationshipValidationError) as exc:
            store.add_relationship(a.id, b.id, 'rollup', '#000000')
        assert exc.value.reason is ValidationReason.DUPLICATE_EDGE
        assert len(store.state.relationships) == 1

    def test_reverse_direction_is_not_a_duplicate(self, store, two_nodes):
        a, b = two_nodes
        store.add_relationship(a.id, b.id, 'desirable_effect', '#4CAF50')
        store.add_relationship(b.id, a.id, 'desirable_effect', '#2196F3')
        assert len(store.state.relationships) == 2

    def test_dangling_endpoint_checked_before_self_loop(self, store):
        with pytest.raises(RelationshipValidationError) as exc:
            store.add_relationship('ghost', 'ghost', 'desirable_effect', '#4CAF50')
        assert exc.value.reason is ValidationReason.DANGLING_ENDPOINT

    def test_relationships_for_covers_both_directions(self, store, two_nodes):
        a, b = two_nodes
        c = store.create_node('initiative_positive', 100, 400)
        out = store.add_relationship(a.id, b.id, 'desirable_effect', '#4CAF50')
        back = store.add_relationship(c.id, a.id, 'desirable_effect', '#2196F3')
        assert {r.id for r in store.state.relationships_for(a.id)} == {out.id, back.id}
        assert [r.id for r in store.state.relationships_for(b.id)] == [out.id]

    def test_rejection_leaves_snapshot_untouched(self, store, two_nodes):
        a, _ = two_nodes
        before = store.state
        with pytest.raises(RelationshipValidationError):
            store.add_relationship(a.id, 'ghost', 'desirable_effect', '#4CAF50')
        assert store.state is before


class TestMeasurements:

    def test_measurement_requires_existing_node(self, store):
        with pytest.raises(NodeNotFoundError):
            store.add_measurement(make_measurement('ghost'))

    def test_measurements_sorted_by_order_then_date(self, store, two_nodes):
        a, _ = two_nodes
        late = store.add_measurement(make_measurement(a.id, measurement_date='2024-03-01'))
        second = store.add_measurement(make_measurement(a.id, order=2))
        first = store.add_measurement(make_measurement(a.id, order=1, measurement_date='2024-05-01'))
        assert [m.id for m in store.state.measurements_for(a.id)] == [first.id, second.id, late.id]

    def test_node_performance(self, store, two_nodes):
        a, b = two_nodes
        assert store.state.node_performance(a.id) is None
        store.add_measurement(make_measurement(a.id, expected=10, actual=9))
        store.add_measurement(make_measurement(a.id, expected=10, actual=8))
        assert store.state.node_performance(a.id) is True  # mean 0.85
        store.add_measurement(make_measurement(b.id, expected=10, actual=5))
        store.add_measurement(make_measurement(b.id, expected=0, actual=5))
        assert store.state.node_performance(b.id) is False


class TestWholeStore:

    def test_bounds(self, store, two_nodes):
        bounds = store.state.bounds()
        assert (bounds.min_x, bounds.min_y, bounds.max_x, bounds.max_y) == (200, 100, 400, 250)
        assert GraphState(tree=ImpactTree.create()).bounds() is None

    def test_new_tree_clears_everything(self, store, two_nodes):
        old_tree = store.state.tree
        store.new_tree()
        assert store.state.nodes == {}
        assert store.state.tree.id != old_tree.id
        assert store.state.tree.name == "New Impact Tree"

    def test_load_replaces_state(self, store):
        tree = ImpactTree.create(name="Loaded")
        node = Node('n1', 'N', '', 'business_metric', 1, 0, 0, '#2E7D32', 'rectangle')
        state = GraphState.build(tree, [node])
        store.load(state)
        assert store.state is state

    def test_seed_demo_data_keeps_integrity(self, store):
        store.seed_demo_data()
        state = store.state
        assert len(state.nodes) == 5
        assert len(state.relationships) == 4
        for rel in state.relationships.values():
            assert rel.source_node_id in state.nodes
            assert rel.target_node_id in state.nodes

    def test_seed_demo_data_skips_non_empty_store(self, store, two_nodes):
        store.seed_demo_data()
        assert len(store.state.nodes) == 2
