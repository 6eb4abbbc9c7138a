"""
Snapshot import/export.

A snapshot is the complete serialisable graph:

    {
      "tree": {id, name, description, created_date, updated_date, owner},
      "nodes": [{id, name, description, node_type, level, position_x, position_y, color, shape}],
      "relationships": [{id, source_node_id, target_node_id, relationship_type, color, strength}],
      "measurements": [{id, node_id, metric_name, expected_value, actual_value,
                        measurement_date, measurement_period?, impact_type, order?}]
    }

Imports are validated in full before anything is built; a snapshot with
any error is rejected as a whole.
"""

import json
import logging
import re
from dataclasses import asdict
from typing import Any, Dict, List

from impact_tree.errors import SnapshotError
from impact_tree.graph_store import GraphState
from impact_tree.models import (
    IMPACT_TYPES,
    MEASUREMENT_PERIODS,
    NODE_TYPES,
    RELATIONSHIP_TYPES,
    SHAPES,
    ImpactTree,
    Measurement,
    Node,
    Relationship,
)

logger = logging.getLogger(__name__)

TREE_FIELDS = ['id', 'name', 'description', 'created_date', 'updated_date', 'owner']
NODE_FIELDS = ['id', 'name', 'description', 'node_type', 'level', 'position_x', 'position_y', 'color', 'shape']
RELATIONSHIP_FIELDS = ['id', 'source_node_id', 'target_node_id', 'relationship_type', 'color', 'strength']
MEASUREMENT_FIELDS = ['id', 'node_id', 'metric_name', 'expected_value', 'actual_value',
                      'measurement_date', 'impact_type']

# Older files store the initiative variant as the node type
LEGACY_NODE_TYPES = {
    'initiative_positive': 'initiative',
    'initiative_negative': 'initiative',
}

_NUMERIC_FIELDS = {
    'Node': ['level', 'position_x', 'position_y'],
    'Relationship': ['strength'],
    'Measurement': ['expected_value', 'actual_value'],
}

_STRING_FIELDS = {
    'Node': ['id', 'name', 'description', 'color'],
    'Relationship': ['id', 'source_node_id', 'target_node_id', 'color'],
    'Measurement': ['id', 'node_id', 'metric_name', 'measurement_date'],
}

_ENUM_FIELDS = {
    'Node': [('node_type', NODE_TYPES | set(LEGACY_NODE_TYPES)), ('shape', SHAPES)],
    'Relationship': [('relationship_type', RELATIONSHIP_TYPES)],
    'Measurement': [('impact_type', IMPACT_TYPES)],
}


def to_snapshot(state: GraphState) -> Dict[str, Any]:
    """Serialise a GraphState. Unset optional measurement fields are omitted."""
    measurements = []
    for m in state.measurements.values():
        record = asdict(m)
        for key in ('measurement_period', 'order'):
            if record[key] is None:
                del record[key]
        measurements.append(record)

    return {
        'tree': asdict(state.tree),
        'nodes': [asdict(n) for n in state.nodes.values()],
        'relationships': [asdict(r) for r in state.relationships.values()],
        'measurements': measurements,
    }


def export_json(state: GraphState) -> str:
    return json.dumps(to_snapshot(state), indent=2)


def export_filename(tree: ImpactTree, extension: str = 'json') -> str:
    """File name for a download, e.g. 'My_Tree.json'."""
    stem = re.sub(r'\s+', '_', tree.name)
    return f"{stem}.{extension}"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_measurement_options(record: Dict[str, Any], index: int) -> List[str]:
    """measurement_period and order may be absent or null, but not the wrong type."""
    errors = []
    period = record.get('measurement_period')
    if period is not None and not (isinstance(period, str) and period in MEASUREMENT_PERIODS):
        errors.append(f"Measurement {index} has invalid measurement_period: {period}")
    order = record.get('order')
    if order is not None and (not isinstance(order, int) or isinstance(order, bool)):
        errors.append(f"Measurement {index} field order must be an integer")
    return errors


def _validate_records(data: Dict[str, Any], key: str, label: str,
                      required: List[str]) -> List[str]:
    records = data.get(key)
    if not isinstance(records, list):
        return [f"Missing or invalid {key} array"]

    errors = []
    seen = set()
    for index, record in enumerate(records):
        if not isinstance(record, dict):
            errors.append(f"{label} {index} is not a valid object")
            continue
        for field in required:
            if field not in record:
                errors.append(f"{label} {index} missing required field: {field}")
        for field in _NUMERIC_FIELDS[label]:
            if field in record and not _is_number(record[field]):
                errors.append(f"{label} {index} field {field} must be a number")
        for field in _STRING_FIELDS[label]:
            if field in record and not isinstance(record[field], str):
                errors.append(f"{label} {index} field {field} must be a string")
        for field, allowed in _ENUM_FIELDS[label]:
            value = record.get(field)
            if field in record and not (isinstance(value, str) and value in allowed):
                errors.append(f"{label} {index} has invalid {field}: {value}")
        if label == 'Measurement':
            errors.extend(_validate_measurement_options(record, index))
        record_id = record.get('id')
        if isinstance(record_id, str):
            if record_id in seen:
                errors.append(f"{label} {index} has duplicate id: {record_id}")
            seen.add(record_id)
    return errors


def validate_snapshot(data: Any) -> List[str]:
    """Return every problem found in data; an empty list means it can be loaded."""
    if not isinstance(data, dict):
        return ['Invalid data format: expected an object']

    errors = []
    tree = data.get('tree')
    if not isinstance(tree, dict):
        errors.append('Missing or invalid tree data')
    else:
        for field in TREE_FIELDS:
            if field not in tree:
                errors.append(f"Tree missing required field: {field}")
            elif not isinstance(tree[field], str):
                errors.append(f"Tree field {field} must be a string")

    errors.extend(_validate_records(data, 'nodes', 'Node', NODE_FIELDS))
    errors.extend(_validate_records(data, 'relationships', 'Relationship', RELATIONSHIP_FIELDS))
    errors.extend(_validate_records(data, 'measurements', 'Measurement', MEASUREMENT_FIELDS))
    return errors


def from_snapshot(data: Any) -> GraphState:
    """
    Build a GraphState from snapshot data.

    Raises SnapshotError listing every problem if the data is invalid.
    Relationships and measurements that name missing nodes are kept;
    the renderer skips them.
    """
    errors = validate_snapshot(data)
    if errors:
        logger.warning(f"Rejected snapshot with {len(errors)} error(s)")
        raise SnapshotError(errors)

    tree = ImpactTree(**{f: data['tree'][f] for f in TREE_FIELDS})
    nodes = []
    for raw in data['nodes']:
        fields = {f: raw[f] for f in NODE_FIELDS}
        fields['node_type'] = LEGACY_NODE_TYPES.get(fields['node_type'], fields['node_type'])
        fields['level'] = int(fields['level'])
        nodes.append(Node(**fields))

    relationships = [Relationship(**{f: raw[f] for f in RELATIONSHIP_FIELDS})
                     for raw in data['relationships']]
    measurements = [
        Measurement(
            **{f: raw[f] for f in MEASUREMENT_FIELDS},
            measurement_period=raw.get('measurement_period'),
            order=raw.get('order'),
        )
        for raw in data['measurements']
    ]

    state = GraphState.build(tree, nodes, relationships, measurements)
    dangling = sum(
        1 for r in relationships
        if r.source_node_id not in state.nodes or r.target_node_id not in state.nodes
    )
    if dangling:
        logger.warning(f"Snapshot contains {dangling} relationship(s) with missing endpoints")
    return state


def import_json(text: str) -> GraphState:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SnapshotError([f"Invalid JSON: {e}"]) from e
    return from_snapshot(data)
