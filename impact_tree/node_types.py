"""
Node type catalog for Impact Tree.

Four creatable categories map onto the three stored node types:
  - business_metric      -> business_metric (tier 1)
  - product_metric       -> product_metric  (tier 2)
  - initiative_positive  -> initiative      (tier 3)
  - initiative_negative  -> initiative      (tier 3)

Each category carries its default color, shape, tier and keyboard shortcut.
An optional node_types.yaml next to the app may override label, color,
tooltip and shortcut per category:

    business_metric:
      label: Revenue Metric
      color: "#1B5E20"
      shortcut: r
"""

import logging
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from impact_tree.paths import get_node_types_path

logger = logging.getLogger(__name__)

CONNECT_SHORTCUT = 'c'
SELECT_SHORTCUT = 's'
RESERVED_SHORTCUTS = frozenset([CONNECT_SHORTCUT, SELECT_SHORTCUT])

# Keys a YAML override may set
OVERRIDABLE_KEYS = frozenset(['label', 'color', 'tooltip', 'shortcut'])

HEX_COLOR = re.compile(r'^#[0-9a-fA-F]{6}$')


@dataclass(frozen=True)
class NodeTypeConfig:
    category: str
    label: str
    node_type: str
    color: str
    shape: str
    level: int
    shortcut: str
    tooltip: str


DEFAULT_NODE_TYPES: Dict[str, NodeTypeConfig] = {
    'business_metric': NodeTypeConfig(
        category='business_metric', label='Business Metric', node_type='business_metric',
        color='#2E7D32', shape='rectangle', level=1, shortcut='b',
        tooltip='Add a business outcome or goal metric',
    ),
    'product_metric': NodeTypeConfig(
        category='product_metric', label='Product Metric', node_type='product_metric',
        color='#1976D2', shape='rectangle', level=2, shortcut='p',
        tooltip='Add a product or feature metric',
    ),
    'initiative_positive': NodeTypeConfig(
        category='initiative_positive', label='Positive Initiative', node_type='initiative',
        color='#FF6F00', shape='ellipse', level=3, shortcut='i',
        tooltip='Add an initiative with positive impact',
    ),
    'initiative_negative': NodeTypeConfig(
        category='initiative_negative', label='Negative Initiative', node_type='initiative',
        color='#D32F2F', shape='ellipse', level=3, shortcut='n',
        tooltip='Add an initiative with negative impact',
    ),
}

# Used for unknown categories
FALLBACK_NODE_TYPE = NodeTypeConfig(
    category='product_metric', label='Product Metric', node_type='product_metric',
    color='#1976D2', shape='rectangle', level=2, shortcut='', tooltip='',
)

# Stored node_type -> category used when a node's type is edited
_STORED_TYPE_CATEGORY = {
    'business_metric': 'business_metric',
    'product_metric': 'product_metric',
    'initiative': 'initiative_positive',
}


class NodeTypeCatalog:
    """
    Lookup of node categories by name and keyboard shortcut.

    Responsibilities:
    - Resolve a category (or stored node_type) to color/shape/tier
    - Map shortcut keys to categories
    - Apply and validate overrides from node_types.yaml
    """

    def __init__(self, types: Optional[Dict[str, NodeTypeConfig]] = None):
        self._types: Dict[str, NodeTypeConfig] = dict(types or DEFAULT_NODE_TYPES)

    @classmethod
    def from_yaml(cls, path: Optional[Path] = None) -> 'NodeTypeCatalog':
        """Build a catalog from the defaults plus valid overrides in path."""
        path = path or get_node_types_path()
        catalog = cls()
        if not path.exists():
            return catalog

        try:
            with open(path, 'r', encoding='utf-8') as f:
                overrides = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.warning(f"Invalid YAML in {path}: {e}")
            return catalog

        errors = catalog.apply_overrides(overrides)
        for error in errors:
            logger.warning(f"{path.name}: {error}")
        return catalog

    def apply_overrides(self, overrides: Any) -> List[str]:
        """Apply per-category overrides. Returns error messages for rejected entries."""
        if not isinstance(overrides, dict):
            return ["node type overrides must be a mapping of category -> fields"]

        errors = []
        for category, entry in overrides.items():
            entry_errors = self._validate_override(category, entry)
            if entry_errors:
                errors.extend(entry_errors)
                continue
            if 'shortcut' in entry:
                entry = dict(entry, shortcut=entry['shortcut'].lower())
                owner = self.category_for_shortcut(entry['shortcut'])
                if owner is not None and owner != category:
                    errors.append(
                        f"Category '{category}': shortcut '{entry['shortcut']}' already used by '{owner}'"
                    )
                    continue
            self._types[category] = replace(self._types[category], **entry)
        return errors

    def _validate_override(self, category: Any, entry: Any) -> List[str]:
        if category not in DEFAULT_NODE_TYPES:
            return [f"Unknown category '{category}'"]
        if not isinstance(entry, dict):
            return [f"Category '{category}': override must be a mapping"]

        errors = []
        unknown = set(entry) - OVERRIDABLE_KEYS
        if unknown:
            errors.append(f"Category '{category}': cannot override {', '.join(sorted(unknown))}")
        for key in ('label', 'tooltip'):
            if key in entry and not isinstance(entry[key], str):
                errors.append(f"Category '{category}': '{key}' must be a string")
        if 'color' in entry and not (isinstance(entry['color'], str) and HEX_COLOR.match(entry['color'])):
            errors.append(f"Category '{category}': color must look like '#RRGGBB'")
        if 'shortcut' in entry:
            shortcut = entry['shortcut']
            if not (isinstance(shortcut, str) and len(shortcut) == 1 and shortcut.isalpha()):
                errors.append(f"Category '{category}': shortcut must be a single letter")
            elif shortcut.lower() in RESERVED_SHORTCUTS:
                errors.append(f"Category '{category}': shortcut '{shortcut}' is reserved")
        return errors

    def categories(self) -> List[str]:
        return list(self._types)

    def get(self, category: str) -> NodeTypeConfig:
        """Config for a category or stored node_type; falls back for unknown names."""
        if category in self._types:
            return self._types[category]
        mapped = _STORED_TYPE_CATEGORY.get(category)
        if mapped:
            return self._types[mapped]
        return FALLBACK_NODE_TYPE

    def is_known(self, category: str) -> bool:
        return category in self._types or category in _STORED_TYPE_CATEGORY

    def category_for_shortcut(self, key: str) -> Optional[str]:
        key = (key or '').lower()
        for category, config in self._types.items():
            if config.shortcut == key:
                return category
        return None

    def get_type_display_name(self, node_type: str) -> str:
        """Display name for a stored node_type or category."""
        if node_type in self._types:
            return self._types[node_type].label
        return node_type.replace('_', ' ').title()


_catalog: Optional[NodeTypeCatalog] = None


def get_node_type_catalog() -> NodeTypeCatalog:
    """Get the global NodeTypeCatalog instance."""
    global _catalog
    if _catalog is None:
        _catalog = NodeTypeCatalog.from_yaml()
    return _catalog
