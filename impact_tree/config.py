"""
Configuration management for Impact Tree.

Handles persistent configuration including:
- Editor tuning values (duplicate filter, drag click suppression, auto-pan, zoom)

Config is stored in config.json next to the executable/project root.
Every value can be overridden with an IMPACT_TREE_<NAME> environment
variable (a .env file is loaded by the app on startup).
"""

import json
import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional

from impact_tree.edit import constants
from impact_tree.paths import get_config_path

logger = logging.getLogger(__name__)

ENV_PREFIX = "IMPACT_TREE_"


def load_config() -> dict:
    """Load configuration from config.json."""
    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
                if isinstance(data, dict):
                    return data
                logger.warning(f"Ignoring {config_path}: expected a JSON object")
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to read {config_path}: {e}")
    return {}


def save_config(config: dict) -> None:
    """Save configuration to config.json."""
    config_path = get_config_path()
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2)


@dataclass(frozen=True)
class EditorSettings:
    """Tunable values for the interaction engine."""
    duplicate_window_ms: float = constants.DUPLICATE_WINDOW_MS
    duplicate_distance: float = constants.DUPLICATE_DISTANCE
    click_after_drag_ignore_ms: float = constants.CLICK_AFTER_DRAG_IGNORE_MS
    auto_pan_edge_threshold: float = constants.AUTO_PAN_EDGE_THRESHOLD
    auto_pan_max_speed: float = constants.AUTO_PAN_MAX_SPEED
    auto_pan_frame_interval: float = constants.AUTO_PAN_FRAME_INTERVAL
    zoom_in_factor: float = constants.ZOOM_IN_FACTOR
    zoom_out_factor: float = constants.ZOOM_OUT_FACTOR
    min_zoom: float = constants.MIN_ZOOM
    max_zoom: float = constants.MAX_ZOOM


def _parse_positive(name: str, raw: Any, source: str) -> Optional[float]:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring {source} value for {name}: {raw!r} is not a number")
        return None
    if value <= 0:
        logger.warning(f"Ignoring {source} value for {name}: must be positive, got {value}")
        return None
    return value


def get_editor_settings(config: Optional[Mapping[str, Any]] = None,
                        environ: Optional[Mapping[str, str]] = None) -> EditorSettings:
    """
    Build EditorSettings.

    Priority:
    1. Environment variable IMPACT_TREE_<NAME>
    2. Key <name> in config.json
    3. Built-in default
    """
    if config is None:
        config = load_config()
    if environ is None:
        environ = os.environ

    overrides: Dict[str, float] = {}
    for f in fields(EditorSettings):
        env_key = ENV_PREFIX + f.name.upper()
        value = None
        if env_key in environ:
            value = _parse_positive(f.name, environ[env_key], "environment")
        if value is None and f.name in config:
            value = _parse_positive(f.name, config[f.name], "config.json")
        if value is not None:
            overrides[f.name] = value

    settings = EditorSettings(**overrides)
    if settings.min_zoom > settings.max_zoom:
        logger.warning("min_zoom is larger than max_zoom; using default zoom limits")
        overrides.pop('min_zoom', None)
        overrides.pop('max_zoom', None)
        settings = EditorSettings(**overrides)
    return settings
