"""
Path utilities for Impact Tree.

Handles path resolution for both development mode and frozen (PyInstaller) executables.
- In development: paths are relative to the project root
- When frozen: paths are relative to the executable location

External files (config.json, node_types.yaml) live NEXT TO the executable, not bundled inside.
"""

import sys
from pathlib import Path


def get_app_dir() -> Path:
    """
    Get the application directory.

    - In development: the project root (parent of impact_tree/)
    - When frozen: the directory containing the executable
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).parent.parent


def get_config_path() -> Path:
    """Get the path to the config file (editor tuning values)."""
    return get_app_dir() / "config.json"


def get_node_types_path() -> Path:
    """Get the path to the optional node type override file."""
    return get_app_dir() / "node_types.yaml"
