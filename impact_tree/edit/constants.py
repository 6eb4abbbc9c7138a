"""
Shared constants for the interactive editing system.

These values are used by the controller, hit testing, auto-pan and the
SVG scene. They are the defaults behind EditorSettings; config.json or
environment variables may override the tunable ones.
"""

# Node hit radius in canvas units (nodes are drawn inside this circle)
NODE_RADIUS = 28

# Max distance from a relationship line that still counts as a hit
RELATIONSHIP_HIT_TOLERANCE = 8

# Duplicate node-creation filter: same type, |dx| and |dy| under the
# distance, within the window
DUPLICATE_WINDOW_MS = 500
DUPLICATE_DISTANCE = 5

# Ignore the click that follows a drag release
CLICK_AFTER_DRAG_IGNORE_MS = 150

# Auto-pan while dragging near a viewport edge
AUTO_PAN_EDGE_THRESHOLD = 50
AUTO_PAN_MAX_SPEED = 10
AUTO_PAN_FRAME_INTERVAL = 1 / 60

# Zoom
ZOOM_IN_FACTOR = 1.1
ZOOM_OUT_FACTOR = 0.9
MIN_ZOOM = 0.1
MAX_ZOOM = 5.0

# Default view box
DEFAULT_VIEW_X = 0.0
DEFAULT_VIEW_Y = 0.0
DEFAULT_VIEW_WIDTH = 1200.0
DEFAULT_VIEW_HEIGHT = 800.0
