"""
Viewport model: pan/zoom state and screen <-> canvas transforms.

The view box (x, y, width, height, scale) describes which part of the
canvas is visible: the visible canvas extent is width/scale by
height/scale starting at (x, y). The screen rect is where the canvas
element sits on screen; pointer events arrive in that space.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional, Tuple

from impact_tree.edit.constants import (
    DEFAULT_VIEW_HEIGHT,
    DEFAULT_VIEW_WIDTH,
    DEFAULT_VIEW_X,
    DEFAULT_VIEW_Y,
    MAX_ZOOM,
    MIN_ZOOM,
)
from impact_tree.models import Bounds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewBox:
    x: float = DEFAULT_VIEW_X
    y: float = DEFAULT_VIEW_Y
    width: float = DEFAULT_VIEW_WIDTH
    height: float = DEFAULT_VIEW_HEIGHT
    scale: float = 1.0

    @property
    def visible_width(self) -> float:
        return self.width / self.scale

    @property
    def visible_height(self) -> float:
        return self.height / self.scale


@dataclass(frozen=True)
class ScreenRect:
    """Screen-space bounding rectangle of the canvas element."""
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height


DEFAULT_VIEW_BOX = ViewBox()


class ViewportModel:
    """Holds the current ViewBox and replaces it on every change."""

    def __init__(self, view_box: ViewBox = DEFAULT_VIEW_BOX,
                 screen_rect: Optional[ScreenRect] = None,
                 min_scale: float = MIN_ZOOM, max_scale: float = MAX_ZOOM):
        self._default = view_box
        self._view_box = view_box
        self._screen_rect = screen_rect or ScreenRect(0, 0, view_box.width, view_box.height)
        self._min_scale = min_scale
        self._max_scale = max_scale
        self._on_change: Optional[Callable[[ViewBox], None]] = None

    @property
    def view_box(self) -> ViewBox:
        return self._view_box

    @property
    def screen_rect(self) -> ScreenRect:
        return self._screen_rect

    @property
    def scale(self) -> float:
        return self._view_box.scale

    def set_on_change(self, callback: Optional[Callable[[ViewBox], None]]):
        self._on_change = callback

    def _set(self, view_box: ViewBox) -> ViewBox:
        if view_box != self._view_box:
            self._view_box = view_box
            if self._on_change:
                self._on_change(view_box)
        return self._view_box

    def pan(self, dx: float, dy: float) -> ViewBox:
        """Translate the view by (dx, dy) canvas units."""
        vb = self._view_box
        return self._set(replace(vb, x=vb.x + dx, y=vb.y + dy))

    def zoom(self, factor: float, center: Optional[Tuple[float, float]] = None) -> ViewBox:
        """
        Multiply the scale by factor, clamped to the zoom limits.

        With a canvas-space center the view is shifted so that point stays
        at the same screen position.
        """
        vb = self._view_box
        new_scale = max(self._min_scale, min(self._max_scale, vb.scale * factor))
        if center is None:
            return self._set(replace(vb, scale=new_scale))

        change = new_scale / vb.scale
        cx, cy = center
        return self._set(replace(
            vb,
            x=cx - (cx - vb.x) / change,
            y=cy - (cy - vb.y) / change,
            scale=new_scale,
        ))

    def reset(self) -> ViewBox:
        return self._set(self._default)

    def center_on(self, bounds: Bounds) -> ViewBox:
        """Move the view so the bounding box center is the center of the visible area."""
        vb = self._view_box
        cx, cy = bounds.center
        return self._set(replace(
            vb,
            x=cx - vb.visible_width / 2,
            y=cy - vb.visible_height / 2,
        ))

    # --- Coordinate transforms ---

    def _ratios(self) -> Tuple[float, float]:
        """Canvas units per screen unit on each axis."""
        vb, rect = self._view_box, self._screen_rect
        rx = vb.visible_width / rect.width if rect.width else 1.0 / vb.scale
        ry = vb.visible_height / rect.height if rect.height else 1.0 / vb.scale
        return rx, ry

    def screen_to_canvas(self, screen_x: float, screen_y: float) -> Tuple[float, float]:
        vb, rect = self._view_box, self._screen_rect
        rx, ry = self._ratios()
        return (vb.x + (screen_x - rect.left) * rx, vb.y + (screen_y - rect.top) * ry)

    def canvas_to_screen(self, canvas_x: float, canvas_y: float) -> Tuple[float, float]:
        vb, rect = self._view_box, self._screen_rect
        rx, ry = self._ratios()
        return (rect.left + (canvas_x - vb.x) / rx, rect.top + (canvas_y - vb.y) / ry)

    def screen_delta_to_canvas(self, dx: float, dy: float) -> Tuple[float, float]:
        rx, ry = self._ratios()
        return (dx * rx, dy * ry)

    def contains_screen_point(self, screen_x: float, screen_y: float) -> bool:
        rect = self._screen_rect
        return rect.left <= screen_x <= rect.right and rect.top <= screen_y <= rect.bottom
