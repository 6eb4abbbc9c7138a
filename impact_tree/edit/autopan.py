"""
Auto-pan Controller - nudges the viewport while a node is dragged near an edge.

One repeating task per drag session: start() schedules it, stop() cancels
it. Each tick reads the pointer (screen coordinates) and the viewport's
screen rect, derives a velocity per axis and pans the viewport by that
velocity divided by the current scale.
"""

import logging
from typing import Callable, Optional, Protocol, Tuple

from impact_tree.edit.constants import (
    AUTO_PAN_EDGE_THRESHOLD,
    AUTO_PAN_FRAME_INTERVAL,
    AUTO_PAN_MAX_SPEED,
)
from impact_tree.viewport import ViewportModel

logger = logging.getLogger(__name__)


class FrameHandle(Protocol):
    def cancel(self) -> None: ...


class FrameScheduler(Protocol):
    """Host scheduler that calls callback every interval seconds until cancelled."""

    def schedule_repeating(self, interval: float, callback: Callable[[], None]) -> FrameHandle: ...


def edge_velocity(distance: float, threshold: float, max_speed: float) -> float:
    """Speed contributed by one edge; zero outside the threshold band."""
    if 0 <= distance < threshold:
        return (1 - distance / threshold) * max_speed
    return 0.0


class AutoPanController:

    def __init__(self, viewport: ViewportModel,
                 pointer_getter: Callable[[], Optional[Tuple[float, float]]],
                 scheduler: Optional[FrameScheduler] = None,
                 threshold: float = AUTO_PAN_EDGE_THRESHOLD,
                 max_speed: float = AUTO_PAN_MAX_SPEED,
                 interval: float = AUTO_PAN_FRAME_INTERVAL):
        self._viewport = viewport
        self._pointer_getter = pointer_getter
        self._scheduler = scheduler
        self._threshold = threshold
        self._max_speed = max_speed
        self._interval = interval
        self._active = False
        self._handle: Optional[FrameHandle] = None

    @property
    def is_active(self) -> bool:
        return self._active

    def start(self) -> None:
        """Begin panning ticks. Calling again while active does nothing."""
        if self._active:
            return
        self._active = True
        if self._scheduler is not None:
            self._handle = self._scheduler.schedule_repeating(self._interval, self.tick)
        logger.debug("Auto-pan started")

    def stop(self) -> None:
        """Cancel the tick task. Calling again while stopped does nothing."""
        if not self._active:
            return
        self._active = False
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()
        logger.debug("Auto-pan stopped")

    def compute_velocity(self, pointer_x: float, pointer_y: float) -> Tuple[float, float]:
        """
        Screen-space (vx, vy) for a pointer position.

        Near the left/top edge the view moves toward negative canvas
        coordinates, near the right/bottom edge toward positive ones. Left
        is checked before right and top before bottom, so only one
        contribution per axis is used.
        """
        rect = self._viewport.screen_rect
        t, speed = self._threshold, self._max_speed

        vx = 0.0
        left = edge_velocity(pointer_x - rect.left, t, speed)
        if left:
            vx = -left
        else:
            vx = edge_velocity(rect.right - pointer_x, t, speed)

        vy = 0.0
        top = edge_velocity(pointer_y - rect.top, t, speed)
        if top:
            vy = -top
        else:
            vy = edge_velocity(rect.bottom - pointer_y, t, speed)

        return vx, vy

    def tick(self) -> None:
        if not self._active:
            return
        pointer = self._pointer_getter()
        if pointer is None:
            return
        vx, vy = self.compute_velocity(*pointer)
        if vx or vy:
            scale = self._viewport.scale
            self._viewport.pan(vx / scale, vy / scale)
