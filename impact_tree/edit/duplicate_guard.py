"""
Duplicate node-creation filter.

Some input paths fire the same creation twice (a click and a drop, or a
double-delivered event). A request is dropped when it has the same type
as the last accepted one, lies within a few units of it, and arrives
inside a short window.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from impact_tree.edit.constants import DUPLICATE_DISTANCE, DUPLICATE_WINDOW_MS

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass(frozen=True)
class CreationRequest:
    x: float
    y: float
    node_type: str
    timestamp: float


class DuplicateGuard:

    def __init__(self, window_ms: float = DUPLICATE_WINDOW_MS,
                 distance: float = DUPLICATE_DISTANCE,
                 clock: Callable[[], float] = monotonic_ms):
        self._window_ms = window_ms
        self._distance = distance
        self._clock = clock
        self._last: Optional[CreationRequest] = None

    @property
    def last_request(self) -> Optional[CreationRequest]:
        return self._last

    def is_duplicate(self, x: float, y: float, node_type: str, now: float) -> bool:
        last = self._last
        if last is None:
            return False
        return (
            now - last.timestamp < self._window_ms
            and abs(x - last.x) < self._distance
            and abs(y - last.y) < self._distance
            and node_type == last.node_type
        )

    def accept(self, x: float, y: float, node_type: str, now: Optional[float] = None) -> bool:
        """True if the request should go ahead; it then becomes the remembered request."""
        if now is None:
            now = self._clock()
        if self.is_duplicate(x, y, node_type, now):
            logger.debug(f"Suppressed duplicate {node_type} creation at ({x}, {y})")
            return False
        self._last = CreationRequest(x, y, node_type, now)
        return True

    def reset(self) -> None:
        self._last = None
