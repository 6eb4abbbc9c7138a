import pytest

from impact_tree.config import EditorSettings
from impact_tree.edit.controller import InteractionController
from impact_tree.graph_store import GraphStore
from impact_tree.node_types import NodeTypeCatalog
from impact_tree.viewport import ScreenRect, ViewportModel


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 10_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float):
        self.now += ms


class ManualHandle:
    def __init__(self, scheduler, callback):
        self.scheduler = scheduler
        self.callback = callback
        self.cancel_count = 0

    def cancel(self):
        self.cancel_count += 1
        if self in self.scheduler.active:
            self.scheduler.active.remove(self)


class ManualScheduler:
    """Frame scheduler whose ticks are run explicitly by the test."""

    def __init__(self):
        self.active = []
        self.scheduled = []

    def schedule_repeating(self, interval, callback):
        handle = ManualHandle(self, callback)
        self.active.append(handle)
        self.scheduled.append(handle)
        return handle

    def run_frames(self, count: int = 1):
        for _ in range(count):
            for handle in list(self.active):
                handle.callback()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def catalog():
    """Default catalog, independent of any node_types.yaml on disk."""
    return NodeTypeCatalog()


@pytest.fixture
def store(catalog):
    return GraphStore(catalog=catalog)


@pytest.fixture
def viewport():
    return ViewportModel(screen_rect=ScreenRect(0, 0, 1200, 800))


@pytest.fixture
def controller(store, viewport, catalog, scheduler, clock):
    return InteractionController(
        store=store,
        viewport=viewport,
        catalog=catalog,
        settings=EditorSettings(),
        scheduler=scheduler,
        clock=clock,
    )
