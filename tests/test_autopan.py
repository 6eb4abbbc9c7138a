import pytest

from impact_tree.edit.autopan import AutoPanController, edge_velocity
from impact_tree.viewport import ScreenRect, ViewportModel


@pytest.fixture
def pointer():
    return {'pos': (600, 400)}


@pytest.fixture
def autopan(viewport, pointer, scheduler):
    return AutoPanController(viewport, lambda: pointer['pos'], scheduler=scheduler)


class TestEdgeVelocity:

    def test_distance_zero_is_max_speed(self):
        assert edge_velocity(0, 50, 10) == 10

    def test_at_or_beyond_threshold_is_zero(self):
        assert edge_velocity(50, 50, 10) == 0
        assert edge_velocity(120, 50, 10) == 0

    def test_linear_ramp(self):
        assert edge_velocity(25, 50, 10) == pytest.approx(5)

    def test_outside_the_rect_is_zero(self):
        assert edge_velocity(-1, 50, 10) == 0


class TestComputeVelocity:

    def test_center_is_still(self, autopan):
        assert autopan.compute_velocity(600, 400) == (0, 0)

    def test_left_edge_pans_negative(self, autopan):
        assert autopan.compute_velocity(0, 400) == (-10, 0)

    def test_right_edge_pans_positive(self, autopan):
        vx, vy = autopan.compute_velocity(1200 - 25, 400)
        assert vx == pytest.approx(5)
        assert vy == 0

    def test_corner_combines_both_axes(self, autopan):
        vx, vy = autopan.compute_velocity(10, 790)
        assert vx == pytest.approx(-8)
        assert vy == pytest.approx(8)

    def test_left_wins_over_right_in_narrow_viewport(self, pointer, scheduler):
        viewport = ViewportModel(screen_rect=ScreenRect(0, 0, 60, 800))
        controller = AutoPanController(viewport, lambda: pointer['pos'], scheduler=scheduler)
        vx, _ = controller.compute_velocity(20, 400)
        assert vx < 0

    def test_respects_screen_rect_offset(self, pointer, scheduler):
        viewport = ViewportModel(screen_rect=ScreenRect(100, 100, 400, 300))
        controller = AutoPanController(viewport, lambda: pointer['pos'], scheduler=scheduler)
        assert controller.compute_velocity(100, 250) == (-10, 0)
        assert controller.compute_velocity(300, 400) == (0, 10)


class TestLifecycle:

    def test_start_schedules_exactly_once(self, autopan, scheduler):
        autopan.start()
        autopan.start()
        assert len(scheduler.scheduled) == 1
        assert autopan.is_active

    def test_stop_cancels_exactly_once(self, autopan, scheduler):
        autopan.start()
        handle = scheduler.scheduled[0]
        autopan.stop()
        autopan.stop()
        assert handle.cancel_count == 1
        assert scheduler.active == []
        assert not autopan.is_active

    def test_stop_without_start_is_noop(self, autopan, scheduler):
        autopan.stop()
        assert scheduler.scheduled == []

    def test_restart_creates_new_task(self, autopan, scheduler):
        autopan.start()
        autopan.stop()
        autopan.start()
        assert len(scheduler.scheduled) == 2
        assert len(scheduler.active) == 1


class TestTick:

    def test_tick_pans_by_velocity_over_scale(self, autopan, viewport, pointer, scheduler):
        viewport.zoom(2)
        pointer['pos'] = (0, 400)
        autopan.start()
        scheduler.run_frames(3)
        assert viewport.view_box.x == pytest.approx(-15)
        assert viewport.view_box.y == 0

    def test_no_pan_after_stop(self, autopan, viewport, pointer, scheduler):
        pointer['pos'] = (1200, 800)
        autopan.start()
        scheduler.run_frames(1)
        autopan.stop()
        scheduler.run_frames(5)
        assert (viewport.view_box.x, viewport.view_box.y) == (10, 10)

    def test_tick_while_inactive_does_nothing(self, autopan, viewport, pointer):
        pointer['pos'] = (0, 0)
        autopan.tick()
        assert (viewport.view_box.x, viewport.view_box.y) == (0, 0)

    def test_headless_ticks_without_scheduler(self, viewport, pointer):
        controller = AutoPanController(viewport, lambda: pointer['pos'])
        pointer['pos'] = (600, 0)
        controller.start()
        controller.tick()
        assert viewport.view_box.y == -10

    def test_missing_pointer_is_ignored(self, viewport, scheduler):
        controller = AutoPanController(viewport, lambda: None, scheduler=scheduler)
        controller.start()
        scheduler.run_frames(2)
        assert viewport.view_box.x == 0
