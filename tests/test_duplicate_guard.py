from impact_tree.edit.duplicate_guard import DuplicateGuard


def test_first_request_is_accepted(clock):
    guard = DuplicateGuard(clock=clock)
    assert guard.accept(100, 200, 'business_metric')
    assert guard.last_request.timestamp == clock.now


def test_repeat_within_window_is_rejected(clock):
    guard = DuplicateGuard(clock=clock)
    assert guard.accept(100, 200, 'business_metric')
    clock.advance(400)
    assert not guard.accept(100, 200, 'business_metric')


def test_repeat_after_window_is_accepted(clock):
    guard = DuplicateGuard(clock=clock)
    assert guard.accept(100, 200, 'business_metric')
    clock.advance(600)
    assert guard.accept(100, 200, 'business_metric')


def test_window_edge_is_exclusive(clock):
    guard = DuplicateGuard(clock=clock)
    guard.accept(0, 0, 'product_metric')
    clock.advance(500)
    assert guard.accept(0, 0, 'product_metric')


def test_nearby_position_is_duplicate_but_distant_is_not(clock):
    guard = DuplicateGuard(clock=clock)
    guard.accept(100, 200, 'product_metric')
    assert not guard.accept(104, 196, 'product_metric')
    assert guard.accept(105, 200, 'product_metric')


def test_different_type_is_not_duplicate(clock):
    guard = DuplicateGuard(clock=clock)
    guard.accept(100, 200, 'initiative_positive')
    assert guard.accept(100, 200, 'initiative_negative')


def test_rejected_request_does_not_extend_window(clock):
    guard = DuplicateGuard(clock=clock)
    guard.accept(10, 10, 'business_metric')
    clock.advance(300)
    assert not guard.accept(10, 10, 'business_metric')
    clock.advance(300)
    # 600 ms after the accepted one
    assert guard.accept(10, 10, 'business_metric')


def test_reset_forgets_last_request(clock):
    guard = DuplicateGuard(clock=clock)
    guard.accept(10, 10, 'business_metric')
    guard.reset()
    assert guard.last_request is None
    assert guard.accept(10, 10, 'business_metric')


def test_explicit_timestamp_overrides_clock():
    guard = DuplicateGuard(clock=lambda: 0.0)
    assert guard.accept(1, 1, 'x', now=1000)
    assert not guard.accept(1, 1, 'x', now=1499)
