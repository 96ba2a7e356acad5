from scholarship_api.utils.rate_limit import SlidingWindowLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_limiter_blocks_then_recovers():
    clock = FakeClock()
    limiter = SlidingWindowLimiter(max_requests=2, window_seconds=60, clock=clock)
    assert limiter.hit('k') == (True, 0)
    clock.now += 10
    assert limiter.hit('k') == (True, 0)
    allowed, retry_after = limiter.hit('k')
    assert allowed is False
    assert retry_after == 50
    # other keys are independent
    assert limiter.hit('other')[0] is True
    clock.now += 51
    assert limiter.hit('k')[0] is True


def test_reset_clears_history():
    limiter = SlidingWindowLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
    limiter.hit('k')
    assert limiter.hit('k')[0] is False
    limiter.reset()
    assert limiter.hit('k')[0] is True
