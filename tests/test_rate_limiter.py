from studio.security.rate_limiter import RATE_LIMITS, RateLimiter, RateLimitResult, RateLimitRule


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRateLimiter:
    """Fixed-window counting per key"""

    def test_first_request_opens_window(self):
        limiter = RateLimiter(clock=FakeClock())
        result = limiter.check("auth:1.2.3.4", "auth")
        assert result.allowed is True
        assert result.remaining == 4
        assert result.reset_in == 900

    def test_denies_once_max_reached(self):
        limiter = RateLimiter(clock=FakeClock())
        results = [limiter.check("k", "auth") for _ in range(6)]
        assert [r.allowed for r in results] == [True] * 5 + [False]
        assert [r.remaining for r in results[:5]] == [4, 3, 2, 1, 0]
        assert results[5].remaining == 0

    def test_denied_requests_are_not_counted(self):
        clock = FakeClock()
        limiter = RateLimiter(rules={"default": RateLimitRule(1, 10)}, clock=clock)
        limiter.check("k")
        for _ in range(5):
            assert not limiter.check("k").allowed
        clock.now += 10.5
        assert limiter.check("k").allowed

    def test_window_resets_after_expiry(self):
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        for _ in range(5):
            limiter.check("k", "auth")
        clock.now += 901
        result = limiter.check("k", "auth")
        assert result.allowed
        assert result.remaining == 4

    def test_window_still_open_at_exact_reset(self):
        clock = FakeClock()
        limiter = RateLimiter(rules={"default": RateLimitRule(1, 10)}, clock=clock)
        limiter.check("k")
        clock.now += 10
        assert not limiter.check("k").allowed

    def test_keys_are_independent(self):
        limiter = RateLimiter(rules={"default": RateLimitRule(1, 60)}, clock=FakeClock())
        assert limiter.check("a").allowed
        assert limiter.check("b").allowed
        assert not limiter.check("a").allowed

    def test_unknown_kind_uses_default(self):
        limiter = RateLimiter()
        assert limiter.rule_for("nope") == RATE_LIMITS["default"]

    def test_cleanup_drops_expired_windows(self):
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        limiter.check("short", "chat")
        limiter.check("long", "auth")
        clock.now += 61
        assert limiter.cleanup() == 1
        assert limiter.tracked_keys == 1

    def test_reset(self):
        limiter = RateLimiter(clock=FakeClock())
        limiter.check("a")
        limiter.check("b")
        limiter.reset("a")
        assert limiter.tracked_keys == 1
        limiter.reset()
        assert limiter.tracked_keys == 0

    def test_periodic_cleanup(self):
        clock = FakeClock()
        limiter = RateLimiter(rules={"default": RateLimitRule(10_000, 1)}, clock=clock)
        limiter.check("stale")
        clock.now += 5
        for _ in range(RateLimiter.CLEANUP_EVERY - 1):
            limiter.check("busy")
        assert limiter.tracked_keys == 1


class TestRateLimitResult:
    def test_retry_after_rounds_up(self):
        assert RateLimitResult(False, 0, 12.2).retry_after == 13

    def test_retry_after_is_at_least_one(self):
        assert RateLimitResult(False, 0, 0.0).retry_after == 1
