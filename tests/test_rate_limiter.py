"""Tests for the per-thread cooldown gate."""

from fakes import FakeClock
from skye.services.rate_limiter import RateLimiter


class TestRateLimiter:
    def test_cooldown_boundary(self):
        clock = FakeClock(0.0)
        limiter = RateLimiter(2.0, clock=clock)

        assert limiter.can_respond("1") is True
        clock.advance(1.999)
        assert limiter.can_respond("1") is False
        clock.now = 2.0
        assert limiter.can_respond("1") is True

    def test_denied_calls_do_not_extend_cooldown(self):
        clock = FakeClock(0.0)
        limiter = RateLimiter(2.0, clock=clock)

        limiter.can_respond("1")
        clock.now = 1.5
        limiter.can_respond("1")
        clock.now = 2.5

        assert limiter.can_respond("1") is True

    def test_keys_are_independent(self):
        limiter = RateLimiter(2.0, clock=FakeClock(0.0))

        assert limiter.can_respond("1") is True
        assert limiter.can_respond("1:7") is True
        assert limiter.can_respond("1") is False

    def test_reset_clears_cooldown(self):
        limiter = RateLimiter(2.0, clock=FakeClock(0.0))
        limiter.can_respond("1")

        limiter.reset("1")

        assert limiter.can_respond("1") is True
