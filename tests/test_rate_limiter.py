"""Tests for node_wallet_ai.tools.rate_limiter module."""

from node_wallet_ai.tools.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestRateLimiter:
    """Tests for rolling-window limits."""

    def test_unconfigured_key_is_unlimited(self):
        """Test that keys without a bucket always pass."""
        limiter = RateLimiter()
        limiter.record("anything")

        assert limiter.check("anything") is True
        assert limiter.remaining("anything") is None

    def test_limit_is_enforced(self):
        """Test that the bucket blocks once full."""
        limiter = RateLimiter(clock=FakeClock())
        limiter.configure("transfers", max_count=2, window_seconds=3600)

        limiter.record("transfers")
        assert limiter.check("transfers") is True
        limiter.record("transfers")

        assert limiter.check("transfers") is False
        assert limiter.remaining("transfers") == 0

    def test_window_rolls(self):
        """Test that old entries expire after the window."""
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        limiter.configure("transfers", max_count=1, window_seconds=60)
        limiter.record("transfers")
        assert limiter.check("transfers") is False

        clock.now += 61

        assert limiter.check("transfers") is True
        assert limiter.remaining("transfers") == 1

    def test_retry_after_minutes(self):
        """Test the wait reported once a window is full."""
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        limiter.configure("transfers", max_count=1, window_seconds=3600)
        assert limiter.retry_after_minutes("transfers") == 0

        limiter.record("transfers")
        clock.now += 600

        assert limiter.retry_after_minutes("transfers") == 50
        assert limiter.retry_after_minutes("unconfigured") == 0
