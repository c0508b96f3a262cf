"""
Rate Limiter Tests
------------------
Fixed windows, tier configuration and client identity.
"""

import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent))

from api.rate_limiter import (
    EXECUTE_TIER, LOOSE_TIER, STANDARD_TIER,
    RateLimitConfig, RateLimiter, client_key, tiers_from_env,
)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


class TestFixedWindow:

    def test_allows_up_to_limit(self, clock):
        limiter = RateLimiter(RateLimitConfig(window_seconds=60, max_requests=3), clock=clock)

        assert [limiter.try_acquire("a") for _ in range(4)] == [True, True, True, False]

    def test_keys_independent(self, clock):
        limiter = RateLimiter(RateLimitConfig(window_seconds=60, max_requests=1), clock=clock)

        assert limiter.try_acquire("a")
        assert not limiter.try_acquire("a")
        assert limiter.try_acquire("b")

    def test_window_expiry_resets(self, clock):
        limiter = RateLimiter(RateLimitConfig(window_seconds=60, max_requests=1), clock=clock)
        assert limiter.try_acquire("a")
        assert not limiter.try_acquire("a")

        clock.now += 60
        # Still inside the window at exactly reset_at
        assert not limiter.try_acquire("a")

        clock.now += 0.001
        assert limiter.try_acquire("a")

    def test_refused_requests_not_counted(self, clock):
        limiter = RateLimiter(RateLimitConfig(window_seconds=10, max_requests=2), clock=clock)
        for _ in range(5):
            limiter.try_acquire("a")
        assert limiter.remaining("a") == 0

    def test_remaining(self, clock):
        limiter = RateLimiter(RateLimitConfig(window_seconds=10, max_requests=5), clock=clock)
        assert limiter.remaining("a") == 5
        limiter.try_acquire("a")
        limiter.try_acquire("a")
        assert limiter.remaining("a") == 3

    def test_prune_and_reset(self, clock):
        limiter = RateLimiter(RateLimitConfig(window_seconds=10, max_requests=5), clock=clock)
        limiter.try_acquire("a")
        clock.now += 5
        limiter.try_acquire("b")

        clock.now += 6
        assert limiter.prune() == 1

        limiter.reset()
        assert limiter.prune() == 0
        assert limiter.remaining("b") == 5


class TestBoundedKeys:
    """Expired windows are swept as new keys arrive."""

    def test_new_keys_sweep_expired_windows(self, clock):
        limiter = RateLimiter(RateLimitConfig(window_seconds=10, max_requests=5), clock=clock, prune_threshold=3)
        for key in ("1.1.1.1", "2.2.2.2", "3.3.3.3"):
            limiter.try_acquire(key)
        assert len(limiter) == 3

        clock.now += 11
        assert limiter.try_acquire("4.4.4.4")

        assert len(limiter) == 1

    def test_live_windows_survive_sweep(self, clock):
        limiter = RateLimiter(RateLimitConfig(window_seconds=10, max_requests=1), clock=clock, prune_threshold=2)
        limiter.try_acquire("a")
        clock.now += 5
        limiter.try_acquire("b")

        clock.now += 6
        limiter.try_acquire("c")

        assert len(limiter) == 2
        assert not limiter.try_acquire("b")

    def test_spoofed_keys_stay_bounded(self, clock):
        limiter = RateLimiter(RateLimitConfig(window_seconds=1, max_requests=1), clock=clock, prune_threshold=50)
        for i in range(1000):
            limiter.try_acquire(f"10.0.{i // 256}.{i % 256}")
            clock.now += 0.1

        # Only keys from roughly the last window plus one sweep interval remain
        assert len(limiter) <= 50


class TestTiers:

    def test_defaults(self):
        tiers = tiers_from_env({})

        assert tiers[EXECUTE_TIER] == RateLimitConfig(window_seconds=60.0, max_requests=10)
        assert tiers[STANDARD_TIER].max_requests == 60
        assert tiers[LOOSE_TIER].max_requests == 120

    def test_env_overrides(self):
        tiers = tiers_from_env({
            "RATE_LIMIT_EXECUTE_WINDOW_MS": "30000",
            "RATE_LIMIT_EXECUTE_MAX_REQUESTS": "2",
        })
        assert tiers[EXECUTE_TIER] == RateLimitConfig(window_seconds=30.0, max_requests=2)

    def test_bad_values_fall_back(self):
        config = RateLimitConfig.from_env("X", 7, environ={"X_MAX_REQUESTS": "many"})
        assert config.max_requests == 7


class TestClientKey:

    @pytest.mark.parametrize("forwarded, peer, expected", [
        ("1.2.3.4, 10.0.0.1", "127.0.0.1", "1.2.3.4"),
        (None, "127.0.0.1", "127.0.0.1"),
        ("  ", "127.0.0.1", "127.0.0.1"),
        (None, None, "unknown"),
    ])
    def test_identity(self, forwarded, peer, expected):
        assert client_key(forwarded, peer) == expected


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
