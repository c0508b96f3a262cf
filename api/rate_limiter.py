"""
Rate Limiter
------------
Fixed-window rate limiter keyed by client, with named tiers.
"""

from dataclasses import dataclass
from threading import Lock
from typing import Callable, Dict, Mapping, Optional, Tuple
import os
import time


@dataclass(frozen=True)
class RateLimitConfig:
    """Rate limit configuration."""
    window_seconds: float = 60.0
    max_requests: int = 60

    @classmethod
    def from_env(
        cls,
        prefix: str,
        default_requests: int,
        default_window_ms: int = 60_000,
        environ: Optional[Mapping[str, str]] = None
    ) -> "RateLimitConfig":
        """
        Read <prefix>_WINDOW_MS and <prefix>_MAX_REQUESTS.
        Unparseable values fall back to the defaults.
        """
        env = os.environ if environ is None else environ
        window_ms = _int_or_default(env.get(f"{prefix}_WINDOW_MS"), default_window_ms)
        max_requests = _int_or_default(env.get(f"{prefix}_MAX_REQUESTS"), default_requests)
        return cls(window_seconds=window_ms / 1000.0, max_requests=max_requests)


def _int_or_default(raw: Optional[str], default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


# Strict limit for dispatching commands
EXECUTE_TIER = "execute"
# Standard limit for everything else
STANDARD_TIER = "standard"
# Loose limit for read-only routes
LOOSE_TIER = "loose"


def tiers_from_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, RateLimitConfig]:
    """Build the three rate limit tiers from RATE_LIMIT_* variables."""
    return {
        EXECUTE_TIER: RateLimitConfig.from_env("RATE_LIMIT_EXECUTE", 10, environ=environ),
        STANDARD_TIER: RateLimitConfig.from_env("RATE_LIMIT_STANDARD", 60, environ=environ),
        LOOSE_TIER: RateLimitConfig.from_env("RATE_LIMIT_LOOSE", 120, environ=environ),
    }


class RateLimiter:
    """
    Fixed-window rate limiter.

    The first request from a key opens a window; further requests are
    counted until max_requests, then refused until the window expires.
    Thread-safe.
    """

    # Tracked keys before a new key triggers a sweep of expired windows
    DEFAULT_PRUNE_THRESHOLD = 1024

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        prune_threshold: int = DEFAULT_PRUNE_THRESHOLD
    ):
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._windows: Dict[str, Tuple[int, float]] = {}  # key -> (count, reset_at)
        self._prune_threshold = prune_threshold
        self._next_prune_at = prune_threshold
        self._lock = Lock()

    def __len__(self) -> int:
        """Number of keys currently tracked, expired or not."""
        with self._lock:
            return len(self._windows)

    def try_acquire(self, key: str) -> bool:
        """
        Count a request for key.
        Returns True if allowed, False if the key is over its limit.
        """
        now = self._clock()

        with self._lock:
            record = self._windows.get(key)

            if record is None and len(self._windows) >= self._next_prune_at:
                self._drop_expired(now)
                # Windows still live: sweep again only after the map doubles
                self._next_prune_at = max(self._prune_threshold, 2 * len(self._windows))

            if record is None or now > record[1]:
                self._windows[key] = (1, now + self.config.window_seconds)
                return True

            count, reset_at = record
            if count >= self.config.max_requests:
                return False

            self._windows[key] = (count + 1, reset_at)
            return True

    def remaining(self, key: str) -> int:
        """Requests left for key in its current window."""
        now = self._clock()
        with self._lock:
            record = self._windows.get(key)
            if record is None or now > record[1]:
                return self.config.max_requests
            return max(0, self.config.max_requests - record[0])

    def prune(self) -> int:
        """Drop expired windows. Returns number removed."""
        now = self._clock()
        with self._lock:
            return self._drop_expired(now)

    def _drop_expired(self, now: float) -> int:
        # Caller holds the lock
        expired = [k for k, (_, reset_at) in self._windows.items() if now > reset_at]
        for key in expired:
            del self._windows[key]
        return len(expired)

    def reset(self) -> None:
        """Reset the rate limiter."""
        with self._lock:
            self._windows.clear()
            self._next_prune_at = self._prune_threshold


def client_key(forwarded_for: Optional[str], peer: Optional[str]) -> str:
    """Client identity: first X-Forwarded-For hop, else the peer address."""
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    return peer or "unknown"
