"""
Fixed-window request counter keyed by caller identity.

Each bucket's window starts at its first request and lasts window_seconds.
Increment-and-compare happens under one lock, so concurrent requests for the
same caller cannot both take the last slot. Expired buckets are pruned
lazily once the table grows past a threshold.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from gasless_relay.config.settings import RateLimitPolicy

_PRUNE_THRESHOLD = 10_000


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_at: float
    """Wall-clock (epoch seconds) when the caller's window resets."""

    def retry_after(self, now: float) -> int:
        """Whole seconds until reset_at, at least 1."""
        return max(1, math.ceil(self.reset_at - now))


@dataclass
class _Bucket:
    count: int
    reset_at: float


class FixedWindowRateLimiter:
    def __init__(self, policy: RateLimitPolicy, clock: Callable[[], float] = time.time) -> None:
        self._policy = policy
        self._clock = clock
        self._buckets: dict[str, _Bucket] = {}
        self._lock = threading.Lock()

    @property
    def policy(self) -> RateLimitPolicy:
        return self._policy

    def now(self) -> float:
        return self._clock()

    def allow(self, caller_key: str) -> RateLimitDecision:
        now = self._clock()
        limit = self._policy.max_requests
        with self._lock:
            bucket = self._buckets.get(caller_key)
            if bucket is None or now >= bucket.reset_at:
                bucket = _Bucket(count=0, reset_at=now + self._policy.window_seconds)
                self._buckets[caller_key] = bucket
                if len(self._buckets) > _PRUNE_THRESHOLD:
                    self._prune(now)
            if bucket.count >= limit:
                return RateLimitDecision(allowed=False, remaining=0, reset_at=bucket.reset_at)
            bucket.count += 1
            return RateLimitDecision(allowed=True, remaining=limit - bucket.count, reset_at=bucket.reset_at)

    def _prune(self, now: float) -> None:
        expired = [k for k, b in self._buckets.items() if now >= b.reset_at]
        for key in expired:
            del self._buckets[key]

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
