"""In-memory sliding-window rate limiting."""

import time
from collections.abc import Callable
from dataclasses import dataclass, field

from photo_unlock.errors import RateLimitExceededError


@dataclass
class SlidingWindowRateLimiter:
    """Count requests per client key over a rolling window.

    State lives in process memory, so limits apply per worker.
    """

    max_requests: int
    window_seconds: int
    clock: Callable[[], float] = time.monotonic
    _hits: dict[str, list[float]] = field(default_factory=dict, init=False, repr=False)
    _next_prune: float = field(default=0.0, init=False, repr=False)

    def hit(self, key: str) -> None:
        """Record a request for the key or raise when over budget."""
        now = self.clock()
        window_start = now - self.window_seconds
        self._prune(now, window_start)
        hits = [ts for ts in self._hits.get(key, []) if ts > window_start]
        if len(hits) >= self.max_requests:
            if hits:
                self._hits[key] = hits
                retry_after = int(hits[0] + self.window_seconds - now) + 1
            else:
                retry_after = self.window_seconds
            raise RateLimitExceededError(retry_after=retry_after)
        hits.append(now)
        self._hits[key] = hits

    def _prune(self, now: float, window_start: float) -> None:
        # Stale keys are dropped at most once per window.
        if now < self._next_prune:
            return
        self._next_prune = now + self.window_seconds
        stale = [key for key, hits in self._hits.items() if hits[-1] <= window_start]
        for key in stale:
            del self._hits[key]


@dataclass
class RateLimits:
    """Per-route-group limiters."""

    general: SlidingWindowRateLimiter
    payments: SlidingWindowRateLimiter
    uploads: SlidingWindowRateLimiter
