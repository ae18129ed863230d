import logging
import time
from collections import deque
from typing import Callable, Deque, Dict

logger = logging.getLogger("quiz.ratelimit")


class SlidingWindowRateLimiter:
    """In-memory per-client limiter: at most `limit` attempts per `window` seconds.

    Every attempt is recorded, including rejected ones, so a client that keeps
    hammering stays blocked until it backs off for a full window.
    """

    def __init__(self, limit: int = 12, window: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = {}

    def check(self, key: str) -> bool:
        now = self._clock()
        hits = self._hits.setdefault(key, deque())
        while hits and now - hits[0] >= self.window:
            hits.popleft()
        hits.append(now)
        allowed = len(hits) <= self.limit
        if not allowed:
            logger.warning(f"Rate limit exceeded for {key}: {len(hits)} requests in {self.window:.0f}s")
        self._prune(now)
        return allowed

    def _prune(self, now: float) -> None:
        stale = [k for k, hits in self._hits.items() if not hits or now - hits[-1] >= self.window]
        for k in stale:
            del self._hits[k]

    def reset(self) -> None:
        self._hits.clear()
