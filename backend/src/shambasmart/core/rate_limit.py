"""
Rate limiting — fenêtre glissante par adresse source.

Contrairement à un limiteur de scraping, on ne dort jamais : une requête
hors quota est refusée immédiatement avec un 429 et un délai de retry.
"""

import logging
import math
import threading
import time
from collections import deque
from typing import Callable, Dict, Optional

from fastapi import HTTPException, Request

from shambasmart.core.settings import settings

logger = logging.getLogger("ShambaSmart.RateLimit")


class RateLimitExceeded(HTTPException):
    """429 avec l'indication Retry-After (secondes)."""

    def __init__(self, retry_after: int):
        super().__init__(
            status_code=429,
            detail={"error": "Too many requests, please try again later.", "retryAfter": retry_after},
            headers={"Retry-After": str(retry_after)},
        )
        self.retry_after = retry_after


class SlidingWindowLimiter:
    """
    Sliding-window limiter, one deque of timestamps per client key.

    `hit(key)` returns None when allowed, else the seconds to wait.
    """

    def __init__(self, name: str, calls: int, window: int, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.calls = calls
        self.window = window
        self._clock = clock
        self._hits: Dict[str, deque] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def _sweep(self, now: float) -> None:
        """Oublie les clients sans requête dans la fenêtre courante."""
        cutoff = now - self.window
        for key in [k for k, stamps in self._hits.items() if not stamps or stamps[-1] <= cutoff]:
            del self._hits[key]
        self._last_sweep = now

    def hit(self, key: str) -> Optional[int]:
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window:
                self._sweep(now)
            stamps = self._hits.setdefault(key, deque())
            while stamps and stamps[0] <= now - self.window:
                stamps.popleft()

            if len(stamps) >= self.calls:
                return max(1, math.ceil(self.window - (now - stamps[0])))

            stamps.append(now)
            return None

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()

    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._hits)

    def __call__(self, request: Request) -> None:
        """Dependency FastAPI."""
        key = request.client.host if request.client else "unknown"
        retry_after = self.hit(key)
        if retry_after is not None:
            logger.warning("⛔ Rate limit '%s' atteint pour %s (retry in %ss)", self.name, key, retry_after)
            raise RateLimitExceeded(retry_after)


general_limiter = SlidingWindowLimiter(
    "general", settings.RATE_LIMIT_GENERAL, settings.RATE_LIMIT_GENERAL_WINDOW
)
chat_limiter = SlidingWindowLimiter(
    "chat", settings.RATE_LIMIT_CHAT, settings.RATE_LIMIT_CHAT_WINDOW
)
webhook_limiter = SlidingWindowLimiter(
    "webhook", settings.RATE_LIMIT_WEBHOOK, settings.RATE_LIMIT_WEBHOOK_WINDOW
)
location_limiter = SlidingWindowLimiter(
    "location", settings.RATE_LIMIT_LOCATION, settings.RATE_LIMIT_LOCATION_WINDOW
)


__all__ = [
    "RateLimitExceeded",
    "SlidingWindowLimiter",
    "general_limiter",
    "chat_limiter",
    "webhook_limiter",
    "location_limiter",
]
