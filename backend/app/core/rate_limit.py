# app/core/rate_limit.py
import logging
import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from fastapi import HTTPException, Request

from app.core.cache import get_redis, incr_window

log = logging.getLogger("uvicorn.error")

# Prune expired windows once the in-process table grows past this size
_PRUNE_THRESHOLD = 4096


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    limit: int
    remaining: int
    reset_after: int


class RateLimitExceeded(HTTPException):
    def __init__(self, result: RateLimitResult, message: str):
        super().__init__(
            status_code=429,
            detail=message,
            headers={
                "Retry-After": str(result.reset_after),
                "RateLimit-Limit": str(result.limit),
                "RateLimit-Remaining": "0",
                "RateLimit-Reset": str(result.reset_after),
            },
        )
        self.result = result


class MemoryWindowStore:
    """Fixed-window hit counters held in this process."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._lock = threading.Lock()

    def hit(self, key: str, window_seconds: int) -> Tuple[int, int]:
        now = self._clock()
        with self._lock:
            if len(self._windows) > _PRUNE_THRESHOLD:
                self._prune(now, window_seconds)
            start, hits = self._windows.get(key, (now, 0))
            if now - start >= window_seconds:
                start, hits = now, 0
            hits += 1
            self._windows[key] = (start, hits)
        return hits, max(1, math.ceil(start + window_seconds - now))

    def _prune(self, now: float, window_seconds: int) -> None:
        expired = [k for k, (start, _) in self._windows.items() if now - start >= window_seconds]
        for k in expired:
            del self._windows[k]

    def __len__(self) -> int:
        return len(self._windows)


class FixedWindowRateLimiter:
    def __init__(
        self,
        scope: str,
        limit: int,
        window_seconds: int,
        message: str,
        store: Optional[MemoryWindowStore] = None,
        redis_url: Optional[str] = None,
    ):
        self.scope = scope
        self.limit = limit
        self.window_seconds = window_seconds
        self.message = message
        self.store = store if store is not None else MemoryWindowStore()
        self.redis_url = redis_url

    def hit(self, client: str) -> RateLimitResult:
        key = f"rl:{self.scope}:{client}"
        counted = None
        redis = get_redis(self.redis_url)
        if redis is not None:
            counted = incr_window(redis, key, self.window_seconds)
            if counted is None:
                log.warning(f"[rate] Redis unavailable, counting {self.scope} in-process")
        if counted is None:
            counted = self.store.hit(key, self.window_seconds)

        hits, reset_after = counted
        return RateLimitResult(
            allowed=hits <= self.limit,
            limit=self.limit,
            remaining=max(0, self.limit - hits),
            reset_after=reset_after,
        )

    def check(self, client: str) -> RateLimitResult:
        result = self.hit(client)
        if not result.allowed:
            log.warning(f"[rate] {self.scope} limit exceeded for {client}")
            raise RateLimitExceeded(result, self.message)
        return result


def client_address(request: Request) -> str:
    if request.app.state.settings.trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            # One trusted hop: the proxy appends the address it saw last
            return forwarded.split(",")[-1].strip()
    return request.client.host if request.client else "unknown"


async def api_rate_limit(request: Request) -> None:
    request.app.state.api_limiter.check(client_address(request))


async def contact_rate_limit(request: Request) -> None:
    request.app.state.contact_limiter.check(client_address(request))
