"""
Sliding-window rate limiting with configurable backends.

A key may be hit at most ``limit`` times in any ``window`` seconds. The
memory backend keeps a deque of timestamps per key; the Redis backend keeps
a sorted set per key so several processes share one window.
"""

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
import math
import time
from typing import Callable, Literal
import uuid

from taskdesk.core.config import rate_limit_logger, settings
from taskdesk.core.services.redis_service import RedisService


@dataclass
class RateLimitResult:
    """
    Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed.
        remaining: Number of remaining requests in the current window.
        limit: The maximum number of requests allowed.
        retry_after: Seconds until the client can retry (only if not allowed).
    """

    allowed: bool
    remaining: int
    limit: int
    retry_after: int | None = None


class RateLimitBackend(ABC):
    """
    Abstract base class for rate limit backends.
    """

    @abstractmethod
    async def check(self, key: str, limit: int, window: float) -> RateLimitResult:
        """
        Record a hit for ``key`` if fewer than ``limit`` hits fall inside the window.

        Args:
            key: The rate limit key (e.g., "rate_limit:email:a@b.com:resend").
            limit: Maximum number of requests allowed in the window.
            window: Time window in seconds.

        Returns:
            RateLimitResult with the check outcome.
        """

    @abstractmethod
    async def reset(self, key: str) -> None:
        """Forget every recorded hit for ``key``."""


class MemoryBackend(RateLimitBackend):
    """
    In-memory sliding window backed by a deque of hit timestamps per key.

    Suitable for single-process deployments and tests. State is lost on
    restart and is not shared between workers. Keys whose newest hit has left
    its window are swept at most once per ``SWEEP_INTERVAL_SECONDS``.

    Args:
        clock: Monotonic clock in seconds. Tests pass a fake one.
    """

    SWEEP_INTERVAL_SECONDS: float = 60.0

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._windows: dict[str, float] = {}
        self._last_sweep = clock()

    def _sweep(self, now: float) -> None:
        expired = [
            key
            for key, hits in self._hits.items()
            if not hits or hits[-1] <= now - self._windows[key]
        ]
        for key in expired:
            del self._hits[key]
            del self._windows[key]
        self._last_sweep = now
        if expired:
            rate_limit_logger.debug(f"Swept {len(expired)} idle rate limit keys")

    async def check(self, key: str, limit: int, window: float) -> RateLimitResult:
        # No awaits below, so the prune-count-append sequence is atomic per event loop
        now = self._clock()
        if now - self._last_sweep >= self.SWEEP_INTERVAL_SECONDS:
            self._sweep(now)

        hits = self._hits.setdefault(key, deque())
        self._windows[key] = window

        while hits and hits[0] <= now - window:
            hits.popleft()

        if len(hits) >= limit:
            retry_after = math.ceil(hits[0] + window - now)
            rate_limit_logger.warning(
                f"Rate limit exceeded for key: {key}, retry after: {retry_after}s"
            )
            return RateLimitResult(
                allowed=False,
                remaining=0,
                limit=limit,
                retry_after=max(1, retry_after),
            )

        hits.append(now)
        return RateLimitResult(
            allowed=True,
            remaining=limit - len(hits),
            limit=limit,
        )

    async def reset(self, key: str) -> None:
        self._hits.pop(key, None)
        self._windows.pop(key, None)
        rate_limit_logger.debug(f"Rate limit reset for key: {key}")


class RedisBackend(RateLimitBackend):
    """
    Redis sliding window over a sorted set of hit timestamps.

    When Redis is unreachable the request is allowed and a warning is logged.
    """

    async def check(self, key: str, limit: int, window: float) -> RateLimitResult:
        window_ms = max(1, int(window * 1000))
        result = await RedisService.sliding_window_hit(
            key,
            now_ms=int(time.time() * 1000),
            window_ms=window_ms,
            limit=limit,
            member=uuid.uuid4().hex,
        )

        if result is None:
            rate_limit_logger.warning(
                f"Redis error during rate limit check for key: {key}, allowing request"
            )
            return RateLimitResult(allowed=True, remaining=limit - 1, limit=limit)

        allowed, count, retry_after_ms = result
        if not allowed:
            retry_after = max(1, math.ceil(retry_after_ms / 1000))
            rate_limit_logger.warning(
                f"Rate limit exceeded for key: {key}, count: {count}, retry after: {retry_after}s"
            )
            return RateLimitResult(
                allowed=False,
                remaining=0,
                limit=limit,
                retry_after=retry_after,
            )

        return RateLimitResult(allowed=True, remaining=limit - count, limit=limit)

    async def reset(self, key: str) -> None:
        # Entries age out of the sorted set on their own
        rate_limit_logger.debug(f"Rate limit reset requested for Redis key: {key}")


class RateLimiter:
    """
    Rate limiter with configurable backend.

    Args:
        backend: ``"memory"``, ``"redis"`` or a ready backend instance.
                 If None, uses settings.RATE_LIMIT_BACKEND.

    Example:
        >>> limiter = RateLimiter(backend="memory")
        >>> result = await limiter.check("my_key", limit=30, window=1.0)
        >>> if not result.allowed:
        ...     raise RateLimitExceededException(retry_after=result.retry_after)
    """

    def __init__(
        self,
        backend: Literal["memory", "redis"] | RateLimitBackend | None = None,
    ):
        if backend is None:
            backend = settings.RATE_LIMIT_BACKEND

        if isinstance(backend, RateLimitBackend):
            self._backend = backend
        elif backend == "redis":
            self._backend = RedisBackend()
        else:
            self._backend = MemoryBackend()

        rate_limit_logger.debug(
            f"RateLimiter initialized with {type(self._backend).__name__}"
        )

    async def check(self, key: str, limit: int, window: float) -> RateLimitResult:
        return await self._backend.check(key, limit, window)

    async def reset(self, key: str) -> None:
        await self._backend.reset(key)


def format_rate_limit_key(
    key_type: Literal["ip", "user", "email"],
    identifier: str,
    action: str,
) -> str:
    """
    Format a rate limit key with consistent structure.

    Example:
        >>> format_rate_limit_key("email", "a@b.com", "otp_resend")
        'rate_limit:email:a@b.com:otp_resend'
    """
    return f"rate_limit:{key_type}:{identifier}:{action}"


__all__ = [
    "RateLimitResult",
    "RateLimitBackend",
    "MemoryBackend",
    "RedisBackend",
    "RateLimiter",
    "format_rate_limit_key",
]
