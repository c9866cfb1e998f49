"""
Redis service for shared token versions and rate limiting.

This module provides a singleton Redis client for async operations. It is
only initialized when ``REDIS_URL`` is set; every method degrades to a
"not available" return value instead of raising.
"""

from __future__ import annotations

from redis.asyncio import Redis

from taskdesk.core.config import redis_logger, settings


class RedisService:
    """
    Singleton Redis service for async Redis operations.

    Attributes:
        _client: The async Redis client instance.
        _url: The Redis connection URL.

    Example:
        >>> await RedisService.init("redis://localhost:6379/0")
        >>> await RedisService.incr("token_version:42")
        >>> await RedisService.aclose()
    """

    _client: Redis | None = None
    _url: str = settings.REDIS_URL

    @classmethod
    async def init(cls, url: str | None = None) -> None:
        """
        Initialize the Redis service with the given URL.

        An existing client is closed before the new one is created.

        Args:
            url: The Redis connection URL. If None, uses settings.REDIS_URL.
        """
        if url is not None:
            cls._url = url

        await cls.aclose()

        try:
            cls._client = Redis.from_url(
                cls._url,
                encoding="utf-8",
                decode_responses=False,  # We handle decoding manually
            )
            redis_logger.info("Redis client initialized")
        except Exception as e:
            redis_logger.error(f"Failed to initialize Redis client: {str(e)}")
            raise

    @classmethod
    async def aclose(cls) -> None:
        """Close the Redis client. Safe to call when it was never initialized."""
        if cls._client is not None:
            try:
                await cls._client.aclose()
                redis_logger.info("Redis client closed successfully")
            except Exception as e:
                redis_logger.warning(f"Error closing Redis client: {str(e)}")
            finally:
                cls._client = None

    @classmethod
    async def ping(cls) -> bool:
        """
        Ping the Redis server to check connectivity.

        Returns:
            bool: True if ping succeeds, False otherwise.
        """
        if cls._client is None:
            redis_logger.warning("Redis ping attempted but client not initialized")
            return False

        try:
            result = await cls._client.ping()  # type: ignore[misc]
            return bool(result)
        except Exception as e:
            redis_logger.error(f"Redis ping failed: {str(e)}")
            return False

    @classmethod
    async def get(cls, key: str) -> str | None:
        """
        Get a value from Redis by key.

        Args:
            key: The key to retrieve.

        Returns:
            The value as a string if found, None when missing or on error.
        """
        if cls._client is None:
            redis_logger.warning(
                f"Redis get({key}) attempted but client not initialized"
            )
            return None

        try:
            value = await cls._client.get(key)
            if value is not None:
                return value.decode("utf-8") if isinstance(value, bytes) else value
            return None
        except Exception as e:
            redis_logger.error(f"Redis get({key}) failed: {str(e)}")
            return None

    @classmethod
    async def incr(cls, key: str) -> int | None:
        """
        Atomically increment a counter, creating it at 1 if missing.

        Args:
            key: The key to increment.

        Returns:
            The new value after increment, or None on failure.
        """
        if cls._client is None:
            redis_logger.warning(
                f"Redis incr({key}) attempted but client not initialized"
            )
            return None

        try:
            value = await cls._client.incr(key)
            redis_logger.debug(f"Redis incr({key}) new value: {value}")
            return value
        except Exception as e:
            redis_logger.error(f"Redis incr({key}) failed: {str(e)}")
            return None

    # Sliding window over a sorted set of request timestamps (milliseconds).
    # Returns: [allowed (0|1), count, retry_after_ms]
    _SLIDING_WINDOW_SCRIPT = """
    local now = tonumber(ARGV[1])
    local window = tonumber(ARGV[2])
    local limit = tonumber(ARGV[3])
    redis.call('ZREMRANGEBYSCORE', KEYS[1], '-inf', now - window)
    local count = redis.call('ZCARD', KEYS[1])
    if count < limit then
        redis.call('ZADD', KEYS[1], now, ARGV[4])
        redis.call('PEXPIRE', KEYS[1], window)
        return {1, count + 1, 0}
    end
    local oldest = redis.call('ZRANGE', KEYS[1], 0, 0, 'WITHSCORES')
    return {0, count, window - (now - tonumber(oldest[2]))}
    """

    @classmethod
    async def sliding_window_hit(
        cls,
        key: str,
        now_ms: int,
        window_ms: int,
        limit: int,
        member: str,
    ) -> tuple[bool, int, int] | None:
        """
        Record a request in a sliding window if the window has room.

        Entries older than ``window_ms`` are pruned first. Rejected requests
        are not recorded.

        Args:
            key: The sorted set key.
            now_ms: Current time in milliseconds.
            window_ms: Window length in milliseconds.
            limit: Maximum requests per window.
            member: Unique member name for this request.

        Returns:
            Tuple of (allowed, count, retry_after_ms), or None if Redis is unavailable.
        """
        if cls._client is None:
            redis_logger.warning(
                f"Redis sliding_window_hit({key}) attempted but client not initialized"
            )
            return None

        try:
            result = await cls._client.eval(  # type: ignore[misc]
                cls._SLIDING_WINDOW_SCRIPT,
                1,
                key,
                str(now_ms),
                str(window_ms),
                str(limit),
                member,
            )
            return bool(int(result[0])), int(result[1]), int(result[2])
        except Exception as e:
            redis_logger.error(f"Redis sliding_window_hit({key}) failed: {str(e)}")
            return None


__all__ = ["RedisService"]
