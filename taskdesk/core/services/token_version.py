"""
Token version (epoch) registry.

Each user id maps to a non-negative integer epoch. Every session token carries
the epoch that was current when it was issued, and only a token whose epoch
equals the registry's current value is accepted. Advancing the epoch therefore
revokes every token issued before it without storing the tokens themselves.

Backends:
    - MemoryTokenVersionBackend: process-local dict, one lock per user id
    - RedisTokenVersionBackend: one Redis counter per user id (INCR)

Example usage:
    registry = TokenVersionRegistry(backend="memory")
    epoch = await registry.advance_epoch(user_id)      # 1
    await registry.current_epoch(user_id) == epoch     # True
"""

from abc import ABC, abstractmethod
import threading
from typing import Literal

from taskdesk.core.config import session_logger, settings
from taskdesk.core.exceptions.types import TokenVersionStoreException
from taskdesk.core.services.redis_service import RedisService


class TokenVersionBackend(ABC):
    """Storage for per-user epochs."""

    @abstractmethod
    async def get(self, user_id: str) -> int:
        """Return the stored epoch, 0 if none."""

    @abstractmethod
    async def increment(self, user_id: str) -> int:
        """Atomically add one to the epoch and return the new value."""


class MemoryTokenVersionBackend(TokenVersionBackend):
    """
    Process-local epochs guarded by one lock per user id.

    Increments for the same user are serialised; different users never
    contend.
    """

    def __init__(self):
        self._epochs: dict[str, int] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, user_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(user_id)
            if lock is None:
                lock = self._locks[user_id] = threading.Lock()
            return lock

    async def get(self, user_id: str) -> int:
        return self._epochs.get(user_id, 0)

    async def increment(self, user_id: str) -> int:
        with self._lock_for(user_id):
            value = self._epochs.get(user_id, 0) + 1
            self._epochs[user_id] = value
            return value


class RedisTokenVersionBackend(TokenVersionBackend):
    """
    Epochs stored as Redis counters under ``token_version:<user_id>``.

    A failed read is reported as epoch 0, which no issued token carries, so
    validation fails closed. A failed increment raises.
    """

    KEY_PREFIX = "token_version"

    def _key(self, user_id: str) -> str:
        return f"{self.KEY_PREFIX}:{user_id}"

    async def get(self, user_id: str) -> int:
        value = await RedisService.get(self._key(user_id))
        if value is None:
            return 0
        try:
            return int(value)
        except ValueError:
            session_logger.error(
                f"Non-integer token version stored for user {user_id}: {value!r}"
            )
            return 0

    async def increment(self, user_id: str) -> int:
        value = await RedisService.incr(self._key(user_id))
        if value is None:
            raise TokenVersionStoreException()
        return value


class TokenVersionRegistry:
    """
    Per-user epoch registry over a pluggable backend.

    Args:
        backend: ``"memory"``, ``"redis"`` or a backend instance.
                 If None, uses settings.TOKEN_VERSION_BACKEND.
    """

    def __init__(
        self,
        backend: Literal["memory", "redis"] | TokenVersionBackend | None = None,
    ):
        if backend is None:
            backend = settings.TOKEN_VERSION_BACKEND

        if isinstance(backend, TokenVersionBackend):
            self._backend = backend
        elif backend == "redis":
            self._backend = RedisTokenVersionBackend()
        else:
            self._backend = MemoryTokenVersionBackend()

    async def current_epoch(self, user_id) -> int:
        """
        Return the user's current epoch.

        Args:
            user_id: User id (UUID or str).

        Returns:
            int: 0 for a user that has never been issued a token.
        """
        return await self._backend.get(str(user_id))

    async def advance_epoch(self, user_id) -> int:
        """
        Advance the user's epoch by one, revoking every earlier token.

        Args:
            user_id: User id (UUID or str).

        Returns:
            int: The new epoch.

        Raises:
            TokenVersionStoreException: If the backing store cannot be updated.
        """
        epoch = await self._backend.increment(str(user_id))
        session_logger.info(f"Token epoch for user {user_id} advanced to {epoch}")
        return epoch


__all__ = [
    "TokenVersionBackend",
    "MemoryTokenVersionBackend",
    "RedisTokenVersionBackend",
    "TokenVersionRegistry",
]
