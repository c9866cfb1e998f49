"""
Unit tests for the token version (epoch) registry.

Run tests:
    pytest tests/services/test_token_version.py -v
"""

import asyncio
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest

from taskdesk.core.exceptions.types import TokenVersionStoreException
from taskdesk.core.services.token_version import (
    MemoryTokenVersionBackend,
    RedisTokenVersionBackend,
    TokenVersionRegistry,
)


class TestMemoryRegistry:
    """Test suite for the in-memory registry."""

    @pytest.mark.asyncio
    async def test_unseen_user_is_zero(self):
        registry = TokenVersionRegistry(backend="memory")

        assert await registry.current_epoch(uuid4()) == 0

    @pytest.mark.asyncio
    async def test_advance_increments_by_one(self):
        registry = TokenVersionRegistry(backend="memory")
        user_id = uuid4()

        assert await registry.advance_epoch(user_id) == 1
        assert await registry.advance_epoch(user_id) == 2
        assert await registry.current_epoch(user_id) == 2

    @pytest.mark.asyncio
    async def test_uuid_and_str_ids_share_an_epoch(self):
        registry = TokenVersionRegistry(backend="memory")
        user_id = uuid4()

        await registry.advance_epoch(user_id)

        assert await registry.current_epoch(str(user_id)) == 1

    @pytest.mark.asyncio
    async def test_users_are_independent(self):
        registry = TokenVersionRegistry(backend="memory")
        alice, bob = uuid4(), uuid4()

        await registry.advance_epoch(alice)
        await registry.advance_epoch(alice)

        assert await registry.current_epoch(bob) == 0

    @pytest.mark.asyncio
    async def test_concurrent_advances_are_serialised(self):
        registry = TokenVersionRegistry(backend="memory")
        user_id = uuid4()

        results = await asyncio.gather(
            *(registry.advance_epoch(user_id) for _ in range(50))
        )

        assert sorted(results) == list(range(1, 51))
        assert await registry.current_epoch(user_id) == 50

    @pytest.mark.asyncio
    async def test_registries_do_not_share_state(self):
        first = TokenVersionRegistry(backend=MemoryTokenVersionBackend())
        second = TokenVersionRegistry(backend=MemoryTokenVersionBackend())
        user_id = uuid4()

        await first.advance_epoch(user_id)

        assert await second.current_epoch(user_id) == 0


class TestRedisRegistry:
    """Test suite for the Redis-backed registry."""

    @pytest.mark.asyncio
    async def test_get_reads_counter(self):
        registry = TokenVersionRegistry(backend="redis")
        user_id = uuid4()

        with patch(
            "taskdesk.core.services.token_version.RedisService.get",
            new_callable=AsyncMock,
            return_value="7",
        ) as mock_get:
            assert await registry.current_epoch(user_id) == 7

        mock_get.assert_awaited_once_with(f"token_version:{user_id}")

    @pytest.mark.asyncio
    async def test_get_failure_reads_as_zero(self):
        backend = RedisTokenVersionBackend()

        with patch(
            "taskdesk.core.services.token_version.RedisService.get",
            new_callable=AsyncMock,
            return_value=None,
        ):
            assert await backend.get("user") == 0

    @pytest.mark.asyncio
    async def test_get_non_integer_reads_as_zero(self):
        backend = RedisTokenVersionBackend()

        with patch(
            "taskdesk.core.services.token_version.RedisService.get",
            new_callable=AsyncMock,
            return_value="garbage",
        ):
            assert await backend.get("user") == 0

    @pytest.mark.asyncio
    async def test_increment_uses_incr(self):
        registry = TokenVersionRegistry(backend="redis")

        with patch(
            "taskdesk.core.services.token_version.RedisService.incr",
            new_callable=AsyncMock,
            return_value=3,
        ) as mock_incr:
            assert await registry.advance_epoch("user-1") == 3

        mock_incr.assert_awaited_once_with("token_version:user-1")

    @pytest.mark.asyncio
    async def test_increment_failure_raises(self):
        registry = TokenVersionRegistry(backend="redis")

        with patch(
            "taskdesk.core.services.token_version.RedisService.incr",
            new_callable=AsyncMock,
            return_value=None,
        ):
            with pytest.raises(TokenVersionStoreException):
                await registry.advance_epoch("user-1")


class TestBackendSelection:
    def test_default_backend_from_settings(self):
        with patch(
            "taskdesk.core.services.token_version.settings.TOKEN_VERSION_BACKEND",
            "redis",
        ):
            registry = TokenVersionRegistry()

        assert isinstance(registry._backend, RedisTokenVersionBackend)

    def test_memory_backend(self):
        registry = TokenVersionRegistry(backend="memory")

        assert isinstance(registry._backend, MemoryTokenVersionBackend)
