"""Unit tests for Redis and in-memory cache backends."""

import json
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, ResponseError
from redis.exceptions import TimeoutError as RedisTimeoutError

from src.cache.backends import CacheResult, RedisBackend
from src.exceptions import CacheConnectionError, CacheError, SerializationError


def scan_results(*keys):
    """Build a scan_iter replacement yielding the given keys."""

    def scan_iter(match=None):
        async def gen():
            for key in keys:
                yield key

        return gen()

    return scan_iter


class TestCacheResult:
    """Test CacheResult helpers."""

    def test_found(self):
        result = CacheResult.found([1, 2])
        assert result.ok and result.hit
        assert result.value == [1, 2]

    def test_missing(self):
        result = CacheResult.missing()
        assert result.ok and not result.hit
        assert result.value is None

    def test_failed(self):
        error = CacheError("boom")
        result = CacheResult.failed(error)
        assert not result.ok
        assert result.error is error


class TestMemoryBackend:
    """Test the local fallback backend."""

    @pytest.mark.asyncio
    async def test_set_then_get_returns_native_object(self, memory_backend):
        value = {"players": [{"id": "p1"}]}
        await memory_backend.set("k", value, 60)

        result = await memory_backend.get("k")

        assert result.hit
        assert result.value is value

    @pytest.mark.asyncio
    async def test_missing_key(self, memory_backend):
        result = await memory_backend.get("absent")
        assert result.ok and not result.hit

    @pytest.mark.asyncio
    async def test_entry_live_before_ttl(self, memory_backend, clock):
        await memory_backend.set("k", "v", 30)
        clock.advance(29.999)

        assert (await memory_backend.get("k")).hit

    @pytest.mark.asyncio
    async def test_expired_entry_purged_from_both_maps(self, memory_backend, clock):
        await memory_backend.set("k", "v", 30)
        clock.advance(30)

        result = await memory_backend.get("k")

        assert not result.hit
        assert "k" not in memory_backend._values
        assert "k" not in memory_backend._expiries

    @pytest.mark.asyncio
    async def test_value_without_expiry_is_absent(self, memory_backend):
        memory_backend._values["orphan"] = "v"

        result = await memory_backend.get("orphan")

        assert not result.hit
        assert "orphan" not in memory_backend._values

    @pytest.mark.asyncio
    async def test_overwrite_resets_expiry(self, memory_backend, clock):
        await memory_backend.set("k", "old", 10)
        clock.advance(8)
        await memory_backend.set("k", "new", 10)
        clock.advance(8)

        result = await memory_backend.get("k")
        assert result.value == "new"

    @pytest.mark.asyncio
    async def test_delete(self, memory_backend):
        await memory_backend.set("k", "v", 10)

        assert (await memory_backend.delete("k")).value == 1
        assert (await memory_backend.delete("k")).value == 0
        assert "k" not in memory_backend._expiries

    @pytest.mark.asyncio
    async def test_delete_pattern_substring_match(self, memory_backend):
        await memory_backend.set("takaro:items:serverA:all", 1, 60)
        await memory_backend.set("takaro:items:serverA:sword", 2, 60)
        await memory_backend.set("takaro:items:serverB:all", 3, 60)

        result = await memory_backend.delete_pattern("takaro:items:serverA:*")

        assert result.value == 2
        assert not (await memory_backend.get("takaro:items:serverA:all")).hit
        assert (await memory_backend.get("takaro:items:serverB:all")).hit

    @pytest.mark.asyncio
    async def test_delete_pattern_is_superset_of_glob(self, memory_backend):
        """Only the first "*" is removed and the rest is matched anywhere."""
        await memory_backend.set("x:takaro:items:y", 1, 60)

        result = await memory_backend.delete_pattern("takaro:items:*")

        assert result.value == 1
        assert len(memory_backend) == 0

    @pytest.mark.asyncio
    async def test_stats(self, memory_backend):
        await memory_backend.set("a", 1, 60)
        await memory_backend.set("b", 2, 60)

        result = await memory_backend.stats()
        assert result.value == {"keys": 2}


class TestRedisBackend:
    """Test the Redis backend against a mocked client."""

    @pytest.fixture
    def backend(self, mock_redis):
        return RedisBackend(mock_redis)

    @pytest.mark.asyncio
    async def test_get_decodes_json(self, backend, mock_redis):
        mock_redis.get.return_value = json.dumps({"name": "서버"})

        result = await backend.get("k")

        assert result.hit
        assert result.value == {"name": "서버"}
        mock_redis.get.assert_awaited_once_with("k")

    @pytest.mark.asyncio
    async def test_get_miss(self, backend, mock_redis):
        mock_redis.get.return_value = None

        result = await backend.get("k")
        assert result.ok and not result.hit

    @pytest.mark.asyncio
    async def test_get_malformed_payload(self, backend, mock_redis):
        mock_redis.get.return_value = "{not json"

        result = await backend.get("k")

        assert isinstance(result.error, SerializationError)
        assert result.error.data["key"] == "k"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [RedisConnectionError("refused"), RedisTimeoutError("slow"), OSError("reset")]
    )
    async def test_get_connection_errors(self, backend, mock_redis, error):
        mock_redis.get.side_effect = error

        result = await backend.get("k")
        assert isinstance(result.error, CacheConnectionError)

    @pytest.mark.asyncio
    async def test_command_error_is_not_connection_error(self, backend, mock_redis):
        mock_redis.get.side_effect = ResponseError("WRONGTYPE")

        result = await backend.get("k")

        assert isinstance(result.error, CacheError)
        assert not isinstance(result.error, CacheConnectionError)

    @pytest.mark.asyncio
    async def test_set_uses_setex_with_json(self, backend, mock_redis):
        result = await backend.set("k", {"a": [1, 2]}, 900)

        assert result.ok
        mock_redis.setex.assert_awaited_once_with("k", 900, '{"a": [1, 2]}')

    @pytest.mark.asyncio
    async def test_set_unserializable_value(self, backend, mock_redis):
        result = await backend.set("k", {"a": object()}, 60)

        assert isinstance(result.error, SerializationError)
        mock_redis.setex.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete(self, backend, mock_redis):
        mock_redis.delete.return_value = 1

        result = await backend.delete("k")

        assert result.value == 1
        mock_redis.delete.assert_awaited_once_with("k")

    @pytest.mark.asyncio
    async def test_delete_pattern_single_delete_call(self, backend, mock_redis):
        mock_redis.scan_iter = scan_results("takaro:items:a:1", "takaro:items:a:2")
        mock_redis.delete.return_value = 2

        result = await backend.delete_pattern("takaro:items:a:*")

        assert result.value == 2
        mock_redis.delete.assert_awaited_once_with("takaro:items:a:1", "takaro:items:a:2")

    @pytest.mark.asyncio
    async def test_delete_pattern_no_matches(self, backend, mock_redis):
        mock_redis.scan_iter = scan_results()

        result = await backend.delete_pattern("takaro:none:*")

        assert result.value == 0
        mock_redis.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_pattern_connection_lost(self, backend, mock_redis):
        mock_redis.scan_iter = scan_results("a")
        mock_redis.delete = AsyncMock(side_effect=RedisConnectionError("gone"))

        result = await backend.delete_pattern("*")
        assert isinstance(result.error, CacheConnectionError)

    @pytest.mark.asyncio
    async def test_stats(self, backend, mock_redis):
        mock_redis.info.return_value = {"keyspace_hits": 7}

        result = await backend.stats()

        assert result.value == {"info": {"keyspace_hits": 7}}
        mock_redis.info.assert_awaited_once_with("stats")
