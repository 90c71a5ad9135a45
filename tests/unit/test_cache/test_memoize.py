"""Unit tests for the memoizing wrapper and method decorator."""

import asyncio
import gc
from unittest.mock import AsyncMock, Mock

import pytest

from src.cache.memoize import SingleFlight, cached, memoize
from src.cache.ttl import CacheCategory


class TestMemoize:
    """Test cache-aside behaviour of memoize()."""

    @pytest.mark.asyncio
    async def test_miss_calls_producer_and_stores(self, memory_store):
        producer = AsyncMock(return_value=[{"id": "gs-1"}])
        fetch = memoize(memory_store, "takaro:gameservers:service:all", 900, producer)

        assert await fetch() == [{"id": "gs-1"}]
        assert await memory_store.get("takaro:gameservers:service:all") == [{"id": "gs-1"}]
        producer.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_hit_skips_producer(self, memory_store):
        await memory_store.set("k", {"cached": True}, 60)
        producer = AsyncMock(return_value={"cached": False})

        result = await memoize(memory_store, "k", 60, producer)()

        assert result == {"cached": True}
        producer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_key_callable_receives_call_arguments(self, memory_store):
        producer = AsyncMock(side_effect=lambda gs, search=None: [gs, search])
        fetch = memoize(
            memory_store,
            lambda gs, search=None: memory_store.key("items", gs, search or "all"),
            CacheCategory.ITEMS,
            producer,
        )

        assert await fetch("gs-1", search="sword") == ["gs-1", "sword"]
        assert await memory_store.get("takaro:items:gs-1:sword") == ["gs-1", "sword"]
        producer.assert_awaited_once_with("gs-1", search="sword")

    @pytest.mark.asyncio
    async def test_none_result_not_cached(self, memory_store):
        producer = AsyncMock(return_value=None)
        fetch = memoize(memory_store, "k", 60, producer)

        assert await fetch() is None
        assert await fetch() is None
        assert producer.await_count == 2
        assert memory_store.metrics.sets == 0

    @pytest.mark.asyncio
    async def test_falsy_non_none_result_is_cached(self, memory_store):
        producer = AsyncMock(return_value=[])
        fetch = memoize(memory_store, "k", 60, producer)

        await fetch()
        await fetch()

        producer.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_producer_error_propagates_and_is_not_cached(self, memory_store):
        error = ValueError("upstream exploded")
        producer = AsyncMock(side_effect=error)
        fetch = memoize(memory_store, "k", 60, producer)

        with pytest.raises(ValueError) as exc_info:
            await fetch()

        assert exc_info.value is error
        assert await memory_store.get("k") is None

    @pytest.mark.asyncio
    async def test_unresolvable_ttl_still_returns_result(self, memory_store):
        producer = AsyncMock(return_value={"mapSizeX": 6144})
        fetch = memoize(memory_store, "k", None, producer)

        assert await fetch() == {"mapSizeX": 6144}
        assert await memory_store.get("k") is None
        producer.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_expired_entry_recomputed(self, memory_store, clock):
        producer = AsyncMock(side_effect=["first", "second"])
        fetch = memoize(memory_store, "k", 30, producer)

        assert await fetch() == "first"
        clock.advance(31)
        assert await fetch() == "second"

    @pytest.mark.asyncio
    async def test_concurrent_misses_without_single_flight(self, memory_store):
        calls = 0

        async def producer():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0)
            return calls

        fetch = memoize(memory_store, "k", 60, producer)
        await asyncio.gather(fetch(), fetch(), fetch())

        assert calls == 3

    @pytest.mark.asyncio
    async def test_concurrent_misses_with_single_flight(self, memory_store):
        calls = 0
        release = asyncio.Event()

        async def producer():
            nonlocal calls
            calls += 1
            await release.wait()
            return {"players": calls}

        fetch = memoize(memory_store, "k", 30, producer, single_flight=True)
        tasks = [asyncio.ensure_future(fetch()) for _ in range(5)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks)

        assert calls == 1
        assert results == [{"players": 1}] * 5
        assert len(memory_store.single_flight) == 0

    @pytest.mark.asyncio
    async def test_store_wrap_is_bound_memoize(self, memory_store):
        producer = AsyncMock(return_value={"mapSizeX": 6144})
        get_map = memory_store.wrap(
            lambda gs: memory_store.key("mapinfo", gs), CacheCategory.MAP_INFO, producer
        )

        await get_map("gs-1")
        await get_map("gs-1")

        producer.assert_awaited_once_with("gs-1")


class TestSingleFlight:
    """Test the in-flight task registry."""

    @pytest.mark.asyncio
    async def test_registry_cleared_after_error(self):
        flight = SingleFlight()

        async def boom():
            raise RuntimeError("failed")

        with pytest.raises(RuntimeError):
            await flight.do("k", boom)

        await asyncio.sleep(0)
        assert "k" not in flight

    @pytest.mark.asyncio
    async def test_waiter_cancellation_does_not_cancel_shared_task(self):
        flight = SingleFlight()
        release = asyncio.Event()

        async def work():
            await release.wait()
            return "done"

        first = asyncio.ensure_future(flight.do("k", work))
        second = asyncio.ensure_future(flight.do("k", work))
        await asyncio.sleep(0)

        first.cancel()
        release.set()

        assert await second == "done"
        with pytest.raises(asyncio.CancelledError):
            await first

    @pytest.mark.asyncio
    async def test_error_retrieved_when_all_waiters_cancelled(self):
        loop = asyncio.get_running_loop()
        handler = Mock()
        previous = loop.get_exception_handler()
        loop.set_exception_handler(handler)
        try:
            flight = SingleFlight()
            release = asyncio.Event()

            async def work():
                await release.wait()
                raise RuntimeError("failed")

            waiter = asyncio.ensure_future(flight.do("k", work))
            await asyncio.sleep(0)
            waiter.cancel()
            with pytest.raises(asyncio.CancelledError):
                await waiter

            release.set()
            for _ in range(3):
                await asyncio.sleep(0)
            assert "k" not in flight

            del waiter
            gc.collect()
            await asyncio.sleep(0)
        finally:
            loop.set_exception_handler(previous)

        handler.assert_not_called()


class TestCachedDecorator:
    """Test the @cached method decorator."""

    class Service:
        def __init__(self, cache):
            self._cache = cache
            self.calls = 0

        @cached(lambda self, gs: self._cache.key("mapinfo", gs), CacheCategory.MAP_INFO)
        async def get_map_info(self, gs):
            self.calls += 1
            return {"gs": gs}

    @pytest.mark.asyncio
    async def test_caches_method_result(self, memory_store):
        service = self.Service(memory_store)

        assert await service.get_map_info("gs-1") == {"gs": "gs-1"}
        assert await service.get_map_info("gs-1") == {"gs": "gs-1"}

        assert service.calls == 1
        assert await memory_store.get("takaro:mapinfo:gs-1") == {"gs": "gs-1"}

    @pytest.mark.asyncio
    async def test_runs_uncached_without_cache(self):
        service = self.Service(None)

        await service.get_map_info("gs-1")
        await service.get_map_info("gs-1")

        assert service.calls == 2

    def test_preserves_method_name(self):
        assert self.Service.get_map_info.__name__ == "get_map_info"
