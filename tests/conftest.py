"""Shared test fixtures and configuration."""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
import redis.asyncio as redis

from src.cache.backends import MemoryBackend
from src.cache.selector import BackendSelector
from src.cache.store import CacheStore
from src.config.settings import CacheConfig


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache_config():
    return CacheConfig(redis_url="redis://localhost:6379", key_prefix="takaro")


@pytest.fixture
def memory_backend(clock):
    return MemoryBackend(clock=clock)


@pytest.fixture
def memory_store(clock):
    """Cache store with Redis disabled, running on the local fallback."""
    config = CacheConfig(redis_enabled=False)
    selector = BackendSelector(config, memory=MemoryBackend(clock=clock))
    return CacheStore(config, selector)


@pytest.fixture
def mock_redis():
    """Create mock Redis client that answers PING."""
    mock = AsyncMock(spec=redis.Redis)
    mock.ping = AsyncMock(return_value=True)
    mock.get = AsyncMock(return_value=None)
    mock.setex = AsyncMock(return_value=True)
    mock.delete = AsyncMock(return_value=0)
    mock.info = AsyncMock(return_value={"keyspace_hits": 0})
    mock.aclose = AsyncMock()
    return mock


@pytest_asyncio.fixture
async def redis_store(cache_config, mock_redis, clock):
    """Cache store connected to the mock Redis client."""
    store = await CacheStore.create(
        cache_config,
        memory=MemoryBackend(clock=clock),
        client_factory=lambda *args, **kwargs: mock_redis,
    )
    assert store.selector.connected
    return store
