"""
cache-aside 메모이제이션 래퍼

비동기 함수 호출 결과를 캐시에 저장하고, 같은 키로 다시 호출되면
함수를 실행하지 않고 캐시된 값을 반환합니다.

규칙:
    - None이 아닌 캐시 값만 히트로 간주
    - None이 아닌 결과만 저장
    - 함수에서 발생한 예외는 그대로 전파되며 캐시되지 않음
    - 기본적으로 동시 미스를 병합하지 않음 (마지막 쓰기가 유지됨)
    - single_flight=True 이면 같은 키의 동시 미스가 하나의 실행을 공유

제공 형태:
    - memoize(store, key_spec, ttl, producer): 함수형
    - CacheStore.wrap(key_spec, ttl, producer): 바운드 형태
    - @cached(key_func, ttl): 메서드 데코레이터 (self._cache 사용)
"""

import asyncio
import functools
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, TypeAlias

import structlog

from src.cache.ttl import CacheCategory

if TYPE_CHECKING:
    from src.cache.store import CacheStore

logger = structlog.get_logger(__name__)

KeySpec: TypeAlias = str | Callable[..., str]


class SingleFlight:
    """
    키별 진행 중 작업 레지스트리

    같은 키에 대한 작업이 이미 실행 중이면 새로 시작하지 않고
    기존 작업의 결과를 기다립니다. 작업이 끝나면 레지스트리에서 제거되므로
    다음 호출은 새 작업을 시작합니다.

    이벤트 루프 안에서만 사용해야 합니다.
    """

    def __init__(self):
        self._inflight: dict[str, asyncio.Future] = {}

    async def do(self, key: str, fn: Callable[[], Awaitable[Any]]) -> Any:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(fn())
            self._inflight[key] = task
            task.add_done_callback(functools.partial(self._forget, key))
        else:
            logger.debug("진행 중인 작업에 합류", key=key)

        # 대기자 하나가 취소되어도 공유 작업은 계속 실행
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Future) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # 대기자가 모두 취소되어도 작업 예외는 회수된 상태여야 함
        if not task.cancelled():
            task.exception()

    def __contains__(self, key: str) -> bool:
        return key in self._inflight

    def __len__(self) -> int:
        return len(self._inflight)


def _resolve_key(key_spec: KeySpec, args: tuple, kwargs: dict) -> str:
    if callable(key_spec):
        return key_spec(*args, **kwargs)
    return key_spec


def memoize(
    store: "CacheStore",
    key_spec: KeySpec,
    ttl: int | CacheCategory | str,
    producer: Callable[..., Awaitable[Any]],
    *,
    single_flight: bool = False,
) -> Callable[..., Awaitable[Any]]:
    """
    비동기 producer에 cache-aside 캐싱 적용

    Args:
        store: 캐시 저장소
        key_spec: 고정 캐시 키, 또는 호출 인자로 키를 만드는 함수
        ttl: TTL(초) 또는 CacheCategory
        producer: 캐시 미스 시 실행할 비동기 함수
        single_flight: 같은 키의 동시 미스를 하나의 producer 실행으로 병합

    Returns:
        producer와 같은 인자를 받는 비동기 함수

    Example:
        ```python
        fetch_servers = memoize(
            cache,
            cache.key("gameservers", "service", "all"),
            CacheCategory.GAME_SERVERS,
            client.search_gameservers,
        )
        servers = await fetch_servers()
        ```
    """

    async def produce_and_store(key: str, args: tuple, kwargs: dict) -> Any:
        result = await producer(*args, **kwargs)
        if result is not None:
            await store.set(key, result, ttl)
        return result

    @functools.wraps(producer)
    async def wrapper(*args, **kwargs):
        key = _resolve_key(key_spec, args, kwargs)

        cached_value = await store.get(key)
        if cached_value is not None:
            return cached_value

        if single_flight:
            return await store.single_flight.do(
                key, lambda: produce_and_store(key, args, kwargs)
            )
        return await produce_and_store(key, args, kwargs)

    return wrapper


def cached(
    key_func: Callable[..., str],
    ttl: int | CacheCategory | str,
    single_flight: bool = False,
):
    """
    메서드 캐싱을 위한 데코레이터 팩토리

    데코레이트된 객체의 _cache 속성(CacheStore)을 사용합니다.
    _cache가 없거나 None이면 캐싱 없이 원본 메서드를 실행합니다.

    Args:
        key_func: 캐시 키 생성 함수, 메서드와 같은 인자(self 포함)를 받음
        ttl: TTL(초) 또는 CacheCategory
        single_flight: 같은 키의 동시 미스 병합 여부

    Example:
        ```python
        class MapService:
            def __init__(self, cache: CacheStore):
                self._cache = cache

            @cached(
                lambda self, gs: self._cache.key("mapinfo", gs),
                CacheCategory.MAP_INFO,
            )
            async def get_map_info(self, gs: str):
                return await self.client.get_map_info(gs)
        ```
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            cache: Optional["CacheStore"] = getattr(self, "_cache", None)
            if cache is None:
                return await func(self, *args, **kwargs)

            bound = functools.partial(func, self)
            return await memoize(
                cache,
                key_func(self, *args, **kwargs),
                ttl,
                bound,
                single_flight=single_flight,
            )(*args, **kwargs)

        return wrapper

    return decorator
