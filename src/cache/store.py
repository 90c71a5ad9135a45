"""
캐시 저장소 (Cache Store)

Redis와 로컬 캐시 두 백엔드를 하나의 인터페이스로 통합합니다.
캐시는 항상 최적화 수단일 뿐이므로, 이 클래스의 어떤 공개 메서드도
호출자에게 예외를 전파하지 않습니다.

주요 기능:
    - get / set / delete / delete_pattern
    - 연결 오류 관측 시 로컬 캐시로 자동 전환
    - 조회마다 hit/miss, 소요 시간, 활성 백엔드를 구조화된 로그로 기록
    - cache-aside 래퍼 (wrap) 및 동시 미스 병합 레지스트리

오류 처리:
    - CacheConnectionError: 백엔드 선택기에 보고 후 미스 / no-op
    - SerializationError: 경고 로그 후 미스 / no-op
    - 기타 예외: 경계에서 흡수하여 미스 / no-op

사용 예시:
    ```python
    cache = await CacheStore.create(CacheConfig.from_env())

    key = cache.key("gameservers", "service", "all")
    await cache.set(key, servers, CacheCategory.GAME_SERVERS)
    servers = await cache.get(key)

    # 서버별 플레이어 캐시 무효화
    await cache.delete_pattern(cache.key("players", "service", "gs-1") + "*")
    ```
"""

import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, Field
import structlog

from src.cache.backends import CacheBackend, CacheResult, CacheValue
from src.cache.keys import build_key
from src.cache.memoize import KeySpec, SingleFlight, memoize
from src.cache.metrics import CacheMetrics
from src.cache.selector import BackendSelector
from src.cache.ttl import CacheCategory, resolve_ttl
from src.config.settings import CacheConfig
from src.exceptions import CacheConnectionError, CacheError, SerializationError

logger = structlog.get_logger(__name__)


class CacheStats(BaseModel):
    """
    캐시 상태 정보 모델

    Attributes:
        backend (str): 활성 백엔드 이름 ("redis" 또는 "memory")
        connected (bool): Redis 연결 여부
        keys (int | None): 로컬 캐시 키 개수 (로컬 백엔드일 때)
        info (dict | None): Redis INFO stats (Redis 백엔드일 때)
        metrics (dict): hit/miss/오류 카운터
        error (str | None): 통계 조회 실패 시 에러 메시지
        checked_at (datetime): 조회 시각 (UTC)
    """

    backend: str
    connected: bool
    keys: int | None = Field(default=None)
    info: dict[str, Any] | None = Field(default=None)
    metrics: dict[str, Any] = Field(default_factory=dict)
    error: str | None = Field(default=None)
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class CacheStore:
    """
    백엔드 자동 전환을 지원하는 캐시 저장소

    프로세스당 하나의 인스턴스를 명시적으로 생성하여 필요한 곳에 주입합니다.

    Attributes:
        config (CacheConfig): 캐시 설정
        selector (BackendSelector): 활성 백엔드 선택기
        metrics (CacheMetrics): 캐시 메트릭
    """

    def __init__(self, config: CacheConfig, selector: Optional[BackendSelector] = None):
        self.config = config
        self.metrics = selector.metrics if selector else CacheMetrics()
        self.selector = selector or BackendSelector(config, metrics=self.metrics)
        self.single_flight = SingleFlight()

    @classmethod
    async def create(cls, config: CacheConfig, **selector_kwargs: Any) -> "CacheStore":
        """
        캐시 저장소 생성 및 Redis 연결 시도

        연결에 실패해도 로컬 캐시로 동작하는 인스턴스를 반환합니다.
        """
        metrics = CacheMetrics()
        selector = BackendSelector(config, metrics=metrics, **selector_kwargs)
        store = cls(config, selector)
        await selector.connect()
        return store

    @property
    def backend_name(self) -> str:
        return self.selector.active.name

    def key(self, namespace: str, *parts: Any) -> str:
        """설정된 접두사로 캐시 키 생성"""
        return build_key(namespace, *parts, prefix=self.config.key_prefix)

    async def connect(self) -> bool:
        return await self.selector.connect()

    async def close(self) -> None:
        await self.selector.close()

    async def get(self, key: str) -> Optional[CacheValue]:
        """
        캐시에서 값 조회

        Args:
            key: 캐시 키

        Returns:
            캐시된 값, 미스이거나 오류가 발생하면 None
        """
        start = time.perf_counter()
        backend = self.selector.active
        result = await self._run(backend, "get", key, backend.get(key))
        elapsed_ms = round((time.perf_counter() - start) * 1000, 3)

        if not result.ok:
            self._handle_failure(backend, "get", key, result.error)
            return None

        if result.hit:
            self.metrics.record_hit(backend.name, elapsed_ms)
            logger.debug("캐시 히트", key=key, backend=backend.name, elapsed_ms=elapsed_ms)
            return result.value

        self.metrics.record_miss(elapsed_ms)
        logger.debug("캐시 미스", key=key, backend=backend.name, elapsed_ms=elapsed_ms)
        return None

    async def set(self, key: str, value: CacheValue, ttl: int | CacheCategory | str) -> None:
        """
        캐시에 값 저장

        Args:
            key: 캐시 키
            value: 저장할 값 (Redis 백엔드에서는 JSON 직렬화 가능해야 함)
            ttl: TTL(초), CacheCategory 또는 카테고리 이름
        """
        try:
            ttl_seconds = resolve_ttl(ttl)
        except (TypeError, ValueError) as e:
            logger.warning("TTL 해석 실패, 캐시 저장 건너뜀", key=key, ttl=ttl, error=str(e))
            return
        if ttl_seconds <= 0:
            logger.warning("잘못된 TTL, 캐시 저장 건너뜀", key=key, ttl=ttl_seconds)
            return

        backend = self.selector.active
        result = await self._run(backend, "set", key, backend.set(key, value, ttl_seconds))
        if not result.ok:
            self._handle_failure(backend, "set", key, result.error)
            return

        self.metrics.record_set()
        logger.debug("캐시 저장", key=key, backend=backend.name, ttl=ttl_seconds)

    async def delete(self, key: str) -> None:
        """캐시에서 특정 키 삭제"""
        backend = self.selector.active
        result = await self._run(backend, "delete", key, backend.delete(key))
        if not result.ok:
            self._handle_failure(backend, "delete", key, result.error)
            return

        self.metrics.record_delete(result.value or 0)

    async def delete_pattern(self, pattern: str) -> int:
        """
        패턴과 일치하는 캐시 항목 무효화

        지원하는 와일드카드는 "*" 하나뿐입니다. 로컬 백엔드에서는
        MemoryBackend에 설명된 부분 문자열 근사 매칭을 사용합니다.

        Args:
            pattern: glob 패턴 (예: "takaro:items:serverA:*")

        Returns:
            int: 삭제된 키 개수 (실패 시 0)
        """
        backend = self.selector.active
        result = await self._run(
            backend, "delete_pattern", pattern, backend.delete_pattern(pattern)
        )
        if not result.ok:
            self._handle_failure(backend, "delete_pattern", pattern, result.error)
            return 0

        count = result.value or 0
        self.metrics.record_delete(count)
        if count:
            logger.info(
                "캐시 무효화", pattern=pattern, count=count, backend=backend.name
            )
        return count

    async def stats(self) -> CacheStats:
        """활성 백엔드 통계와 메트릭 조회"""
        backend = self.selector.active
        result = await self._run(backend, "stats", None, backend.stats())
        stats = CacheStats(
            backend=backend.name,
            connected=self.selector.connected,
            metrics=self.metrics.to_dict(),
        )

        if not result.ok:
            self._handle_failure(backend, "stats", None, result.error)
            stats.error = result.error.message
            return stats

        stats.keys = result.value.get("keys")
        stats.info = result.value.get("info")
        return stats

    def wrap(
        self,
        key_spec: KeySpec,
        ttl: int | CacheCategory | str,
        producer: Callable[..., Awaitable[Any]],
        *,
        single_flight: bool = False,
    ) -> Callable[..., Awaitable[Any]]:
        """
        비동기 함수에 cache-aside 캐싱 적용

        memoize()의 바운드 형태입니다.
        """
        return memoize(self, key_spec, ttl, producer, single_flight=single_flight)

    async def _run(
        self,
        backend: CacheBackend,
        operation: str,
        key: Optional[str],
        call: Awaitable[CacheResult],
    ) -> CacheResult:
        """백엔드 호출의 마지막 방어선 (예상치 못한 예외를 CacheResult로 변환)"""
        try:
            return await call
        except Exception as e:
            logger.warning(
                "예상치 못한 캐시 오류",
                operation=operation,
                key=key,
                backend=backend.name,
                error=str(e),
            )
            return CacheResult.failed(CacheError(f"{operation} failed: {e}", key=key))

    def _handle_failure(
        self,
        backend: CacheBackend,
        operation: str,
        key: Optional[str],
        error: CacheError,
    ) -> None:
        self.metrics.record_error(serialization=isinstance(error, SerializationError))
        logger.warning(
            "캐시 작업 실패",
            operation=operation,
            key=key,
            backend=backend.name,
            error=error.message,
        )

        # 원격 백엔드의 연결 오류만 백엔드 전환을 일으킴
        if isinstance(error, CacheConnectionError) and backend is self.selector.remote:
            self.selector.mark_unavailable(error)
