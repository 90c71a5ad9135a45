"""
캐시 백엔드 선택기

어떤 백엔드가 활성 상태인지에 대한 단일 진실 공급원입니다.
Redis 연결 핸들과 connected 플래그를 소유하며, 이 플래그는 이 클래스만 변경합니다.

상태 전이:
    - False → True: connect() 성공 시에만 (명시적 재연결 이벤트)
    - True → False: 초기 연결 실패, 또는 CacheStore가 보고한 연결 오류
      (mark_unavailable). 이미 False인 상태에서의 반복 보고는 로그만 남김

재연결:
    이 클래스는 자동으로 재연결을 시도하지 않습니다. 프로세스 수명주기를
    관리하는 쪽에서 필요할 때 connect()를 다시 호출해야 합니다.
"""

from typing import Any, Callable, Optional

import redis.asyncio as redis
import structlog

from src.cache.backends import CacheBackend, MemoryBackend, RedisBackend
from src.cache.metrics import CacheMetrics
from src.config.settings import CacheConfig

logger = structlog.get_logger(__name__)


class BackendSelector:
    """
    Redis / 로컬 캐시 백엔드 선택기

    Attributes:
        config (CacheConfig): 캐시 설정
        memory (MemoryBackend): 항상 존재하는 로컬 대체 백엔드
        remote (Optional[RedisBackend]): 연결에 성공한 경우의 Redis 백엔드
    """

    def __init__(
        self,
        config: CacheConfig,
        *,
        memory: Optional[MemoryBackend] = None,
        metrics: Optional[CacheMetrics] = None,
        client_factory: Optional[Callable[..., Any]] = None,
    ):
        """
        Args:
            config: 캐시 설정 (redis_url, 타임아웃 등)
            memory: 로컬 백엔드 (테스트에서 시계를 주입할 때 사용)
            metrics: 백엔드 전환 횟수를 기록할 메트릭
            client_factory: Redis 클라이언트 생성 함수 (기본값: redis.from_url)
        """
        self.config = config
        self.memory = memory or MemoryBackend()
        self.remote: Optional[RedisBackend] = None
        self.metrics = metrics or CacheMetrics()
        self._client_factory = client_factory or redis.from_url
        self._client: Optional[redis.Redis] = None
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def active(self) -> CacheBackend:
        """현재 상태에 해당하는 백엔드"""
        if self._connected and self.remote is not None:
            return self.remote
        return self.memory

    async def connect(self) -> bool:
        """
        Redis 연결 시도

        클라이언트를 생성하고 PING으로 연결을 확인합니다.
        타임아웃, 연결 거부, 인증 실패 등 모든 실패는 경고 로그만 남기고
        False를 반환합니다. 이 메서드는 예외를 던지지 않습니다.

        Returns:
            bool: 연결 성공 여부
        """
        if not self.config.redis_enabled:
            logger.info("Redis 비활성화됨, 로컬 캐시 사용")
            return False

        # 이전 연결이 남아 있으면 먼저 정리
        await self._close_client()

        client = None
        try:
            client = self._client_factory(
                self.config.redis_url,
                decode_responses=True,
                socket_timeout=self.config.socket_timeout,
                socket_connect_timeout=self.config.connect_timeout,
            )
            await client.ping()
        except Exception as e:
            logger.warning(
                "Redis 연결 실패, 로컬 캐시 사용",
                redis_url=self.config.redis_url,
                error=str(e),
            )
            if client is not None:
                await self._close_quietly(client)
            self.mark_unavailable(e)
            return False

        self._client = client
        self.remote = RedisBackend(client)
        self.mark_available()
        logger.info("Redis 캐시 연결 성공", redis_url=self.config.redis_url)
        return True

    def mark_unavailable(self, error: Optional[BaseException] = None) -> None:
        """
        연결 끊김 이벤트 처리

        connected가 True일 때만 한 번 전환하며, 이미 False이면 로그만 남깁니다.

        Args:
            error: 전환을 일으킨 오류 (로깅용)
        """
        reason = str(error) if error else None
        if not self._connected:
            logger.debug("로컬 캐시 사용 중, 연결 오류 무시", reason=reason)
            return

        self._connected = False
        self.metrics.record_backend_switch()
        logger.warning(
            "Redis 연결 끊김, 로컬 캐시로 전환",
            from_backend="redis",
            to_backend="memory",
            reason=reason,
        )

    def mark_available(self) -> None:
        """명시적 재연결 이벤트 처리 (connect() 성공 시 호출)"""
        if self._connected:
            return

        self._connected = True
        self.metrics.record_backend_switch()
        logger.info("Redis 캐시 활성화", from_backend="memory", to_backend="redis")

    async def close(self) -> None:
        """Redis 연결 종료 (실패해도 예외를 던지지 않음)"""
        await self._close_client()
        if self._connected:
            self._connected = False
            logger.info("Redis 캐시 연결 해제")

    async def _close_client(self) -> None:
        if self._client is not None:
            client, self._client = self._client, None
            self.remote = None
            await self._close_quietly(client)

    @staticmethod
    async def _close_quietly(client: Any) -> None:
        try:
            await client.aclose()
        except Exception as e:
            logger.debug("Redis 클라이언트 종료 실패", error=str(e))
