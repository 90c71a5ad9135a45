"""
캐시 백엔드 구현 모듈

원격 Redis 캐시와 프로세스 내 로컬 캐시를 동일한 인터페이스로 제공합니다.
백엔드는 예외를 던지지 않고 모든 결과를 CacheResult로 반환하며,
CacheStore가 경계에서 실패를 안전한 기본값(미스 / no-op)으로 변환합니다.

백엔드 종류:
    RedisBackend:
        - 값을 JSON 문자열로 직렬화하여 저장
        - 만료는 Redis가 관리 (SETEX)
        - SCAN 기반 패턴 삭제

    MemoryBackend:
        - 값을 원본 객체 그대로 저장 (직렬화 없음)
        - 값 딕셔너리와 만료 시각 딕셔너리를 하나의 단위로 관리
        - 만료된 항목은 다음 조회 시 지연 삭제
        - 프로세스 재시작 시 모든 데이터 유실

오류 분류:
    - CacheConnectionError: Redis 연결 끊김, 타임아웃 → 백엔드 전환 대상
    - SerializationError: 손상된 페이로드 → 캐시 미스로 처리
    - CacheError: 기타 Redis 명령 오류
"""

import asyncio
import json
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeAlias

import redis.asyncio as redis
from redis.exceptions import (
    ConnectionError as RedisConnectionError,
    RedisError,
    TimeoutError as RedisTimeoutError,
)

from src.exceptions import CacheConnectionError, CacheError, SerializationError

CacheValue: TypeAlias = Any

# 연결 계열 오류 (백엔드 전환 대상)
_CONNECTION_ERRORS = (RedisConnectionError, RedisTimeoutError, OSError, asyncio.TimeoutError)
# Redis 호출에서 발생할 수 있는 모든 운영 오류
_REDIS_FAILURES = (RedisError, OSError, asyncio.TimeoutError)

_MISSING = object()


@dataclass(frozen=True, slots=True)
class CacheResult:
    """
    백엔드 작업 결과

    Attributes:
        value: 조회된 값 또는 작업 결과 (삭제 개수, 통계 등)
        hit: 조회 작업에서 키가 존재했는지 여부
        error: 실패 시 발생한 CacheError
    """

    value: Any = None
    hit: bool = False
    error: Optional[CacheError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def found(cls, value: CacheValue) -> "CacheResult":
        return cls(value=value, hit=True)

    @classmethod
    def missing(cls) -> "CacheResult":
        return cls()

    @classmethod
    def done(cls, value: Any = None) -> "CacheResult":
        return cls(value=value)

    @classmethod
    def failed(cls, error: CacheError) -> "CacheResult":
        return cls(error=error)


class CacheBackend(ABC):
    """
    캐시 백엔드 추상 클래스

    모든 메서드는 예외를 던지지 않고 CacheResult를 반환해야 합니다.
    """

    name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> CacheResult:
        """키 조회 (hit=False면 미스)"""

    @abstractmethod
    async def set(self, key: str, value: CacheValue, ttl_seconds: int) -> CacheResult:
        """값 저장 (ttl_seconds 후 만료)"""

    @abstractmethod
    async def delete(self, key: str) -> CacheResult:
        """키 삭제 (value는 삭제된 개수)"""

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> CacheResult:
        """패턴과 일치하는 키 삭제 (value는 삭제된 개수)"""

    @abstractmethod
    async def stats(self) -> CacheResult:
        """백엔드 통계 (value는 딕셔너리)"""


class RedisBackend(CacheBackend):
    """
    Redis 기반 원격 캐시 백엔드

    값은 JSON으로 직렬화되어 저장되며, 조회 시 역직렬화됩니다.
    연결 관리는 BackendSelector가 담당하고 이 클래스는 명령 실행만 수행합니다.

    Attributes:
        client (redis.Redis): decode_responses=True로 생성된 비동기 클라이언트
    """

    name = "redis"

    def __init__(self, client: redis.Redis):
        self.client = client

    def _wrap_error(self, operation: str, key: Optional[str], error: Exception) -> CacheError:
        message = f"Redis {operation} failed: {error}"
        if isinstance(error, _CONNECTION_ERRORS):
            return CacheConnectionError(message, key=key)
        return CacheError(message, key=key)

    async def get(self, key: str) -> CacheResult:
        try:
            raw = await self.client.get(key)
        except _REDIS_FAILURES as e:
            return CacheResult.failed(self._wrap_error("get", key, e))

        # 빈 값은 미스로 처리
        if not raw:
            return CacheResult.missing()

        try:
            return CacheResult.found(json.loads(raw))
        except (json.JSONDecodeError, TypeError, UnicodeDecodeError) as e:
            return CacheResult.failed(
                SerializationError(f"Failed to decode cached value: {e}", key=key)
            )

    async def set(self, key: str, value: CacheValue, ttl_seconds: int) -> CacheResult:
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            return CacheResult.failed(
                SerializationError(f"Failed to encode value: {e}", key=key)
            )

        try:
            await self.client.setex(key, ttl_seconds, payload)
        except _REDIS_FAILURES as e:
            return CacheResult.failed(self._wrap_error("set", key, e))
        return CacheResult.done()

    async def delete(self, key: str) -> CacheResult:
        try:
            deleted = await self.client.delete(key)
        except _REDIS_FAILURES as e:
            return CacheResult.failed(self._wrap_error("delete", key, e))
        return CacheResult.done(int(deleted or 0))

    async def delete_pattern(self, pattern: str) -> CacheResult:
        try:
            # SCAN으로 점진적으로 키를 모은 뒤 한 번의 DEL로 삭제
            keys = [key async for key in self.client.scan_iter(match=pattern)]
            if not keys:
                return CacheResult.done(0)
            deleted = await self.client.delete(*keys)
        except _REDIS_FAILURES as e:
            return CacheResult.failed(self._wrap_error("delete_pattern", pattern, e))
        return CacheResult.done(int(deleted or 0))

    async def stats(self) -> CacheResult:
        try:
            info = await self.client.info("stats")
        except _REDIS_FAILURES as e:
            return CacheResult.failed(self._wrap_error("info", None, e))
        return CacheResult.done({"info": info})


class MemoryBackend(CacheBackend):
    """
    프로세스 내 로컬 캐시 백엔드 (Redis 대체용)

    값과 만료 시각(epoch 밀리초)을 두 개의 딕셔너리에 나누어 저장합니다.
    같은 키에 대한 두 딕셔너리의 변경은 하나의 락 안에서 함께 수행되므로
    값만 있고 만료 시각이 없는 상태는 외부에 보이지 않습니다.

    패턴 삭제 제한사항:
        glob 매칭을 지원하지 않으므로 패턴의 첫 번째 "*"를 제거한 문자열을
        포함하는 모든 키를 삭제합니다. 와일드카드 위치와 무관하게 일치하는
        상위 집합 매칭이며, Redis의 glob 의미와 동일하지 않습니다.
        예: "takaro:items:*" 는 "x:takaro:items:y" 도 삭제합니다.

    Attributes:
        clock: 현재 시각(초)을 반환하는 함수 (테스트에서 교체 가능)
    """

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock
        self._values: dict[str, CacheValue] = {}
        self._expiries: dict[str, float] = {}
        self._lock = threading.Lock()

    def _now_ms(self) -> float:
        return self.clock() * 1000

    def _evict(self, key: str) -> bool:
        """값과 만료 시각을 함께 제거 (락을 잡은 상태에서 호출)"""
        existed = self._values.pop(key, _MISSING) is not _MISSING
        self._expiries.pop(key, None)
        return existed

    async def get(self, key: str) -> CacheResult:
        with self._lock:
            if key not in self._values:
                return CacheResult.missing()

            expires_at = self._expiries.get(key)
            if expires_at is not None and self._now_ms() < expires_at:
                return CacheResult.found(self._values[key])

            # 만료되었거나 만료 시각이 없는 항목은 지연 삭제
            self._evict(key)
        return CacheResult.missing()

    async def set(self, key: str, value: CacheValue, ttl_seconds: int) -> CacheResult:
        with self._lock:
            self._values[key] = value
            self._expiries[key] = self._now_ms() + ttl_seconds * 1000
        return CacheResult.done()

    async def delete(self, key: str) -> CacheResult:
        with self._lock:
            removed = self._evict(key)
        return CacheResult.done(int(removed))

    async def delete_pattern(self, pattern: str) -> CacheResult:
        needle = pattern.replace("*", "", 1)
        with self._lock:
            matched = [key for key in self._values if needle in key]
            for key in matched:
                self._evict(key)
        return CacheResult.done(len(matched))

    async def stats(self) -> CacheResult:
        with self._lock:
            return CacheResult.done({"keys": len(self._values)})

    def __len__(self) -> int:
        return len(self._values)
