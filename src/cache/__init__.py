"""
Takaro 대시보드 캐싱 시스템 모듈

업스트림 Takaro API 호출 결과를 캐싱하여 대시보드 응답 시간을 줄이고
API 호출량을 최소화합니다. Redis를 사용할 수 없으면 프로세스 내 로컬
캐시로 자동 전환됩니다.

주요 컴포넌트:
    CacheStore: 백엔드 자동 전환을 지원하는 캐시 저장소
    BackendSelector: Redis 연결 상태 관리 및 활성 백엔드 선택
    RedisBackend / MemoryBackend: 원격 / 로컬 캐시 구현체
    CacheCategory / TTL_POLICY: 데이터 종류별 TTL 정책
    build_key: "takaro:{namespace}:{part}..." 형식의 캐시 키 생성
    memoize / cached: cache-aside 래퍼와 메서드 데코레이터

사용 예시:
    ```python
    from src.cache import CacheCategory, CacheStore
    from src.config import CacheConfig

    cache = await CacheStore.create(CacheConfig.from_env())

    get_map = cache.wrap(
        lambda gs: cache.key("mapinfo", gs),
        CacheCategory.MAP_INFO,
        client.get_map_info,
    )
    info = await get_map("gs-1")
    ```
"""

from .backends import CacheBackend, CacheResult, MemoryBackend, RedisBackend
from .keys import KEY_PREFIX, KEY_SEPARATOR, build_key
from .memoize import SingleFlight, cached, memoize
from .metrics import CacheMetrics
from .selector import BackendSelector
from .store import CacheStats, CacheStore
from .ttl import TTL_POLICY, CacheCategory, resolve_ttl, ttl_for

__all__ = [
    "BackendSelector",
    "CacheBackend",
    "CacheCategory",
    "CacheMetrics",
    "CacheResult",
    "CacheStats",
    "CacheStore",
    "KEY_PREFIX",
    "KEY_SEPARATOR",
    "MemoryBackend",
    "RedisBackend",
    "SingleFlight",
    "TTL_POLICY",
    "build_key",
    "cached",
    "memoize",
    "resolve_ttl",
    "ttl_for",
]
