"""
데이터 종류별 캐시 TTL 정책

모든 cache-aside 호출 지점은 이 테이블에서 만료 시간을 가져옵니다.
테이블은 프로세스 시작 시 고정되며 런타임에 변경할 수 없습니다.
"""

from enum import Enum
from types import MappingProxyType
from typing import Mapping


class CacheCategory(str, Enum):
    """캐시 데이터 종류"""

    GAME_SERVERS = "game-servers"
    MAP_INFO = "map-info"
    PLAYER_NAMES = "player-names"
    PLAYERS_LIST = "players-list"  # 자동 새로고침 주기와 일치
    MOVEMENT_PATHS = "movement-paths"
    DEATH_EVENTS = "death-events"
    AREA_SEARCH = "area-search"
    ITEMS = "items"


# TTL (초 단위)
TTL_POLICY: Mapping[CacheCategory, int] = MappingProxyType(
    {
        CacheCategory.GAME_SERVERS: 15 * 60,  # 15분
        CacheCategory.MAP_INFO: 60 * 60,  # 1시간
        CacheCategory.PLAYER_NAMES: 5 * 60,  # 5분
        CacheCategory.PLAYERS_LIST: 30,  # 30초
        CacheCategory.MOVEMENT_PATHS: 5 * 60,  # 5분
        CacheCategory.DEATH_EVENTS: 10 * 60,  # 10분
        CacheCategory.AREA_SEARCH: 2 * 60,  # 2분
        CacheCategory.ITEMS: 30 * 60,  # 30분 (아이템 목록은 거의 변하지 않음)
    }
)


def ttl_for(category: CacheCategory | str) -> int:
    """
    카테고리의 TTL 조회

    Args:
        category: CacheCategory 또는 카테고리 이름 (예: "map-info")

    Returns:
        int: TTL (초)

    Raises:
        ValueError: 알 수 없는 카테고리
    """
    try:
        return TTL_POLICY[CacheCategory(category)]
    except ValueError:
        raise ValueError(f"Unknown cache category: {category!r}") from None


def resolve_ttl(ttl: int | CacheCategory | str) -> int:
    """
    초 단위 정수, 카테고리 또는 카테고리 이름을 초 단위 TTL로 변환

    Raises:
        ValueError: 알 수 없는 카테고리 이름
        TypeError: 정수나 카테고리가 아닌 값 (예: None)
    """
    if isinstance(ttl, CacheCategory):
        return TTL_POLICY[ttl]
    if isinstance(ttl, str):
        return ttl_for(ttl)
    if isinstance(ttl, bool) or not isinstance(ttl, (int, float)):
        raise TypeError(f"TTL must be seconds or a cache category, got {ttl!r}")
    return int(ttl)
