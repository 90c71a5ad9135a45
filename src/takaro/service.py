"""
Takaro 대시보드 데이터 서비스

업스트림 Takaro API 호출에 cache-aside 캐싱을 적용합니다.
모든 캐시 키는 도메인(없으면 "service")으로 범위가 지정되며,
TTL은 CacheCategory 정책 테이블에서 가져옵니다.

플레이어 목록 (cache-then-filter):
    서버의 전체 플레이어 목록을 한 번 캐싱하고, 호출마다 날짜 범위로 필터링합니다.
    범위를 바꿔도 업스트림 호출 없이 즉시 응답할 수 있습니다.
    전체 목록 조회는 동시 요청을 하나로 병합합니다.

무효화:
    플레이어 상태를 바꾸는 작업(화폐/아이템 지급) 후에는
    해당 서버의 플레이어 캐시를 패턴으로 삭제합니다.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

from src.cache import CacheCategory, CacheStore, cached
from src.config.settings import PaginationConfig
from src.exceptions import ClientNotInitializedError
from src.takaro.client import WORLD_BOUNDS, TakaroAPIClient
from src.takaro.models import NormalizedPlayer
from src.takaro.pagination import fetch_all_pages

logger = structlog.get_logger(__name__)

DEATH_EVENT = "player-death"


def _parse_instant(value: str | datetime) -> datetime:
    """ISO 8601 문자열 또는 datetime을 UTC 기준 aware datetime으로 변환"""
    instant = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant


def _is_online(player: Dict[str, Any]) -> bool:
    return player.get("online") in (True, 1)


def filter_players(
    players: List[Dict[str, Any]],
    start_date: Optional[str | datetime] = None,
    end_date: Optional[str | datetime] = None,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    날짜 범위로 플레이어 목록 필터링

    - 날짜가 모두 없으면 온라인 플레이어만 반환
    - 날짜가 있으면 온라인 플레이어와, lastSeen이 범위 안인 오프라인 플레이어 반환
    - end_date가 없으면 현재 시각까지
    """
    if not start_date and not end_date:
        return [p for p in players if _is_online(p)]

    start = _parse_instant(start_date) if start_date else datetime.min.replace(tzinfo=timezone.utc)
    end = _parse_instant(end_date) if end_date else (now or datetime.now(timezone.utc))

    result = []
    for player in players:
        if _is_online(player):
            result.append(player)
            continue

        last_seen = player.get("lastSeen")
        if last_seen and start <= _parse_instant(last_seen) <= end:
            result.append(player)
    return result


def _box_key(
    self: "TakaroService",
    game_server_id: str,
    min_x: float,
    max_x: float,
    min_y: float,
    max_y: float,
    min_z: float,
    max_z: float,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> str:
    return self._cache.key(
        "areasearch",
        self.scope,
        game_server_id,
        "box",
        min_x,
        max_x,
        min_y,
        max_y,
        min_z,
        max_z,
        start_date or "nostart",
        end_date or "noend",
    )


def _radius_key(
    self: "TakaroService",
    game_server_id: str,
    x: float,
    y: float,
    z: float,
    radius: float,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
) -> str:
    return self._cache.key(
        "areasearch",
        self.scope,
        game_server_id,
        "radius",
        x,
        y,
        z,
        radius,
        start_date or "nostart",
        end_date or "noend",
    )


class TakaroService:
    """
    캐싱이 적용된 Takaro 데이터 접근 서비스

    Attributes:
        client (Optional[TakaroAPIClient]): 업스트림 클라이언트
        pagination (PaginationConfig): 페이지 크기 / 최대 개수
        domain (Optional[str]): 캐시 키 범위로 사용할 도메인
    """

    def __init__(
        self,
        client: Optional[TakaroAPIClient],
        cache: Optional[CacheStore],
        pagination: Optional[PaginationConfig] = None,
        domain: Optional[str] = None,
    ):
        self.client = client
        self._cache = cache
        self.pagination = pagination or PaginationConfig()
        self.domain = domain

    @property
    def scope(self) -> str:
        return self.domain or "service"

    def _require_client(self) -> TakaroAPIClient:
        if self.client is None:
            raise ClientNotInitializedError()
        return self.client

    async def _fetch_all(self, page_fetcher) -> List[Any]:
        return await fetch_all_pages(
            page_fetcher,
            page_size=self.pagination.page_size,
            max_total=self.pagination.max_total,
        )

    @cached(
        lambda self, server_type=None: self._cache.key(
            "gameservers", self.scope, server_type or "all"
        ),
        CacheCategory.GAME_SERVERS,
    )
    async def get_game_servers(self, server_type: Optional[str] = None) -> List[Dict[str, Any]]:
        body = await self._require_client().search_gameservers(server_type)
        return body.get("data") or []

    async def get_players(
        self,
        game_server_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        load_all: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        서버의 플레이어 목록 조회

        Args:
            game_server_id: 게임 서버 ID
            start_date: 범위 시작 (ISO 8601)
            end_date: 범위 끝 (ISO 8601, 없으면 현재 시각)
            load_all: True면 필터링 없이 전체 반환

        Returns:
            list: camelCase 키를 가진 NormalizedPlayer 딕셔너리 목록
        """
        players = await self._get_all_players(game_server_id)
        if load_all:
            return list(players)
        return filter_players(players, start_date, end_date)

    @cached(
        lambda self, game_server_id: self._cache.key(
            "players", self.scope, game_server_id, "full"
        ),
        CacheCategory.PLAYERS_LIST,
        single_flight=True,
    )
    async def _get_all_players(self, game_server_id: str) -> List[Dict[str, Any]]:
        client = self._require_client()
        pogs = await self._fetch_all(
            lambda page, limit: client.search_players_on_gameserver(game_server_id, page, limit)
        )
        logger.info("전체 플레이어 목록 조회", game_server_id=game_server_id, count=len(pogs))
        return [NormalizedPlayer.from_pog(pog).to_cache() for pog in pogs]

    @cached(
        lambda self: self._cache.key("playernames", self.scope, "all"),
        CacheCategory.PLAYER_NAMES,
    )
    async def get_player_list(self) -> List[Dict[str, Any]]:
        client = self._require_client()
        return await self._fetch_all(
            lambda page, limit: client.search_players(page=page, limit=limit)
        )

    async def get_players_by_ids(self, player_ids: List[str]) -> List[Dict[str, Any]]:
        """
        ID 목록으로 플레이어 조회

        플레이어별로 캐싱하며, 캐시에 없는 ID만 업스트림에 요청합니다.
        반환 순서는 캐시된 플레이어 다음에 새로 조회한 플레이어입니다.
        """
        client = self._require_client()
        if not player_ids:
            return []

        cached_players: List[Dict[str, Any]] = []
        uncached_ids: List[str] = []
        for player_id in player_ids:
            player = None
            if self._cache is not None:
                player = await self._cache.get(self._cache.key("player", self.scope, player_id))
            if player is not None:
                cached_players.append(player)
            else:
                uncached_ids.append(player_id)

        if not uncached_ids:
            logger.debug("모든 플레이어 캐시 히트", count=len(player_ids))
            return cached_players

        body = await client.search_players(uncached_ids, limit=len(uncached_ids))
        fetched = body.get("data") or []
        logger.debug(
            "플레이어 ID 조회",
            requested=len(player_ids),
            fetched=len(fetched),
            uncached=len(uncached_ids),
        )

        if self._cache is not None:
            for player in fetched:
                await self._cache.set(
                    self._cache.key("player", self.scope, player["id"]),
                    player,
                    CacheCategory.PLAYER_NAMES,
                )

        return cached_players + fetched

    @cached(
        lambda self, game_server_id: self._cache.key("mapinfo", self.scope, game_server_id),
        CacheCategory.MAP_INFO,
    )
    async def get_map_info(self, game_server_id: str) -> Dict[str, Any]:
        body = await self._require_client().get_map_info(game_server_id)
        return body.get("data") or {}

    @cached(
        lambda self, game_server_id, search=None: self._cache.key(
            "items", self.scope, game_server_id, search or "all"
        ),
        CacheCategory.ITEMS,
    )
    async def get_items(
        self, game_server_id: str, search: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        body = await self._require_client().search_items(game_server_id, search)
        return body.get("data") or []

    @cached(
        lambda self, game_server_id, start_date=None, end_date=None: self._cache.key(
            "movementpaths",
            self.scope,
            game_server_id,
            start_date or "nostart",
            end_date or "noend",
        ),
        CacheCategory.MOVEMENT_PATHS,
    )
    async def get_movement_paths(
        self,
        game_server_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """전체 월드 범위의 경계 상자 검색으로 모든 이동 기록 조회"""
        body = await self._require_client().get_players_in_box(
            game_server_id, WORLD_BOUNDS, start_date, end_date
        )
        return body.get("data") or []

    @cached(
        lambda self, game_server_id, start_date=None, end_date=None: self._cache.key(
            "deathevents",
            self.scope,
            game_server_id,
            start_date or "nostart",
            end_date or "noend",
        ),
        CacheCategory.DEATH_EVENTS,
    )
    async def get_death_events(
        self,
        game_server_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        client = self._require_client()
        return await self._fetch_all(
            lambda page, limit: client.search_events(
                game_server_id, DEATH_EVENT, start_date, end_date, page, limit
            )
        )

    @cached(_box_key, CacheCategory.AREA_SEARCH)
    async def get_players_in_box(
        self,
        game_server_id: str,
        min_x: float,
        max_x: float,
        min_y: float,
        max_y: float,
        min_z: float,
        max_z: float,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        bounds = {
            "minX": min_x,
            "maxX": max_x,
            "minY": min_y,
            "maxY": max_y,
            "minZ": min_z,
            "maxZ": max_z,
        }
        body = await self._require_client().get_players_in_box(
            game_server_id, bounds, start_date, end_date
        )
        return body.get("data") or []

    @cached(_radius_key, CacheCategory.AREA_SEARCH)
    async def get_players_in_radius(
        self,
        game_server_id: str,
        x: float,
        y: float,
        z: float,
        radius: float,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        body = await self._require_client().get_players_in_radius(
            game_server_id, x, y, z, radius, start_date, end_date
        )
        return body.get("data") or []

    # 추적 기록 조회는 캐시하지 않음
    async def get_player_inventory_history(
        self,
        player_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """플레이어 인벤토리 변경 기록 (기간 생략 시 최근 24시간)"""
        body = await self._require_client().get_player_inventory_history(
            player_id, start_date, end_date
        )
        return body.get("data") or []

    async def get_player_movement_history(
        self,
        player_ids: str | List[str] | None = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: int = 10000,
    ) -> List[Dict[str, Any]]:
        body = await self._require_client().get_player_movement_history(
            player_ids, start_date, end_date, limit
        )
        return body.get("data") or []

    async def get_players_by_item(
        self,
        item_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """아이템을 보유했던 플레이어 기록 조회"""
        body = await self._require_client().get_players_by_item(item_id, start_date, end_date)
        return body.get("data") or []

    async def add_currency(self, game_server_id: str, player_id: str, currency: int) -> None:
        await self._require_client().add_currency(game_server_id, player_id, currency)
        await self.invalidate_players(game_server_id)

    async def give_item(
        self,
        game_server_id: str,
        player_id: str,
        item_name: str,
        amount: int,
        quality: str = "1",
    ) -> None:
        await self._require_client().give_item(
            game_server_id, player_id, item_name, amount, quality
        )
        await self.invalidate_players(game_server_id)

    async def invalidate_players(self, game_server_id: str) -> int:
        """서버의 플레이어 목록 캐시 무효화"""
        if self._cache is None:
            return 0
        return await self._cache.delete_pattern(
            self._cache.key("players", self.scope, game_server_id, "*")
        )
