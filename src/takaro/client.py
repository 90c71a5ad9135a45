"""
Takaro REST API 클라이언트

캐시 계층이 사용하는 최소한의 업스트림 인터페이스만 제공하는 얇은 어댑터입니다.
모든 메서드는 Takaro 응답 본문({"data": ..., "meta": ...})을 그대로 반환하며,
캐싱은 TakaroService가 담당합니다.

인증:
    서비스 계정(username/password)으로 로그인하여 받은 토큰을
    Authorization 헤더로 모든 요청에 전달합니다. 도메인을 선택하면
    takaro-domain 쿠키로 이후 요청의 범위를 지정합니다.

오류 처리:
    HTTP 오류는 UpstreamError로 변환됩니다 (401/403은 AuthenticationError).
    메시지는 응답 본문의 meta.error.message 또는 message에서 추출합니다.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx
import structlog

from src.config.settings import TakaroConfig
from src.exceptions import AuthenticationError, UpstreamError
from src.utils.connection_manager import HTTPSessionManager

logger = structlog.get_logger(__name__)

# 인벤토리 기록 기본 조회 기간
INVENTORY_HISTORY_WINDOW = timedelta(hours=24)

# 이동 경로 조회에 사용하는 전체 월드 범위
WORLD_BOUNDS = {
    "minX": -100000,
    "maxX": 100000,
    "minY": -10000,
    "maxY": 10000,
    "minZ": -100000,
    "maxZ": 100000,
}


def _date_range(start_date: Optional[str], end_date: Optional[str]) -> Dict[str, str]:
    body = {}
    if start_date:
        body["startDate"] = start_date
    if end_date:
        body["endDate"] = end_date
    return body


def _iso(instant: datetime) -> str:
    """UTC ISO 8601 문자열 (밀리초, Z 접미사)"""
    return instant.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class TakaroAPIClient:
    """
    Takaro API 비동기 클라이언트

    Attributes:
        config (TakaroConfig): API URL과 서비스 계정 정보
        session (HTTPSessionManager): 공유 HTTP 클라이언트
        domain_id (Optional[str]): 선택된 도메인 ID
    """

    def __init__(
        self,
        config: TakaroConfig,
        session: Optional[HTTPSessionManager] = None,
    ):
        self.config = config
        self.session = session or HTTPSessionManager(config.api_url, timeout=config.timeout)
        self.domain_id: Optional[str] = None
        self._authenticated = False

    @property
    def is_authenticated(self) -> bool:
        return self._authenticated

    async def _request(
        self, method: str, path: str, default_message: str, **kwargs: Any
    ) -> Dict[str, Any]:
        try:
            response = await self.session.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            error = UpstreamError.from_http_error(e, default_message)
            logger.warning(
                "Takaro API 호출 실패",
                method=method,
                path=path,
                status_code=error.status_code,
                error=error.message,
            )
            raise error from e

        if not response.content:
            return {}
        return response.json()

    async def login(
        self, username: Optional[str] = None, password: Optional[str] = None
    ) -> None:
        """
        로그인 후 토큰을 기본 헤더로 설정

        Raises:
            AuthenticationError: 자격 증명이 없거나 로그인에 실패한 경우
        """
        username = username or self.config.username
        password = password or self.config.password
        if not username or not password:
            raise AuthenticationError("Username and password are required")

        body = await self._request(
            "POST",
            "/login",
            "Login failed",
            json={"username": username, "password": password},
        )
        token = (body.get("data") or {}).get("token")
        if not token:
            raise AuthenticationError("Login response did not contain a token")

        self.session.set_header("Authorization", f"Bearer {token}")
        self._authenticated = True
        logger.info("Takaro 로그인 성공", username=username)

    async def get_me(self) -> Dict[str, Any]:
        body = await self._request("GET", "/me", "Failed to get current user")
        return body.get("data") or {}

    async def set_selected_domain(self, domain_id: str) -> None:
        """도메인 선택 후 이후 요청에 takaro-domain 쿠키 설정"""
        await self._request(
            "POST", f"/selected-domain/{domain_id}", "Failed to select domain"
        )
        self.session.set_header("Cookie", f"takaro-domain={domain_id}")
        self.domain_id = domain_id

    async def select_domain(self, name_or_id: str) -> str:
        """
        이름 또는 ID로 도메인을 찾아 선택

        Returns:
            str: 선택된 도메인 ID

        Raises:
            UpstreamError: 사용자에게 해당 도메인이 없는 경우
        """
        me = await self.get_me()
        domains: List[Dict[str, Any]] = me.get("domains") or []

        target = next(
            (d for d in domains if name_or_id in (d.get("name"), d.get("id"))),
            None,
        )
        if target is None:
            available = ", ".join(f"{d.get('name')} ({d.get('id')})" for d in domains)
            raise UpstreamError(
                f"Domain '{name_or_id}' not found. Available domains: {available or 'none'}"
            )

        await self.set_selected_domain(target["id"])
        logger.info("Takaro 도메인 선택", domain=target.get("name"), domain_id=target["id"])
        return target["id"]

    async def authenticate(self) -> None:
        """설정된 서비스 계정으로 로그인하고 도메인 선택"""
        await self.login()
        if self.config.domain:
            await self.select_domain(self.config.domain)

    async def search_gameservers(
        self, server_type: Optional[str] = None, limit: int = 100
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/gameserver/search",
            "Failed to get game servers",
            json={
                "filters": {"type": [server_type]} if server_type else {},
                "sortBy": "name",
                "sortDirection": "asc",
                "limit": limit,
            },
        )

    async def search_players_on_gameserver(
        self, game_server_id: str, page: int = 0, limit: int = 100
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/gameserver/player/search",
            "Failed to get players",
            json={
                "filters": {"gameServerId": [game_server_id]},
                "extend": ["player"],
                "page": page,
                "limit": limit,
            },
        )

    async def search_players(
        self,
        player_ids: Optional[List[str]] = None,
        page: int = 0,
        limit: int = 100,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"filters": {}, "page": page, "limit": limit}
        if player_ids:
            body["filters"] = {"id": player_ids}
        else:
            body.update(sortBy="name", sortDirection="asc")
        return await self._request(
            "POST", "/player/search", "Failed to search players", json=body
        )

    async def get_map_info(self, game_server_id: str) -> Dict[str, Any]:
        return await self._request(
            "GET", f"/gameserver/{game_server_id}/map/info", "Failed to get map info"
        )

    async def search_items(
        self, game_server_id: str, search: Optional[str] = None, limit: int = 1000
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "filters": {"gameserverId": [game_server_id]},
            "limit": limit,
        }
        if search:
            body["search"] = {"name": [search]}
        return await self._request("POST", "/item/search", "Failed to get items", json=body)

    async def get_players_in_box(
        self,
        game_server_id: str,
        bounds: Dict[str, float],
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        경계 상자 안의 플레이어 위치 기록 조회

        Args:
            bounds: minX, maxX, minY, maxY, minZ, maxZ
        """
        return await self._request(
            "POST",
            "/tracking/location/box",
            "Box search failed",
            json={
                "gameserverId": game_server_id,
                **bounds,
                **_date_range(start_date, end_date),
            },
        )

    async def get_players_in_radius(
        self,
        game_server_id: str,
        x: float,
        y: float,
        z: float,
        radius: float,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/tracking/location/radius",
            "Radius search failed",
            json={
                "gameserverId": game_server_id,
                "x": x,
                "y": y,
                "z": z,
                "radius": radius,
                **_date_range(start_date, end_date),
            },
        )

    async def get_player_inventory_history(
        self,
        player_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        플레이어 인벤토리 변경 기록 조회

        기간을 지정하지 않으면 최근 24시간을 조회합니다.
        """
        now = now or datetime.now(timezone.utc)
        return await self._request(
            "POST",
            "/tracking/inventory/player",
            "Failed to get inventory history",
            json={
                "playerId": player_id,
                "startDate": start_date or _iso(now - INVENTORY_HISTORY_WINDOW),
                "endDate": end_date or _iso(now),
            },
        )

    async def get_player_movement_history(
        self,
        player_ids: str | List[str] | None = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: int = 10000,
    ) -> Dict[str, Any]:
        """
        플레이어 이동 기록 조회

        Args:
            player_ids: 플레이어 ID 또는 ID 목록 (없으면 전체)
            limit: 최대 기록 수
        """
        body: Dict[str, Any] = {"limit": limit}
        if player_ids:
            body["playerId"] = [player_ids] if isinstance(player_ids, str) else list(player_ids)
        body.update(_date_range(start_date, end_date))
        return await self._request(
            "POST", "/tracking/location", "Failed to get movement history", json=body
        )

    async def get_players_by_item(
        self,
        item_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/tracking/inventory/item",
            "Failed to get players by item",
            json={"itemId": item_id, **_date_range(start_date, end_date)},
        )

    async def search_events(
        self,
        game_server_id: str,
        event_name: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        page: int = 0,
        limit: int = 100,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "filters": {"eventName": [event_name], "gameserverId": [game_server_id]},
            "sortBy": "createdAt",
            "sortDirection": "desc",
            "page": page,
            "limit": limit,
        }
        if start_date:
            body["greaterThan"] = {"createdAt": start_date}
        if end_date:
            body["lessThan"] = {"createdAt": end_date}
        return await self._request("POST", "/event/search", "Failed to get events", json=body)

    async def give_item(
        self,
        game_server_id: str,
        player_id: str,
        item_name: str,
        amount: int,
        quality: str = "1",
    ) -> None:
        await self._request(
            "POST",
            f"/gameserver/{game_server_id}/player/{player_id}/giveItem",
            "Failed to give item",
            json={"name": item_name, "amount": amount, "quality": quality},
        )
        logger.info("아이템 지급", game_server_id=game_server_id, player_id=player_id, item=item_name, amount=amount)

    async def add_currency(self, game_server_id: str, player_id: str, currency: int) -> None:
        await self._request(
            "POST",
            f"/gameserver/{game_server_id}/player/{player_id}/add-currency",
            "Failed to add currency",
            json={"currency": currency},
        )
        logger.info("화폐 지급", game_server_id=game_server_id, player_id=player_id, currency=currency)

    async def close(self) -> None:
        await self.session.close()
