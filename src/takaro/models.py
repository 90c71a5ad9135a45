"""
Takaro API 응답 모델

업스트림 응답은 {"data": [...], "meta": {"total": n}} 형태입니다.
모델은 알려진 필드만 검증하고 나머지 필드는 그대로 보존합니다.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class PageMeta(BaseModel):
    """페이지 메타데이터 (total이 없거나 0이면 단일 페이지로 간주)"""

    model_config = ConfigDict(extra="allow")

    total: Optional[int] = None


class Page(BaseModel):
    """페이지네이션된 API 응답 한 페이지"""

    model_config = ConfigDict(extra="allow")

    data: list[Any] = Field(default_factory=list)
    meta: PageMeta = Field(default_factory=PageMeta)

    @classmethod
    def from_response(cls, response: Any) -> "Page":
        # data가 null로 오는 경우도 빈 페이지로 처리
        if isinstance(response, dict) and response.get("data") is None:
            response = {**response, "data": []}
        if isinstance(response, dict) and response.get("meta") is None:
            response = {**response, "meta": {}}
        return cls.model_validate(response)


class NormalizedPlayer(BaseModel):
    """
    대시보드용 플레이어 정보

    playerOnGameServer 검색 결과(POG)를 평탄화한 형태입니다.
    캐시에는 camelCase 딕셔너리(model_dump(by_alias=True))로 저장됩니다.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    player_id: str = Field(alias="playerId")
    name: str = "Unknown"
    steam_id: Optional[str] = Field(default=None, alias="steamId")
    x: Optional[float] = None
    y: Optional[float] = None
    z: Optional[float] = None
    ping: Optional[float] = None
    currency: Optional[float] = None
    playtime_seconds: Optional[float] = Field(default=None, alias="playtimeSeconds")
    last_seen: Optional[datetime] = Field(default=None, alias="lastSeen")
    online: bool | int = False

    @classmethod
    def from_pog(cls, pog: dict[str, Any]) -> "NormalizedPlayer":
        """POG 응답 항목을 정규화"""
        player = pog.get("player") or {}
        online = pog.get("online")
        return cls(
            id=pog["id"],
            player_id=pog["playerId"],
            name=player.get("name") or "Unknown",
            steam_id=player.get("steamId"),
            x=pog.get("positionX"),
            y=pog.get("positionY"),
            z=pog.get("positionZ"),
            ping=pog.get("ping"),
            currency=pog.get("currency"),
            playtime_seconds=pog.get("playtimeSeconds"),
            last_seen=pog.get("lastSeen"),
            online=False if online is None else online,
        )

    @property
    def is_online(self) -> bool:
        return self.online is True or self.online == 1

    def to_cache(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
