"""
Takaro API 연동 패키지

TakaroAPIClient: 업스트림 REST API 어댑터
TakaroService: cache-aside 캐싱이 적용된 데이터 서비스
fetch_all_pages: 페이지네이션 헬퍼
"""

from .client import TakaroAPIClient
from .models import NormalizedPlayer, Page, PageMeta
from .pagination import fetch_all_pages
from .service import TakaroService, filter_players

__all__ = [
    "NormalizedPlayer",
    "Page",
    "PageMeta",
    "TakaroAPIClient",
    "TakaroService",
    "fetch_all_pages",
    "filter_players",
]
