"""
설정 관리 모듈

대시보드 백엔드의 모든 설정을 중앙에서 관리합니다.

주요 구성요소:
    - AppConfig: 메인 설정 클래스
    - CacheConfig, TakaroConfig, PaginationConfig, LoggingConfig: 컴포넌트 설정
    - validate_config: 설정 검증기
"""

from .settings import (
    AppConfig,
    CacheConfig,
    LoggingConfig,
    PaginationConfig,
    TakaroConfig,
)
from .validators import validate_config

__all__ = [
    "AppConfig",
    "CacheConfig",
    "LoggingConfig",
    "PaginationConfig",
    "TakaroConfig",
    "validate_config",
]
