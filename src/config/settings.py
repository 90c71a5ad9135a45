"""
대시보드 백엔드 설정 클래스

캐시, 업스트림 API, 페이지네이션, 로깅 설정을 관리합니다.
모든 설정은 환경 변수로 오버라이드할 수 있습니다.

주요 기능:
    - 컴포넌트별 설정 데이터클래스
    - 환경 변수 로더 (from_env)
    - 설정 유효성 검증
"""

import os
from dataclasses import dataclass, field
from typing import Optional, Any
import structlog

logger = structlog.get_logger(__name__)

DEFAULT_REDIS_URL = "redis://localhost:6379"
DEFAULT_TAKARO_API_URL = "https://api.takaro.io"


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class CacheConfig:
    """
    캐싱 설정

    Redis 연결 정보와 키 접두사입니다.
    redis_enabled가 False이면 Redis에 연결하지 않고 로컬 캐시만 사용합니다.
    """

    redis_url: str = DEFAULT_REDIS_URL
    key_prefix: str = "takaro"
    redis_enabled: bool = True
    socket_timeout: float = 5.0  # 초
    connect_timeout: float = 5.0  # 초

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """환경 변수에서 캐시 설정 로드"""
        return cls(
            redis_url=os.getenv("REDIS_URL", DEFAULT_REDIS_URL),
            key_prefix=os.getenv("CACHE_KEY_PREFIX", "takaro"),
            redis_enabled=_env_bool("CACHE_REDIS_ENABLED", "true"),
            socket_timeout=float(os.getenv("REDIS_SOCKET_TIMEOUT", "5")),
            connect_timeout=float(os.getenv("REDIS_CONNECT_TIMEOUT", "5")),
        )


@dataclass
class TakaroConfig:
    """
    Takaro API 설정

    username/password가 모두 있으면 서비스 계정으로 로그인합니다.
    """

    api_url: str = DEFAULT_TAKARO_API_URL
    username: Optional[str] = None
    password: Optional[str] = None
    domain: Optional[str] = None
    timeout: float = 30.0

    @property
    def has_service_credentials(self) -> bool:
        return bool(self.username and self.password)

    @classmethod
    def from_env(cls) -> "TakaroConfig":
        """환경 변수에서 Takaro 설정 로드"""
        return cls(
            api_url=os.getenv("TAKARO_API_URL", DEFAULT_TAKARO_API_URL),
            username=os.getenv("TAKARO_USERNAME"),
            password=os.getenv("TAKARO_PASSWORD"),
            domain=os.getenv("TAKARO_DOMAIN"),
            timeout=float(os.getenv("TAKARO_TIMEOUT", "30")),
        )


@dataclass
class PaginationConfig:
    """
    페이지네이션 설정

    max_total은 서버가 total을 잘못 보고하더라도 메모리와 지연 시간을
    제한하는 안전 상한입니다.
    """

    page_size: int = 100
    max_total: int = 10000

    @classmethod
    def from_env(cls) -> "PaginationConfig":
        """환경 변수에서 페이지네이션 설정 로드"""
        return cls(
            page_size=int(os.getenv("TAKARO_PAGE_SIZE", "100")),
            max_total=int(os.getenv("TAKARO_MAX_TOTAL", "10000")),
        )


@dataclass
class LoggingConfig:
    """
    로깅 설정

    구조화된 로깅 출력 형식과 레벨입니다.
    """

    log_level: str = "INFO"
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        """환경 변수에서 로깅 설정 로드"""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            json_logs=_env_bool("LOG_JSON", "false"),
        )


@dataclass
class AppConfig:
    """
    통합 애플리케이션 설정

    사용 예시:
        config = AppConfig.from_env()
        is_valid, errors = config.validate()
    """

    name: str = "takaro-dashboard"
    cache: CacheConfig = field(default_factory=CacheConfig)
    takaro: TakaroConfig = field(default_factory=TakaroConfig)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        환경 변수에서 전체 설정 로드

        Returns:
            환경 변수 기반 AppConfig 인스턴스
        """
        config = cls(
            name=os.getenv("APP_NAME", "takaro-dashboard"),
            cache=CacheConfig.from_env(),
            takaro=TakaroConfig.from_env(),
            pagination=PaginationConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )

        logger.info(
            "환경 변수 기반 설정 로드 완료",
            redis_enabled=config.cache.redis_enabled,
            service_mode=config.takaro.has_service_credentials,
        )

        return config

    def validate(self) -> tuple[bool, list[str]]:
        """
        설정 유효성 검증

        Returns:
            (유효 여부, 오류 메시지 목록)
        """
        from .validators import validate_config

        return validate_config(self)

    def to_dict(self) -> dict[str, Any]:
        """설정을 딕셔너리로 변환 (비밀번호 제외)"""
        takaro = dict(self.takaro.__dict__)
        if takaro.get("password"):
            takaro["password"] = "***"
        return {
            "name": self.name,
            "cache": self.cache.__dict__,
            "takaro": takaro,
            "pagination": self.pagination.__dict__,
            "logging": self.logging.__dict__,
        }
