"""
설정 검증 모듈

애플리케이션 설정의 유효성을 검증하고 일관성을 보장합니다.

주요 기능:
    - Redis URL 형식 검증
    - 타임아웃/페이지 크기 범위 검증
    - 서비스 계정 자격 증명 쌍 검증
"""

from typing import List, Tuple
from urllib.parse import urlparse
import structlog

from .settings import AppConfig

logger = structlog.get_logger(__name__)

_REDIS_SCHEMES = ("redis", "rediss", "unix")


def validate_config(config: AppConfig) -> Tuple[bool, List[str]]:
    """
    전체 설정 검증

    Args:
        config: 검증할 애플리케이션 설정

    Returns:
        (유효 여부, 오류 메시지 목록)
    """
    errors = []

    errors.extend(_validate_cache_settings(config))
    errors.extend(_validate_takaro_settings(config))
    errors.extend(_validate_pagination_settings(config))

    is_valid = len(errors) == 0

    if not is_valid:
        logger.error(
            "설정 검증 실패",
            error_count=len(errors),
            errors=errors[:5],  # 처음 5개만 로깅
        )
    else:
        logger.debug("설정 검증 성공")

    return is_valid, errors


def _validate_cache_settings(config: AppConfig) -> List[str]:
    """캐시 설정 검증"""
    errors = []
    cache = config.cache

    if not cache.key_prefix or ":" in cache.key_prefix:
        errors.append(f"잘못된 캐시 키 접두사: {cache.key_prefix!r}")

    if cache.redis_enabled:
        if not cache.redis_url:
            errors.append("Redis가 활성화되었지만 REDIS_URL이 설정되지 않음")
        elif urlparse(cache.redis_url).scheme not in _REDIS_SCHEMES:
            errors.append(f"지원되지 않는 Redis URL 스킴: {cache.redis_url}")

    if cache.socket_timeout <= 0:
        errors.append(f"잘못된 Redis 소켓 타임아웃: {cache.socket_timeout}")
    if cache.connect_timeout <= 0:
        errors.append(f"잘못된 Redis 연결 타임아웃: {cache.connect_timeout}")

    return errors


def _validate_takaro_settings(config: AppConfig) -> List[str]:
    """Takaro API 설정 검증"""
    errors = []
    takaro = config.takaro

    parsed = urlparse(takaro.api_url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        errors.append(f"잘못된 Takaro API URL: {takaro.api_url}")

    # 사용자명과 비밀번호는 함께 설정되어야 함
    if bool(takaro.username) != bool(takaro.password):
        errors.append("TAKARO_USERNAME과 TAKARO_PASSWORD는 함께 설정해야 함")

    if takaro.has_service_credentials and not takaro.domain:
        logger.warning("서비스 계정이 설정되었지만 TAKARO_DOMAIN이 없음")

    if takaro.timeout <= 0:
        errors.append(f"잘못된 Takaro 타임아웃: {takaro.timeout}")

    return errors


def _validate_pagination_settings(config: AppConfig) -> List[str]:
    """페이지네이션 설정 검증"""
    errors = []
    pagination = config.pagination

    if pagination.page_size <= 0:
        errors.append(f"잘못된 페이지 크기: {pagination.page_size}")
    if pagination.max_total <= 0:
        errors.append(f"잘못된 최대 결과 수: {pagination.max_total}")
    elif pagination.max_total < pagination.page_size:
        logger.warning(
            "최대 결과 수가 페이지 크기보다 작음",
            page_size=pagination.page_size,
            max_total=pagination.max_total,
        )

    return errors
