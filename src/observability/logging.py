"""
structlog 로깅 설정

프로세스 시작 시 한 번 호출하여 모든 모듈의 structlog 로거가
같은 프로세서 체인을 사용하도록 합니다.
표준 logging 모듈을 출력 대상으로 사용하므로 filter_by_level이
LOG_LEVEL 설정을 따릅니다.
"""

import logging
import sys

import structlog

from src.config.settings import LoggingConfig


def configure_logging(config: LoggingConfig | None = None) -> None:
    """
    structlog와 표준 logging 설정

    Args:
        config: 로그 레벨과 JSON 출력 여부 (기본값: 환경 변수)
    """
    config = config or LoggingConfig.from_env()
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level, force=True)

    renderer = (
        structlog.processors.JSONRenderer(ensure_ascii=False)
        if config.json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
