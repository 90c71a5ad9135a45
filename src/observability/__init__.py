"""
관찰 가능성 설정

configure_logging: structlog 프로세서 체인과 로그 레벨 설정
"""

from .logging import configure_logging

__all__ = ["configure_logging"]
