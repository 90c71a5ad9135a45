"""
사용자 정의 예외 및 에러 처리 모듈

이 모듈은 대시보드 백엔드에서 사용하는 모든 예외를 정의합니다.
캐시 계층의 예외는 호출자에게 전파되지 않고 캐시 경계에서 흡수되며,
업스트림(Takaro API) 예외는 호출자에게 그대로 전파됩니다.

주요 구성요소:
    - ErrorCode: 에러 코드 열거형
    - DashboardError: 모든 예외의 기본 클래스
    - 캐시 예외: CacheError, CacheConnectionError, SerializationError
    - 업스트림 예외: UpstreamError, AuthenticationError, ClientNotInitializedError
    - ValidationError: 입력값 검증 실패

에러 분류:
    - 연결 오류: 원격 캐시 연결 불가 → 로컬 캐시로 전환, 호출자에게 노출 안 함
    - 직렬화 오류: 손상된 캐시 데이터 → 캐시 미스로 처리
    - 업스트림 오류: 호출자에게 그대로 전파
"""

from typing import Any, Dict, Optional
from enum import Enum

import httpx


class ErrorCode(Enum):
    """
    에러 코드 열거형

    값은 HTTP 라우트 계층에서 그대로 응답 코드로 사용할 수 있도록
    문자열 식별자로 정의합니다.
    """

    INTERNAL_ERROR = "internal_error"  # 내부 에러
    VALIDATION_ERROR = "validation_error"  # 입력값 검증 실패
    AUTHENTICATION_ERROR = "authentication_error"  # 업스트림 인증 실패
    CLIENT_NOT_INITIALIZED = "client_not_initialized"  # 업스트림 클라이언트 없음
    UPSTREAM_ERROR = "upstream_error"  # 업스트림 API 실패
    CACHE_ERROR = "cache_error"  # 캐시 작업 실패
    CACHE_CONNECTION_ERROR = "cache_connection_error"  # 원격 캐시 연결 불가
    SERIALIZATION_ERROR = "serialization_error"  # 캐시 데이터 직렬화 실패


class DashboardError(Exception):
    """
    모든 대시보드 에러의 기본 예외 클래스

    Attributes:
        message (str): 에러 메시지
        code (ErrorCode): 에러 코드
        data (dict): 추가 에러 정보 (선택사항)
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        data: Optional[Dict[str, Any]] = None,
    ):
        """
        Args:
            message: 사용자에게 표시될 에러 메시지
            code: 에러 코드 (기본값: INTERNAL_ERROR)
            data: 디버깅에 유용한 추가 정보 (선택사항)
        """
        self.message = message
        self.code = code
        self.data = data or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        에러를 응답용 딕셔너리로 변환

        data 필드는 값이 있을 때만 포함됩니다.

        Returns:
            Dict[str, Any]: code, message, data(선택) 키를 가진 딕셔너리
        """
        error_dict = {"code": self.code.value, "message": self.message}
        if self.data:
            error_dict["data"] = self.data
        return error_dict


class CacheError(DashboardError):
    """
    캐시 작업 실패 에러

    캐시 계층 내부에서만 사용되며 CacheStore 경계를 넘어 전파되지 않습니다.
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CACHE_ERROR,
        data: Optional[Dict[str, Any]] = None,
    ):
        error_data = data or {}
        if key is not None:
            error_data["key"] = key
        super().__init__(message=message, code=code, data=error_data)
        self.key = key


class CacheConnectionError(CacheError):
    """
    원격 캐시 연결 불가 에러

    이 에러가 관측되면 백엔드 선택기가 로컬 캐시로 전환합니다.
    """

    def __init__(
        self,
        message: str = "Remote cache unreachable",
        key: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message, key=key, code=ErrorCode.CACHE_CONNECTION_ERROR, data=data
        )


class SerializationError(CacheError):
    """
    캐시 데이터 직렬화/역직렬화 실패 에러

    손상된 페이로드는 캐시 미스로 처리됩니다.
    """

    def __init__(
        self,
        message: str = "Malformed cache payload",
        key: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message, key=key, code=ErrorCode.SERIALIZATION_ERROR, data=data
        )


class UpstreamError(DashboardError):
    """
    업스트림 API 호출 실패 에러

    Takaro API가 에러를 반환하거나 요청 자체가 실패한 경우 발생합니다.

    Attributes:
        status_code (Optional[int]): 업스트림 HTTP 상태 코드
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: ErrorCode = ErrorCode.UPSTREAM_ERROR,
        data: Optional[Dict[str, Any]] = None,
    ):
        error_data = data or {}
        if status_code is not None:
            error_data["status_code"] = status_code
        super().__init__(message=message, code=code, data=error_data)
        self.status_code = status_code

    @classmethod
    def from_http_error(cls, error: httpx.HTTPError, default_message: str) -> "UpstreamError":
        """
        httpx 예외를 UpstreamError로 변환

        에러 응답 본문에서 사람이 읽을 수 있는 메시지를 다음 순서로 찾습니다:
            1. meta.error.message
            2. message
            3. 예외 자체의 메시지
            4. default_message

        Args:
            error: httpx 요청/상태 예외
            default_message: 메시지를 찾지 못했을 때 사용할 기본 메시지

        Returns:
            UpstreamError: 변환된 예외 (401/403은 AuthenticationError)
        """
        status_code = None
        message = None

        if isinstance(error, httpx.HTTPStatusError):
            status_code = error.response.status_code
            message = _extract_error_message(error.response)

        message = message or str(error) or default_message

        if status_code in (401, 403):
            return AuthenticationError(message, status_code=status_code)
        return cls(message, status_code=status_code)


class AuthenticationError(UpstreamError):
    """업스트림 인증 실패 (로그인 실패, 만료된 세션 등)"""

    def __init__(
        self,
        message: str = "Authentication failed",
        status_code: Optional[int] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            code=ErrorCode.AUTHENTICATION_ERROR,
            data=data,
        )


class ClientNotInitializedError(UpstreamError):
    """업스트림 클라이언트가 연결되지 않은 상태에서 호출된 경우"""

    def __init__(self, message: str = "Client not initialized"):
        super().__init__(message=message, code=ErrorCode.CLIENT_NOT_INITIALIZED)


class ValidationError(DashboardError):
    """
    입력값 검증 에러

    Attributes:
        field (Optional[str]): 검증에 실패한 필드명
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        error_data = data or {}
        if field:
            error_data["field"] = field
        super().__init__(message=message, code=ErrorCode.VALIDATION_ERROR, data=error_data)
        self.field = field


def _extract_error_message(response: httpx.Response) -> Optional[str]:
    """에러 응답 본문에서 메시지 추출 (JSON이 아니면 None)"""
    try:
        body = response.json()
    except ValueError:
        return None

    if not isinstance(body, dict):
        return None

    meta = body.get("meta")
    if isinstance(meta, dict):
        error = meta.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]

    return body.get("message") or None
