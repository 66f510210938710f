"""CSRF 예외 클래스 모듈.

검증 결과는 CheckResult로 반환되며, 예외는 다음 경우에만 사용합니다.
    - FastAPI 의존성에서 요청을 중단할 때 (CSRFValidationError)
    - 시크릿 설정이 잘못되어 서비스를 시작하면 안 될 때 (SecretConfigurationError)
    - 토큰 파싱 내부 오류 (MalformedTokenError, 검증기에서 결과로 변환)
"""

from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from csrf_guard.models import RejectReason

# 응답 본문은 거부 사유와 무관하게 동일 (사유는 서버 로그에만 기록)
CSRF_ERROR_CODE = "CSRF_001"
CSRF_ERROR_MESSAGE = "요청을 처리할 수 없습니다. 페이지를 새로고침한 후 다시 시도해주세요"


class CSRFError(Exception):
    """CSRF 기본 예외 클래스.

    Attributes:
        message: 오류 메시지
        status_code: HTTP 상태 코드
    """

    def __init__(
        self, message: str = "CSRF 처리 중 오류가 발생했습니다", status_code: int = 500
    ) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class CSRFValidationError(CSRFError):
    """CSRF 검증 실패 예외 (HTTP 403).

    Attributes:
        reason: 거부 사유 (로그 기록용, 응답에는 노출하지 않음)
    """

    def __init__(self, reason: "RejectReason") -> None:
        self.reason = reason
        super().__init__(message=CSRF_ERROR_MESSAGE, status_code=status.HTTP_403_FORBIDDEN)


class SecretConfigurationError(CSRFError):
    """시크릿 키가 없거나 길이가 부족한 경우.

    시작 시점에 발생하며 프로세스는 요청을 처리하면 안 됩니다.
    """

    def __init__(self, message: str = "CSRF 시크릿 키가 올바르지 않습니다") -> None:
        super().__init__(message=message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


class MalformedTokenError(ValueError):
    """토큰 문자열 구조가 잘못된 경우."""


def forbidden_response() -> JSONResponse:
    """CSRF 거부 응답 (모든 사유에 대해 동일)"""
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={
            "error_code": CSRF_ERROR_CODE,
            "message": CSRF_ERROR_MESSAGE,
        },
    )


async def csrf_exception_handler(request: Request, exc: CSRFError) -> JSONResponse:
    """CSRFError 전역 핸들러"""
    if isinstance(exc, CSRFValidationError):
        return forbidden_response()
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": "CSRF_500",
            "message": "서버 내부 오류가 발생했습니다",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """FastAPI 애플리케이션에 CSRF 예외 핸들러 등록"""
    app.add_exception_handler(CSRFError, csrf_exception_handler)
