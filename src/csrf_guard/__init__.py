"""csrf-guard: 세션 바인딩 HMAC 안티 포저리 토큰과 Origin 검증.

FastAPI/Starlette 서비스에서 CSRF 공격을 방어하기 위한 패키지입니다.

주요 구성 요소:
    - issue_token / validate_token: 세션 바인딩 토큰 발급 및 상수 시간 검증
    - verify_origin: Origin/Referer 기반 출처 검증
    - SecretKeyring: 무중단 시크릿 로테이션
    - CSRFMiddleware: 상태 변경 요청 검증 미들웨어
    - require_csrf, issue_csrf_token: FastAPI 의존성 주입 헬퍼
    - CSRFSettings: 설정 관리 (CSRF_ 환경 변수)

Example:
    >>> from fastapi import FastAPI
    >>> from csrf_guard import CSRFMiddleware, CSRFSettings, register_exception_handlers
    >>>
    >>> app = FastAPI()
    >>> app.add_middleware(CSRFMiddleware, settings=CSRFSettings())
    >>> register_exception_handlers(app)
"""

from csrf_guard.config import CSRFSettings, get_settings
from csrf_guard.dependencies import issue_csrf_token, require_csrf
from csrf_guard.exceptions import (
    CSRFError,
    CSRFValidationError,
    SecretConfigurationError,
    register_exception_handlers,
)
from csrf_guard.issuer import issue_token, new_presession_nonce, presession_identifier
from csrf_guard.keyring import SecretKeyring
from csrf_guard.middleware import CSRFMiddleware
from csrf_guard.models import AntiForgeryToken, CheckResult, RejectReason
from csrf_guard.origin import normalize_origin, verify_origin, verify_request_origin
from csrf_guard.protection import CSRFProtection
from csrf_guard.validator import validate_token

__all__ = [
    "AntiForgeryToken",
    "CSRFError",
    "CSRFMiddleware",
    "CSRFProtection",
    "CSRFSettings",
    "CSRFValidationError",
    "CheckResult",
    "RejectReason",
    "SecretConfigurationError",
    "SecretKeyring",
    "get_settings",
    "issue_csrf_token",
    "issue_token",
    "new_presession_nonce",
    "normalize_origin",
    "presession_identifier",
    "register_exception_handlers",
    "require_csrf",
    "validate_token",
    "verify_origin",
    "verify_request_origin",
]
