"""CSRF 검증 미들웨어 모듈.

상태를 변경하는 요청(POST/PUT/PATCH/DELETE 등)에 대해 Origin 검증과
세션 바인딩 토큰 검증을 수행합니다. 두 검증이 모두 활성화된 경우 둘 다 통과해야 합니다.
"""

from collections.abc import Callable
from typing import Any
from urllib.parse import parse_qs

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from csrf_guard.config import CSRFSettings, get_settings
from csrf_guard.crypto import constant_time_equals, to_bytes
from csrf_guard.exceptions import forbidden_response
from csrf_guard.issuer import presession_identifier
from csrf_guard.keyring import SecretKeyring
from csrf_guard.logging import get_logger, security_logger
from csrf_guard.models import CheckResult, RejectReason
from csrf_guard.origin import source_origin
from csrf_guard.protection import CSRFProtection
from csrf_guard.proxy import get_client_ip, resolve_target_origins

logger = get_logger(__name__)

SessionGetter = Callable[[Request], str | bytes | None]

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def default_session_getter(request: Request) -> str | bytes | None:
    """세션 계층이 설정한 request.state.session_id를 반환합니다."""
    return getattr(request.state, "session_id", None)


def resolve_binding_id(
    request: Request, settings: CSRFSettings, session_getter: SessionGetter
) -> str | bytes | None:
    """토큰이 바인딩될 식별자를 결정합니다.

    세션이 있으면 세션 ID, 없으면 pre-session 쿠키의 식별자를 사용합니다.
    """
    session_id = session_getter(request)
    if session_id:
        return session_id

    if settings.presession_cookie_name:
        nonce = request.cookies.get(settings.presession_cookie_name)
        if nonce:
            return presession_identifier(nonce)
    return None


def _path_matches(path: str, exempt: str) -> bool:
    # 경로 세그먼트 단위 비교: "/webhooks"는 "/webhooksadmin"을 포함하지 않음
    prefix = exempt.rstrip("/")
    return path == exempt or path == prefix or path.startswith(prefix + "/")


async def extract_token(request: Request, settings: CSRFSettings) -> str | None:
    """요청 헤더 또는 폼 필드에서 토큰을 추출합니다.

    헤더를 우선 확인하고, urlencoded 폼 요청인 경우에만 본문을 읽습니다.
    """
    for name in settings.header_names:
        value = request.headers.get(name)
        if value and value.strip():
            return value.strip()

    if not settings.form_field_name:
        return None
    content_type = request.headers.get("Content-Type", "")
    if not content_type.startswith(FORM_CONTENT_TYPE):
        return None

    body = await request.body()
    values = parse_qs(body.decode("utf-8", errors="replace")).get(settings.form_field_name)
    return values[0] if values else None


async def check_request(
    request: Request,
    protection: CSRFProtection,
    session_getter: SessionGetter = default_session_getter,
) -> CheckResult:
    """출처 검증 후 토큰 검증을 수행합니다 (활성화된 계층만).

    Returns:
        첫 번째 실패한 검증의 CheckResult, 모두 통과하면 accept
    """
    settings = protection.settings

    if settings.check_origin:
        targets = resolve_target_origins(request, settings)
        result = protection.verify_origin(request.headers, targets)
        if not result:
            return result
        if source_origin(request.headers.get("Origin"), request.headers.get("Referer")) is None:
            security_logger.log_origin_missing_allowed(
                method=request.method,
                path=request.url.path,
                ip_address=get_client_ip(request),
            )

    if settings.check_token:
        presented = await extract_token(request, settings)

        if settings.double_submit_cookie:
            cookie_value = request.cookies.get(settings.cookie_name)
            if not presented or not cookie_value:
                return CheckResult.reject(RejectReason.MISSING_TOKEN)
            if not constant_time_equals(to_bytes(cookie_value), to_bytes(presented)):
                return CheckResult.reject(RejectReason.INVALID_SIGNATURE)

        binding_id = resolve_binding_id(request, settings, session_getter)
        result = protection.validate_token(presented, binding_id)
        if not result:
            return result

    return CheckResult.accept()


class CSRFMiddleware(BaseHTTPMiddleware):
    """CSRF 검증 미들웨어.

    안전한 메서드와 예외 경로를 제외한 모든 요청을 검증하고, 실패 시
    사유와 무관하게 동일한 403 응답을 반환합니다. 구체적인 사유는 서버 로그에만 남깁니다.

    Args:
        app: ASGI 애플리케이션
        settings: CSRF 설정 (None이면 환경 변수에서 로드)
        session_getter: 요청에서 세션 ID를 읽는 함수 (기본: request.state.session_id)
        keyring: 키 로테이션용 키링 (None이면 설정에서 생성)

    Example:
        >>> app = FastAPI()
        >>> app.add_middleware(
        ...     CSRFMiddleware,
        ...     session_getter=lambda request: request.cookies.get("session_id"),
        ... )
    """

    def __init__(
        self,
        app: Any,
        settings: CSRFSettings | None = None,
        session_getter: SessionGetter | None = None,
        keyring: SecretKeyring | None = None,
    ) -> None:
        super().__init__(app)
        self.protection = CSRFProtection(settings or get_settings(), keyring)
        self.session_getter = session_getter or default_session_getter

        settings = self.protection.settings
        self.safe_methods = frozenset(method.upper() for method in settings.safe_methods)
        self.exempt_paths = tuple(settings.exempt_paths)

        logger.info(
            "csrf_middleware_configured",
            check_signature=settings.check_token,
            check_origin=settings.check_origin,
            double_submit=settings.double_submit_cookie,
            key_count=len(self.protection.keyring),
        )

    def _is_exempt(self, request: Request) -> bool:
        if request.method.upper() in self.safe_methods:
            return True
        return any(_path_matches(request.url.path, path) for path in self.exempt_paths)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """미들웨어 요청 처리 로직."""
        # 의존성(issue_csrf_token, require_csrf)에서 같은 설정을 사용하도록 공유
        request.state.csrf_protection = self.protection
        request.state.csrf_session_getter = self.session_getter

        if self._is_exempt(request):
            return await call_next(request)

        result = await check_request(request, self.protection, self.session_getter)
        if not result:
            security_logger.log_csrf_rejected(
                reason=str(result.reason),
                method=request.method,
                path=request.url.path,
                ip_address=get_client_ip(request),
            )
            return forbidden_response()

        return await call_next(request)
