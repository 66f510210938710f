"""FastAPI 의존성 주입 헬퍼 모듈.

미들웨어 대신 엔드포인트 단위로 CSRF 검증을 적용하거나,
현재 세션용 토큰을 발급할 때 사용합니다.

Example:
    >>> from fastapi import APIRouter, Depends
    >>> from csrf_guard import issue_csrf_token, require_csrf
    >>>
    >>> router = APIRouter()
    >>>
    >>> @router.get("/csrf-token")
    >>> async def csrf_token(token: str = Depends(issue_csrf_token)):
    ...     return {"csrf_token": token}
    >>>
    >>> @router.post("/transfer", dependencies=[Depends(require_csrf)])
    >>> async def transfer():
    ...     return {"ok": True}
"""

from functools import lru_cache

from fastapi import Request

from csrf_guard.config import get_settings
from csrf_guard.exceptions import CSRFValidationError
from csrf_guard.logging import security_logger
from csrf_guard.middleware import (
    SessionGetter,
    check_request,
    default_session_getter,
    resolve_binding_id,
)
from csrf_guard.models import RejectReason
from csrf_guard.protection import CSRFProtection
from csrf_guard.proxy import get_client_ip


@lru_cache
def _default_protection() -> CSRFProtection:
    return CSRFProtection(get_settings())


def get_csrf_protection(request: Request) -> CSRFProtection:
    """요청에 사용할 CSRFProtection.

    미들웨어가 설정한 request.state, app.state.csrf_protection,
    환경 변수 기반 기본값 순서로 찾습니다.
    """
    protection = getattr(request.state, "csrf_protection", None)
    if protection is None:
        protection = getattr(request.app.state, "csrf_protection", None)
    return protection or _default_protection()


def _session_getter(request: Request) -> SessionGetter:
    getter = getattr(request.state, "csrf_session_getter", None)
    if getter is None:
        getter = getattr(request.app.state, "csrf_session_getter", None)
    return getter or default_session_getter


async def require_csrf(request: Request) -> None:
    """CSRF 검증 필수 의존성

    POST/PUT/DELETE/PATCH 엔드포인트에서 사용

    Raises:
        CSRFValidationError: 출처 또는 토큰 검증 실패 (HTTP 403)
    """
    result = await check_request(request, get_csrf_protection(request), _session_getter(request))
    if not result:
        security_logger.log_csrf_rejected(
            reason=str(result.reason),
            method=request.method,
            path=request.url.path,
            ip_address=get_client_ip(request),
        )
        raise CSRFValidationError(result.reason)


async def issue_csrf_token(request: Request) -> str:
    """현재 세션 (또는 pre-session)에 바인딩된 새 토큰을 반환합니다.

    토큰을 쿠키/폼/메타 태그로 전달하는 것은 애플리케이션의 책임입니다.

    Raises:
        CSRFValidationError: 바인딩할 세션 또는 pre-session 식별자가 없는 경우
    """
    protection = get_csrf_protection(request)
    binding_id = resolve_binding_id(request, protection.settings, _session_getter(request))
    if not binding_id:
        raise CSRFValidationError(RejectReason.NO_SESSION)
    return protection.generate_token(binding_id)
