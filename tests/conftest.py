"""pytest fixtures."""

from collections.abc import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from fastapi import Depends, FastAPI, Request
from httpx import ASGITransport, AsyncClient

from csrf_guard import (
    CSRFMiddleware,
    CSRFSettings,
    issue_csrf_token,
    issue_token,
    register_exception_handlers,
)

TEST_SECRET = b"k" * 32
PREVIOUS_SECRET = b"p" * 32
SESSION_ID = "sess-123"
TARGET_ORIGIN = "https://bank.example"


def session_from_cookie(request: Request) -> str | None:
    """테스트용 세션 계층: session_id 쿠키를 세션 ID로 사용"""
    return request.cookies.get("session_id")


def build_app(settings: CSRFSettings, **middleware_kwargs) -> FastAPI:
    """CSRFMiddleware가 적용된 테스트 애플리케이션"""
    app = FastAPI()
    app.add_middleware(
        CSRFMiddleware,
        settings=settings,
        session_getter=session_from_cookie,
        **middleware_kwargs,
    )
    register_exception_handlers(app)

    @app.get("/csrf-token")
    async def csrf_token(token: str = Depends(issue_csrf_token)) -> dict:
        return {"csrf_token": token}

    @app.post("/transfer")
    async def transfer() -> dict:
        return {"ok": True}

    @app.delete("/account")
    async def delete_account() -> dict:
        return {"deleted": True}

    @app.post("/webhooks/payments")
    async def payment_webhook() -> dict:
        return {"received": True}

    return app


@pytest.fixture
def make_settings() -> Callable[..., CSRFSettings]:
    """기본값을 가진 CSRFSettings 팩토리"""

    def _make(**overrides) -> CSRFSettings:
        values = {
            "env": "development",
            "secret_key": TEST_SECRET.decode(),
            "trusted_origins": [TARGET_ORIGIN],
        }
        values.update(overrides)
        return CSRFSettings(**values)

    return _make


@pytest.fixture
def csrf_settings(make_settings) -> CSRFSettings:
    return make_settings()


@pytest.fixture
def session_token() -> str:
    """SESSION_ID에 바인딩된 유효한 토큰"""
    return issue_token(SESSION_ID, TEST_SECRET).serialize()


@pytest.fixture
def valid_headers(session_token: str) -> dict[str, str]:
    """세션 쿠키, 토큰 헤더, Origin이 모두 올바른 요청 헤더"""
    return {
        "Cookie": f"session_id={SESSION_ID}",
        "X-CSRF-Token": session_token,
        "Origin": TARGET_ORIGIN,
    }


@pytest_asyncio.fixture
async def client(csrf_settings: CSRFSettings) -> AsyncGenerator[AsyncClient, None]:
    """기본 설정 애플리케이션용 HTTP 클라이언트"""
    async with AsyncClient(
        transport=ASGITransport(app=build_app(csrf_settings)),
        base_url=TARGET_ORIGIN,
    ) as ac:
        yield ac
