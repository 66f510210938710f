"""CSRFMiddleware 통합 테스트 (httpx ASGITransport)"""

import pytest
from httpx import ASGITransport, AsyncClient
from structlog.testing import capture_logs

from conftest import SESSION_ID, TARGET_ORIGIN, TEST_SECRET, build_app
from csrf_guard import issue_token, presession_identifier
from csrf_guard.exceptions import CSRF_ERROR_CODE


def _client(app, client_addr: tuple[str, int] = ("127.0.0.1", 123), base_url: str = TARGET_ORIGIN):
    return AsyncClient(transport=ASGITransport(app=app, client=client_addr), base_url=base_url)


@pytest.mark.asyncio
class TestSafeRequests:
    """검증 제외 요청 테스트"""

    async def test_get_passes_without_token(self, client: AsyncClient):
        response = await client.get("/csrf-token", headers={"Cookie": f"session_id={SESSION_ID}"})

        assert response.status_code == 200

    async def test_issued_token_is_usable(self, client: AsyncClient):
        cookie = {"Cookie": f"session_id={SESSION_ID}"}
        issued = (await client.get("/csrf-token", headers=cookie)).json()["csrf_token"]

        response = await client.post(
            "/transfer", headers={**cookie, "X-CSRF-Token": issued, "Origin": TARGET_ORIGIN}
        )

        assert response.status_code == 200
        assert response.json() == {"ok": True}

    async def test_token_endpoint_without_session(self, client: AsyncClient):
        response = await client.get("/csrf-token")

        assert response.status_code == 403

    async def test_exempt_path(self, make_settings):
        app = build_app(make_settings(exempt_paths=["/webhooks/"]))

        async with _client(app) as client:
            response = await client.post("/webhooks/payments")

        assert response.status_code == 200

    @pytest.mark.parametrize("exempt", ["/webhooks", "/webhooks/"])
    async def test_exempt_path_matches_whole_segments(self, make_settings, exempt):
        """예외 경로는 세그먼트 단위로 비교 ("/webhooks"가 "/webhooksadmin"을 포함하지 않음)"""
        app = build_app(make_settings(exempt_paths=[exempt]))

        @app.post("/webhooksadmin/delete")
        async def admin_delete() -> dict:
            return {"deleted": True}

        async with _client(app) as client:
            exempted = await client.post("/webhooks/payments")
            protected = await client.post(
                "/webhooksadmin/delete", headers={"Origin": "https://evil.example"}
            )

        assert exempted.status_code == 200
        assert protected.status_code == 403


@pytest.mark.asyncio
class TestTokenValidation:
    """토큰 검증 테스트"""

    async def test_valid_request(self, client: AsyncClient, valid_headers):
        response = await client.post("/transfer", headers=valid_headers)

        assert response.status_code == 200

    async def test_delete_is_protected(self, client: AsyncClient, valid_headers):
        headers = {k: v for k, v in valid_headers.items() if k != "X-CSRF-Token"}

        response = await client.delete("/account", headers=headers)

        assert response.status_code == 403

    async def test_alternate_header_name(self, client: AsyncClient, valid_headers):
        headers = dict(valid_headers)
        headers["X-XSRF-Token"] = headers.pop("X-CSRF-Token")

        response = await client.post("/transfer", headers=headers)

        assert response.status_code == 200

    async def test_missing_token(self, client: AsyncClient, valid_headers):
        headers = {k: v for k, v in valid_headers.items() if k != "X-CSRF-Token"}

        with capture_logs() as logs:
            response = await client.post("/transfer", headers=headers)

        assert response.status_code == 403
        rejected = [log for log in logs if log["event"] == "csrf_rejected"]
        assert rejected[0]["reason"] == "missing_token"

    async def test_token_for_other_session(self, client: AsyncClient, valid_headers):
        headers = {**valid_headers, "Cookie": "session_id=sess-999"}

        with capture_logs() as logs:
            response = await client.post("/transfer", headers=headers)

        assert response.status_code == 403
        rejected = [log for log in logs if log["event"] == "csrf_rejected"]
        assert rejected[0]["reason"] == "invalid_signature"

    async def test_no_session(self, client: AsyncClient, valid_headers):
        headers = {k: v for k, v in valid_headers.items() if k != "Cookie"}

        with capture_logs() as logs:
            response = await client.post("/transfer", headers=headers)

        assert response.status_code == 403
        rejected = [log for log in logs if log["event"] == "csrf_rejected"]
        assert rejected[0]["reason"] == "no_session"

    async def test_form_field_token(self, client: AsyncClient, session_token):
        response = await client.post(
            "/transfer",
            headers={"Cookie": f"session_id={SESSION_ID}", "Origin": TARGET_ORIGIN},
            data={"csrf_token": session_token, "amount": "100"},
        )

        assert response.status_code == 200

    async def test_form_field_disabled(self, make_settings, session_token):
        app = build_app(make_settings(form_field_name=None))

        async with _client(app) as client:
            response = await client.post(
                "/transfer",
                headers={"Cookie": f"session_id={SESSION_ID}", "Origin": TARGET_ORIGIN},
                data={"csrf_token": session_token},
            )

        assert response.status_code == 403

    async def test_token_check_disabled(self, make_settings):
        app = build_app(make_settings(check_token=False))

        async with _client(app) as client:
            response = await client.post("/transfer", headers={"Origin": TARGET_ORIGIN})

        assert response.status_code == 200


@pytest.mark.asyncio
class TestOpaqueRejection:
    """거부 사유와 무관한 동일 응답 테스트"""

    async def test_identical_body_for_every_reason(self, client: AsyncClient, valid_headers):
        variants = [
            {k: v for k, v in valid_headers.items() if k != "X-CSRF-Token"},
            {**valid_headers, "X-CSRF-Token": "not-a-token"},
            {**valid_headers, "Cookie": "session_id=sess-999"},
            {**valid_headers, "Origin": "https://evil.example"},
            {k: v for k, v in valid_headers.items() if k != "Origin"},
        ]

        bodies = []
        for headers in variants:
            response = await client.post("/transfer", headers=headers)
            assert response.status_code == 403
            bodies.append(response.json())

        assert all(body == bodies[0] for body in bodies)
        assert bodies[0]["error_code"] == CSRF_ERROR_CODE
        assert "origin" not in bodies[0]["message"].lower()


@pytest.mark.asyncio
class TestOriginValidation:
    """출처 검증 테스트"""

    async def test_origin_mismatch(self, client: AsyncClient, valid_headers):
        headers = {**valid_headers, "Origin": "https://bank.example.attacker.com"}

        with capture_logs() as logs:
            response = await client.post("/transfer", headers=headers)

        assert response.status_code == 403
        rejected = [log for log in logs if log["event"] == "csrf_rejected"]
        assert rejected[0]["reason"] == "origin_mismatch"
        assert rejected[0]["path"] == "/transfer"

    async def test_referer_fallback(self, client: AsyncClient, valid_headers):
        headers = {k: v for k, v in valid_headers.items() if k != "Origin"}
        headers["Referer"] = f"{TARGET_ORIGIN}/account/transfer"

        response = await client.post("/transfer", headers=headers)

        assert response.status_code == 200

    async def test_missing_origin_rejected(self, client: AsyncClient, valid_headers):
        headers = {k: v for k, v in valid_headers.items() if k != "Origin"}

        with capture_logs() as logs:
            response = await client.post("/transfer", headers=headers)

        assert response.status_code == 403
        rejected = [log for log in logs if log["event"] == "csrf_rejected"]
        assert rejected[0]["reason"] == "no_origin_data"

    async def test_missing_origin_allowed_and_logged(self, make_settings, valid_headers):
        app = build_app(make_settings(allow_missing_origin=True))
        headers = {k: v for k, v in valid_headers.items() if k != "Origin"}

        async with _client(app) as client:
            with capture_logs() as logs:
                response = await client.post("/transfer", headers=headers)

        assert response.status_code == 200
        assert any(log["event"] == "csrf_origin_missing_allowed" for log in logs)

    async def test_origin_check_before_token(self, client: AsyncClient):
        """토큰이 없어도 출처 불일치가 먼저 기록됨"""
        with capture_logs() as logs:
            response = await client.post("/transfer", headers={"Origin": "https://evil.example"})

        assert response.status_code == 403
        rejected = [log for log in logs if log["event"] == "csrf_rejected"]
        assert rejected[0]["reason"] == "origin_mismatch"

    async def test_origin_check_disabled(self, make_settings, valid_headers):
        app = build_app(make_settings(check_origin=False))
        headers = {k: v for k, v in valid_headers.items() if k != "Origin"}

        async with _client(app) as client:
            response = await client.post("/transfer", headers=headers)

        assert response.status_code == 200

    async def test_host_derived_target(self, make_settings, valid_headers):
        """trusted_origins가 없으면 Host 헤더로 대상 origin 결정"""
        app = build_app(make_settings(trusted_origins=[]))

        async with _client(app) as client:
            response = await client.post("/transfer", headers=valid_headers)

        assert response.status_code == 200

    async def test_forwarded_host_from_trusted_proxy(self, make_settings, session_token):
        app = build_app(make_settings(trusted_origins=[], trust_forwarded_host=True))
        headers = {
            "Cookie": f"session_id={SESSION_ID}",
            "X-CSRF-Token": session_token,
            "Origin": "https://public.example",
            "X-Forwarded-Host": "public.example",
            "X-Forwarded-Proto": "https",
        }

        async with _client(app, ("10.0.0.5", 4000), base_url="http://internal:8000") as client:
            response = await client.post("/transfer", headers=headers)

        assert response.status_code == 200

    async def test_forwarded_host_from_untrusted_peer_ignored(self, make_settings, session_token):
        app = build_app(make_settings(trusted_origins=[], trust_forwarded_host=True))
        headers = {
            "Cookie": f"session_id={SESSION_ID}",
            "X-CSRF-Token": session_token,
            "Origin": "https://evil.example",
            "X-Forwarded-Host": "evil.example",
        }

        async with _client(app, ("203.0.113.42", 4000)) as client:
            response = await client.post("/transfer", headers=headers)

        assert response.status_code == 403


@pytest.mark.asyncio
class TestDoubleSubmitCookie:
    """Double Submit Cookie 모드 테스트"""

    async def test_matching_cookie(self, make_settings, session_token):
        app = build_app(make_settings(double_submit_cookie=True))
        headers = {
            "Cookie": f"session_id={SESSION_ID}; csrf_token={session_token}",
            "X-CSRF-Token": session_token,
            "Origin": TARGET_ORIGIN,
        }

        async with _client(app) as client:
            response = await client.post("/transfer", headers=headers)

        assert response.status_code == 200

    async def test_missing_cookie(self, make_settings, valid_headers):
        app = build_app(make_settings(double_submit_cookie=True))

        async with _client(app) as client:
            with capture_logs() as logs:
                response = await client.post("/transfer", headers=valid_headers)

        assert response.status_code == 403
        rejected = [log for log in logs if log["event"] == "csrf_rejected"]
        assert rejected[0]["reason"] == "missing_token"

    async def test_mismatching_cookie(self, make_settings, session_token):
        app = build_app(make_settings(double_submit_cookie=True))
        other = issue_token(SESSION_ID, TEST_SECRET).serialize()
        headers = {
            "Cookie": f"session_id={SESSION_ID}; csrf_token={other}",
            "X-CSRF-Token": session_token,
            "Origin": TARGET_ORIGIN,
        }

        async with _client(app) as client:
            response = await client.post("/transfer", headers=headers)

        assert response.status_code == 403


@pytest.mark.asyncio
class TestPresession:
    """로그인 폼 (pre-session) 테스트"""

    async def test_presession_token_accepted(self, client: AsyncClient):
        nonce = "visitor-nonce-1"
        token = issue_token(presession_identifier(nonce), TEST_SECRET).serialize()

        response = await client.post(
            "/transfer",
            headers={
                "Cookie": f"csrf_presession={nonce}",
                "X-CSRF-Token": token,
                "Origin": TARGET_ORIGIN,
            },
        )

        assert response.status_code == 200

    async def test_presession_token_rejected_after_login(self, client: AsyncClient):
        """인증 후 세션이 생기면 pre-session 토큰은 더 이상 유효하지 않음"""
        nonce = "visitor-nonce-1"
        token = issue_token(presession_identifier(nonce), TEST_SECRET).serialize()

        response = await client.post(
            "/transfer",
            headers={
                "Cookie": f"csrf_presession={nonce}; session_id={SESSION_ID}",
                "X-CSRF-Token": token,
                "Origin": TARGET_ORIGIN,
            },
        )

        assert response.status_code == 403

    async def test_token_endpoint_issues_presession_token(self, client: AsyncClient):
        cookie = {"Cookie": "csrf_presession=visitor-nonce-2"}
        issued = (await client.get("/csrf-token", headers=cookie)).json()["csrf_token"]

        response = await client.post(
            "/transfer", headers={**cookie, "X-CSRF-Token": issued, "Origin": TARGET_ORIGIN}
        )

        assert response.status_code == 200
