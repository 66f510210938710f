"""안티 포저리 토큰 발급.

세션 ID와 서버 시크릿으로 HMAC 서명된 토큰을 생성합니다. 발급 상태는 저장하지
않습니다. 세션 ID는 이미 세션 계층이 보관하고 있으므로 검증 시 다시 계산합니다.
"""

import secrets

from csrf_guard.crypto import (
    DEFAULT_RANDOM_BYTES,
    MIN_SECRET_BYTES,
    canonical_message,
    compute_tag,
    random_component,
    to_bytes,
)
from csrf_guard.exceptions import SecretConfigurationError
from csrf_guard.models import AntiForgeryToken

PRESESSION_PREFIX = b"presession!"


def issue_token(
    session_id: str | bytes,
    secret: bytes,
    *,
    random_bytes: int = DEFAULT_RANDOM_BYTES,
) -> AntiForgeryToken:
    """세션에 바인딩된 새 토큰을 발급합니다.

    Args:
        session_id: 현재 세션 식별자 (비어 있으면 안 됨)
        secret: HMAC 키 (최소 32바이트)
        random_bytes: 난수 컴포넌트 길이

    Returns:
        새 AntiForgeryToken (같은 세션이라도 호출마다 다른 값)

    Raises:
        ValueError: 세션 ID가 비어 있는 경우
        SecretConfigurationError: 시크릿이 너무 짧은 경우

    Example:
        >>> token = issue_token("sess-123", secret)
        >>> token.serialize()
        '5f1c...e9.a03b...77'
    """
    sid = to_bytes(session_id)
    if not sid:
        raise ValueError("session_id must not be empty")
    if len(secret) < MIN_SECRET_BYTES:
        raise SecretConfigurationError(
            f"CSRF secret must be at least {MIN_SECRET_BYTES} bytes"
        )

    random_value = random_component(random_bytes)
    tag = compute_tag(secret, canonical_message(sid, random_value))
    return AntiForgeryToken(tag=tag, random=random_value)


def new_presession_nonce() -> str:
    """로그인 전 방문자용 nonce 생성 (쿠키 등으로 전달)"""
    return secrets.token_urlsafe(32)


def presession_identifier(nonce: str | bytes) -> bytes:
    """로그인 전 토큰이 바인딩될 식별자.

    접두사로 실제 세션 ID와 도메인을 분리하므로 pre-session 토큰은 인증된
    세션 ID로 검증되지 않습니다. 인증 후 세션 ID가 새로 발급되면 자동으로 무효가 됩니다.
    """
    raw = to_bytes(nonce)
    if not raw:
        raise ValueError("presession nonce must not be empty")
    return PRESESSION_PREFIX + raw
