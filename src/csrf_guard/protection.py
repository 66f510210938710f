"""CSRF Protection for state-changing operations

HMAC 서명 Double Submit 패턴 + Origin 검증
세션 ID에 암호학적으로 바인딩된 토큰을 발급하고 검증합니다.
"""

from collections.abc import Mapping, Sequence

from csrf_guard.config import CSRFSettings
from csrf_guard.issuer import issue_token
from csrf_guard.keyring import SecretKeyring
from csrf_guard.logging import security_logger
from csrf_guard.models import CheckResult
from csrf_guard.origin import verify_request_origin
from csrf_guard.validator import validate_token


class CSRFProtection:
    """CSRF 토큰 생성 및 검증

    키링과 설정을 묶어 발급/검증/출처 확인을 제공합니다. 내부 상태는
    키링 참조뿐이므로 여러 요청에서 동시에 사용해도 안전합니다.

    Args:
        settings: CSRF 설정
        keyring: 키링 (None이면 설정에서 생성)

    Example:
        >>> protection = CSRFProtection(get_settings())
        >>> token = protection.generate_token(session_id)
        >>> protection.validate_token(token, session_id).accepted
        True
    """

    def __init__(self, settings: CSRFSettings, keyring: SecretKeyring | None = None) -> None:
        self.settings = settings
        self.keyring = keyring or SecretKeyring.from_settings(settings)

    def generate_token(self, session_id: str | bytes) -> str:
        """현재 키로 세션 바인딩 토큰 생성

        Returns:
            ``<tag hex>.<random hex>`` 형식의 토큰
        """
        token = issue_token(
            session_id,
            self.keyring.primary,
            random_bytes=self.settings.token_random_bytes,
        )
        return token.serialize()

    def validate_token(
        self, presented: str | None, session_id: str | bytes | None
    ) -> CheckResult:
        """유지 중인 모든 키로 토큰 검증 (최신 키 우선)"""
        return validate_token(presented, session_id, self.keyring.keys)

    def verify_origin(
        self, headers: Mapping[str, str], targets: Sequence[str]
    ) -> CheckResult:
        """Origin/Referer가 대상 origin 중 하나와 일치하는지 확인"""
        return verify_request_origin(
            headers, targets, allow_missing=self.settings.allow_missing_origin
        )

    def rotate_secret(self, new_key: str | bytes, *, retain: int = 1) -> None:
        """시크릿 로테이션 (이전 키 retain개 유지)"""
        self.keyring.rotate(new_key, retain=retain)
        security_logger.log_key_rotated(len(self.keyring))
