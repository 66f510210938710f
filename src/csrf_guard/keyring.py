"""시크릿 키 로테이션을 위한 키링.

최신 키가 앞에 오는 불변 튜플을 보관합니다. 로테이션은 튜플 참조를 한 번에
교체하므로 동시 요청은 항상 완전한 이전 목록 또는 새 목록 중 하나를 봅니다.
이전 키를 잠시 유지하면 로테이션 직전에 발급된 토큰도 계속 검증됩니다.
"""

import threading
from collections.abc import Iterable
from typing import TYPE_CHECKING

from csrf_guard.crypto import MIN_SECRET_BYTES, to_bytes
from csrf_guard.exceptions import SecretConfigurationError

if TYPE_CHECKING:
    from csrf_guard.config import CSRFSettings


def _check_key(key: bytes) -> bytes:
    if len(key) < MIN_SECRET_BYTES:
        raise SecretConfigurationError(
            f"CSRF secret must be at least {MIN_SECRET_BYTES} bytes. Current length: {len(key)} bytes"
        )
    return key


class SecretKeyring:
    """HMAC 키 목록 (최신 키 우선).

    Args:
        keys: 키 목록. 첫 번째 키가 발급에 사용됩니다.

    Raises:
        SecretConfigurationError: 키가 없거나 32바이트 미만인 키가 있는 경우

    Example:
        >>> keyring = SecretKeyring([new_key, old_key])
        >>> issue_token(session_id, keyring.primary)
        >>> validate_token(token, session_id, keyring.keys)
    """

    def __init__(self, keys: Iterable[str | bytes]) -> None:
        snapshot = tuple(_check_key(to_bytes(key)) for key in keys)
        if not snapshot:
            raise SecretConfigurationError("CSRF secret is not configured")
        self._keys = snapshot
        self._write_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: "CSRFSettings") -> "SecretKeyring":
        """설정의 secret_key와 previous_secret_keys로 키링을 생성합니다."""
        return cls(
            [
                settings.secret_key.get_secret_value(),
                *(key.get_secret_value() for key in settings.previous_secret_keys),
            ]
        )

    @property
    def primary(self) -> bytes:
        """토큰 발급에 사용할 현재 키"""
        return self._keys[0]

    @property
    def keys(self) -> tuple[bytes, ...]:
        """검증에 사용할 키 스냅샷"""
        return self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def rotate(self, new_key: str | bytes, *, retain: int = 1) -> None:
        """새 키를 설치하고 이전 키 중 retain개를 검증용으로 유지합니다.

        Args:
            new_key: 새 HMAC 키 (최소 32바이트)
            retain: 유지할 이전 키 수 (0이면 이전 토큰 즉시 무효)
        """
        if retain < 0:
            raise ValueError("retain must be >= 0")
        key = _check_key(to_bytes(new_key))
        with self._write_lock:
            self._keys = (key, *self._keys[:retain])
