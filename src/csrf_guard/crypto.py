"""토큰 발급/검증에 공통으로 쓰이는 암호 프리미티브.

- 안전한 난수 생성 (secrets)
- 길이 접두사가 붙은 정규 메시지 구성
- HMAC-SHA256 태그 계산
- 상수 시간 비교
"""

import hashlib
import hmac
import secrets

# HMAC-SHA256 키 최소 길이 (바이트)
MIN_SECRET_BYTES = 32

# 난수 컴포넌트 최소/기본 길이 (바이트)
MIN_RANDOM_BYTES = 16
DEFAULT_RANDOM_BYTES = 32

TAG_BYTES = hashlib.sha256().digest_size

_SEPARATOR = b"!"


def to_bytes(value: str | bytes | bytearray) -> bytes:
    """str은 UTF-8로 인코딩하고 bytes/bytearray는 bytes로 반환합니다."""
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return value.encode("utf-8")


def random_component(size: int = DEFAULT_RANDOM_BYTES) -> bytes:
    """암호학적으로 안전한 난수 바이트열을 생성합니다.

    Args:
        size: 생성할 바이트 수 (최소 16)

    Raises:
        ValueError: size가 최소 길이보다 작은 경우
    """
    if size < MIN_RANDOM_BYTES:
        raise ValueError(f"random component must be at least {MIN_RANDOM_BYTES} bytes")
    return secrets.token_bytes(size)


def canonical_message(session_id: bytes, random_value: bytes) -> bytes:
    """HMAC 입력 메시지를 구성합니다.

    형식: ``len(session_id) ! session_id ! len(random) ! random``

    길이 접두사로 세션 ID와 난수의 경계를 고정하므로, 서로 다른
    (session_id, random) 쌍이 같은 메시지로 이어지지 않습니다.
    """
    return _SEPARATOR.join(
        (
            str(len(session_id)).encode("ascii"),
            session_id,
            str(len(random_value)).encode("ascii"),
            random_value,
        )
    )


def compute_tag(secret: bytes, message: bytes) -> bytes:
    """HMAC-SHA256(secret, message)"""
    return hmac.new(secret, message, hashlib.sha256).digest()


def constant_time_equals(left: bytes, right: bytes) -> bool:
    """실행 시간이 불일치 위치와 무관한 비교.

    hmac.compare_digest는 길이가 다를 때도 내용에 따른 조기 종료를 하지 않습니다.
    """
    return hmac.compare_digest(left, right)
