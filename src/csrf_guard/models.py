"""CSRF 데이터 모델 모듈.

안티 포저리 토큰, 검증 결과(Accept / Reject), 거부 사유를 정의합니다.
"""

import re
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from csrf_guard.exceptions import MalformedTokenError

# 직렬화 토큰 최대 길이 (hex 디코딩 전 차단)
MAX_TOKEN_LENGTH = 1024

_HEX_PATTERN = re.compile(r"[0-9a-f]+")


class RejectReason(StrEnum):
    """검증 거부 사유."""

    MALFORMED_TOKEN = "malformed_token"
    MISSING_TOKEN = "missing_token"
    INVALID_SIGNATURE = "invalid_signature"
    ORIGIN_MISMATCH = "origin_mismatch"
    NO_ORIGIN_DATA = "no_origin_data"
    NO_SESSION = "no_session"


class CheckResult(BaseModel):
    """토큰/출처 검증 결과.

    Accept 또는 Reject(reason) 중 하나입니다. 예외 대신 결과를 반환하므로
    호출자는 모든 거부 경로를 명시적으로 처리해야 합니다.

    Attributes:
        accepted: 통과 여부
        reason: 거부 사유 (통과 시 None)

    Example:
        >>> result = validate_token(token, "sess-123", secret)
        >>> if not result:
        ...     logger.warning("csrf_rejected", reason=result.reason)
    """

    model_config = ConfigDict(frozen=True)

    accepted: bool
    reason: RejectReason | None = None

    @classmethod
    def accept(cls) -> "CheckResult":
        return cls(accepted=True)

    @classmethod
    def reject(cls, reason: RejectReason) -> "CheckResult":
        return cls(accepted=False, reason=reason)

    def __bool__(self) -> bool:
        return self.accepted


class AntiForgeryToken(BaseModel):
    """세션에 바인딩된 안티 포저리 토큰.

    직렬화 형식은 ``hex(tag) + "." + hex(random)`` 이며 세션 ID는
    HMAC 입력에만 사용되고 토큰 문자열에는 포함되지 않습니다.
    만료 필드는 없습니다. 토큰의 유효성은 세션의 존재에 따릅니다.

    Attributes:
        tag: HMAC-SHA256 인증 태그
        random: 발급마다 새로 생성되는 난수 컴포넌트
    """

    model_config = ConfigDict(frozen=True)

    tag: bytes
    random: bytes

    def serialize(self) -> str:
        """외부 전달용 문자열로 직렬화합니다."""
        return f"{self.tag.hex()}.{self.random.hex()}"

    def __str__(self) -> str:
        return self.serialize()

    @classmethod
    def parse(cls, value: str) -> "AntiForgeryToken":
        """직렬화된 토큰 문자열을 파싱합니다.

        Args:
            value: ``<tag hex>.<random hex>`` 형식의 문자열

        Returns:
            파싱된 AntiForgeryToken

        Raises:
            MalformedTokenError: 구분자가 없거나 hex 디코딩에 실패한 경우
        """
        if len(value) > MAX_TOKEN_LENGTH:
            raise MalformedTokenError("토큰 길이가 허용 범위를 초과했습니다")

        tag_hex, separator, random_hex = value.partition(".")
        if not separator:
            raise MalformedTokenError("토큰 구분자가 없습니다")

        # bytes.fromhex는 공백과 대문자를 허용하므로 정규식으로 먼저 제한
        for part in (tag_hex, random_hex):
            if not _HEX_PATTERN.fullmatch(part) or len(part) % 2:
                raise MalformedTokenError("토큰이 올바른 hex 형식이 아닙니다")

        return cls(tag=bytes.fromhex(tag_hex), random=bytes.fromhex(random_hex))
