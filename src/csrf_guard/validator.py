"""안티 포저리 토큰 검증.

제시된 토큰의 난수 컴포넌트와 현재 세션 ID로 태그를 다시 계산해 상수 시간으로
비교합니다. 순수 함수이며 로그 기록은 호출자의 책임입니다.
"""

from collections.abc import Sequence

from csrf_guard.crypto import canonical_message, compute_tag, constant_time_equals, to_bytes
from csrf_guard.exceptions import MalformedTokenError
from csrf_guard.models import AntiForgeryToken, CheckResult, RejectReason


def validate_token(
    presented: str | None,
    session_id: str | bytes | None,
    secret: bytes | Sequence[bytes],
) -> CheckResult:
    """제시된 토큰이 현재 세션에 유효한지 검증합니다.

    Args:
        presented: 요청에서 추출한 직렬화 토큰
        session_id: 현재 세션 식별자
        secret: HMAC 키 또는 키 목록 (최신 키 우선, 로테이션 중 이전 키 허용)

    Returns:
        CheckResult.accept() 또는 다음 사유의 reject:
            - MISSING_TOKEN: 토큰이 없거나 빈 문자열
            - MALFORMED_TOKEN: 구분자 누락, hex 디코딩 실패
            - NO_SESSION: 바인딩할 세션 ID가 없음
            - INVALID_SIGNATURE: 형식은 올바르나 태그 불일치
    """
    if not presented:
        return CheckResult.reject(RejectReason.MISSING_TOKEN)

    try:
        token = AntiForgeryToken.parse(presented)
    except MalformedTokenError:
        return CheckResult.reject(RejectReason.MALFORMED_TOKEN)

    if not session_id:
        return CheckResult.reject(RejectReason.NO_SESSION)

    if isinstance(secret, (bytes, bytearray)):
        keys = (to_bytes(secret),)
    else:
        keys = tuple(to_bytes(key) for key in secret)
    message = canonical_message(to_bytes(session_id), token.random)

    for key in keys:
        if constant_time_equals(token.tag, compute_tag(key, message)):
            return CheckResult.accept()

    return CheckResult.reject(RejectReason.INVALID_SIGNATURE)
