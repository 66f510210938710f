"""Origin / Referer 기반 요청 출처 검증.

토큰 검증과 독립적으로 동작하는 심층 방어 계층입니다.
브라우저가 설정하는 Origin 헤더를 우선 사용하고, 없으면 Referer의
scheme+host+port 부분만 사용합니다.
"""

from collections.abc import Mapping, Sequence
from urllib.parse import urlsplit

from csrf_guard.models import CheckResult, RejectReason

DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_origin(value: str | None) -> str | None:
    """URL 또는 Origin 값을 ``scheme://host:port`` 형태로 정규화합니다.

    기본 포트는 명시적으로 붙이므로 ``https://a.com`` 과 ``https://a.com:443`` 은
    같은 값이 됩니다. 경로/쿼리는 버립니다.

    Args:
        value: Origin 헤더, Referer 헤더 또는 설정값

    Returns:
        정규화된 origin. 파싱할 수 없거나 opaque origin("null")이면 None

    Example:
        >>> normalize_origin("HTTPS://Example.org/path?q=1")
        'https://example.org:443'
        >>> normalize_origin("null") is None
        True
    """
    if not value:
        return None
    value = value.strip()
    if not value or value.lower() == "null":
        return None

    try:
        parts = urlsplit(value)
        port = parts.port
    except ValueError:
        # 잘못된 포트 또는 IPv6 리터럴
        return None

    scheme = parts.scheme.lower()
    if scheme not in DEFAULT_PORTS:
        return None
    host = parts.hostname
    if not host:
        return None
    # userinfo가 포함된 값은 호스트 혼동에 쓰일 수 있으므로 거부
    if parts.username is not None or parts.password is not None:
        return None

    if ":" in host:
        host = f"[{host}]"
    if port is None:
        port = DEFAULT_PORTS[scheme]
    return f"{scheme}://{host}:{port}"


def _header(headers: Mapping[str, str], name: str) -> str | None:
    # starlette Headers는 대소문자 무시, 일반 dict는 두 형태 모두 확인
    return headers.get(name) or headers.get(name.lower())


def source_origin(origin_header: str | None, referer_header: str | None) -> str | None:
    """요청 출처 값을 선택합니다 (Origin 우선, 없으면 Referer).

    Origin이 "null"이어도 존재하는 값으로 취급합니다. opaque origin은
    검증 단계에서 불일치로 처리됩니다.
    """
    if origin_header and origin_header.strip():
        return origin_header
    if referer_header and referer_header.strip():
        return referer_header
    return None


def verify_origin(
    source: str | None,
    target: str,
    *,
    allow_missing: bool = False,
) -> CheckResult:
    """요청 출처가 기대하는 대상 origin과 정확히 일치하는지 확인합니다.

    문자열 접두사 비교를 하지 않으므로 ``https://example.org.attacker.com`` 은
    ``https://example.org`` 와 일치하지 않습니다.

    Args:
        source: Origin 헤더 값 또는 Referer URL
        target: 신뢰할 수 있는 설정에서 결정된 대상 origin
        allow_missing: 출처 헤더가 모두 없을 때 통과시킬지 여부

    Returns:
        CheckResult (NO_ORIGIN_DATA 또는 ORIGIN_MISMATCH로 거부)
    """
    if source is None or not source.strip():
        if allow_missing:
            return CheckResult.accept()
        return CheckResult.reject(RejectReason.NO_ORIGIN_DATA)

    normalized_source = normalize_origin(source)
    normalized_target = normalize_origin(target)
    if normalized_source is None or normalized_target is None:
        return CheckResult.reject(RejectReason.ORIGIN_MISMATCH)

    if normalized_source != normalized_target:
        return CheckResult.reject(RejectReason.ORIGIN_MISMATCH)
    return CheckResult.accept()


def verify_request_origin(
    headers: Mapping[str, str],
    targets: Sequence[str],
    *,
    allow_missing: bool = False,
) -> CheckResult:
    """요청 헤더에서 출처를 읽어 허용된 대상 origin 중 하나와 비교합니다."""
    source = source_origin(_header(headers, "Origin"), _header(headers, "Referer"))

    if source is None:
        return verify_origin(None, "", allow_missing=allow_missing)

    for target in targets:
        result = verify_origin(source, target, allow_missing=allow_missing)
        if result:
            return result
    return CheckResult.reject(RejectReason.ORIGIN_MISMATCH)
