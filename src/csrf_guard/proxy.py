"""Trusted-proxy aware request inspection.

Forwarding headers (X-Forwarded-For, X-Forwarded-Host, X-Forwarded-Proto)
are only honoured when the directly connected peer is a trusted proxy.
Otherwise an attacker could pick the target origin the Origin header is
compared against.
"""

import ipaddress

from starlette.requests import Request

from csrf_guard.config import CSRFSettings
from csrf_guard.origin import normalize_origin

# Trusted proxies (RFC1918 private ranges + localhost)
TRUSTED_PROXIES = [
    "10.0.0.0/8",  # Private network (Class A)
    "172.16.0.0/12",  # Private network (Class B)
    "192.168.0.0/16",  # Private network (Class C)
    "127.0.0.0/8",  # Localhost
    "::1/128",  # IPv6 localhost
    "fd00::/8",  # IPv6 private network
]


def is_trusted_proxy(ip: str) -> bool:
    """Check if IP is a trusted proxy.

    Example:
        >>> is_trusted_proxy("127.0.0.1")
        True
        >>> is_trusted_proxy("1.2.3.4")  # Public IP
        False
    """
    try:
        ip_addr = ipaddress.ip_address(ip)
        for trusted_network in TRUSTED_PROXIES:
            if ip_addr in ipaddress.ip_network(trusted_network):
                return True
        return False
    except ValueError:
        # Invalid IP address
        return False


def _from_trusted_proxy(request: Request) -> bool:
    peer = request.client.host if request.client else None
    return bool(peer) and is_trusted_proxy(peer)


def _first_value(header: str | None) -> str | None:
    # X-Forwarded-*: client, proxy1, proxy2
    if not header:
        return None
    value = header.split(",")[0].strip()
    return value or None


def get_client_ip(request: Request) -> str:
    """Extract client IP address with trusted proxy validation.

    Used for logging rejected requests only; it never affects acceptance.
    """
    proxy_ip = request.client.host if request.client else None

    if proxy_ip and is_trusted_proxy(proxy_ip):
        forwarded_for = _first_value(request.headers.get("X-Forwarded-For"))
        if forwarded_for:
            return forwarded_for

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

    if proxy_ip:
        return proxy_ip

    return "unknown"


def resolve_target_origins(request: Request, settings: CSRFSettings) -> list[str]:
    """Resolve the origin(s) this request is expected to come from.

    Resolution order:
    1. CSRF_TRUSTED_ORIGINS from server configuration
    2. X-Forwarded-Host / X-Forwarded-Proto, only if trust_forwarded_host is
       enabled and the peer is a trusted proxy
    3. Request scheme + Host header

    Args:
        request: Incoming request
        settings: CSRF settings

    Returns:
        Normalized target origins (empty if none can be determined)
    """
    if settings.trusted_origins:
        return [origin for origin in map(normalize_origin, settings.trusted_origins) if origin]

    scheme = request.url.scheme
    host = request.headers.get("Host")

    if settings.trust_forwarded_host and _from_trusted_proxy(request):
        forwarded_host = _first_value(request.headers.get("X-Forwarded-Host"))
        if forwarded_host:
            host = forwarded_host
        forwarded_proto = _first_value(request.headers.get("X-Forwarded-Proto"))
        if forwarded_proto:
            scheme = forwarded_proto

    if not host:
        return []

    origin = normalize_origin(f"{scheme}://{host}")
    return [origin] if origin else []
