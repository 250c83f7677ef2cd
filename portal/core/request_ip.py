import ipaddress

from fastapi import Request

from portal.core.config import settings

FORWARDING_HEADERS = (
    "x-forwarded-for",
    "x-real-ip",
    "x-client-ip",
    "cf-connecting-ip",
    "x-forwarded",
    "forwarded-for",
    "forwarded",
)

FALLBACK_IP = "127.0.0.1"


def _ipv4(value: str) -> ipaddress.IPv4Address | None:
    try:
        return ipaddress.IPv4Address(value.strip())
    except ValueError:
        return None


def get_client_ip(request: Request) -> str:
    """
    Best-effort client IPv4 behind proxies. Public addresses from the forwarding
    headers win over private ones; IPv6 values are ignored.
    """
    for header in FORWARDING_HEADERS:
        value = request.headers.get(header)
        if not value:
            continue
        candidates = [ip for ip in (_ipv4(part) for part in value.split(",")) if ip]
        for ip in candidates:
            if not ip.is_private:
                return str(ip)
        if candidates:
            return str(candidates[0])

    if request.client and _ipv4(request.client.host or ""):
        return request.client.host
    return FALLBACK_IP


def _is_trusted_proxy(host: str, trusted: list[str]) -> bool:
    try:
        addr = ipaddress.ip_address(host)
    except ValueError:
        return False
    return any(addr in ipaddress.ip_network(net, strict=False) for net in trusted)


def get_rate_limit_identity(request: Request, trusted_proxies: list[str] | None = None) -> str:
    """
    Address used for throttling. Forwarding headers are client-controlled, so
    they only count when the socket peer is one of the configured proxies.
    """
    if trusted_proxies is None:
        trusted_proxies = settings.TRUSTED_PROXIES
    peer = request.client.host if request.client else None
    if not peer:
        return FALLBACK_IP
    if trusted_proxies and _is_trusted_proxy(peer, trusted_proxies):
        return get_client_ip(request)
    return peer
