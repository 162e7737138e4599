"""
IP address helpers: IPv4-mapped IPv6 normalization, CIDR matching and
client address resolution
"""

import ipaddress
from typing import Optional

import structlog

logger = structlog.get_logger()


def normalize_ipv4_mapped(ip: str) -> str:
    """
    Normalize an IPv4-mapped IPv6 address to dotted-quad IPv4

    Handles ``::ffff:192.0.2.1``, ``::FFFF:192.0.2.1``,
    ``0:0:0:0:0:ffff:192.0.2.1`` and ``::ffff:c000:201``. Anything else,
    including mapped forms with out-of-range octets, is returned unchanged.
    """
    if not ip or ":" not in ip:
        return ip

    try:
        address = ipaddress.IPv6Address(ip)
    except ValueError:
        return ip

    if address.ipv4_mapped is not None:
        return str(address.ipv4_mapped)
    return ip


def _parse_address(ip: str) -> Optional[ipaddress._BaseAddress]:
    try:
        return ipaddress.ip_address(normalize_ipv4_mapped(ip.strip()))
    except ValueError:
        return None


def _parse_network(cidr: str) -> Optional[ipaddress._BaseNetwork]:
    try:
        # A missing prefix means a full-length host match
        return ipaddress.ip_network(cidr.strip(), strict=False)
    except ValueError:
        return None


def ip_in_cidr(ip: str, cidr: str) -> bool:
    """
    Check whether an IP address falls inside a CIDR block

    Malformed input on either side and mixed IPv4/IPv6 comparisons
    return False instead of raising.
    """
    if not ip or not cidr:
        return False

    address = _parse_address(ip)
    network = _parse_network(cidr)
    if address is None or network is None:
        return False

    if address.version != network.version:
        return False

    mask = int(network.netmask)
    return (int(address) & mask) == (int(network.network_address) & mask)


def get_client_ip(request, trust_proxy: bool = False) -> str:
    """
    Resolve the caller's IP address from a request

    Forwarding headers are only honoured when ``trust_proxy`` is set,
    otherwise any client could spoof its address on a direct connection.

    Args:
        request: Starlette/FastAPI request
        trust_proxy: Whether X-Forwarded-For / X-Real-IP may be trusted

    Returns:
        str: Normalized client IP, or "" when it cannot be determined
    """
    if trust_proxy:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            first = forwarded_for.split(",")[0].strip()
            if first:
                return normalize_ipv4_mapped(first)

        real_ip = request.headers.get("x-real-ip")
        if real_ip and real_ip.strip():
            return normalize_ipv4_mapped(real_ip.strip())

    client = request.client
    if client is None or not client.host:
        logger.debug("Request has no peer address")
        return ""
    return normalize_ipv4_mapped(client.host)
