"""
Client IP Resolution

Resolves the originating client address of a request, honouring
proxy headers only when the direct peer is a trusted proxy.

DESIGN RULES:
- Untrusted peers are taken at face value
- Forwarded and X-Forwarded-For must agree, else ConflictingHeadersError
"""

import ipaddress
import re
from typing import Iterable, List, Optional, Union

from starlette.requests import Request

from profiler.exceptions import ConflictingHeadersError


IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

_FORWARDED_FOR = re.compile(r'for=("?)([^;,"]+)\1', re.IGNORECASE)


def parse_networks(proxies: Iterable[str]) -> List[IPNetwork]:
    """Parse trusted proxy entries (addresses or CIDR ranges)."""
    return [ipaddress.ip_network(proxy.strip(), strict=False) for proxy in proxies if proxy.strip()]


def _normalize(value: str) -> Optional[str]:
    """Strip ports and IPv6 brackets; None for anything that is not an IP."""
    value = value.strip()
    if value.startswith("["):
        value = value[1:].split("]", 1)[0]
    elif value.count(":") == 1:
        value = value.split(":", 1)[0]

    try:
        return str(ipaddress.ip_address(value))
    except ValueError:
        return None


def _is_trusted(address: str, networks: List[IPNetwork]) -> bool:
    ip = ipaddress.ip_address(address)
    return any(ip in network for network in networks)


def _forwarded_values(header: Optional[str]) -> List[str]:
    if not header:
        return []
    return [match.group(2) for match in _FORWARDED_FOR.finditer(header)]


def _x_forwarded_values(header: Optional[str]) -> List[str]:
    if not header:
        return []
    return [value.strip() for value in header.split(",") if value.strip()]


def resolve_client_ips(request: Request, trusted_proxies: Iterable[str] = ()) -> List[str]:
    """
    Resolve the client address chain, most trusted-distant first.

    Raises:
        ConflictingHeadersError: if Forwarded and X-Forwarded-For disagree
    """
    remote = request.client.host if request.client else None
    if remote is None:
        return []

    networks = parse_networks(trusted_proxies)
    remote_ip = _normalize(remote)
    if remote_ip is None or not _is_trusted(remote_ip, networks):
        return [remote]

    forwarded = _forwarded_values(request.headers.get("forwarded"))
    x_forwarded = _x_forwarded_values(request.headers.get("x-forwarded-for"))

    if forwarded and x_forwarded and forwarded != x_forwarded:
        raise ConflictingHeadersError(
            "The request has both a trusted \"Forwarded\" header and a trusted "
            "\"X-Forwarded-For\" header, conflicting with each other."
        )

    chain = (forwarded or x_forwarded) + [remote_ip]
    client_ips = []
    first_trusted = None
    for value in chain:
        address = _normalize(value)
        if address is None:
            continue
        if _is_trusted(address, networks):
            first_trusted = first_trusted or address
            continue
        client_ips.append(address)

    if not client_ips:
        return [first_trusted]
    return list(reversed(client_ips))


def resolve_client_ip(request: Request, trusted_proxies: Iterable[str] = ()) -> Optional[str]:
    """The single most likely client address of the request."""
    ips = resolve_client_ips(request, trusted_proxies)
    return ips[0] if ips else None
