"""Pre-flight check that a user-supplied URL points at the public internet.

Callers run this before handing a URL to the analysis pipeline; the
lookups themselves do not repeat it.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

_BLOCKED_SUFFIXES = (".localhost", ".local", ".internal")
_CGNAT = ipaddress.ip_network("100.64.0.0/10")


@dataclass(frozen=True)
class UrlCheck:
    ok: bool
    reason: Optional[str] = None
    normalized_url: Optional[str] = None
    hostname: Optional[str] = None


def is_private_ip(value: str) -> bool:
    """Loopback, private, link-local, CGNAT, unspecified, or not an IP at all."""
    try:
        ip = ipaddress.ip_address(value.split("%", 1)[0])
    except ValueError:
        return True
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    if isinstance(ip, ipaddress.IPv4Address) and ip in _CGNAT:
        return True
    return ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_unspecified or ip.is_reserved


async def resolves_to_private_address(hostname: str) -> bool:
    loop = asyncio.get_running_loop()
    try:
        infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError) as e:
        # Unresolvable hosts are not blocked on that basis alone
        logger.debug(f"Pre-flight resolution failed for {hostname}: {e}")
        return False
    return any(is_private_ip(info[4][0]) for info in infos)


async def validate_public_http_url(raw_value: str) -> UrlCheck:
    try:
        parsed = urlsplit((raw_value or "").strip())
        hostname = (parsed.hostname or "").lower()
    except ValueError:
        return UrlCheck(ok=False, reason="Invalid URL format")

    if parsed.scheme not in {"http", "https"}:
        return UrlCheck(ok=False, reason="Only HTTP/HTTPS URLs are allowed")
    if not hostname:
        return UrlCheck(ok=False, reason="Invalid URL format")
    if parsed.username or parsed.password:
        return UrlCheck(ok=False, reason="Credentialed URLs are not allowed")
    if hostname == "localhost" or hostname.endswith(_BLOCKED_SUFFIXES):
        return UrlCheck(ok=False, reason="Local/internal hostnames are blocked")

    try:
        ipaddress.ip_address(hostname)
        is_literal = True
    except ValueError:
        is_literal = False
    if is_literal and is_private_ip(hostname):
        return UrlCheck(ok=False, reason="Private or loopback IP ranges are blocked")

    if await resolves_to_private_address(hostname):
        return UrlCheck(ok=False, reason="Host resolves to a private/internal address")

    return UrlCheck(ok=True, normalized_url=parsed.geturl(), hostname=parsed.hostname)
