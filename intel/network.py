"""DNS resolution (dns.google DNS-over-HTTPS) followed by GeoIP (ipwho.is).

One tool, because the GeoIP step needs the resolved address.
"""

import logging
from typing import Optional

import httpx

from intel.http import get_json, lookup_client
from intel.schemas import NetworkRecord

logger = logging.getLogger(__name__)

DOH_URL = "https://dns.google/resolve"
GEOIP_URL = "https://ipwho.is"
_A_RECORD = 1


async def resolve_dns(domain: str, client: httpx.AsyncClient, timeout_s: float = 8.0) -> Optional[str]:
    """First A-record address for `domain`, or None."""
    try:
        data = await get_json(client, DOH_URL, params={"name": domain, "type": "A"}, timeout_s=timeout_s)
    except (httpx.HTTPError, ValueError) as e:
        logger.debug(f"DNS lookup failed for {domain}: {type(e).__name__}: {e}")
        return None

    answers = data.get("Answer") if isinstance(data, dict) else None
    if not isinstance(answers, list) or not answers:
        return None

    # CNAME chains come back ahead of the address record
    for answer in answers:
        if isinstance(answer, dict) and answer.get("type") == _A_RECORD and answer.get("data"):
            return str(answer["data"])
    first = answers[0]
    if isinstance(first, dict) and first.get("data"):
        return str(first["data"])
    return None


async def lookup_geoip(ip: str, client: httpx.AsyncClient, timeout_s: float = 8.0) -> Optional[dict]:
    """Country/city/ISP/org for an IP, or None."""
    try:
        data = await get_json(client, f"{GEOIP_URL}/{ip}", timeout_s=timeout_s)
    except (httpx.HTTPError, ValueError) as e:
        logger.debug(f"GeoIP lookup failed for {ip}: {type(e).__name__}: {e}")
        return None

    if not isinstance(data, dict) or data.get("success") is False:
        return None
    country = data.get("country")
    if not isinstance(country, str) or not country:
        return None

    connection = data.get("connection") if isinstance(data.get("connection"), dict) else {}
    return {
        "country": country,
        "city": data.get("city") if isinstance(data.get("city"), str) else None,
        "isp": connection.get("isp") if isinstance(connection.get("isp"), str) else None,
        "org": connection.get("org") if isinstance(connection.get("org"), str) else None,
    }


async def dns_geoip(
    domain: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout_s: float = 8.0,
) -> NetworkRecord:
    """Resolve `domain`, then geolocate the address. GeoIP is skipped when DNS fails."""
    async with lookup_client(client, timeout_s) as http:
        ip = await resolve_dns(domain, http, timeout_s=timeout_s)
        if not ip:
            return NetworkRecord(success=False)

        geo = await lookup_geoip(ip, http, timeout_s=timeout_s) or {}

    return NetworkRecord(
        ip=ip,
        country=geo.get("country") or None,
        city=geo.get("city") or None,
        isp=geo.get("isp") or None,
        org=geo.get("org") or None,
        success=True,
    )
