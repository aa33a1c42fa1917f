"""Google Safe Browsing v4 check for known-bad URLs."""

import logging
from typing import Optional

import httpx

from intel.http import lookup_client, lookup_timeout
from intel.schemas import ThreatRecord

logger = logging.getLogger(__name__)

SAFE_BROWSING_URL = "https://safebrowsing.googleapis.com/v4/threatMatches:find"
THREAT_TYPES = (
    "MALWARE",
    "SOCIAL_ENGINEERING",
    "UNWANTED_SOFTWARE",
    "POTENTIALLY_HARMFUL_APPLICATION",
)


def _request_body(url: str) -> dict:
    return {
        "client": {"clientId": "redflag", "clientVersion": "1.0"},
        "threatInfo": {
            "threatTypes": list(THREAT_TYPES),
            "platformTypes": ["ANY_PLATFORM"],
            "threatEntryTypes": ["URL"],
            "threatEntries": [{"url": url}],
        },
    }


async def safe_browsing(
    url: str,
    api_key: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout_s: float = 8.0,
) -> ThreatRecord:
    """Matched threat types for `url`. A missing key is reported, not raised."""
    api_key = (api_key or "").strip()
    if not api_key:
        return ThreatRecord(success=False, error="No API key")

    try:
        async with lookup_client(client, timeout_s) as http:
            resp = await http.post(
                SAFE_BROWSING_URL,
                params={"key": api_key},
                json=_request_body(url),
                timeout=lookup_timeout(timeout_s),
            )
            if resp.status_code >= 400:
                logger.warning(f"Safe Browsing returned HTTP {resp.status_code}")
                return ThreatRecord(success=False, error=f"HTTP {resp.status_code}")
            data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.debug(f"Safe Browsing check failed for {url}: {type(e).__name__}: {e}")
        return ThreatRecord(success=False, error=f"{type(e).__name__}: {e}")

    matches = data.get("matches") if isinstance(data, dict) else None
    threats = [
        m["threatType"]
        for m in (matches if isinstance(matches, list) else [])
        if isinstance(m, dict) and isinstance(m.get("threatType"), str)
    ]
    # One threat type can match on several platforms
    threats = list(dict.fromkeys(threats))
    return ThreatRecord(threats=threats, clean=not threats, success=True)
