"""Shared httpx plumbing for the intel lookups."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Optional

import httpx

_HEADERS = {
    "User-Agent": "redflag-intel/1.0 (+threat-intel lookups)",
    "Accept": "application/json",
}
RDAP_HEADERS = {"Accept": "application/rdap+json"}


def lookup_timeout(total_s: float) -> httpx.Timeout:
    return httpx.Timeout(total_s, connect=min(total_s, 5.0))


@asynccontextmanager
async def lookup_client(client: Optional[httpx.AsyncClient], timeout_s: float) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the caller's client, or a short-lived one closed on exit."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(headers=_HEADERS, timeout=lookup_timeout(timeout_s), follow_redirects=True) as owned:
        yield owned


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout_s: float,
    params: Optional[dict[str, Any]] = None,
    headers: Optional[dict[str, str]] = None,
) -> Any:
    """GET and decode JSON; raises httpx.HTTPError or ValueError."""
    resp = await client.get(url, params=params, headers=headers, timeout=lookup_timeout(timeout_s))
    resp.raise_for_status()
    return resp.json()
