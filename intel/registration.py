"""Domain registration lookup: RDAP with a Whoxy WHOIS fallback.

Pipeline: IANA bootstrap -> registry RDAP -> registrar referral -> vCard
parsing. When RDAP yields no registrant identity and a WHOIS key is
configured, Whoxy fills the gaps.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from intel.domains import format_domain_age
from intel.http import RDAP_HEADERS, get_json, lookup_client
from intel.schemas import RegistrationRecord

logger = logging.getLogger(__name__)

IANA_BOOTSTRAP_URL = "https://data.iana.org/rdap/dns.json"
WHOXY_URL = "https://api.whoxy.com/"

PRIVACY_KEYWORDS = (
    "privacy",
    "proxy",
    "whoisguard",
    "domains by proxy",
    "withheld",
    "private",
    "data protected",
)


class RdapBootstrap:
    """IANA RDAP bootstrap directory, fetched once and then read-only.

    Concurrent first use may fetch twice; the last write wins and both
    copies are identical, so readers never see a partial table.
    """

    def __init__(self, url: str = IANA_BOOTSTRAP_URL) -> None:
        self.url = url
        self._services: Optional[list] = None

    @property
    def loaded(self) -> bool:
        return self._services is not None

    async def server_for(self, tld: str, client: httpx.AsyncClient, timeout_s: float = 8.0) -> Optional[str]:
        """Base URL of the authoritative RDAP server for `tld`, or None."""
        if self._services is None:
            try:
                data = await get_json(client, self.url, timeout_s=timeout_s)
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"RDAP bootstrap fetch failed: {type(e).__name__}: {e}")
                return None
            services = data.get("services") if isinstance(data, dict) else None
            if not isinstance(services, list):
                return None
            self._services = services

        tld = tld.lower()
        for entry in self._services:
            try:
                tlds, servers = entry[0], entry[1]
            except (IndexError, KeyError, TypeError):
                continue
            if not isinstance(tlds, list) or not isinstance(servers, list) or not servers:
                continue
            server = servers[0]
            if tld in tlds and isinstance(server, str) and server:
                return server if server.endswith("/") else f"{server}/"
        return None


_default_bootstrap = RdapBootstrap()


def default_bootstrap() -> RdapBootstrap:
    """The process-wide bootstrap cache."""
    return _default_bootstrap


# ---- vCard parsing ----

def _clean_value(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    lower = value.lower()
    if "redacted for privacy" in lower and len(lower) < 30:
        return None
    return value.strip()


def _clean_whois_value(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value.strip():
        return None
    lower = value.lower()
    if "redacted" in lower or "not available" in lower:
        return None
    return value.strip()


def is_privacy_proxy(*values: Optional[str]) -> bool:
    for value in values:
        lower = (value or "").lower()
        if any(keyword in lower for keyword in PRIVACY_KEYWORDS):
            return True
    return False


def _vcard_text(value: Any) -> Optional[str]:
    # Some registries send structured values as lists
    if isinstance(value, list):
        value = " ".join(str(v) for v in value if v)
    return value if isinstance(value, str) else None


def parse_registrant(entities: list) -> dict[str, Any]:
    """Registrant contact fields from an RDAP `entities` array."""
    for entity in entities or []:
        if not isinstance(entity, dict) or "registrant" not in (entity.get("roles") or []):
            continue
        vcard_array = entity.get("vcardArray")
        if not isinstance(vcard_array, list) or len(vcard_array) < 2 or not isinstance(vcard_array[1], list):
            continue

        fields: dict[str, Any] = {}
        for item in vcard_array[1]:
            if not isinstance(item, list) or len(item) < 4:
                continue
            kind, value = item[0], item[3]
            if kind == "fn":
                fields["registrant_name"] = _vcard_text(value)
            elif kind == "org":
                fields["registrant_org"] = _vcard_text(value)
            elif kind == "email":
                fields["registrant_email"] = _vcard_text(value)
            elif kind == "tel":
                tel = _vcard_text(value)
                fields["registrant_telephone"] = tel.removeprefix("tel:") if tel else None
            elif kind == "adr" and isinstance(value, list):
                parts = list(value) + [""] * (7 - len(value))
                fields["registrant_street"] = _vcard_text(parts[2])
                fields["registrant_city"] = _vcard_text(parts[3])
                fields["registrant_state"] = _vcard_text(parts[4])
                fields["registrant_postal_code"] = _vcard_text(parts[5])
                fields["registrant_country"] = _vcard_text(parts[6])

        name = fields.get("registrant_name")
        org = fields.get("registrant_org")
        return {
            "registrant_name": _clean_value(name),
            "registrant_org": org or None,
            "registrant_street": _clean_value(fields.get("registrant_street")),
            "registrant_city": _clean_value(fields.get("registrant_city")),
            "registrant_state": _clean_value(fields.get("registrant_state")),
            "registrant_postal_code": _clean_value(fields.get("registrant_postal_code")),
            "registrant_country": _clean_value(fields.get("registrant_country")),
            "registrant_email": fields.get("registrant_email") or None,
            "registrant_telephone": fields.get("registrant_telephone") or None,
            "privacy_protected": is_privacy_proxy(org, name),
        }
    return {}


def _registration_date(events: list) -> Optional[str]:
    for event in events or []:
        if isinstance(event, dict) and event.get("eventAction") == "registration" and event.get("eventDate"):
            return str(event["eventDate"])
    return None


def _registrar_name(entities: list) -> Optional[str]:
    for entity in entities or []:
        if not isinstance(entity, dict) or "registrar" not in (entity.get("roles") or []):
            continue
        vcard_array = entity.get("vcardArray")
        if isinstance(vcard_array, list) and len(vcard_array) > 1 and isinstance(vcard_array[1], list):
            for item in vcard_array[1]:
                if isinstance(item, list) and len(item) >= 4 and item[0] == "fn" and item[3]:
                    return str(item[3])
        return entity.get("handle") or None
    return None


def _referral_href(links: list) -> Optional[str]:
    for link in links or []:
        if isinstance(link, dict) and link.get("rel") == "related" and "/domain/" in (link.get("href") or ""):
            return link["href"]
    return None


# ---- merge priority ----

def merge_registration(primary: Optional[RegistrationRecord], *fallbacks: Optional[RegistrationRecord]) -> RegistrationRecord:
    """Combine records in priority order.

    A field keeps the first non-empty value seen. `source` names the first
    record that carried a registrant identity (or the first that answered at
    all), joined with `+whois` when WHOIS filled in behind RDAP.
    """
    records = [r for r in (primary, *fallbacks) if r is not None]
    merged: dict[str, Any] = {}
    for record in records:
        for key, value in record.model_dump(exclude={"source", "privacy_protected", "domain_age"}).items():
            if merged.get(key) is None and value is not None:
                merged[key] = value

    identity_source = next((r for r in records if r.has_registrant), None)
    answered = [r.source for r in records if r.source]
    source = None
    if identity_source is not None:
        source = identity_source.source
        if source == "whois" and answered and answered[0] != "whois":
            source = f"{answered[0].split('_')[0]}+whois"
    elif answered:
        source = answered[0]

    if identity_source is not None:
        privacy = identity_source.privacy_protected
    else:
        privacy = any(r.privacy_protected for r in records)

    merged["privacy_protected"] = privacy
    merged["source"] = source
    if merged.get("registration_date"):
        merged["domain_age"] = format_domain_age(merged["registration_date"])
    return RegistrationRecord(**merged)


# ---- RDAP ----

async def rdap_query(
    domain: str,
    client: httpx.AsyncClient,
    bootstrap: Optional[RdapBootstrap] = None,
    timeout_s: float = 8.0,
) -> Optional[RegistrationRecord]:
    """Registry RDAP answer, with the registrar referral folded in when needed."""
    bootstrap = bootstrap or default_bootstrap()
    tld = domain.rsplit(".", 1)[-1]
    if not tld:
        return None

    server = await bootstrap.server_for(tld, client, timeout_s=timeout_s)
    if not server:
        logger.debug(f"No RDAP server for .{tld}")
        return None

    try:
        data = await get_json(client, f"{server}domain/{domain}", headers=RDAP_HEADERS, timeout_s=timeout_s)
    except (httpx.HTTPError, ValueError) as e:
        logger.debug(f"RDAP query failed for {domain}: {type(e).__name__}: {e}")
        return None
    if not isinstance(data, dict):
        return None

    entities = data.get("entities") or []
    registry = RegistrationRecord(
        registration_date=_registration_date(data.get("events") or []),
        registrar=_registrar_name(entities),
        source="rdap",
        **parse_registrant(entities),
    )
    if registry.has_registrant:
        return registry

    href = _referral_href(data.get("links") or [])
    if not href:
        return registry

    try:
        referral_data = await get_json(client, href, headers=RDAP_HEADERS, timeout_s=timeout_s)
    except (httpx.HTTPError, ValueError) as e:
        logger.debug(f"Registrar RDAP referral failed for {domain}: {type(e).__name__}: {e}")
        return registry
    if not isinstance(referral_data, dict):
        return registry

    referral = RegistrationRecord(
        registration_date=_registration_date(referral_data.get("events") or []),
        source="rdap_referral",
        **parse_registrant(referral_data.get("entities") or []),
    )
    return merge_registration(registry, referral)


# ---- Whoxy fallback ----

async def whoxy_query(
    domain: str,
    api_key: str,
    client: httpx.AsyncClient,
    timeout_s: float = 8.0,
) -> Optional[RegistrationRecord]:
    """Registrant data from the Whoxy WHOIS API, or None."""
    if not api_key:
        return None
    try:
        data = await get_json(client, WHOXY_URL, params={"key": api_key, "whois": domain}, timeout_s=timeout_s)
    except (httpx.HTTPError, ValueError) as e:
        logger.debug(f"Whoxy lookup failed for {domain}: {type(e).__name__}: {e}")
        return None
    if not isinstance(data, dict) or data.get("status") != 1:
        return None

    registrant = data.get("registrant_contact") if isinstance(data.get("registrant_contact"), dict) else {}
    registrar = data.get("domain_registrar") if isinstance(data.get("domain_registrar"), dict) else {}
    full_name = registrant.get("full_name")
    company = registrant.get("company_name")

    return RegistrationRecord(
        registration_date=data.get("create_date") if isinstance(data.get("create_date"), str) else None,
        registrar=registrar.get("registrar_name") if isinstance(registrar.get("registrar_name"), str) else None,
        registrant_name=_clean_whois_value(full_name),
        registrant_org=_clean_whois_value(company),
        registrant_street=_clean_whois_value(registrant.get("mailing_address")),
        registrant_city=_clean_whois_value(registrant.get("city_name")),
        registrant_state=_clean_whois_value(registrant.get("state_name")),
        registrant_postal_code=_clean_whois_value(registrant.get("zip_code")),
        registrant_country=registrant.get("country_name") or registrant.get("country_code") or None,
        registrant_email=_clean_whois_value(registrant.get("email_address")),
        registrant_telephone=_clean_whois_value(registrant.get("phone_number")),
        privacy_protected=is_privacy_proxy(company, full_name) or data.get("domain_registered") == "no",
        source="whois",
    )


async def rdap_lookup(
    domain: str,
    client: Optional[httpx.AsyncClient] = None,
    whois_api_key: str = "",
    bootstrap: Optional[RdapBootstrap] = None,
    timeout_s: float = 8.0,
) -> RegistrationRecord:
    """Registration record for a registrable domain. Never raises on lookup failure."""
    async with lookup_client(client, timeout_s) as http:
        rdap = await rdap_query(domain, http, bootstrap=bootstrap, timeout_s=timeout_s)
        whois = None
        if rdap is None or not rdap.has_registrant:
            whois = await whoxy_query(domain, whois_api_key, http, timeout_s=timeout_s)

    if rdap is None and whois is None:
        return RegistrationRecord()
    return merge_registration(rdap, whois)

