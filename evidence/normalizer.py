"""Merge lookup outputs into one VerifiedEvidence record and score geo-mismatch."""

from __future__ import annotations

from typing import Any, Mapping, Optional

from intel.domains import is_new_domain_age, registrable_domain
from intel.schemas import (
    GeoMismatch,
    HomographRecord,
    NetworkRecord,
    RegistrationRecord,
    Severity,
    ThreatRecord,
    ToolError,
    VerifiedEvidence,
)

SEVERITY_ORDER: tuple[Severity, ...] = ("none", "low", "medium", "high")

# Mailboxes run by privacy services say nothing about who owns the domain.
PRIVACY_EMAIL_DOMAINS = frozenset({
    "domainsbyproxy.com",
    "withheldforprivacy.com",
    "whoisguard.com",
    "privacyguardian.org",
    "contactprivacy.com",
    "whoisprivacyprotect.com",
    "privacyprotect.org",
    "domainprivacygroup.com",
    "anonymize.com",
    "proxy.dreamhost.com",
    "identity-protect.org",
    "registrar-servers.com",
})


def _rank(severity: Severity) -> int:
    return SEVERITY_ORDER.index(severity)


def _max_severity(a: Severity, b: Severity) -> Severity:
    return a if _rank(a) >= _rank(b) else b


def _escalate(severity: Severity) -> Severity:
    return SEVERITY_ORDER[min(_rank(severity) + 1, len(SEVERITY_ORDER) - 1)]


def _norm(value: Optional[str]) -> str:
    return " ".join((value or "").split()).lower()


def _email_domain(email: Optional[str]) -> str:
    if not email or "@" not in email:
        return ""
    return email.rsplit("@", 1)[1].strip().lower().rstrip(".")


def _is_privacy_mailbox(domain: str) -> bool:
    return any(domain == d or domain.endswith(f".{d}") for d in PRIVACY_EMAIL_DOMAINS)


def _same_site(email_domain: str, analyzed_domain: str) -> bool:
    analyzed = registrable_domain(analyzed_domain)
    return email_domain == analyzed or email_domain.endswith(f".{analyzed}") or registrable_domain(email_domain) == analyzed


def compute_geo_mismatch(
    network: Optional[NetworkRecord],
    registration: Optional[RegistrationRecord],
    analyzed_domain: Optional[str] = None,
) -> GeoMismatch:
    """Score disagreement between registrant identity and hosting.

    Signals, each with its own severity:
      registrant country != server country           -> medium
      registrant email domain != analysed domain      -> low
      privacy proxy on a domain aged hours/days/weeks -> escalates one step (none -> medium)
    Two or more signals that are themselves medium or worse make it high.
    A low signal next to a medium one stays medium.
    """
    details: list[str] = []
    severity: Severity = "none"
    strong_signals = 0

    server_country = network.country if network else None
    registrant_country = registration.registrant_country if registration else None
    if _norm(server_country) and _norm(registrant_country) and _norm(server_country) != _norm(registrant_country):
        details.append(f"Registrant in {registrant_country}, but server hosted in {server_country}")
        severity = _max_severity(severity, "medium")
        strong_signals += 1

    email_domain = _email_domain(registration.registrant_email if registration else None)
    if email_domain and analyzed_domain and not _is_privacy_mailbox(email_domain):
        if not _same_site(email_domain, analyzed_domain):
            details.append(
                f"Registrant email domain ({email_domain}) does not match the analysed domain "
                f"({registrable_domain(analyzed_domain)})"
            )
            severity = _max_severity(severity, "low")

    if registration and registration.privacy_protected and is_new_domain_age(registration.domain_age):
        details.append(f"WHOIS privacy-protected on a very new domain ({registration.domain_age} old)")
        severity = "medium" if severity == "none" else _escalate(severity)
        strong_signals += 1

    if strong_signals >= 2:
        severity = "high"

    return GeoMismatch(detected=bool(details), severity=severity, details=details)


def _checks(
    network: Any,
    registration: Any,
    threats: Any,
    homograph: Any,
) -> tuple[list[str], list[str]]:
    completed: list[str] = []
    failed: list[str] = []

    if isinstance(network, NetworkRecord) and network.success:
        completed.append("dns")
        (completed if network.country else failed).append("geoip")
    elif network is not None:
        # GeoIP never ran without an address
        failed.extend(["dns", "geoip"])

    if isinstance(registration, RegistrationRecord):
        if registration.source and "rdap" in registration.source:
            completed.append("rdap")
        if registration.has_registrant:
            completed.append("whois")
        if not registration.source:
            failed.append("rdap")
    elif registration is not None:
        failed.append("rdap")

    if isinstance(threats, ThreatRecord) and threats.success:
        completed.append("safe_browsing")
    elif threats is not None:
        failed.append("safe_browsing")

    if isinstance(homograph, HomographRecord):
        completed.append("homograph")
    elif homograph is not None:
        failed.append("homograph")

    return completed, failed


def merge_evidence(
    network: NetworkRecord | ToolError | None,
    registration: RegistrationRecord | ToolError | None,
    threats: ThreatRecord | ToolError | None,
    homograph: HomographRecord | ToolError | None,
    analyzed_domain: Optional[str] = None,
) -> Optional[VerifiedEvidence]:
    """Union of the four lookups. None when no lookup produced anything."""
    if network is None and registration is None and threats is None and homograph is None:
        return None

    completed, failed = _checks(network, registration, threats, homograph)

    net = network if isinstance(network, NetworkRecord) else None
    reg = registration if isinstance(registration, RegistrationRecord) else None
    threat = threats if isinstance(threats, ThreatRecord) else None
    homo = homograph if isinstance(homograph, HomographRecord) else None

    registrant = reg.model_dump(include={
        "registrant_name",
        "registrant_org",
        "registrant_street",
        "registrant_city",
        "registrant_state",
        "registrant_postal_code",
        "registrant_country",
        "registrant_email",
        "registrant_telephone",
    }) if reg else {}

    return VerifiedEvidence(
        domain_age=reg.domain_age if reg else None,
        registration_date=reg.registration_date if reg else None,
        registrar=reg.registrar if reg else None,
        server_country=net.country if net else None,
        server_city=net.city if net else None,
        isp=net.isp if net else None,
        resolved_ip=net.ip if net else None,
        homograph_attack=homo.is_homograph if homo else False,
        safe_browsing_threats=list(threat.threats) if threat else [],
        privacy_protected=reg.privacy_protected if reg else False,
        geo_mismatch=compute_geo_mismatch(net, reg, analyzed_domain),
        checks_completed=completed,
        checks_failed=failed,
        **registrant,
    )


def build_verified_evidence(
    tool_results: Mapping[str, Any],
    analyzed_domain: Optional[str] = None,
) -> Optional[VerifiedEvidence]:
    """VerifiedEvidence from a tool-name -> payload map."""
    return merge_evidence(
        tool_results.get("dns_geoip"),
        tool_results.get("rdap_lookup"),
        tool_results.get("safe_browsing"),
        tool_results.get("check_homograph"),
        analyzed_domain=analyzed_domain,
    )
