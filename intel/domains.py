"""Hostname helpers: registrable domain and domain-age buckets.

`registrable_domain` uses a fixed list of two-level public suffixes rather
than the full Public Suffix List, so ccTLD patterns missing from
MULTI_PART_SUFFIXES collapse to their last two labels.
"""

from __future__ import annotations

import ipaddress
from datetime import datetime, timezone
from urllib.parse import urlparse

MULTI_PART_SUFFIXES = frozenset({
    "co.uk", "org.uk", "gov.uk", "ac.uk", "net.uk", "sch.uk", "me.uk",
    "com.au", "net.au", "org.au", "edu.au", "gov.au", "asn.au", "id.au",
    "co.jp", "ne.jp", "or.jp", "go.jp", "ac.jp", "ed.jp", "lg.jp",
    "com.sg", "net.sg", "org.sg", "gov.sg", "edu.sg", "per.sg",
    "com.my", "net.my", "org.my", "gov.my", "edu.my",
    "co.id", "ac.id", "or.id", "go.id",
    "co.in", "firm.in", "net.in", "org.in", "gen.in", "ind.in",
    "com.br", "net.br", "org.br",
    "co.nz", "org.nz", "net.nz", "govt.nz",
    "co.za", "org.za", "net.za",
    "com.mx", "org.mx", "gob.mx",
    "com.tr", "net.tr", "org.tr",
})

NEW_DOMAIN_UNITS = ("hour", "day", "week")


def is_ip_address(host: str) -> bool:
    try:
        ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return False
    return True


def registrable_domain(hostname: str) -> str:
    """Reduce a hostname to the domain an organisation would register."""
    normalized = hostname.strip().lower().rstrip(".")
    if not normalized or is_ip_address(normalized):
        return normalized

    labels = [label for label in normalized.split(".") if label]
    if len(labels) <= 2:
        return ".".join(labels)

    last_two = ".".join(labels[-2:])
    if last_two in MULTI_PART_SUFFIXES:
        return ".".join(labels[-3:])
    return last_two


def hostname_from_url(url: str) -> str:
    """Hostname of a URL, adding https:// when the scheme is missing."""
    raw = (url or "").strip()
    if not raw:
        return ""
    if not raw.lower().startswith(("http://", "https://")):
        raw = f"https://{raw}"
    try:
        return urlparse(raw).hostname or ""
    except ValueError:
        return ""


def normalize_url(url: str) -> str:
    raw = (url or "").strip()
    if raw and not raw.lower().startswith(("http://", "https://")):
        return f"https://{raw}"
    return raw


def _parse_date(value: str) -> datetime:
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        # Whoxy style: "2015-03-02" or "2015-03-02 10:00:00"
        parsed = datetime.strptime(text[:10], "%Y-%m-%d")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count != 1 else ''}"


def format_domain_age(registration_date: str, now: datetime | None = None) -> str:
    """Bucket the time since registration into hours/days/weeks/months/years."""
    try:
        registered = _parse_date(registration_date)
    except (TypeError, ValueError):
        return "Unknown"

    now = now or datetime.now(timezone.utc)
    # Future-dated registrations count as brand new
    seconds = max((now - registered).total_seconds(), 0)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)
    months = days // 30
    years = days // 365

    if hours < 24:
        return _plural(hours, "hour")
    if days < 7:
        return _plural(days, "day")
    if days < 30:
        return _plural(days // 7, "week")
    if months < 12:
        return _plural(months, "month")
    return _plural(max(years, 1), "year")


def is_new_domain_age(domain_age: str | None) -> bool:
    """True for ages bucketed in hours, days or weeks."""
    if not domain_age:
        return False
    return any(unit in domain_age for unit in NEW_DOMAIN_UNITS)
