"""Homograph / Punycode / zero-width character detection. No network access."""

from __future__ import annotations

import re

from intel.schemas import HomographRecord

_CYRILLIC = re.compile("[\u0400-\u04ff]")
_ZERO_WIDTH = re.compile("[\u200b\u200c\u200d\ufeff]")
_LATIN = re.compile("[a-zA-Z]")
_NON_ASCII = re.compile("[^\x00-\x7f]")


def check_homograph(hostname: str) -> HomographRecord:
    """Classify a hostname for lookalike-character tricks."""
    host = hostname or ""
    has_punycode = "xn--" in host.lower()
    has_cyrillic = bool(_CYRILLIC.search(host))
    has_zero_width = bool(_ZERO_WIDTH.search(host))
    has_mixed_script = bool(_LATIN.search(host)) and bool(_NON_ASCII.search(host))

    details: list[str] = []
    if has_punycode:
        details.append("Punycode encoding detected (xn-- prefix)")
    if has_cyrillic:
        details.append("Cyrillic characters found (lookalike attack)")
    if has_zero_width:
        details.append("Zero-width characters found (hidden characters)")
    if has_mixed_script:
        details.append("Mixed scripts detected (Latin + non-Latin characters)")

    return HomographRecord(
        is_homograph=has_punycode or has_cyrillic or has_zero_width or has_mixed_script,
        has_punycode=has_punycode,
        has_cyrillic=has_cyrillic,
        has_zero_width=has_zero_width,
        has_mixed_script=has_mixed_script,
        details="; ".join(details) or "No homograph attack detected",
    )
