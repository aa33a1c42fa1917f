"""Prompt text and input-part builders for both analysis paths."""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional

from analysis.schemas import AnalysisRequest
from intel.schemas import HomographRecord, NetworkRecord, RegistrationRecord, ThreatRecord

_LANGUAGE_NAMES = {
    "en": "English", "zh": "Chinese", "zh-CN": "Simplified Chinese", "zh-TW": "Traditional Chinese",
    "th": "Thai", "vi": "Vietnamese", "es": "Spanish", "pt": "Portuguese", "id": "Indonesian",
    "ms": "Malay", "ja": "Japanese", "ko": "Korean", "fr": "French", "de": "German",
    "ar": "Arabic", "hi": "Hindi", "ru": "Russian", "it": "Italian",
}
_NAME_TO_CODE = {
    "english": "en", "chinese": "zh", "mandarin": "zh", "thai": "th",
    "vietnamese": "vi", "spanish": "es", "portuguese": "pt",
    "indonesian": "id", "malay": "ms", "japanese": "ja", "korean": "ko",
    "french": "fr", "german": "de", "arabic": "ar", "hindi": "hi",
    "russian": "ru", "italian": "it", "simplified chinese": "zh-CN",
    "traditional chinese": "zh-TW", "mandarin chinese": "zh",
}
_ISO_CODE = re.compile(r"^[a-z]{2,3}(-[A-Za-z]{2,4})?$")


def lang_name(code: Optional[str]) -> str:
    if not code:
        return "English"
    return _LANGUAGE_NAMES.get(code) or _LANGUAGE_NAMES.get(code.split("-")[0]) or code


def normalize_to_iso_code(value: Any) -> str:
    """Coerce a language field to a BCP 47-ish code if the model wrote a name."""
    if not isinstance(value, str) or not value.strip():
        return "en"
    trimmed = value.strip()
    if _ISO_CODE.match(trimmed):
        return trimmed
    return _NAME_TO_CODE.get(trimmed.lower()) or trimmed.lower()[:2]


def build_system_prompt(user_language: str, user_country_code: Optional[str] = None) -> str:
    user_lang_name = lang_name(user_language)
    location_context = ""
    if user_country_code:
        location_context = (
            "\nUSER CONTEXT:\n"
            f"- Device language: {user_lang_name} ({user_language})\n"
            f'- User location: "{user_country_code}" (use this for local context: local emergency numbers, '
            "local brands, and regional scam patterns relevant to this country)\n"
        )

    return f"""You are "RedFlag," a high-precision forensic cybersecurity AI that detects scams, phishing, and fraud.
{location_context}
CAPABILITIES:
You have access to real-time security tools. Use them to gather intelligence when you encounter URLs or domain names.

TOOL USAGE GUIDELINES:
- If the user provides a URL: extract the domain and call dns_geoip, rdap_lookup, safe_browsing, and check_homograph.
- If the user provides a screenshot: examine it visually. If you can identify a URL or domain in the image, extract it and call the tools.
- If the user provides text: read it for fraud signals. If you find URLs or domains in the text, extract them and call the tools.
- For obviously safe, well-known domains you may skip some checks if confident.
- Call multiple tools in parallel when possible.

WHOIS INTELLIGENCE ANALYSIS (when tool results are available):
- A registrant org/name that is a PRIVACY PROXY (e.g. "Withheld for Privacy", "Domains By Proxy") is a signal; legitimate businesses usually register under their real identity.
- If registrant country differs from server country, explain why this matters for the specific brand or service.
- If the registrant email domain does NOT match the site domain, flag the inconsistency.
- A very new domain (days/weeks old) with WHOIS privacy is a strong fraud signal.
- Missing registrant details mean reduced transparency.
- Cross-reference: does the registrant org match what the site claims to be?

ANALYSIS REQUIREMENTS:
1. Classify the content into a concise fraud category (Phishing, Job Scam, Investment Scam, Romance Scam, Brand Impersonation, Tech Support Scam, etc.).
2. Assign a risk score (0-100) and risk level (SAFE, CAUTION, or DANGER).
3. Detect the native language of the content being analyzed.
4. Produce two localized versions of the analysis:
   - "native": in the detected native language of the content
   - "translated": in the user's device language, {user_lang_name} ({user_language})
   - If the native language matches the device language (including regional variants), "translated" must be in English.

REQUIRED FIELDS FOR EACH LOCALIZED VERSION:
headline (2-5 words), explanation, action (always recommend the official app or typing the official domain; never call a link safe), hook, trap, redFlags (array).

LINK METADATA (only when a URL was analyzed):
"linkMetadata": analyzedUrl, impersonating ("None detected" if none), actualDomain, domainAge (real tool data or "Unknown (lookup failed)"), serverLocation (real tool data or "Unknown"), blacklistCount (Safe Browsing threat types found), suspiciousTld (e.g. .xyz, .top, .pw, .loan, .click, else "").

OUTPUT FORMAT:
Your final response MUST be a raw JSON object: no prose, no markdown, no code fences. Start with {{ and end with }}.
"detectedNativeLanguage" and "userSystemLanguage" MUST be BCP 47 / ISO 639-1 codes (e.g. "en", "th", "zh-TW").
{{
  "riskLevel": "SAFE" | "CAUTION" | "DANGER",
  "score": <number 0-100>,
  "category": "<fraud category>",
  "detectedNativeLanguage": "<code>",
  "userSystemLanguage": "{user_language}",
  "native": {{ "headline", "explanation", "action", "hook", "trap", "redFlags": [] }},
  "translated": {{ "headline", "explanation", "action", "hook", "trap", "redFlags": [] }},
  "linkMetadata": {{ ... }},
  "scannedText": "<text read from the screenshot, the URL, or empty string>",
  "scamCountryCode": "<ISO 3166-1 alpha-2 country the scam originates from or targets, or empty string>"
}}
Every field is required. "score" MUST be a number."""


def build_input_parts(request: AnalysisRequest) -> list[dict[str, Any]]:
    """Interactions API input parts: one text part, then any images."""
    parts: list[dict[str, Any]] = []
    if request.url:
        parts.append({"type": "text", "text": f"Analyze this URL for potential fraud or phishing: {request.url}"})
    elif request.text:
        parts.append({"type": "text", "text": f"Analyze this content for potential fraud or scam:\n\n{request.text}"})

    if request.images_base64:
        if not request.url and not request.text:
            parts.append({
                "type": "text",
                "text": (
                    "Analyze this screenshot for potential fraud, phishing, or scam content. If you can identify "
                    "any URLs or domains in the image, extract them and use the available tools to investigate."
                ),
            })
        for data in request.images_base64:
            parts.append({"type": "image", "data": data, "mime_type": "image/jpeg"})
    return parts


def build_intel_context(intel: Mapping[str, Any]) -> str:
    """Plain-text block of real lookup results for the single-shot prompt."""
    dns = intel.get("dns_geoip")
    rdap = intel.get("rdap_lookup")
    sb = intel.get("safe_browsing")
    hg = intel.get("check_homograph")
    dns = dns if isinstance(dns, NetworkRecord) else None
    rdap = rdap if isinstance(rdap, RegistrationRecord) else None
    sb = sb if isinstance(sb, ThreatRecord) else None
    hg = hg if isinstance(hg, HomographRecord) else None

    lines = ["REAL TECHNICAL INTELLIGENCE (from actual API lookups; use this data, do NOT fabricate):"]
    lines.append(f"- Resolved IP: {dns.ip}" if dns and dns.ip else "- DNS Resolution: FAILED")
    if dns and dns.country:
        city = f", {dns.city}" if dns.city else ""
        lines.append(f"- Server Location: {dns.country}{city} (VERIFIED)")
    if dns and dns.isp:
        lines.append(f"- ISP/Hosting: {dns.isp}")
    if rdap and rdap.domain_age:
        lines.append(f"- Domain Age: {rdap.domain_age} (registered: {rdap.registration_date}) (VERIFIED)")
    else:
        lines.append("- Domain Age: Lookup failed")
    if rdap and rdap.registrar:
        lines.append(f"- Registrar: {rdap.registrar}")
    lines.append("- HOMOGRAPH ATTACK DETECTED" if hg and hg.is_homograph else "- Homograph Check: Clean")
    if sb and sb.threats:
        lines.append(f"- Safe Browsing: FLAGGED ({', '.join(sb.threats)})")
    else:
        lines.append("- Safe Browsing: No known threats")
    if rdap and rdap.has_registrant:
        where = f" in {rdap.registrant_country}" if rdap.registrant_country else ""
        lines.append(f"- Registrant: {rdap.registrant_org or rdap.registrant_name}{where}")
    if rdap and rdap.registrant_email:
        lines.append(f"- Registrant Email: {rdap.registrant_email}")
    if rdap and rdap.privacy_protected:
        lines.append("- WHOIS Privacy: PROTECTED")
    return "\n".join(lines)


def build_fallback_user_content(request: AnalysisRequest, intel: Optional[Mapping[str, Any]]) -> str:
    if request.url:
        content = f"Analyze this URL for potential fraud or phishing: {request.url}"
    elif request.text:
        content = f"Analyze this content for potential fraud or scam:\n\n{request.text}"
    else:
        content = "Analyze this screenshot for potential fraud, phishing, or scam content."
    if intel:
        content += "\n\n" + build_intel_context(intel)
    return content
