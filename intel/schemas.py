from typing import Literal, Optional

from pydantic import BaseModel, Field

Severity = Literal["none", "low", "medium", "high"]


class IntelSettings(BaseModel):
    """Credentials and limits handed to every lookup."""

    safe_browsing_api_key: str = Field(default="", description="Safe Browsing key (falls back to gemini_api_key)")
    gemini_api_key: str = Field(default="", description="Gemini key, also accepted by Safe Browsing")
    whois_api_key: str = Field(default="", description="Whoxy key for the WHOIS fallback")
    timeout_s: float = Field(default=8.0, description="Per-request timeout for outbound lookups")

    @classmethod
    def from_env(cls) -> "IntelSettings":
        from config.settings import GEMINI_API_KEY, LOOKUP_TIMEOUT_S, SAFE_BROWSING_API_KEY, WHOIS_API_KEY

        return cls(
            safe_browsing_api_key=SAFE_BROWSING_API_KEY,
            gemini_api_key=GEMINI_API_KEY,
            whois_api_key=WHOIS_API_KEY,
            timeout_s=LOOKUP_TIMEOUT_S,
        )


class ToolError(BaseModel):
    """Error marker returned in place of a tool payload."""

    error: str = Field(description="What went wrong, in plain English")


class NetworkRecord(BaseModel):
    """Where the host resolves and who serves it."""

    ip: Optional[str] = Field(default=None, description="First A record returned by DNS-over-HTTPS")
    country: Optional[str] = Field(default=None, description="Server country from GeoIP")
    city: Optional[str] = Field(default=None, description="Server city from GeoIP")
    isp: Optional[str] = Field(default=None, description="Hosting ISP from GeoIP")
    org: Optional[str] = Field(default=None, description="Hosting organisation from GeoIP")
    success: bool = Field(default=False, description="True when DNS produced an IP")


class RegistrationRecord(BaseModel):
    """Domain registration metadata from RDAP, a registrar referral, or WHOIS."""

    registration_date: Optional[str] = Field(default=None, description="Registration event date as reported")
    domain_age: Optional[str] = Field(default=None, description="Bucketed human-readable age, e.g. '3 days'")
    registrar: Optional[str] = Field(default=None, description="Sponsoring registrar name")
    registrant_name: Optional[str] = Field(default=None)
    registrant_org: Optional[str] = Field(default=None)
    registrant_street: Optional[str] = Field(default=None)
    registrant_city: Optional[str] = Field(default=None)
    registrant_state: Optional[str] = Field(default=None)
    registrant_postal_code: Optional[str] = Field(default=None)
    registrant_country: Optional[str] = Field(default=None)
    registrant_email: Optional[str] = Field(default=None)
    registrant_telephone: Optional[str] = Field(default=None)
    privacy_protected: bool = Field(default=False, description="Registrant hidden behind a privacy proxy")
    source: Optional[str] = Field(
        default=None,
        description="Provenance: rdap, rdap_referral, whois, or rdap+whois; None when every source failed",
    )

    @property
    def has_registrant(self) -> bool:
        return bool(self.registrant_org or self.registrant_name)


class ThreatRecord(BaseModel):
    """Threat-list verdict for a URL."""

    threats: list[str] = Field(default_factory=list, description="Matched threat categories")
    clean: bool = Field(default=True, description="True when no threat matched")
    success: bool = Field(default=False, description="False when the check itself could not run")
    error: Optional[str] = Field(default=None, description="Why the check failed")


class HomographRecord(BaseModel):
    """Lookalike-character signals for a hostname."""

    is_homograph: bool = False
    has_punycode: bool = False
    has_cyrillic: bool = False
    has_zero_width: bool = False
    has_mixed_script: bool = False
    details: str = "No homograph attack detected"


class GeoMismatch(BaseModel):
    """Disagreement between where a domain is registered and where it is hosted."""

    detected: bool = False
    severity: Severity = "none"
    details: list[str] = Field(default_factory=list)


class VerifiedEvidence(BaseModel):
    """Server-side facts from the lookups, attached to the model's answer."""

    domain_age: Optional[str] = None
    registration_date: Optional[str] = None
    registrar: Optional[str] = None
    server_country: Optional[str] = None
    server_city: Optional[str] = None
    isp: Optional[str] = None
    resolved_ip: Optional[str] = None
    homograph_attack: bool = False
    safe_browsing_threats: list[str] = Field(default_factory=list)
    registrant_name: Optional[str] = None
    registrant_org: Optional[str] = None
    registrant_street: Optional[str] = None
    registrant_city: Optional[str] = None
    registrant_state: Optional[str] = None
    registrant_postal_code: Optional[str] = None
    registrant_country: Optional[str] = None
    registrant_email: Optional[str] = None
    registrant_telephone: Optional[str] = None
    privacy_protected: bool = False
    geo_mismatch: GeoMismatch = Field(default_factory=GeoMismatch)
    checks_completed: list[str] = Field(default_factory=list)
    checks_failed: list[str] = Field(default_factory=list)
