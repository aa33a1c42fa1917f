from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from intel.schemas import VerifiedEvidence


class _CamelModel(BaseModel):
    """Models exchanged with the LLM and the UI use camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalysisRequest(_CamelModel):
    """What a caller submits for one analysis."""

    url: Optional[str] = Field(default=None, description="URL already cleared by the URL-safety check")
    text: Optional[str] = Field(default=None, description="Free text, e.g. a pasted SMS")
    images_base64: list[str] = Field(default_factory=list, description="Base64 JPEG screenshots")
    user_language: str = Field(default="en", min_length=1, description="BCP 47 code of the user's device language")
    user_country_code: Optional[str] = Field(default=None, description="ISO 3166-1 alpha-2 user location")

    @model_validator(mode="after")
    def _require_content(self) -> "AnalysisRequest":
        if not self.url and not self.text and not self.images_base64:
            raise ValueError("Must provide url, text, or images_base64")
        return self

    @property
    def input_type(self) -> str:
        if self.url:
            return "url"
        return "screenshot" if self.images_base64 else "text"


class LocalizedAnalysis(_CamelModel):
    headline: str = ""
    explanation: str = ""
    action: str = ""
    hook: str = ""
    trap: str = ""
    red_flags: list[str] = Field(default_factory=list)


class LinkMetadata(_CamelModel):
    analyzed_url: str = ""
    impersonating: str = "Unknown"
    actual_domain: str = ""
    domain_age: str = "Unknown"
    server_location: str = "Unknown"
    blacklist_count: int = 0
    suspicious_tld: str = ""
    verified: Optional[VerifiedEvidence] = None


class AnalysisResult(_CamelModel):
    """The model's structured verdict plus server-verified evidence."""

    risk_level: Literal["SAFE", "CAUTION", "DANGER"]
    score: int = Field(ge=0, le=100)
    category: str = ""
    detected_native_language: str = "en"
    user_system_language: str = "en"
    native: LocalizedAnalysis
    translated: LocalizedAnalysis
    link_metadata: Optional[LinkMetadata] = None
    scanned_text: str = ""
    scam_country_code: str = ""


class AnalysisOutcome(BaseModel):
    result: AnalysisResult
    mode: Literal["agentic", "fallback"]
    response_time_ms: int
