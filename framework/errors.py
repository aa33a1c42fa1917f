"""Request-level failures surfaced to callers of the analysis pipeline.

Lookup failures and tool-dispatch failures never show up here; they are
carried as data (null fields, failed checks, ToolError payloads).
"""

from __future__ import annotations

from typing import Optional

RAW_EXCERPT_CHARS = 2000


class AnalysisError(Exception):
    """Base class; `kind` is a stable machine-readable tag."""

    kind = "analysis_error"

    def __init__(self, message: str, raw_response: Optional[str] = None) -> None:
        super().__init__(message)
        self.raw_response = raw_response[:RAW_EXCERPT_CHARS] if raw_response else None


class LLMConfigurationError(AnalysisError):
    kind = "configuration_error"


class LLMEndpointError(AnalysisError):
    """The LLM endpoint call failed or returned an unusable body."""

    kind = "endpoint_error"

    def __init__(self, message: str, status_code: Optional[int] = None, raw_response: Optional[str] = None) -> None:
        super().__init__(message, raw_response=raw_response)
        self.status_code = status_code


class AgentLoopExhausted(AnalysisError):
    kind = "turn_budget_exhausted"

    def __init__(self, max_turns: int) -> None:
        super().__init__("Agent loop exceeded maximum turns")
        self.max_turns = max_turns


class ResponseParseError(AnalysisError):
    """The model's final text did not contain a usable JSON object."""

    kind = "parse_error"
