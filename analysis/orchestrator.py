"""Unified analysis entry point.

Accepts a URL, text, and/or screenshots and produces an AnalysisResult.
Two paths, chosen per request:
  agentic  -> Interactions API; the model decides which lookups to call
  fallback -> all four lookups run up-front, then one structured LLM call
Both attach the same VerifiedEvidence, so callers need not care which ran.
"""

from __future__ import annotations

import logging
import math
import re
import time
from typing import Any, Optional

import httpx

from agent.interactions import InteractionsEndpoint, get_interactions_client
from agent.loop import run_agent_loop
from agent.tools import ToolContext, execute_tool, tool_definitions
from analysis.prompts import (
    build_fallback_user_content,
    build_input_parts,
    build_system_prompt,
    normalize_to_iso_code,
)
from analysis.schemas import AnalysisOutcome, AnalysisRequest, AnalysisResult, LinkMetadata
from evidence.normalizer import build_verified_evidence
from framework.errors import AnalysisError, LLMEndpointError, ResponseParseError
from framework.fanout import gather_settled
from intel.domains import hostname_from_url, normalize_url, registrable_domain
from intel.http import lookup_timeout
from intel.schemas import IntelSettings, ToolError, VerifiedEvidence
from llm.client_factory import get_llm_client
from llm.structured_json import extract_json_object, response_text, validate_model

logger = logging.getLogger(__name__)

_URL_IN_TEXT = re.compile(r"https?://[^\s<>\"')\]]+", re.IGNORECASE)
_LEADING_INT = re.compile(r"^\s*([-+]?\d+)")
INTEL_TOOLS = ("dns_geoip", "rdap_lookup", "safe_browsing", "check_homograph")


def find_url(request: AnalysisRequest) -> Optional[str]:
    """The URL to investigate: the explicit one, else the first in the text."""
    if request.url:
        return normalize_url(request.url)
    if request.text:
        match = _URL_IN_TEXT.search(request.text)
        if match:
            return match.group(0).rstrip(".,;:!?")
    return None


def _risk_level(score: int) -> str:
    if score >= 70:
        return "DANGER"
    if score >= 30:
        return "CAUTION"
    return "SAFE"


def _coerce_score(score: Any, raw_text: str) -> int:
    """Score as an int in 0..100. Strings keep their leading integer ("85.5" -> 85)."""
    if isinstance(score, float):
        if not math.isfinite(score):
            raise ResponseParseError(f"Model returned a non-finite score: {score}", raw_response=raw_text)
        score = int(score)
    elif isinstance(score, bool) or not isinstance(score, int):
        match = _LEADING_INT.match(str(score)) if score is not None else None
        try:
            score = int(match.group(1)) if match else 0
        except ValueError:
            # More digits than int() will parse
            score = 0
    return max(0, min(100, score))


def _coerce_fields(data: dict[str, Any], raw_text: str = "") -> dict[str, Any]:
    """Repair loosely-typed fields the endpoint does not schema-enforce."""
    data["score"] = _coerce_score(data.get("score"), raw_text)

    level = data.get("riskLevel")
    if isinstance(level, str) and level.strip().upper() in {"SAFE", "CAUTION", "DANGER"}:
        data["riskLevel"] = level.strip().upper()
    else:
        data["riskLevel"] = _risk_level(data["score"])

    data["detectedNativeLanguage"] = normalize_to_iso_code(data.get("detectedNativeLanguage"))
    data["userSystemLanguage"] = normalize_to_iso_code(data.get("userSystemLanguage"))
    return data


def parse_analysis(text: str) -> AnalysisResult:
    """Model text -> AnalysisResult, or ResponseParseError."""
    data = _coerce_fields(extract_json_object(text), raw_text=text)
    return validate_model(data, AnalysisResult, raw_text=text)


def attach_evidence(
    result: AnalysisResult,
    evidence: Optional[VerifiedEvidence],
    analyzed_url: Optional[str],
    domain: str,
) -> AnalysisResult:
    if evidence is None:
        # Only lookups may fill `verified`; drop anything the model wrote there
        if result.link_metadata is not None and result.link_metadata.verified is not None:
            metadata = result.link_metadata.model_copy(update={"verified": None})
            return result.model_copy(update={"link_metadata": metadata})
        return result
    if result.link_metadata is not None:
        metadata = result.link_metadata.model_copy(update={"verified": evidence})
    else:
        # Tools ran but the model left linkMetadata out
        metadata = LinkMetadata(
            analyzed_url=analyzed_url or "",
            impersonating="Unknown",
            actual_domain=domain,
            domain_age=evidence.domain_age or "Unknown",
            server_location=evidence.server_country or "Unknown",
            blacklist_count=len(evidence.safe_browsing_threats),
            suspicious_tld="",
            verified=evidence,
        )
    return result.model_copy(update={"link_metadata": metadata})


def _analyzed_domain(url: Optional[str], tool_arguments: dict[str, dict[str, Any]]) -> str:
    host = hostname_from_url(url) if url else ""
    if not host:
        for name in ("rdap_lookup", "dns_geoip"):
            domain = (tool_arguments.get(name) or {}).get("domain")
            if isinstance(domain, str) and domain:
                host = domain
                break
    return registrable_domain(host) if host else ""


def _intel_client(settings: IntelSettings) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=lookup_timeout(settings.timeout_s), follow_redirects=True)


# ---- Agentic path ----

async def run_agentic(
    request: AnalysisRequest,
    *,
    endpoint: Optional[InteractionsEndpoint] = None,
    settings: Optional[IntelSettings] = None,
    tool_context: Optional[ToolContext] = None,
    model: Optional[str] = None,
    max_turns: Optional[int] = None,
) -> AnalysisResult:
    from config.settings import AGENT_MAX_TURNS, AGENT_MODEL

    endpoint = endpoint or get_interactions_client()
    settings = settings or IntelSettings.from_env()
    url = normalize_url(request.url) if request.url else None

    async with _intel_client(settings) as client:
        ctx = tool_context or ToolContext(settings=settings, client=client)

        async def _executor(name: str, args: dict[str, Any]):
            return await execute_tool(name, args, ctx)

        loop = await run_agent_loop(
            endpoint=endpoint,
            model=model or AGENT_MODEL,
            system_instruction=build_system_prompt(request.user_language, request.user_country_code),
            input_parts=build_input_parts(request),
            tools=tool_definitions(),
            tool_executor=_executor,
            max_turns=max_turns or AGENT_MAX_TURNS,
        )

    logger.debug(f"[agentic] Raw response (first 500 chars): {loop.text[:500]}")
    if not loop.text.strip():
        raise ResponseParseError("Empty response from model")

    result = parse_analysis(loop.text)
    domain = _analyzed_domain(url, loop.tool_arguments)
    evidence = build_verified_evidence(loop.tool_results, analyzed_domain=domain or None)
    return attach_evidence(result, evidence, url, domain)


# ---- Fallback path ----

async def gather_intel(url: str, ctx: ToolContext) -> dict[str, Any]:
    """Run all four lookups for `url` concurrently."""
    hostname = hostname_from_url(url)
    domain = registrable_domain(hostname) if hostname else ""
    if not domain:
        return {}

    args = (
        {"domain": hostname},
        {"domain": domain},
        {"url": url},
        {"hostname": hostname},
    )
    settled = await gather_settled([execute_tool(name, arg, ctx) for name, arg in zip(INTEL_TOOLS, args)])
    return {
        name: value if not isinstance(value, Exception) else ToolError(error=str(value) or type(value).__name__)
        for name, value in zip(INTEL_TOOLS, settled)
    }


def _fallback_messages(request: AnalysisRequest, user_content: str) -> list:
    from langchain_core.messages import HumanMessage, SystemMessage

    system = SystemMessage(content=build_system_prompt(request.user_language, request.user_country_code))
    if not request.images_base64:
        return [system, HumanMessage(content=user_content)]

    parts: list[dict[str, Any]] = [{"type": "text", "text": user_content}]
    for data in request.images_base64:
        parts.append({"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{data}"}})
    return [system, HumanMessage(content=parts)]


async def run_fallback(
    request: AnalysisRequest,
    *,
    llm_client: Any = None,
    settings: Optional[IntelSettings] = None,
    tool_context: Optional[ToolContext] = None,
) -> AnalysisResult:
    settings = settings or IntelSettings.from_env()
    url = find_url(request)

    intel: dict[str, Any] = {}
    if url:
        async with _intel_client(settings) as client:
            ctx = tool_context or ToolContext(settings=settings, client=client)
            intel = await gather_intel(url, ctx)

    if llm_client is None:
        llm_client = get_llm_client()

    messages = _fallback_messages(request, build_fallback_user_content(request, intel))
    try:
        response = await llm_client.ainvoke(messages)
    except Exception as e:
        raise LLMEndpointError(f"LLM request failed: {type(e).__name__}: {e}") from e
    text = response_text(response)
    if not text.strip():
        raise ResponseParseError("Empty response from model")

    result = parse_analysis(text)
    domain = _analyzed_domain(url, {})
    evidence = build_verified_evidence(intel, analyzed_domain=domain or None) if intel else None
    return attach_evidence(result, evidence, url, domain)


# ---- Main entry ----

async def analyze_content(
    request: AnalysisRequest,
    *,
    agentic: Optional[bool] = None,
    endpoint: Optional[InteractionsEndpoint] = None,
    llm_client: Any = None,
    settings: Optional[IntelSettings] = None,
) -> AnalysisOutcome:
    """Analyze content for fraud/phishing.

    The URL in `request` must already have passed
    `analysis.url_safety.validate_public_http_url`.
    """
    if agentic is None:
        from config.settings import USE_AGENTIC_API

        agentic = USE_AGENTIC_API
    mode = "agentic" if agentic else "fallback"
    started = time.perf_counter()

    try:
        if agentic:
            result = await run_agentic(request, endpoint=endpoint, settings=settings)
        else:
            result = await run_fallback(request, llm_client=llm_client, settings=settings)
    except AnalysisError as e:
        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.error(
            f"Analysis failed [{mode}, {request.input_type}, {elapsed_ms}ms] {e.kind}: {e}"
            + (f" | raw: {e.raw_response[:200]!r}" if e.raw_response else "")
        )
        raise

    elapsed_ms = int((time.perf_counter() - started) * 1000)
    logger.info(f"Analysis complete [{mode}, {request.input_type}] in {elapsed_ms}ms: {result.risk_level} {result.score}")
    return AnalysisOutcome(result=result, mode=mode, response_time_ms=elapsed_ms)
