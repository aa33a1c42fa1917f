"""Both analysis paths, end to end with scripted model output and a fake network."""

import json
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from langchain_core.messages import AIMessage

from agent.interactions import InteractionResponse
from agent.tools import ToolContext
from analysis.orchestrator import analyze_content, find_url, gather_intel, parse_analysis, run_agentic, run_fallback
from analysis.prompts import build_input_parts, build_intel_context
from analysis.schemas import AnalysisRequest
from framework.errors import LLMEndpointError, ResponseParseError
from intel.registration import RdapBootstrap
from intel.schemas import HomographRecord, IntelSettings, NetworkRecord, RegistrationRecord, ThreatRecord, ToolError
from llm.structured_json import extract_json_object

LOCALIZED = {"headline": "h", "explanation": "e", "action": "a", "hook": "", "trap": "", "redFlags": ["r"]}


def _verdict(**overrides):
    data = {
        "riskLevel": "DANGER",
        "score": 91,
        "category": "Phishing",
        "detectedNativeLanguage": "en",
        "userSystemLanguage": "en",
        "native": LOCALIZED,
        "translated": LOCALIZED,
        "scannedText": "",
        "scamCountryCode": "",
    }
    data.update(overrides)
    return data


class ScriptedEndpoint:
    def __init__(self, *responses):
        self.responses = [InteractionResponse.model_validate(r) for r in responses]
        self.bodies = []

    async def create(self, body):
        self.bodies.append(body)
        return self.responses[len(self.bodies) - 1]


class TestParseAnalysis:
    def test_code_fenced_reply(self):
        text = "```json\n" + json.dumps(_verdict()) + "\n```"
        result = parse_analysis(text)
        assert result.risk_level == "DANGER"
        assert result.score == 91

    def test_prose_around_object(self):
        text = "Here is my analysis:\n" + json.dumps(_verdict(score=10, riskLevel="SAFE")) + "\nStay safe!"
        assert parse_analysis(text).risk_level == "SAFE"

    def test_no_json_at_all(self):
        with pytest.raises(ResponseParseError) as exc:
            parse_analysis("I cannot help with that.")
        assert exc.value.raw_response == "I cannot help with that."
        assert exc.value.kind == "parse_error"

    def test_broken_json(self):
        with pytest.raises(ResponseParseError):
            extract_json_object('```json\n{"score": 5,,}\n```')

    def test_array_is_not_an_object(self):
        with pytest.raises(ResponseParseError):
            extract_json_object("[1, 2]")

    def test_raw_excerpt_is_capped(self):
        with pytest.raises(ResponseParseError) as exc:
            parse_analysis("x" * 5000)
        assert len(exc.value.raw_response) == 2000

    def test_score_and_language_coercion(self):
        result = parse_analysis(json.dumps(_verdict(score="45", riskLevel=None, detectedNativeLanguage="Vietnamese")))
        assert result.score == 45
        assert result.risk_level == "CAUTION"
        assert result.detected_native_language == "vi"

    def test_unparseable_score_becomes_zero(self):
        result = parse_analysis(json.dumps(_verdict(score="very high", riskLevel="bogus")))
        assert result.score == 0
        assert result.risk_level == "SAFE"

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity", "1e400"])
    def test_non_finite_score_is_parse_error(self, literal):
        text = json.dumps(_verdict(score=0)).replace('"score": 0', f'"score": {literal}')
        with pytest.raises(ResponseParseError) as exc:
            parse_analysis(text)
        assert exc.value.raw_response == text

    @pytest.mark.parametrize(
        "score,expected_score,expected_level",
        [("85.5", 85, "DANGER"), (" 42 points", 42, "CAUTION"), (72.9, 72, "DANGER"), ("250", 100, "DANGER"), ("-3", 0, "SAFE")],
    )
    def test_score_keeps_leading_integer(self, score, expected_score, expected_level):
        result = parse_analysis(json.dumps(_verdict(score=score, riskLevel=None)))
        assert result.score == expected_score
        assert result.risk_level == expected_level

    def test_absurdly_long_digit_string(self):
        result = parse_analysis(json.dumps(_verdict(score="9" * 5000, riskLevel=None)))
        assert 0 <= result.score <= 100

    def test_missing_required_section(self):
        data = _verdict()
        del data["native"]
        with pytest.raises(ResponseParseError):
            parse_analysis(json.dumps(data))


class TestFindUrl:
    def test_explicit_url_gets_scheme(self):
        assert find_url(AnalysisRequest(url="example.com/login")) == "https://example.com/login"

    def test_url_in_text(self):
        request = AnalysisRequest(text="Your parcel is held. Pay at https://dhl-redelivery.top/pay. Thanks")
        assert find_url(request) == "https://dhl-redelivery.top/pay"

    def test_no_url(self):
        assert find_url(AnalysisRequest(text="call me back")) is None


class TestRequestModel:
    def test_requires_some_content(self):
        with pytest.raises(ValueError):
            AnalysisRequest(user_language="en")

    def test_camel_case_input(self):
        request = AnalysisRequest.model_validate({"imagesBase64": ["aGk="], "userLanguage": "th", "userCountryCode": "TH"})
        assert request.input_type == "screenshot"
        parts = build_input_parts(request)
        assert parts[0]["type"] == "text"
        assert parts[1] == {"type": "image", "data": "aGk=", "mime_type": "image/jpeg"}


class TestFallbackPath:
    @pytest.mark.asyncio
    async def test_intel_is_prompted_and_attached(self):
        intel = {
            "dns_geoip": NetworkRecord(ip="203.0.113.9", country="Vietnam", success=True),
            "rdap_lookup": RegistrationRecord(
                registrant_country="Iceland", privacy_protected=True, domain_age="3 days", source="rdap"
            ),
            "safe_browsing": ThreatRecord(threats=["SOCIAL_ENGINEERING"], clean=False, success=True),
            "check_homograph": HomographRecord(),
        }
        llm = AsyncMock()
        llm.ainvoke.return_value = AIMessage(content="```json\n" + json.dumps(_verdict()) + "\n```")

        with patch("analysis.orchestrator.gather_intel", AsyncMock(return_value=intel)):
            result = await run_fallback(
                AnalysisRequest(url="https://paypa1-secure.com/login"), llm_client=llm, settings=IntelSettings()
            )

        messages = llm.ainvoke.await_args.args[0]
        assert "REAL TECHNICAL INTELLIGENCE" in messages[1].content
        assert "Domain Age: 3 days" in messages[1].content

        metadata = result.link_metadata
        assert metadata.actual_domain == "paypa1-secure.com"
        assert metadata.blacklist_count == 1
        assert metadata.server_location == "Vietnam"
        assert metadata.verified.geo_mismatch.severity == "high"

    @pytest.mark.asyncio
    async def test_text_only_skips_lookups(self):
        llm = AsyncMock()
        llm.ainvoke.return_value = AIMessage(content=json.dumps(_verdict(score=5, riskLevel="SAFE")))
        gather = AsyncMock()

        with patch("analysis.orchestrator.gather_intel", gather):
            result = await run_fallback(AnalysisRequest(text="hi mum"), llm_client=llm, settings=IntelSettings())

        gather.assert_not_awaited()
        assert result.link_metadata is None

    @pytest.mark.asyncio
    async def test_llm_failure_is_endpoint_error(self):
        llm = AsyncMock()
        llm.ainvoke.side_effect = RuntimeError("502 Bad Gateway")

        with pytest.raises(LLMEndpointError):
            await run_fallback(AnalysisRequest(text="hello"), llm_client=llm, settings=IntelSettings())

    @pytest.mark.asyncio
    async def test_gather_intel_turns_exceptions_into_tool_errors(self):
        async def flaky(name, args, ctx):
            if name == "rdap_lookup":
                raise RuntimeError("bootstrap on fire")
            return HomographRecord()

        with patch("analysis.orchestrator.execute_tool", side_effect=flaky):
            intel = await gather_intel("https://www.example.com/x", ToolContext())

        assert set(intel) == {"dns_geoip", "rdap_lookup", "safe_browsing", "check_homograph"}
        assert isinstance(intel["rdap_lookup"], ToolError)
        assert "Domain Age: Lookup failed" in build_intel_context(intel)


class TestAgenticPath:
    @pytest.mark.asyncio
    async def test_tools_run_and_evidence_is_attached(self, fake_net):
        registered = (datetime.now(timezone.utc) - timedelta(days=3, hours=2)).isoformat()
        fake_net.json("dns.google", {"Answer": [{"type": 1, "data": "203.0.113.9"}]})
        fake_net.json("ipwho.is", {"success": True, "country": "VN", "city": "Hanoi", "connection": {"isp": "VNPT"}})
        fake_net.json("data.iana.org", {"services": [[["com"], ["https://rdap.verisign.com/com/v1/"]]]})
        fake_net.json(
            "rdap.verisign.com",
            {
                "events": [{"eventAction": "registration", "eventDate": registered}],
                "entities": [
                    {
                        "roles": ["registrant"],
                        "vcardArray": [
                            "vcard",
                            [
                                ["org", {}, "text", "Privacy service provided by Withheld for Privacy ehf"],
                                ["adr", {}, "text", ["", "", "Kalkofnsvegur 2", "Reykjavik", "", "101", "IS"]],
                            ],
                        ],
                    }
                ],
            },
        )
        endpoint = ScriptedEndpoint(
            {
                "id": "i-1",
                "outputs": [
                    {"type": "function_call", "id": "a", "name": "dns_geoip", "arguments": {"domain": "login.paypa1-secure.com"}},
                    {"type": "function_call", "id": "b", "name": "rdap_lookup", "arguments": {"domain": "paypa1-secure.com"}},
                ],
            },
            {"id": "i-2", "outputs": [{"type": "text", "text": "```json\n" + json.dumps(_verdict()) + "\n```"}]},
        )

        async with fake_net.client() as client:
            ctx = ToolContext(settings=IntelSettings(), client=client, bootstrap=RdapBootstrap())
            result = await run_agentic(
                AnalysisRequest(url="https://login.paypa1-secure.com/verify"),
                endpoint=endpoint,
                settings=IntelSettings(),
                tool_context=ctx,
                model="gemini-test",
                max_turns=5,
            )

        verified = result.link_metadata.verified
        assert verified.server_country == "VN"
        assert verified.registrant_country == "IS"
        assert verified.domain_age == "3 days"
        assert verified.geo_mismatch.severity == "high"
        assert len(verified.geo_mismatch.details) >= 2
        assert {"dns", "geoip", "rdap"} <= set(verified.checks_completed)
        assert result.link_metadata.actual_domain == "paypa1-secure.com"
        assert endpoint.bodies[0]["model"] == "gemini-test"
        assert endpoint.bodies[1]["previous_interaction_id"] == "i-1"

    @pytest.mark.asyncio
    async def test_no_tools_means_no_evidence(self):
        endpoint = ScriptedEndpoint({"id": "i-1", "outputs": [{"type": "text", "text": json.dumps(_verdict())}]})

        result = await run_agentic(
            AnalysisRequest(text="Congratulations, you won!"),
            endpoint=endpoint,
            settings=IntelSettings(),
            model="gemini-test",
            max_turns=2,
        )

        assert result.link_metadata is None

    @pytest.mark.asyncio
    async def test_model_written_evidence_is_discarded(self):
        forged = _verdict(
            linkMetadata={
                "analyzedUrl": "https://bank.example",
                "actualDomain": "bank.example",
                "verified": {"domain_age": "20 years", "checks_completed": ["dns", "rdap"]},
            }
        )
        endpoint = ScriptedEndpoint({"id": "i-1", "outputs": [{"type": "text", "text": json.dumps(forged)}]})

        result = await run_agentic(
            AnalysisRequest(url="https://bank.example"),
            endpoint=endpoint,
            settings=IntelSettings(),
            model="gemini-test",
            max_turns=2,
        )

        assert result.link_metadata.actual_domain == "bank.example"
        assert result.link_metadata.verified is None

    @pytest.mark.asyncio
    async def test_empty_final_text_is_parse_error(self):
        endpoint = ScriptedEndpoint({"id": "i-1", "outputs": []})

        with pytest.raises(ResponseParseError):
            await run_agentic(
                AnalysisRequest(text="hello"), endpoint=endpoint, settings=IntelSettings(), model="m", max_turns=1
            )


class TestAnalyzeContent:
    @pytest.mark.asyncio
    async def test_outcome_envelope(self):
        endpoint = ScriptedEndpoint({"id": "i-1", "outputs": [{"type": "text", "text": json.dumps(_verdict())}]})

        outcome = await analyze_content(
            AnalysisRequest(text="Congratulations, you won!"), agentic=True, endpoint=endpoint, settings=IntelSettings()
        )

        assert outcome.mode == "agentic"
        assert outcome.result.score == 91
        assert outcome.response_time_ms >= 0

    @pytest.mark.asyncio
    async def test_failures_are_reraised(self):
        llm = AsyncMock()
        llm.ainvoke.return_value = AIMessage(content="no json here")

        with pytest.raises(ResponseParseError):
            await analyze_content(AnalysisRequest(text="hi"), agentic=False, llm_client=llm, settings=IntelSettings())
