"""Tool declarations (Interactions API format) and executor dispatch."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from intel.homograph import check_homograph
from intel.network import dns_geoip
from intel.registration import RdapBootstrap, rdap_lookup
from intel.schemas import IntelSettings, ToolError
from intel.threats import safe_browsing

logger = logging.getLogger(__name__)


class _Args(BaseModel):
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class DomainArgs(_Args):
    domain: str = Field(min_length=1, max_length=253, description="The domain name to resolve (e.g. \"example.com\")")


class RegistrableDomainArgs(_Args):
    domain: str = Field(
        min_length=1,
        max_length=253,
        description="The registrable domain to look up (e.g. \"example.com\", not \"www.example.com\")",
    )


class UrlArgs(_Args):
    url: str = Field(min_length=1, max_length=2048, description="The full URL to check (e.g. \"https://example.com/page\")")


class HostnameArgs(_Args):
    hostname: str = Field(min_length=1, max_length=253, description="The hostname to check (e.g. \"xn--80ak6aa92e.com\")")


@dataclass
class ToolContext:
    """Per-request dependencies handed to every tool."""

    settings: IntelSettings = field(default_factory=IntelSettings)
    client: Optional[httpx.AsyncClient] = None
    bootstrap: Optional[RdapBootstrap] = None


@dataclass(frozen=True)
class ToolDeclaration:
    name: str
    description: str
    args_model: type[_Args]

    def to_definition(self) -> dict[str, Any]:
        """Function declaration as sent to the Interactions endpoint."""
        schema = self.args_model.model_json_schema()
        properties = {
            name: {"type": "string", "description": prop.get("description", "")}
            for name, prop in schema.get("properties", {}).items()
        }
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": list(schema.get("required", [])),
            },
        }


@dataclass(frozen=True)
class Tool:
    declaration: ToolDeclaration
    handler: Callable[[Any, ToolContext], Awaitable[BaseModel]]


async def _run_dns_geoip(args: DomainArgs, ctx: ToolContext) -> BaseModel:
    return await dns_geoip(args.domain, client=ctx.client, timeout_s=ctx.settings.timeout_s)


async def _run_rdap_lookup(args: RegistrableDomainArgs, ctx: ToolContext) -> BaseModel:
    return await rdap_lookup(
        args.domain,
        client=ctx.client,
        whois_api_key=ctx.settings.whois_api_key,
        bootstrap=ctx.bootstrap,
        timeout_s=ctx.settings.timeout_s,
    )


async def _run_safe_browsing(args: UrlArgs, ctx: ToolContext) -> BaseModel:
    api_key = ctx.settings.safe_browsing_api_key or ctx.settings.gemini_api_key
    return await safe_browsing(args.url, api_key, client=ctx.client, timeout_s=ctx.settings.timeout_s)


async def _run_check_homograph(args: HostnameArgs, ctx: ToolContext) -> BaseModel:
    return check_homograph(args.hostname)


TOOLS: dict[str, Tool] = {
    tool.declaration.name: tool
    for tool in (
        Tool(
            ToolDeclaration(
                name="dns_geoip",
                description=(
                    "Resolve a domain name to its IP address via DNS, then look up the server's geographic "
                    "location (country, city) and hosting provider (ISP). Use this to determine where a "
                    "website is physically hosted."
                ),
                args_model=DomainArgs,
            ),
            _run_dns_geoip,
        ),
        Tool(
            ToolDeclaration(
                name="rdap_lookup",
                description=(
                    "Look up domain registration data via RDAP (with WHOIS fallback). Returns: registration "
                    "date, domain age, registrar name, registrant organization/name, registrant address and "
                    "country, registrant email and phone, and whether WHOIS privacy protection is enabled. "
                    "Use this to check domain age, ownership, and detect privacy proxies."
                ),
                args_model=RegistrableDomainArgs,
            ),
            _run_rdap_lookup,
        ),
        Tool(
            ToolDeclaration(
                name="safe_browsing",
                description=(
                    "Check a URL against Google Safe Browsing database for known malware, social engineering, "
                    "unwanted software, and potentially harmful applications. Returns threat types if any are found."
                ),
                args_model=UrlArgs,
            ),
            _run_safe_browsing,
        ),
        Tool(
            ToolDeclaration(
                name="check_homograph",
                description=(
                    "Detect homograph attacks in a hostname: Punycode encoding (xn-- prefix), Cyrillic lookalike "
                    "characters, zero-width invisible characters, and mixed-script content. These are techniques "
                    "used to make malicious domains look like legitimate ones."
                ),
                args_model=HostnameArgs,
            ),
            _run_check_homograph,
        ),
    )
}


def tool_definitions() -> list[dict[str, Any]]:
    return [tool.declaration.to_definition() for tool in TOOLS.values()]


async def execute_tool(name: str, arguments: Any, ctx: Optional[ToolContext] = None) -> BaseModel:
    """Run a tool by name. Never raises; failures come back as ToolError."""
    tool = TOOLS.get(name)
    if tool is None:
        return ToolError(error=f"Unknown tool: {name}")

    ctx = ctx or ToolContext()
    try:
        args = tool.declaration.args_model.model_validate(arguments or {})
    except ValidationError as e:
        logger.debug(f"Rejected arguments for {name}: {e}")
        return ToolError(error=f"Invalid arguments for {name}: {e.error_count()} validation error(s)")

    try:
        return await tool.handler(args, ctx)
    except Exception as e:
        logger.warning(f"Tool {name} failed: {type(e).__name__}: {e}")
        return ToolError(error=f"Tool {name} failed: {e}" if str(e) else f"Tool {name} failed")
