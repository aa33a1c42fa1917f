"""Thin client for the Gemini Interactions API.

Each call returns an interaction id; passing it back as
`previous_interaction_id` continues the same conversation server-side.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Literal, Optional, Protocol

import httpx
from pydantic import BaseModel, Field, ValidationError

from framework.errors import LLMEndpointError

logger = logging.getLogger(__name__)


class FunctionCall(BaseModel):
    """A tool call the model asked for."""

    id: str = Field(default="", description="Call id echoed back in the function_result")
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class InteractionOutput(BaseModel):
    type: str
    text: Optional[str] = None
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: Any = None


class InteractionResponse(BaseModel):
    id: Optional[str] = None
    outputs: list[InteractionOutput] = Field(default_factory=list)

    def function_calls(self) -> list[FunctionCall]:
        calls = []
        for output in self.outputs:
            if output.type != "function_call" or not output.name:
                continue
            arguments = output.arguments
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments)
                except ValueError:
                    arguments = {}
            calls.append(
                FunctionCall(id=output.id or "", name=output.name, arguments=arguments if isinstance(arguments, dict) else {})
            )
        return calls

    def text(self) -> str:
        return "".join(o.text for o in self.outputs if o.type == "text" and o.text)


class FunctionResult(BaseModel):
    type: Literal["function_result"] = "function_result"
    name: str
    call_id: str
    result: str


class InteractionsEndpoint(Protocol):
    async def create(self, body: dict[str, Any]) -> InteractionResponse: ...


class InteractionsClient:
    """POSTs interaction requests over httpx."""

    def __init__(
        self,
        api_key: str,
        url: str,
        timeout_s: float = 90.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key
        self.url = url
        self.timeout = httpx.Timeout(timeout_s, connect=10.0)
        self._client = client

    async def create(self, body: dict[str, Any]) -> InteractionResponse:
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}
        try:
            if self._client is not None:
                resp = await self._client.post(self.url, json=body, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.post(self.url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise LLMEndpointError(f"Interactions API request failed: {type(e).__name__}: {e}") from e

        if resp.status_code >= 400:
            raise LLMEndpointError(
                f"Interactions API error {resp.status_code}: {resp.text[:300]}",
                status_code=resp.status_code,
            )

        try:
            return InteractionResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise LLMEndpointError(
                f"Interactions API returned an unreadable body: {type(e).__name__}",
                status_code=resp.status_code,
                raw_response=resp.text,
            ) from e


def get_interactions_client() -> InteractionsClient:
    from config.settings import GEMINI_API_KEY, INTERACTIONS_URL, LLM_TIMEOUT_S
    from framework.errors import LLMConfigurationError

    if not GEMINI_API_KEY:
        raise LLMConfigurationError("Server is missing GEMINI_API_KEY")
    return InteractionsClient(GEMINI_API_KEY, INTERACTIONS_URL, timeout_s=LLM_TIMEOUT_S)
