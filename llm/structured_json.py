from __future__ import annotations

import json
import re
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from framework.errors import ResponseParseError

TModel = TypeVar("TModel", bound=BaseModel)

_FENCE_OPEN = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")


def _strip_code_fences(text: str) -> str:
    text = text.strip()
    if not text.startswith("```"):
        return text
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text, count=1)).strip()


def _find_object(text: str) -> str | None:
    """Outermost {...} span, tolerating prose before and after it."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start : end + 1]


def extract_json_object(text: str) -> dict[str, Any]:
    """Parse the JSON object in a model reply.

    Handles code fences and leading/trailing prose. Anything else is a
    ResponseParseError carrying an excerpt of the raw reply.
    """
    if not text or not text.strip():
        raise ResponseParseError("Empty response from model")

    candidate = _find_object(_strip_code_fences(text))
    if candidate is None:
        raise ResponseParseError("No JSON object found in model response", raw_response=text)

    try:
        data = json.loads(candidate)
    except ValueError as e:
        raise ResponseParseError(f"Failed to parse model response as JSON: {e}", raw_response=text) from e
    if not isinstance(data, dict):
        raise ResponseParseError("Model response JSON is not an object", raw_response=text)
    return data


def response_text(response: Any) -> str:
    content = response.content if hasattr(response, "content") else response
    if isinstance(content, list):
        # Anthropic-style content blocks
        return "".join(block.get("text", "") if isinstance(block, dict) else str(block) for block in content)
    return str(content)


def validate_model(data: dict, model: type[TModel], raw_text: str = "") -> TModel:
    # Drop explicit nulls so model defaults can apply.
    cleaned = {key: value for key, value in data.items() if value is not None}
    try:
        return model(**cleaned)
    except ValidationError as e:
        raise ResponseParseError(
            f"Model response does not match {model.__name__}: {e.error_count()} validation error(s)",
            raw_response=raw_text or json.dumps(data),
        ) from e

