"""Bounded multi-turn tool-calling loop against the Interactions endpoint.

Send input -> receive function_call outputs -> execute tools -> send
function_result parts back -> repeat until the model answers in text.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel

from agent.interactions import FunctionCall, FunctionResult, InteractionsEndpoint
from framework.errors import AgentLoopExhausted
from framework.fanout import gather_with_limit

logger = logging.getLogger(__name__)

MAX_TURNS = 5
MAX_PARALLEL_TOOL_CALLS = 8

ToolExecutor = Callable[[str, dict[str, Any]], Awaitable[Any]]


@dataclass
class AgentTurnState:
    """Conversation state for one analysis request."""

    interaction_id: Optional[str] = None
    turn: int = 0
    tool_results: dict[str, Any] = field(default_factory=dict)
    tool_arguments: dict[str, dict[str, Any]] = field(default_factory=dict)
    tools_called: set[str] = field(default_factory=set)


@dataclass
class AgentLoopResult:
    text: str
    tool_results: dict[str, Any]
    tool_arguments: dict[str, dict[str, Any]]
    turns: int
    interaction_id: Optional[str] = None


def _encode_result(result: Any) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, BaseModel):
        return result.model_dump_json()
    return json.dumps(result, default=str)


async def run_agent_loop(
    *,
    endpoint: InteractionsEndpoint,
    model: str,
    system_instruction: str,
    input_parts: list[dict[str, Any]],
    tools: list[dict[str, Any]],
    tool_executor: ToolExecutor,
    max_turns: int = MAX_TURNS,
) -> AgentLoopResult:
    """Drive the model until it produces text or the turn budget runs out.

    Raises AgentLoopExhausted when `max_turns` model calls all ended in tool
    requests; endpoint failures propagate as LLMEndpointError.
    """
    state = AgentTurnState()
    current_input: list[dict[str, Any]] = input_parts

    while state.turn < max_turns:
        state.turn += 1
        body: dict[str, Any] = {
            "model": model,
            "input": current_input,
            "tools": tools,
            "system_instruction": system_instruction,
            "store": True,
        }
        if state.interaction_id:
            body["previous_interaction_id"] = state.interaction_id

        response = await endpoint.create(body)
        state.interaction_id = response.id or state.interaction_id

        calls = response.function_calls()
        if not calls:
            logger.info(f"Agent finished after {state.turn} turn(s); tools used: {sorted(state.tools_called)}")
            return AgentLoopResult(
                text=response.text(),
                tool_results=state.tool_results,
                tool_arguments=state.tool_arguments,
                turns=state.turn,
                interaction_id=state.interaction_id,
            )

        logger.info(f"Turn {state.turn}: model requested {[c.name for c in calls]}")

        async def _run(call: FunctionCall) -> FunctionResult:
            result = await tool_executor(call.name, call.arguments)
            # Last finished call wins for a repeated tool name
            state.tool_results[call.name] = result
            state.tool_arguments[call.name] = call.arguments
            state.tools_called.add(call.name)
            return FunctionResult(name=call.name, call_id=call.id, result=_encode_result(result))

        results = await gather_with_limit([_run(c) for c in calls], concurrency=MAX_PARALLEL_TOOL_CALLS)
        current_input = [r.model_dump() for r in results]

    logger.warning(f"Agent loop hit the {max_turns}-turn limit without a final answer")
    raise AgentLoopExhausted(max_turns)
