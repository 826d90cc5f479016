"""
Anthropic Adapter

Drives a native tool-calling conversation against the Anthropic messages
endpoint (through litellm) and emits normalized events.

Thinking is enabled for medium (1024 token budget) and high (2000) effort;
low effort runs cold at temperature 0.2. A round that produced thinking but
no tool calls keeps the loop open for one more round.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import structlog

from codeagent.core.domain.errors import ProviderError
from codeagent.core.domain.events import Event, ReasoningEvent, TextEvent
from codeagent.core.domain.todo import ReasoningEffort
from codeagent.core.interfaces.provider import PromptOutcome, PromptRequest, PromptStream
from codeagent.infrastructure.llm.service import LLMService
from codeagent.infrastructure.llm.streaming import guard_provider_errors
from codeagent.infrastructure.llm.tool_calls import PendingToolCall
from codeagent.infrastructure.llm.tool_converter import tool_result_to_message, tools_to_openai_format

PROVIDER = "anthropic"
THINKING_BUDGETS = {ReasoningEffort.MEDIUM: 1024, ReasoningEffort.HIGH: 2000}
CONTINUE_PROMPT = "Continue."

logger = structlog.get_logger(component="anthropic_adapter")


def reasoning_params(effort: ReasoningEffort | None) -> dict[str, Any]:
    """Thinking or temperature parameters for an effort level."""
    if effort is None:
        return {}
    if effort is ReasoningEffort.LOW:
        return {"temperature": 0.2}
    return {"thinking": {"type": "enabled", "budget_tokens": THINKING_BUDGETS[effort]}}


def stream_prompt(request: PromptRequest, service: LLMService | None = None) -> PromptStream:
    """Start an Anthropic call; events are produced as the stream is consumed."""
    service = service or LLMService()
    return PromptStream(
        lambda outcome: guard_provider_errors(
            PROVIDER, request.session_id, _run(request, service, outcome)
        )
    )


async def _run(request: PromptRequest, service: LLMService, outcome: PromptOutcome) -> AsyncIterator[Event]:
    log = logger.bind(session_id=request.session_id)
    messages: list[dict[str, Any]] = [
        {"role": "system", "content": request.system},
        {"role": "user", "content": request.prompt},
    ]
    tools = tools_to_openai_format(request.tools)
    params = reasoning_params(request.reasoning_effort)
    continued_for_thinking = False

    while True:
        result = await service.complete(
            PROVIDER,
            list(messages),
            model=request.model,
            api_key=request.api_key,
            tools=tools or None,
            **params,
        )
        if not result["success"]:
            raise ProviderError(f"Anthropic request failed: {result['error']}", provider=PROVIDER)

        usage = result["usage"]
        request.record_usage(
            usage["input_tokens"],
            usage["output_tokens"],
            service.cost(result["model"], usage["input_tokens"], usage["output_tokens"]),
        )
        outcome.rounds += 1

        if result["reasoning"]:
            yield ReasoningEvent(session_id=request.session_id, text=result["reasoning"])
        if result["content"]:
            outcome.text = result["content"]
            yield TextEvent(session_id=request.session_id, text=result["content"])

        messages.append(result["message"])
        tool_calls = result["tool_calls"]
        steps_spent = request.max_steps is not None and outcome.rounds >= request.max_steps

        if not tool_calls:
            if result["reasoning"] and not continued_for_thinking and not steps_spent:
                continued_for_thinking = True
                messages.append({"role": "user", "content": CONTINUE_PROMPT})
                log.debug("thinking_continuation", round=outcome.rounds)
                continue
            break
        continued_for_thinking = False

        if steps_spent:
            log.info("max_steps_reached", rounds=outcome.rounds, pending_calls=len(tool_calls))
            break

        for call in tool_calls:
            pending = PendingToolCall.from_raw(request, call["id"], call["name"], call["arguments"])
            yield pending.event
            tool_outcome = await pending.run()
            yield tool_outcome.event
            if tool_outcome.early_return:
                outcome.early_returned = True
                log.info("early_return", tool=call["name"], rounds=outcome.rounds)
                return
            messages.append(tool_result_to_message(call["id"], tool_outcome.content))

    log.info("anthropic_call_completed", rounds=outcome.rounds)
