"""
OpenAI Responses Adapter

Drives a conversation against the stateful responses endpoint. The first
round sends developer and user input; every later round sends only the
``function_call_output`` items of the previous round together with the
``previous_response_id`` continuation token.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import structlog

from codeagent.core.domain.errors import ProviderError
from codeagent.core.domain.events import Event, ReasoningEvent, TextEvent
from codeagent.core.interfaces.provider import PromptOutcome, PromptRequest, PromptStream
from codeagent.infrastructure.llm.service import LLMService
from codeagent.infrastructure.llm.streaming import guard_provider_errors
from codeagent.infrastructure.llm.tool_calls import PendingToolCall
from codeagent.infrastructure.llm.tool_converter import (
    tool_result_to_function_output,
    tools_to_responses_format,
)

PROVIDER = "openai"
DEFAULT_EFFORT = "medium"
DEFAULT_VERBOSITY = "medium"

logger = structlog.get_logger(component="responses_adapter")


def request_params(request: PromptRequest) -> dict[str, Any]:
    """Per-call parameters that stay the same for every round."""
    effort = request.reasoning_effort.value if request.reasoning_effort else DEFAULT_EFFORT
    params: dict[str, Any] = {
        "reasoning": {"effort": effort, "summary": "auto"},
        "text": {"verbosity": request.verbosity or DEFAULT_VERBOSITY},
    }
    tools = tools_to_responses_format(request.tools)
    if tools:
        params["tools"] = tools
        params["tool_choice"] = "auto"
    if request.planning_mode:
        params["parallel_tool_calls"] = False
    return params


def stream_prompt(request: PromptRequest, service: LLMService | None = None) -> PromptStream:
    """Start a responses-endpoint call."""
    service = service or LLMService()
    return PromptStream(
        lambda outcome: guard_provider_errors(
            PROVIDER, request.session_id, _run(request, service, outcome)
        )
    )


async def _run(request: PromptRequest, service: LLMService, outcome: PromptOutcome) -> AsyncIterator[Event]:
    log = logger.bind(session_id=request.session_id)
    params = request_params(request)
    next_input: list[dict[str, Any]] = [
        {"role": "developer", "content": request.system},
        {"role": "user", "content": request.prompt},
    ]
    previous_response_id: str | None = None

    while True:
        result = await service.respond(
            PROVIDER,
            next_input,
            model=request.model,
            api_key=request.api_key,
            previous_response_id=previous_response_id,
            **params,
        )
        if not result["success"]:
            raise ProviderError(f"OpenAI request failed: {result['error']}", provider=PROVIDER)

        usage = result["usage"]
        request.record_usage(
            usage["input_tokens"],
            usage["output_tokens"],
            service.cost(result["model"], usage["input_tokens"], usage["output_tokens"]),
        )
        outcome.rounds += 1

        output = result["output"]
        if not output:
            log.info("empty_response_output", rounds=outcome.rounds)
            break
        previous_response_id = result["response_id"]

        text = ""
        function_calls = []
        for item in output:
            if item["type"] == "reasoning" and item["text"]:
                yield ReasoningEvent(session_id=request.session_id, text=item["text"])
            elif item["type"] == "message":
                text += item["text"]
            elif item["type"] == "function_call":
                function_calls.append(item)

        if text:
            outcome.text = text
            yield TextEvent(session_id=request.session_id, text=text)

        if not function_calls:
            break

        if request.max_steps is not None and outcome.rounds >= request.max_steps:
            log.info("max_steps_reached", rounds=outcome.rounds, pending_calls=len(function_calls))
            break

        outputs = []
        for call in function_calls:
            pending = PendingToolCall.from_raw(request, call["call_id"], call["name"], call["arguments"])
            yield pending.event
            tool_outcome = await pending.run()
            yield tool_outcome.event
            if tool_outcome.early_return:
                outcome.early_returned = True
                log.info("early_return", tool=call["name"], rounds=outcome.rounds)
                return
            outputs.append(tool_result_to_function_output(call["call_id"], tool_outcome.content))

        next_input = outputs

    log.info("responses_call_completed", rounds=outcome.rounds)
