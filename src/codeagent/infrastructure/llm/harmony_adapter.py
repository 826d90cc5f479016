"""
Harmony Adapter

Drives a gpt-oss conversation at the token-transcript level. Every round
renders the whole exchange into one Harmony prompt, sends it to a raw text
completions endpoint, and parses the completion back into messages:
- assistant messages addressed to ``functions.<name>`` are tool calls
- ``analysis`` channel messages become reasoning
- everything else is assistant text
Tool results are appended as tool-authored messages for the next round.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from typing import Any

import structlog

from codeagent.core.domain.errors import ProviderError
from codeagent.core.domain.events import Event, ReasoningEvent, TextEvent
from codeagent.core.interfaces.provider import PromptOutcome, PromptRequest, PromptStream
from codeagent.infrastructure.llm.harmony_codec import HarmonyCodec, HarmonyMessage, TranscriptCodec
from codeagent.infrastructure.llm.harmony_routing import FUNCTIONS_PREFIX, parse_tool_recipient
from codeagent.infrastructure.llm.service import LLMService
from codeagent.infrastructure.llm.streaming import guard_provider_errors
from codeagent.infrastructure.llm.tool_calls import PendingToolCall

PROVIDER = "together"
PLANNING_PREAMBLE = "I'll help you plan this task step by step."
ANALYSIS_CHANNEL = "analysis"

logger = structlog.get_logger(component="harmony_adapter")

_default_codec: HarmonyCodec | None = None


def default_codec() -> HarmonyCodec:
    """Process-wide codec; the encoding is loaded once on first use."""
    global _default_codec
    if _default_codec is None:
        _default_codec = HarmonyCodec()
    return _default_codec


def tool_descriptions(request: PromptRequest) -> list[dict[str, Any]]:
    return [
        {"name": tool.name, "description": tool.description, "parameters": tool.parameters_schema}
        for tool in request.tools.values()
    ]


def stream_prompt(
    request: PromptRequest,
    service: LLMService | None = None,
    codec: TranscriptCodec | None = None,
) -> PromptStream:
    """Start a Harmony transcript call."""
    service = service or LLMService()
    codec = codec or default_codec()
    return PromptStream(
        lambda outcome: guard_provider_errors(
            PROVIDER, request.session_id, _run(request, service, codec, outcome)
        )
    )


async def _run(
    request: PromptRequest,
    service: LLMService,
    codec: TranscriptCodec,
    outcome: PromptOutcome,
) -> AsyncIterator[Event]:
    log = logger.bind(session_id=request.session_id)
    tools = tool_descriptions(request)
    messages = [HarmonyMessage(role="user", content=request.prompt)]
    if request.planning_mode:
        messages.append(HarmonyMessage(role="assistant", content=PLANNING_PREAMBLE, channel="commentary"))

    while True:
        prompt_text = codec.render(request.system, tools, request.reasoning_effort, messages)
        if request.transcript is not None:
            request.transcript.write("prompt", prompt_text)

        result = await service.complete_text(
            PROVIDER, prompt_text, model=request.model, api_key=request.api_key
        )
        if not result["success"]:
            raise ProviderError(f"Completion request failed: {result['error']}", provider=PROVIDER)

        usage = result["usage"]
        request.record_usage(
            usage["input_tokens"],
            usage["output_tokens"],
            service.cost(result["model"], usage["input_tokens"], usage["output_tokens"]),
        )
        outcome.rounds += 1
        if request.transcript is not None:
            request.transcript.write("completion", result["text"])

        new_messages = codec.parse_completion(result["text"])
        if not new_messages:
            log.info("empty_completion", rounds=outcome.rounds)
            break

        reasoning_parts: list[str] = []
        text_parts: list[str] = []
        calls: list[tuple[str, HarmonyMessage]] = []
        for message in new_messages:
            tool_name = parse_tool_recipient(message.recipient)
            if tool_name is not None:
                calls.append((tool_name, message))
            elif message.content:
                if message.channel == ANALYSIS_CHANNEL:
                    reasoning_parts.append(message.content)
                else:
                    text_parts.append(message.content)

        if reasoning_parts:
            yield ReasoningEvent(session_id=request.session_id, text="\n\n".join(reasoning_parts))
        if text_parts:
            outcome.text = "\n\n".join(text_parts)
            yield TextEvent(session_id=request.session_id, text=outcome.text)

        if not calls:
            break

        if request.max_steps is not None and outcome.rounds >= request.max_steps:
            log.info("max_steps_reached", rounds=outcome.rounds, pending_calls=len(calls))
            break

        tool_messages = []
        for tool_name, message in calls:
            call_id = f"call_{uuid.uuid4().hex[:12]}"
            pending = PendingToolCall.from_raw(request, call_id, tool_name, message.content)
            yield pending.event
            tool_outcome = await pending.run()
            yield tool_outcome.event
            if tool_outcome.early_return:
                outcome.early_returned = True
                log.info("early_return", tool=tool_name, rounds=outcome.rounds)
                return
            tool_messages.append(
                HarmonyMessage(
                    role="tool",
                    content=tool_outcome.content,
                    channel="commentary",
                    recipient="assistant",
                    name=f"{FUNCTIONS_PREFIX}{tool_name}",
                )
            )

        messages = [*messages, *new_messages, *tool_messages]

    log.info("harmony_call_completed", rounds=outcome.rounds)
