"""
Unit Tests for the Provider Adapters

Each adapter runs against a mocked LLMService; the Harmony adapter also gets
a fake codec so no tokenizer is loaded.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from codeagent.core.domain.errors import ProviderError, StepBudgetExceededError
from codeagent.core.domain.events import EventType, ReasoningEvent, TextEvent
from codeagent.core.domain.todo import ReasoningEffort
from codeagent.core.domain.usage import UsageLedger
from codeagent.infrastructure.llm import anthropic_adapter, harmony_adapter, registry, responses_adapter
from codeagent.infrastructure.llm.harmony_codec import HarmonyMessage
from codeagent.infrastructure.llm.service import LLMService


def event_types(events):
    return [event.type for event in events]


# -------------------------------
# Anthropic
# -------------------------------
class TestAnthropicAdapter:
    def test_reasoning_params(self):
        assert anthropic_adapter.reasoning_params(None) == {}
        assert anthropic_adapter.reasoning_params(ReasoningEffort.LOW) == {"temperature": 0.2}
        assert anthropic_adapter.reasoning_params(ReasoningEffort.HIGH) == {
            "thinking": {"type": "enabled", "budget_tokens": 2000}
        }

    @pytest.mark.asyncio
    async def test_tool_round_trip(self, mock_service, make_completion, make_request, fake_tool):
        bash = fake_tool("bash", result={"stdout": "a.py", "stderr": "", "exit_code": 0})
        mock_service.complete.side_effect = [
            make_completion("Listing files.", tool_calls=[("bash", {"command": "ls"})]),
            make_completion("There is one file."),
        ]
        request = make_request(tools={"bash": bash})

        stream = anthropic_adapter.stream_prompt(request, service=mock_service)
        events = await stream.drain()

        assert event_types(events) == [
            EventType.TEXT,
            EventType.TOOL_CALL,
            EventType.TOOL_RESULT,
            EventType.TEXT,
        ]
        assert stream.text == "There is one file."
        assert bash.calls == [{"command": "ls"}]

        second_messages = mock_service.complete.call_args_list[1].args[1]
        assert second_messages[-1] == {
            "role": "tool",
            "tool_call_id": "toolu_0",
            "content": '{"stdout": "a.py", "stderr": "", "exit_code": 0}',
        }

    @pytest.mark.asyncio
    async def test_thinking_keeps_loop_open_once(self, mock_service, make_completion, make_request):
        mock_service.complete.side_effect = [
            make_completion("", reasoning="Let me think."),
            make_completion("Answer.", reasoning="Still thinking."),
        ]

        stream = anthropic_adapter.stream_prompt(
            make_request(reasoning_effort=ReasoningEffort.MEDIUM), service=mock_service
        )
        events = await stream.drain()

        assert mock_service.complete.call_count == 2
        assert events[0] == ReasoningEvent(session_id="session-1", text="Let me think.")
        assert events[-1] == TextEvent(session_id="session-1", text="Answer.")
        continued = mock_service.complete.call_args_list[1].args[1]
        assert continued[-1] == {"role": "user", "content": anthropic_adapter.CONTINUE_PROMPT}

    @pytest.mark.asyncio
    async def test_max_steps_stops_before_tools(self, mock_service, make_completion, make_request, fake_tool):
        bash = fake_tool("bash")
        mock_service.complete.side_effect = lambda *args, **kwargs: make_completion(
            "", tool_calls=[("bash", {"command": "ls"})]
        )

        stream = anthropic_adapter.stream_prompt(
            make_request(tools={"bash": bash}, max_steps=2), service=mock_service
        )
        await stream.drain()

        assert mock_service.complete.call_count == 2
        assert len(bash.calls) == 1
        assert stream.outcome.rounds == 2

    @pytest.mark.asyncio
    async def test_early_return_ignores_later_calls(self, mock_service, make_completion, make_request, fake_tool):
        plan = fake_tool("write_todos", result="success")
        bash = fake_tool("bash")
        mock_service.complete.return_value = make_completion(
            "", tool_calls=[("write_todos", {"todos": []}), ("bash", {"command": "ls"})]
        )

        stream = anthropic_adapter.stream_prompt(
            make_request(tools={"write_todos": plan, "bash": bash}, early_return_tool="write_todos"),
            service=mock_service,
        )
        events = await stream.drain()

        assert event_types(events) == [EventType.TOOL_CALL, EventType.TOOL_RESULT]
        assert events[-1].tool_name == "write_todos"
        assert bash.calls == []
        assert stream.outcome.early_returned
        assert mock_service.complete.call_count == 1

    @pytest.mark.asyncio
    async def test_failure_emits_one_error_event(self, mock_service, make_request):
        mock_service.complete.return_value = {"success": False, "error": "rate limited", "model": "m"}

        stream = anthropic_adapter.stream_prompt(make_request(), service=mock_service)
        events = []
        with pytest.raises(ProviderError, match="rate limited"):
            async for event in stream:
                events.append(event)

        assert event_types(events) == [EventType.ERROR]

    @pytest.mark.asyncio
    async def test_usage_recorded_per_round(self, mock_service, make_completion, make_request):
        mock_service.complete.return_value = make_completion("Hi.", input_tokens=100, output_tokens=50)
        mock_service.cost.return_value = 0.25
        ledger = UsageLedger()

        await anthropic_adapter.stream_prompt(
            make_request(record_usage=ledger.record), service=mock_service
        ).drain()

        assert (ledger.input_tokens, ledger.output_tokens, ledger.cost, ledger.step_count) == (100, 50, 0.25, 1)

    @pytest.mark.asyncio
    async def test_step_budget_is_not_wrapped(self, mock_service, make_completion, make_request):
        mock_service.complete.return_value = make_completion("Hi.")
        ledger = UsageLedger(max_steps=0)

        stream = anthropic_adapter.stream_prompt(make_request(record_usage=ledger.record), service=mock_service)
        events = []
        with pytest.raises(StepBudgetExceededError):
            async for event in stream:
                events.append(event)

        assert events == []


# -------------------------------
# OpenAI responses
# -------------------------------
def responses_result(output, response_id="resp_1", input_tokens=10, output_tokens=5):
    return {
        "success": True,
        "model": "gpt-5",
        "latency_ms": 1,
        "response_id": response_id,
        "output": output,
        "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
    }


class TestResponsesAdapter:
    def test_request_params(self, make_request, fake_tool):
        request = make_request(tools={"write_todos": fake_tool("write_todos")}, planning_mode=True, verbosity="low")

        params = responses_adapter.request_params(request)

        assert params["reasoning"] == {"effort": "medium", "summary": "auto"}
        assert params["text"] == {"verbosity": "low"}
        assert params["tool_choice"] == "auto"
        assert params["parallel_tool_calls"] is False
        assert params["tools"][0]["strict"] is True

    @pytest.mark.asyncio
    async def test_continuation_sends_only_tool_outputs(self, mock_service, make_request, fake_tool):
        bash = fake_tool("bash", result="a.py")
        mock_service.respond = AsyncMock(
            side_effect=[
                responses_result(
                    [
                        {"type": "reasoning", "text": "Need to list files."},
                        {"type": "function_call", "call_id": "fc_1", "name": "bash", "arguments": '{"command": "ls"}'},
                    ],
                    response_id="resp_1",
                ),
                responses_result(
                    [
                        {"type": "message", "text": "One file: "},
                        {"type": "message", "text": "a.py"},
                    ],
                    response_id="resp_2",
                ),
            ]
        )

        stream = responses_adapter.stream_prompt(make_request(tools={"bash": bash}), service=mock_service)
        events = await stream.drain()

        assert event_types(events) == [
            EventType.REASONING,
            EventType.TOOL_CALL,
            EventType.TOOL_RESULT,
            EventType.TEXT,
        ]
        assert stream.text == "One file: a.py"

        first, second = mock_service.respond.call_args_list
        assert first.args[1][0] == {"role": "developer", "content": "system"}
        assert first.kwargs["previous_response_id"] is None
        assert second.args[1] == [{"type": "function_call_output", "call_id": "fc_1", "output": "a.py"}]
        assert second.kwargs["previous_response_id"] == "resp_1"

    @pytest.mark.asyncio
    async def test_empty_output_ends_call(self, mock_service, make_request):
        mock_service.respond = AsyncMock(return_value=responses_result([]))

        events = await responses_adapter.stream_prompt(make_request(), service=mock_service).drain()

        assert events == []
        assert mock_service.respond.call_count == 1


# -------------------------------
# Harmony
# -------------------------------
class FakeCodec:
    """Scripted TranscriptCodec recording every rendered conversation."""

    def __init__(self, completions):
        self.completions = list(completions)
        self.rendered = []

    def render(self, instructions, tools, reasoning_effort, messages):
        self.rendered.append(
            {"instructions": instructions, "tools": tools, "effort": reasoning_effort, "messages": list(messages)}
        )
        return f"<prompt {len(self.rendered)}>"

    def parse_completion(self, completion):
        return self.completions.pop(0)


def text_result(text="raw", input_tokens=10, output_tokens=5):
    return {
        "success": True,
        "model": "fireworks_ai/accounts/fireworks/models/gpt-oss-120b",
        "text": text,
        "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
    }


class TestHarmonyAdapter:
    @pytest.fixture
    def harmony_service(self):
        service = MagicMock(spec=LLMService)
        service.complete_text = AsyncMock(return_value=text_result())
        service.cost = MagicMock(return_value=0.0)
        return service

    @pytest.mark.asyncio
    async def test_routes_calls_reasoning_and_text(self, harmony_service, make_request, fake_tool):
        bash = fake_tool("bash", result="a.py")
        codec = FakeCodec(
            [
                [
                    HarmonyMessage("assistant", "I should list files.", channel="analysis"),
                    HarmonyMessage(
                        "assistant",
                        '{"command": "ls"}',
                        channel="commentary",
                        recipient="functions.bash<|channel|>commentary",
                    ),
                ],
                [HarmonyMessage("assistant", "There is a.py.", channel="final")],
            ]
        )

        stream = harmony_adapter.stream_prompt(
            make_request(tools={"bash": bash}, planning_mode=True), service=harmony_service, codec=codec
        )
        events = await stream.drain()

        assert event_types(events) == [
            EventType.REASONING,
            EventType.TOOL_CALL,
            EventType.TOOL_RESULT,
            EventType.TEXT,
        ]
        assert events[1].tool_name == "bash"
        assert events[1].tool_call_id.startswith("call_")
        assert bash.calls == [{"command": "ls"}]
        assert stream.text == "There is a.py."

        first_messages = codec.rendered[0]["messages"]
        assert first_messages[1] == HarmonyMessage(
            "assistant", harmony_adapter.PLANNING_PREAMBLE, channel="commentary"
        )
        tool_message = codec.rendered[1]["messages"][-1]
        assert tool_message.role == "tool"
        assert tool_message.name == "functions.bash"
        assert tool_message.content == "a.py"

    @pytest.mark.asyncio
    async def test_constrain_prefix_is_a_tool_call(self, harmony_service, make_request, fake_tool):
        plan = fake_tool("write_todos", result="success")
        codec = FakeCodec(
            [[HarmonyMessage("assistant", '{"todos": []}', recipient="<|constrain|>write_todos")]]
        )

        events = await harmony_adapter.stream_prompt(
            make_request(tools={"write_todos": plan}, early_return_tool="write_todos"),
            service=harmony_service,
            codec=codec,
        ).drain()

        assert event_types(events) == [EventType.TOOL_CALL, EventType.TOOL_RESULT]
        assert harmony_service.complete_text.call_count == 1

    @pytest.mark.asyncio
    async def test_transcript_receives_prompt_and_completion(self, harmony_service, make_request):
        transcript = MagicMock()
        codec = FakeCodec([[HarmonyMessage("assistant", "Hi.", channel="final")]])

        await harmony_adapter.stream_prompt(
            make_request(transcript=transcript), service=harmony_service, codec=codec
        ).drain()

        assert [call.args for call in transcript.write.call_args_list] == [
            ("prompt", "<prompt 1>"),
            ("completion", "raw"),
        ]

    @pytest.mark.asyncio
    async def test_failed_completion(self, harmony_service, make_request):
        harmony_service.complete_text.return_value = {"success": False, "error": "503", "model": "m"}
        codec = FakeCodec([])

        stream = harmony_adapter.stream_prompt(make_request(), service=harmony_service, codec=codec)
        events = []
        with pytest.raises(ProviderError, match="Completion request failed: 503"):
            async for event in stream:
                events.append(event)

        assert event_types(events) == [EventType.ERROR]


def test_registry_shares_one_service(mock_service):
    adapters = registry.build_adapters(mock_service)

    assert tuple(adapters) == registry.PROVIDERS
    assert all(adapter.keywords["service"] is mock_service for adapter in adapters.values())
