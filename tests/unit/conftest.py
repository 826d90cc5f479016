"""Shared fixtures: fake tools, a scripted LLMService and session wiring."""

import json
from functools import partial
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from codeagent.core.interfaces.provider import PromptRequest
from codeagent.infrastructure.llm import anthropic_adapter
from codeagent.infrastructure.llm.service import LLMService
from codeagent.infrastructure.tools.write_todos_tool import WriteTodosTool


class FakeTool:
    """ToolProtocol implementation recording calls and disposals."""

    def __init__(self, name: str, result: Any = "ok", error: Exception | None = None):
        self.name = name
        self.description = f"Fake {name}"
        self.parameters_schema = {"type": "object", "properties": {}}
        self.result = result
        self.error = error
        self.calls: list[dict[str, Any]] = []
        self.dispose_count = 0

    async def execute(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.result

    async def dispose(self) -> None:
        self.dispose_count += 1


class FakeToolFactory:
    """ToolFactory handing out fresh fake tools and remembering them."""

    def __init__(self):
        self.analysis: list[dict[str, FakeTool]] = []
        self.execution: list[dict[str, FakeTool]] = []

    def planning_tools(self):
        return {"write_todos": WriteTodosTool()}

    def analysis_tools(self):
        tools = {"bash": FakeTool("bash", result={"stdout": "README.md\n", "stderr": "", "exit_code": 0})}
        self.analysis.append(tools)
        return tools

    def execution_tools(self):
        tools = {
            name: FakeTool(name)
            for name in ("bash", "str_replace_based_edit_tool", "web_search", "web_fetch")
        }
        self.execution.append(tools)
        return tools


def completion(
    content: str = "",
    reasoning: str = "",
    tool_calls: list[tuple[str, Any]] | None = None,
    input_tokens: int = 10,
    output_tokens: int = 5,
    model: str = "anthropic/claude-sonnet-4-20250514",
) -> dict[str, Any]:
    """A successful ``LLMService.complete`` result."""
    calls = [
        {
            "id": f"toolu_{index}",
            "name": name,
            "arguments": args if isinstance(args, str) else json.dumps(args),
        }
        for index, (name, args) in enumerate(tool_calls or [])
    ]
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if calls:
        message["tool_calls"] = [
            {"id": c["id"], "type": "function", "function": {"name": c["name"], "arguments": c["arguments"]}}
            for c in calls
        ]
    return {
        "success": True,
        "model": model,
        "latency_ms": 1,
        "content": content,
        "reasoning": reasoning,
        "tool_calls": calls,
        "message": message,
        "usage": {"input_tokens": input_tokens, "output_tokens": output_tokens},
    }


@pytest.fixture
def make_completion():
    return completion


@pytest.fixture
def mock_service():
    """LLMService whose ``complete`` results are scripted per test."""
    service = MagicMock(spec=LLMService)
    service.complete = AsyncMock()
    service.cost = MagicMock(return_value=0.0)
    return service


@pytest.fixture
def adapters(mock_service):
    return {"anthropic": partial(anthropic_adapter.stream_prompt, service=mock_service)}


@pytest.fixture
def tool_factory():
    return FakeToolFactory()


@pytest.fixture
def fake_tool():
    return FakeTool


@pytest.fixture
def make_request():
    def _make(**overrides: Any) -> PromptRequest:
        params: dict[str, Any] = {"session_id": "session-1", "system": "system", "prompt": "prompt"}
        params.update(overrides)
        return PromptRequest(**params)

    return _make
