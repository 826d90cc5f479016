"""
Session Events

The event stream is the only output of a session. Every event is an
immutable fact tagged with the session it belongs to:
- text / reasoning: one complete assistant turn (never fragments)
- tool-call / tool-result / tool-error: the tool round trip
- error: an unrecoverable provider failure
- todos: a snapshot of the plan
- completed: final accounting for the session
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from codeagent.core.domain.todo import ReasoningEffort, Todo


class EventType(str, Enum):
    """Closed set of event kinds emitted by a session."""

    TEXT = "text"
    REASONING = "reasoning"
    TOOL_CALL = "tool-call"
    TOOL_RESULT = "tool-result"
    TOOL_ERROR = "tool-error"
    ERROR = "error"
    TODOS = "todos"
    COMPLETED = "completed"


@dataclass(frozen=True)
class TextEvent:
    session_id: str
    text: str
    type: EventType = field(default=EventType.TEXT, init=False)


@dataclass(frozen=True)
class ReasoningEvent:
    session_id: str
    text: str
    type: EventType = field(default=EventType.REASONING, init=False)


@dataclass(frozen=True)
class ToolCallEvent:
    """
    The model asked for a tool.

    Attributes:
        session_id: Owning session
        tool_call_id: Vendor identifier of the call (synthesized for Harmony)
        tool_name: Requested tool
        args: Parsed arguments (empty when they could not be parsed)
    """

    session_id: str
    tool_call_id: str
    tool_name: str
    args: dict[str, Any]
    type: EventType = field(default=EventType.TOOL_CALL, init=False)


@dataclass(frozen=True)
class ToolResultEvent:
    session_id: str
    tool_call_id: str
    tool_name: str
    result: Any
    type: EventType = field(default=EventType.TOOL_RESULT, init=False)


@dataclass(frozen=True)
class ToolErrorEvent:
    session_id: str
    tool_call_id: str
    tool_name: str
    error: str
    type: EventType = field(default=EventType.TOOL_ERROR, init=False)


@dataclass(frozen=True)
class ErrorEvent:
    session_id: str
    error: str
    type: EventType = field(default=EventType.ERROR, init=False)


@dataclass(frozen=True)
class TodosEvent:
    session_id: str
    todos: tuple[Todo, ...]
    reasoning_effort: ReasoningEffort | None = None
    type: EventType = field(default=EventType.TODOS, init=False)


@dataclass(frozen=True)
class CompletedEvent:
    """
    Final accounting for a session.

    Attributes:
        session_id: Owning session
        input_tokens: Sum of input tokens over all rounds
        output_tokens: Sum of output tokens over all rounds
        step_count: Number of model rounds
        duration_ms: Wall-clock duration of the session
        todos: Final plan
        total_cost: Accumulated cost in dollars, None when nothing was priced
    """

    session_id: str
    input_tokens: int
    output_tokens: int
    step_count: int
    duration_ms: int
    todos: tuple[Todo, ...]
    total_cost: float | None = None
    type: EventType = field(default=EventType.COMPLETED, init=False)


Event = Union[
    TextEvent,
    ReasoningEvent,
    ToolCallEvent,
    ToolResultEvent,
    ToolErrorEvent,
    ErrorEvent,
    TodosEvent,
    CompletedEvent,
]


def event_to_dict(event: Event) -> dict[str, Any]:
    """Serialize an event for JSON output."""
    data: dict[str, Any] = {"type": event.type.value}
    for name, value in vars(event).items():
        if name == "type":
            continue
        if name == "todos":
            value = [todo.to_dict() for todo in value]
        elif isinstance(value, Enum):
            value = value.value
        data[name] = value
    return data
