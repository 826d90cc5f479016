"""
Todo Model and Plan Context

A todo is one unit of planned work. The session owns the list and walks it
strictly in order; every pending todo carries a rendered view of the whole
plan so the executing model knows what came before and what comes after.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable


class TodoStatus(str, Enum):
    """Lifecycle of a todo: pending -> in_progress -> completed."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ReasoningEffort(str, Enum):
    """Reasoning-effort hint passed to the model."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def parse_reasoning_effort(value: Any, default: ReasoningEffort = ReasoningEffort.MEDIUM) -> ReasoningEffort:
    """Parse a free-form effort value, falling back to ``default``."""
    text = str(value or "").strip().lower()
    try:
        return ReasoningEffort(text)
    except ValueError:
        return default


NO_TODOS_SENTINEL = "No todos available"

STATUS_GLYPHS = {
    TodoStatus.COMPLETED: "✅",
    TodoStatus.IN_PROGRESS: "🔄",
    TodoStatus.PENDING: "⏳",
}


@dataclass
class Todo:
    """
    A single planned unit of work.

    Attributes:
        description: What to do
        reasoning_effort: Effort hint used when executing this todo
        context: Rendered plan context, refreshed on every plan change
        status: Lifecycle state
        summary: Final assistant text once the todo is executed
        paths: Filesystem paths touched while executing (ordered, unique)
    """

    description: str
    reasoning_effort: ReasoningEffort = ReasoningEffort.MEDIUM
    context: str = ""
    status: TodoStatus = TodoStatus.PENDING
    summary: str | None = None
    paths: list[str] = field(default_factory=list)

    def start(self) -> None:
        if self.status is not TodoStatus.PENDING:
            raise ValueError(f"Cannot start todo in status {self.status.value}")
        self.status = TodoStatus.IN_PROGRESS

    def complete(self, summary: str | None) -> None:
        if self.status is not TodoStatus.IN_PROGRESS:
            raise ValueError(f"Cannot complete todo in status {self.status.value}")
        self.summary = summary
        self.status = TodoStatus.COMPLETED

    def merge_paths(self, paths: Iterable[str]) -> None:
        """Add paths in order, skipping ones already recorded."""
        for path in paths:
            if path not in self.paths:
                self.paths.append(path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "reasoning_effort": self.reasoning_effort.value,
            "context": self.context,
            "status": self.status.value,
            "summary": self.summary,
            "paths": list(self.paths),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Todo":
        status_raw = str(data.get("status") or TodoStatus.PENDING.value).lower()
        try:
            status = TodoStatus(status_raw)
        except ValueError:
            status = TodoStatus.PENDING
        return cls(
            description=str(data.get("description", "")).strip(),
            reasoning_effort=parse_reasoning_effort(
                data.get("reasoning_effort", data.get("reasoningEffort"))
            ),
            context=str(data.get("context") or ""),
            status=status,
            summary=data.get("summary"),
            paths=list(data.get("paths") or []),
        )

    def snapshot(self) -> "Todo":
        """Detached copy handed to event consumers."""
        return Todo(
            description=self.description,
            reasoning_effort=self.reasoning_effort,
            context=self.context,
            status=self.status,
            summary=self.summary,
            paths=list(self.paths),
        )


def render_context(todos: list[Todo]) -> str:
    """
    Render the plan as one numbered line per todo.

    Returns:
        ``"No todos available"`` for an empty plan, otherwise lines of the
        form ``"1. ✅ description (summary)"``.
    """
    if not todos:
        return NO_TODOS_SENTINEL

    lines = []
    for index, todo in enumerate(todos, start=1):
        line = f"{index}. {STATUS_GLYPHS[todo.status]} {_one_line(todo.description)}"
        if todo.summary:
            line += f" ({_one_line(todo.summary)})"
        lines.append(line)
    return "\n".join(lines)


def _one_line(text: str) -> str:
    return " ".join(text.split())


def refresh_pending_context(todos: list[Todo]) -> None:
    """Attach the freshly rendered plan to every pending todo."""
    context = render_context(todos)
    for todo in todos:
        if todo.status is TodoStatus.PENDING:
            todo.context = context
