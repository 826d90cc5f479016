"""
Output formatting for the CLI event stream.
"""

import json
from enum import Enum
from typing import Any

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from codeagent.core.domain.events import (
    CompletedEvent,
    ErrorEvent,
    Event,
    ReasoningEvent,
    TextEvent,
    TodosEvent,
    ToolCallEvent,
    ToolErrorEvent,
    ToolResultEvent,
    event_to_dict,
)
from codeagent.core.domain.todo import STATUS_GLYPHS

MAX_PREVIEW_CHARS = 300


class OutputFormat(Enum):
    """Available output formats."""
    RICH = "rich"
    JSON = "json"


def preview(value: Any, limit: int = MAX_PREVIEW_CHARS) -> str:
    """Single string preview of a tool argument or result, cut at ``limit``."""
    text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, default=str)
    if len(text) > limit:
        return text[:limit] + f"... ({len(text) - limit} more chars)"
    return text


class EventConsole:
    """Renders session events to a Rich console, or as JSON lines."""

    def __init__(
        self,
        console: Console | None = None,
        output_format: OutputFormat = OutputFormat.RICH,
        show_reasoning: bool = True,
    ):
        self.console = console or Console()
        self.output_format = output_format
        self.show_reasoning = show_reasoning

    def render(self, event: Event) -> None:
        if self.output_format == OutputFormat.JSON:
            self.console.print_json(json.dumps(event_to_dict(event), ensure_ascii=False, default=str))
            return

        if isinstance(event, TextEvent):
            self.console.print(Markdown(event.text))
        elif isinstance(event, ReasoningEvent):
            if self.show_reasoning:
                self.console.print(Text(event.text, style="dim italic"))
        elif isinstance(event, ToolCallEvent):
            self.console.print(f"[cyan]→ {event.tool_name}[/cyan] [dim]{escape(preview(event.args))}[/dim]")
        elif isinstance(event, ToolResultEvent):
            self.console.print(f"[green]✓ {event.tool_name}[/green] [dim]{escape(preview(event.result))}[/dim]")
        elif isinstance(event, ToolErrorEvent):
            self.console.print(f"[yellow]✗ {event.tool_name}[/yellow] {escape(preview(event.error))}")
        elif isinstance(event, ErrorEvent):
            self.print_error(event.error)
        elif isinstance(event, TodosEvent):
            self.print_todos(event)
        elif isinstance(event, CompletedEvent):
            self.print_completed(event)

    def print_todos(self, event: TodosEvent) -> None:
        title = "Todos"
        if event.reasoning_effort is not None:
            title += f" (effort: {event.reasoning_effort.value})"
        table = Table(title=title, show_header=False)
        table.add_column("#", style="dim", no_wrap=True)
        table.add_column("Status", no_wrap=True)
        table.add_column("Description", style="white")
        for index, todo in enumerate(event.todos, start=1):
            description = todo.description
            if len(description) > 80:
                description = description[:77] + "..."
            table.add_row(str(index), STATUS_GLYPHS[todo.status], description)
        self.console.print(table)

    def print_completed(self, event: CompletedEvent) -> None:
        table = Table(show_header=False)
        table.add_column("Property", style="cyan")
        table.add_column("Value", style="white")
        table.add_row("Session", event.session_id)
        table.add_row("Todos", str(len(event.todos)))
        table.add_row("Steps", str(event.step_count))
        table.add_row("Tokens", f"{event.input_tokens} in / {event.output_tokens} out")
        table.add_row("Duration", f"{event.duration_ms / 1000:.1f}s")
        if event.total_cost is not None:
            table.add_row("Cost", f"${event.total_cost:.4f}")
        self.console.print(Panel(table, title="[bold green]Completed[/bold green]", expand=False))

    def print_error(self, message: str) -> None:
        self.console.print(f"[bold red]Error:[/bold red] {escape(message)}")
