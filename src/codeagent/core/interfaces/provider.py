"""
Provider Adapter Contract

A provider adapter turns one logical request into a lazy stream of
normalized events, whatever the vendor protocol looks like underneath.
Adapters are plain callables ``(PromptRequest) -> PromptStream``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Protocol

from codeagent.core.domain.errors import UnknownProviderError
from codeagent.core.domain.events import Event
from codeagent.core.domain.todo import ReasoningEffort
from codeagent.core.interfaces.tools import ToolProtocol

UsageRecorder = Callable[[int, int, float], None]


class TranscriptSink(Protocol):
    """Receives raw prompt and completion text, section by section."""

    def write(self, section: str, content: str) -> None: ...


@dataclass
class PromptRequest:
    """
    One logical model call.

    Attributes:
        session_id: Session the emitted events belong to
        system: System (or developer) instructions
        prompt: User content
        tools: Tools available for this call, keyed by name
        record_usage: Callback receiving (input_tokens, output_tokens, cost)
            after every round; may raise to abort the call
        model: Vendor model identifier
        api_key: Credential for the vendor, None to use the environment
        reasoning_effort: Reasoning hint, None for the vendor default
        verbosity: Output verbosity hint (responses endpoint only)
        max_steps: Rounds after which pending tool calls are not executed
        early_return_tool: Tool whose successful result ends the call
        planning_mode: Planning call; disables parallel tool calls and
            seeds a planning preamble where the vendor supports it
        paths_touched: Ordered set receiving paths edited during the call
        transcript: Optional raw transcript sink
    """

    session_id: str
    system: str
    prompt: str
    tools: dict[str, ToolProtocol] = field(default_factory=dict)
    record_usage: UsageRecorder = lambda input_tokens, output_tokens, cost: None
    model: str | None = None
    api_key: str | None = None
    reasoning_effort: ReasoningEffort | None = None
    verbosity: str | None = None
    max_steps: int | None = None
    early_return_tool: str | None = None
    planning_mode: bool = False
    paths_touched: dict[str, None] | None = None
    transcript: TranscriptSink | None = None


@dataclass
class PromptOutcome:
    """Mutable result slot filled while the stream is consumed."""

    text: str = ""
    rounds: int = 0
    early_returned: bool = False


class PromptStream:
    """
    Async iterator of events for one call.

    The stream is lazy and can be consumed once. After exhaustion ``text``
    holds the last non-empty assistant text.
    """

    def __init__(self, run: Callable[[PromptOutcome], AsyncIterator[Event]]):
        self.outcome = PromptOutcome()
        self._events = run(self.outcome)

    def __aiter__(self) -> "PromptStream":
        return self

    async def __anext__(self) -> Event:
        return await self._events.__anext__()

    @property
    def text(self) -> str:
        return self.outcome.text

    async def drain(self) -> list[Event]:
        """Consume the remaining events and return them."""
        return [event async for event in self]


class ProviderAdapter(Protocol):
    def __call__(self, request: PromptRequest) -> PromptStream: ...


def get_adapter(adapters: dict[str, ProviderAdapter], provider: str) -> ProviderAdapter:
    """
    Raises:
        UnknownProviderError: If no adapter is registered under ``provider``
    """
    try:
        return adapters[provider]
    except KeyError:
        raise UnknownProviderError(provider, list(adapters)) from None
