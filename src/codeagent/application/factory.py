"""
Application Layer - Session Factory

Wires the core Session with its infrastructure collaborators:
- LLMService configured from YAML (packaged defaults unless a path is given)
- the three provider adapters sharing that service
- the default tool factory rooted at the working directory
- the default model configuration for the chosen provider

Both the CLI and ``codeagent.query`` go through this factory.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path

import structlog

from codeagent.core.domain.events import Event
from codeagent.core.domain.model_config import ModelConfigProvider, SessionEnvironment
from codeagent.core.domain.session import Session
from codeagent.core.domain.todo import Todo
from codeagent.core.interfaces.provider import ProviderAdapter, TranscriptSink, get_adapter
from codeagent.core.interfaces.tools import ToolFactory
from codeagent.core.prompts.session_prompts import DefaultModelConfigs
from codeagent.infrastructure.llm.registry import build_adapters
from codeagent.infrastructure.llm.service import LLMService
from codeagent.infrastructure.tools.factory import DefaultToolFactory

DEFAULT_LLM_CONFIG = Path(__file__).resolve().parent.parent / "configs" / "llm_config.yaml"


class SessionFactory:
    """
    Creates sessions with dependency injection.

    Args:
        llm_config_path: YAML file for the LLMService, None for the packaged defaults
        adapters: Adapter mapping to use instead of the default three
    """

    def __init__(
        self,
        llm_config_path: str | Path | None = None,
        adapters: dict[str, ProviderAdapter] | None = None,
    ):
        self.logger = structlog.get_logger().bind(component="session_factory")
        self.llm_config_path = Path(llm_config_path) if llm_config_path else DEFAULT_LLM_CONFIG
        self._adapters = adapters

    @property
    def adapters(self) -> dict[str, ProviderAdapter]:
        if self._adapters is None:
            service = LLMService(self.llm_config_path)
            self._adapters = build_adapters(service)
            self.logger.debug("adapters_created", providers=sorted(self._adapters), config=str(self.llm_config_path))
        return self._adapters

    def create_session(
        self,
        prompt: str,
        working_directory: str,
        provider: str = "anthropic",
        model: str | None = None,
        api_key: str | None = None,
        max_steps: int | None = None,
        triage: str = "model",
        models: ModelConfigProvider | None = None,
        tool_factory: ToolFactory | None = None,
        initial_todos: list[Todo] | None = None,
        repos: list[str] | None = None,
        transcript: TranscriptSink | None = None,
    ) -> AsyncIterator[Event]:
        """
        Create a session and return its event stream.

        Raises:
            UnknownProviderError: If no adapter is registered for ``provider``
        """
        adapters = self.adapters
        if models is None:
            get_adapter(adapters, provider)

        working_directory = str(Path(working_directory).resolve())
        self.logger.info(
            "creating_session",
            provider=provider,
            model=model,
            working_directory=working_directory,
            max_steps=max_steps,
            triage=triage,
        )
        return Session.create(
            prompt,
            SessionEnvironment(working_directory=working_directory, max_steps=max_steps, triage=triage),
            models or DefaultModelConfigs(provider, model, api_key),
            adapters=adapters,
            tool_factory=tool_factory or DefaultToolFactory(working_directory),
            initial_todos=initial_todos,
            repos=repos,
            transcript=transcript,
        )


def query(
    prompt: str,
    working_directory: str = ".",
    provider: str = "anthropic",
    model: str | None = None,
    api_key: str | None = None,
    max_steps: int | None = None,
    llm_config_path: str | Path | None = None,
    **options,
) -> AsyncIterator[Event]:
    """
    Run one request with the default wiring.

    Example:
        >>> async for event in query("fix the typo in README.md", working_directory="."):
        ...     print(event.type)
    """
    factory = SessionFactory(llm_config_path)
    return factory.create_session(
        prompt,
        working_directory,
        provider=provider,
        model=model,
        api_key=api_key,
        max_steps=max_steps,
        **options,
    )
