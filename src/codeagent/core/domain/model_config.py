"""
Model Configuration Collaborators

The session does not decide which model or prompt to use for a phase. It
asks a ``ModelConfigProvider`` for a ``ModelConfig`` per phase and routes the
call to the adapter named by ``ModelConfig.provider``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from codeagent.core.domain.todo import Todo


@dataclass(frozen=True)
class ModelConfig:
    """
    Model choice and prompts for one phase.

    Attributes:
        provider: Adapter id ("anthropic", "openai" or "together")
        model: Vendor model identifier, None for the provider default
        system_prompt: Instructions for the phase
        prompt: User content for the phase
        api_key: Credential, None to use the environment
    """

    provider: str
    model: str | None
    system_prompt: str
    prompt: str
    api_key: str | None = None


class ModelConfigProvider(Protocol):
    """Supplies a ModelConfig for each session phase."""

    async def evaluate_todos(
        self,
        workspace_path: str,
        todos: list[Todo],
        prompt: str,
        todos_context: str | None = None,
        project_analysis: str | None = None,
    ) -> ModelConfig: ...

    async def evaluate_project(
        self, workspace_path: str, prompt: str, repos: list[str]
    ) -> ModelConfig: ...

    async def execute_todo(
        self,
        workspace_path: str,
        todo: Todo,
        todos: list[Todo],
        project_analysis: str | None = None,
        repos: list[str] | None = None,
    ) -> ModelConfig: ...

    async def summarize_todos(self, workspace_path: str, todos: list[Todo]) -> ModelConfig: ...


@dataclass
class SessionEnvironment:
    """
    Where and under which limits a session runs.

    Attributes:
        working_directory: Root directory tools operate in
        max_steps: Round ceiling per todo execution and for the whole session
        triage: "model" to ask the model for the effort level, "heuristic"
            to estimate it locally
    """

    working_directory: str
    max_steps: int | None = None
    triage: str = "model"
