"""
Session Orchestrator

The Session drives one user request from triage to completion:
1. Triage the request into a reasoning effort (model call or heuristic)
2. Analyze the project with a read-only shell
3. Plan todos (medium/high) or seed a single todo (low)
4. Execute pending todos strictly one after another
5. Summarize when more than one todo was executed
6. Emit the final accounting

The Session exclusively owns the todo list and the usage ledger. Provider
adapters and tools are injected, so the orchestration runs without any
infrastructure dependency.
"""

from __future__ import annotations

import json
import time
import uuid
from collections.abc import AsyncIterator
from dataclasses import replace
from typing import Any

import structlog

from codeagent.core.domain.events import (
    CompletedEvent,
    ErrorEvent,
    Event,
    EventType,
    TodosEvent,
)
from codeagent.core.domain.model_config import ModelConfig, ModelConfigProvider, SessionEnvironment
from codeagent.core.domain.todo import ReasoningEffort, Todo, TodoStatus, refresh_pending_context
from codeagent.core.domain.triage import classify_effort, estimate_reasoning_effort
from codeagent.core.domain.usage import UsageLedger
from codeagent.core.interfaces.provider import (
    PromptRequest,
    PromptStream,
    ProviderAdapter,
    TranscriptSink,
    get_adapter,
)
from codeagent.core.interfaces.tools import ToolFactory, ToolProtocol
from codeagent.core.prompts.session_prompts import TRIAGE_PROMPT

PLAN_TOOL = "write_todos"
ANALYSIS_TOOL = "bash"


class Session:
    """
    One request, one todo list, one ledger.

    Args:
        user_prompt: Raw request text
        environment: Working directory, step ceiling and triage mode
        models: Supplies the model and prompts for every phase
        adapters: Provider id -> adapter
        tool_factory: Creates the tools for each phase
        initial_todos: Todos carried over from an earlier session
        repos: Repositories in the workspace, passed to the prompts
        transcript: Optional raw transcript sink
    """

    def __init__(
        self,
        user_prompt: str,
        environment: SessionEnvironment,
        models: ModelConfigProvider,
        adapters: dict[str, ProviderAdapter],
        tool_factory: ToolFactory,
        initial_todos: list[Todo] | None = None,
        repos: list[str] | None = None,
        transcript: TranscriptSink | None = None,
    ):
        self.session_id = str(uuid.uuid4())
        self.user_prompt = user_prompt
        self.environment = environment
        self.models = models
        self.adapters = adapters
        self.tool_factory = tool_factory
        self.todos: list[Todo] = list(initial_todos or [])
        self.repos = list(repos or [])
        self.transcript = transcript
        self.ledger = UsageLedger(environment.max_steps)
        self.reasoning_effort = ReasoningEffort.MEDIUM
        self.project_analysis = ""
        self.last_evaluate_message: str | None = None
        self.started_at = time.monotonic()
        self.logger = structlog.get_logger().bind(component="session", session_id=self.session_id)

    @classmethod
    def create(
        cls,
        user_prompt: str,
        environment: SessionEnvironment,
        models: ModelConfigProvider,
        *,
        adapters: dict[str, ProviderAdapter],
        tool_factory: ToolFactory,
        initial_todos: list[Todo] | None = None,
        repos: list[str] | None = None,
        transcript: TranscriptSink | None = None,
    ) -> AsyncIterator[Event]:
        """Build a session and return its lazy event stream."""
        session = cls(
            user_prompt,
            environment,
            models,
            adapters,
            tool_factory,
            initial_todos=initial_todos,
            repos=repos,
            transcript=transcript,
        )
        return session.run()

    @property
    def working_directory(self) -> str:
        return self.environment.working_directory

    async def run(self) -> AsyncIterator[Event]:
        """
        Execute all phases and yield their events.

        Raises:
            ProviderError: If an adapter fails; its error event is yielded first
            StepBudgetExceededError: If the step ceiling is passed
        """
        self.logger.info("session_started", prompt=self.user_prompt[:100])
        try:
            async for event in self._triage():
                yield event

            async for event in self._evaluate_project():
                yield event

            if self.reasoning_effort is ReasoningEffort.LOW:
                description = self.user_prompt
                if self.project_analysis:
                    description += f"\n\nProject Analysis Context:\n{self.project_analysis}"
                self.todos = [Todo(description=description, reasoning_effort=ReasoningEffort.LOW)]
            else:
                async for event in self._evaluate_todos():
                    yield event

            while True:
                todo = next((t for t in self.todos if t.status is TodoStatus.PENDING), None)
                if todo is None:
                    break

                todo.start()
                if len(self.todos) > 1:
                    yield self._todos_event()

                async for event in self._execute_todo(todo):
                    yield event

                self.logger.info("todo_completed", description=todo.description[:100], paths=len(todo.paths))
                if len(self.todos) > 1:
                    yield self._todos_event()

            if len(self.todos) > 1:
                async for event in self._summarize_todos():
                    yield event
        except Exception as e:
            self.logger.error(
                "session_failed",
                error=str(e),
                error_type=type(e).__name__,
                steps=self.ledger.step_count,
            )
            raise

        duration_ms = int((time.monotonic() - self.started_at) * 1000)
        self.logger.info(
            "session_completed",
            todos=len(self.todos),
            steps=self.ledger.step_count,
            input_tokens=self.ledger.input_tokens,
            output_tokens=self.ledger.output_tokens,
            duration_ms=duration_ms,
        )
        yield CompletedEvent(
            session_id=self.session_id,
            input_tokens=self.ledger.input_tokens,
            output_tokens=self.ledger.output_tokens,
            step_count=self.ledger.step_count,
            duration_ms=duration_ms,
            todos=tuple(todo.snapshot() for todo in self.todos),
            total_cost=self.ledger.total_cost,
        )

    def _todos_event(self) -> TodosEvent:
        return TodosEvent(
            session_id=self.session_id,
            todos=tuple(todo.snapshot() for todo in self.todos),
            reasoning_effort=self.reasoning_effort,
        )

    def _call(self, config: ModelConfig, system: str, tools: dict[str, ToolProtocol], **options: Any) -> PromptStream:
        adapter = get_adapter(self.adapters, config.provider)
        request = PromptRequest(
            session_id=self.session_id,
            system=system,
            prompt=config.prompt,
            tools=tools,
            record_usage=self.ledger.record,
            model=config.model,
            api_key=config.api_key,
            transcript=self.transcript,
            **options,
        )
        return adapter(request)

    async def _triage(self) -> AsyncIterator[Event]:
        if self.environment.triage == "heuristic":
            estimate = estimate_reasoning_effort(self.user_prompt)
            self.reasoning_effort = estimate.level
            self.logger.info("triage_estimated", effort=estimate.level.value, score=estimate.score)
            return

        config = await self.models.evaluate_todos(self.working_directory, [], self.user_prompt)
        stream = self._call(replace(config, prompt=self.user_prompt), TRIAGE_PROMPT, {}, verbosity="low")
        answer = ""
        async for event in stream:
            if event.type is EventType.TEXT:
                answer += event.text
            elif isinstance(event, ErrorEvent):
                yield event

        self.reasoning_effort = classify_effort(answer.strip())
        self.logger.info("triage_completed", effort=self.reasoning_effort.value, answer=answer.strip()[:50])

    async def _evaluate_project(self) -> AsyncIterator[Event]:
        config = await self.models.evaluate_project(self.working_directory, self.user_prompt, self.repos)
        tools = self.tool_factory.analysis_tools()
        analysis = ""
        try:
            stream = self._call(config, config.system_prompt, tools, verbosity="low")
            async for event in stream:
                if event.type is EventType.TEXT:
                    analysis += event.text
                if event.type in (EventType.TEXT, EventType.REASONING, EventType.ERROR):
                    yield event
                elif (
                    event.type in (EventType.TOOL_CALL, EventType.TOOL_RESULT, EventType.TOOL_ERROR)
                    and event.tool_name == ANALYSIS_TOOL
                ):
                    yield event
        finally:
            await _dispose(tools)

        self.project_analysis = analysis
        self.logger.info("project_analyzed", chars=len(analysis))

    def _todos_context(self) -> str:
        completed = [t for t in self.todos if t.status is TodoStatus.COMPLETED]
        pending = [t for t in self.todos if t.status is TodoStatus.PENDING]

        if completed:
            completed_json = json.dumps(
                [{"description": t.description, "summary": t.summary} for t in completed],
                ensure_ascii=False,
            )
            completed_context = f"Completed todos with summaries:\n{completed_json}"
        else:
            completed_context = "Completed todos with summaries:\nNo completed todos"

        if pending:
            pending_json = json.dumps([t.to_dict() for t in pending], ensure_ascii=False)
            pending_context = f"Current pending todos:\n{pending_json}"
        else:
            pending_context = "Current pending todos:\nNo pending todos"

        return f"{completed_context}\n\n{pending_context}"

    async def _evaluate_todos(self) -> AsyncIterator[Event]:
        completed = [t for t in self.todos if t.status is TodoStatus.COMPLETED]
        config = await self.models.evaluate_todos(
            self.working_directory,
            [todo.snapshot() for todo in self.todos],
            self.user_prompt,
            todos_context=self._todos_context(),
            project_analysis=self.project_analysis or None,
        )
        stream = self._call(
            config,
            config.system_prompt,
            self.tool_factory.planning_tools(),
            planning_mode=True,
            reasoning_effort=self.reasoning_effort,
            verbosity="low",
            early_return_tool=PLAN_TOOL,
        )

        proposed: list[dict[str, Any]] = []
        last_message: str | None = None
        async for event in stream:
            if event.type is EventType.TOOL_CALL and event.tool_name == PLAN_TOOL:
                proposed = list(event.args.get("todos") or [])
                continue

            if event.type is EventType.TOOL_RESULT and event.tool_name == PLAN_TOOL:
                new_todos = []
                for item in proposed:
                    todo = Todo.from_dict(item)
                    todo.status = TodoStatus.PENDING
                    todo.context = ""
                    new_todos.append(todo)
                self.todos = completed + new_todos
                refresh_pending_context(self.todos)
                self.last_evaluate_message = last_message
                self.logger.info("todos_planned", count=len(new_todos), effort=self.reasoning_effort.value)
                yield self._todos_event()
                break

            if event.type in (EventType.TEXT, EventType.REASONING):
                last_message = event.text
            yield event

    async def _execute_todo(self, todo: Todo) -> AsyncIterator[Event]:
        config = await self.models.execute_todo(
            self.working_directory,
            todo.snapshot(),
            [t.snapshot() for t in self.todos],
            project_analysis=self.project_analysis or None,
            repos=self.repos,
        )
        tools = self.tool_factory.execution_tools()
        paths_touched: dict[str, None] = dict.fromkeys(todo.paths)
        try:
            stream = self._call(
                config,
                config.system_prompt,
                tools,
                max_steps=self.environment.max_steps,
                reasoning_effort=todo.reasoning_effort,
                verbosity="low",
                paths_touched=paths_touched,
            )
            async for event in stream:
                yield event
        finally:
            todo.merge_paths(paths_touched)
            await _dispose(tools)

        todo.complete(stream.text)

    async def _summarize_todos(self) -> AsyncIterator[Event]:
        config = await self.models.summarize_todos(
            self.working_directory, [todo.snapshot() for todo in self.todos]
        )
        stream = self._call(
            config,
            config.system_prompt,
            self.tool_factory.planning_tools(),
            max_steps=self.environment.max_steps,
            reasoning_effort=ReasoningEffort.LOW,
            verbosity="medium",
        )
        async for event in stream:
            yield event


async def _dispose(tools: dict[str, ToolProtocol]) -> None:
    for tool in tools.values():
        await tool.dispose()
