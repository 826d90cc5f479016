"""
Session Prompts - triage, analysis, planning, execution and summary

This module provides the fixed triage prompt used by the session and
``DefaultModelConfigs``, the stock ``ModelConfigProvider`` that pairs one
provider/model with the prompts for every phase:
- PLANNER_PROMPT: break the request into sequential todos via write_todos
- PROJECT_ANALYSIS_PROMPT: read-only look at the working directory
- EXECUTOR_PROMPT: carry out exactly one todo
- SUMMARIZER_PROMPT: final answer from the completed todos
"""

import json

from codeagent.core.domain.model_config import ModelConfig
from codeagent.core.domain.todo import Todo, TodoStatus

TRIAGE_PROMPT = """You are evaluating the reasoning effort required to define todos for a given prompt.

Analyze the prompt and determine the complexity level based on:
- Low: Simple, single-step tasks (e.g., "fix this typo", "add a comment")
- Medium: Multi-step tasks requiring some planning (e.g., "add a new feature", "refactor a component")
- High: Complex tasks requiring extensive planning and coordination (e.g., "redesign the architecture", "implement a complex system")

Respond with only one word: "low", "medium", or "high". Do not include any additional text or explanation."""

PROJECT_ANALYSIS_PROMPT = """You are an AI assistant analyzing a software project before work starts on it. You are working in: {workspace_path}

Use the bash tool to look around: list the directory layout, read the manifest and configuration files, and identify the languages, frameworks, build, lint and test commands.

IMPORTANT: This is a read-only analysis. NEVER create, modify, move or delete files, install dependencies, run builds or start servers.

Answer with a concise description of the project that helps with the following request. Describe the project as it is; do not propose a solution.{repos_section}"""

PLANNER_PROMPT = """You are an AI assistant that breaks down user requests into properly scoped, sequential todos. You are working in: {workspace_path}

Your task is to evaluate the amount of work required and create sequential todos with appropriate scope. Each todo should represent a reasonable amount of work that can be completed in one focused session.

Guidelines for creating todos:
- Evaluate the total work required and break it into logical, sequential steps
- Each todo should be substantial enough to be meaningful but not overwhelming
- Split complex work into sequential dependencies where one todo builds on another
- Avoid todos that are too granular (trivial changes) or too broad (massive implementations)
- Each todo should have a clear, single purpose and deliverable outcome
- Order todos so each can build on previous work
- NEVER create testing, verification, or validation todos; each todo handles its own testing internally
- NEVER create test files or test code unless explicitly requested or the project already has existing tests

Focus on quality scope: not too many tiny steps, not too few massive ones.

Always use the write_todos tool to provide the list of pending todos needed to complete the user's request."""

EXECUTOR_PROMPT = """You are an AI assistant that executes todos. You have been given a specific todo to accomplish.

Working directory: {workspace_path}

CRITICAL: You must ONLY do what is described in the todo. Do not go beyond its scope. Do not add extra features, improvements, or related work unless the todo mentions them.{remaining_section}

IMPORTANT: When the todo is ambiguous, prefer conservative, minimal actions over comprehensive solutions.

DEVELOPMENT SERVER RESTRICTIONS:
- NEVER run development servers or watch commands (npm run dev, yarn start, and the like)
- NEVER run commands that start long-running processes
- Use validation commands instead: build, lint, typecheck, test

TESTING AND VERIFICATION:
- NEVER create new test files or testing infrastructure unless the todo requests it
- Run existing tests or builds only when the todo asks for it or you changed core logic that could break existing behavior
- Use existing project commands (npm test, pytest, etc.)

GIT OPERATIONS: NEVER perform git operations (add, commit, push, pull, merge, rebase) unless the todo explicitly instructs you to.

When you complete the todo, provide a clear summary of what was accomplished:
- The actions taken
- Files modified, created, or analyzed, referenced as "file_path:line_number" where specific lines matter
- Important findings or results"""

SUMMARIZER_PROMPT = """You are an AI assistant answering the following user request.

Working directory: {workspace_path}

Your purpose is to provide a final answer to this request. You have been given the results of completed todos that were executed to fulfill the request. Use these results as context for a comprehensive answer.

IMPORTANT: Describe what HAS BEEN DONE, not what WILL BE DONE. Use past tense. Address what the user asked for based on the completed work, not the todos themselves."""


def remaining_todos_section(todos: list[Todo]) -> str:
    remaining = [t for t in todos if t.status is TodoStatus.PENDING]
    if not remaining:
        return ""
    lines = "\n".join(f"- {t.description}" for t in remaining)
    return (
        "\n\nRemaining pending todos (do NOT implement these - they will be handled separately):\n"
        f"{lines}"
    )


class DefaultModelConfigs:
    """
    One provider and model for every phase, with the stock prompts.

    Args:
        provider: Adapter id ("anthropic", "openai" or "together")
        model: Vendor model identifier, None for the provider default
        api_key: Credential, None to use the environment
    """

    def __init__(self, provider: str, model: str | None = None, api_key: str | None = None):
        self.provider = provider
        self.model = model
        self.api_key = api_key

    def _config(self, system_prompt: str, prompt: str) -> ModelConfig:
        return ModelConfig(
            provider=self.provider,
            model=self.model,
            system_prompt=system_prompt,
            prompt=prompt,
            api_key=self.api_key,
        )

    async def evaluate_todos(
        self,
        workspace_path: str,
        todos: list[Todo],
        prompt: str,
        todos_context: str | None = None,
        project_analysis: str | None = None,
    ) -> ModelConfig:
        sections = [prompt]
        if project_analysis:
            sections.append(f"Project Analysis:\n{project_analysis}")
        if todos_context:
            sections.append(todos_context)
        return self._config(PLANNER_PROMPT.format(workspace_path=workspace_path), "\n\n".join(sections))

    async def evaluate_project(self, workspace_path: str, prompt: str, repos: list[str]) -> ModelConfig:
        repos_section = ""
        if repos:
            repos_section = "\n\nRepositories in the workspace:\n" + "\n".join(f"- {repo}" for repo in repos)
        return self._config(
            PROJECT_ANALYSIS_PROMPT.format(workspace_path=workspace_path, repos_section=repos_section),
            prompt,
        )

    async def execute_todo(
        self,
        workspace_path: str,
        todo: Todo,
        todos: list[Todo],
        project_analysis: str | None = None,
        repos: list[str] | None = None,
    ) -> ModelConfig:
        prompt = todo.description
        if todo.context:
            prompt += f"\n\nContext: {todo.context}"
        return self._config(
            EXECUTOR_PROMPT.format(
                workspace_path=workspace_path,
                remaining_section=remaining_todos_section(todos),
            ),
            prompt,
        )

    async def summarize_todos(self, workspace_path: str, todos: list[Todo]) -> ModelConfig:
        completed = [todo.to_dict() for todo in todos if todo.status is TodoStatus.COMPLETED]
        prompt = (
            f"Completed todos for context:\n{json.dumps(completed, ensure_ascii=False)}"
            if completed
            else "No todos were completed."
        )
        return self._config(SUMMARIZER_PROMPT.format(workspace_path=workspace_path), prompt)
