"""Exception hierarchy for the agent runtime."""


class CodeAgentError(Exception):
    """Base class for all runtime errors."""


class ToolNotFoundError(CodeAgentError):
    """The model requested a tool that is not registered for this call."""

    def __init__(self, tool_name: str, available: list[str] | None = None):
        self.tool_name = tool_name
        self.available = sorted(available or [])
        super().__init__(f"Tool not found: {tool_name}")


class ProviderError(CodeAgentError):
    """Unrecoverable failure talking to a model vendor."""

    def __init__(self, message: str, provider: str | None = None):
        self.provider = provider
        super().__init__(message)


class HarmonyDecodeError(ProviderError):
    """The completion could not be parsed as a Harmony transcript."""


class StepBudgetExceededError(CodeAgentError):
    """The session used more model rounds than allowed."""

    def __init__(self, steps: int, max_steps: int):
        self.steps = steps
        self.max_steps = max_steps
        super().__init__(f"Maximum steps exceeded: {steps}/{max_steps}")


class UnknownProviderError(CodeAgentError, ValueError):
    """No adapter is registered for the requested provider id."""

    def __init__(self, provider: str, known: list[str]):
        self.provider = provider
        super().__init__(f"Unknown provider '{provider}'. Known providers: {', '.join(sorted(known))}")
