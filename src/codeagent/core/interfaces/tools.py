"""
Tool Protocol

The call contract every tool satisfies. Adapters only rely on this shape;
concrete tools live in ``codeagent.infrastructure.tools``.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ToolProtocol(Protocol):
    """
    A callable capability exposed to the model.

    Attributes:
        name: Unique tool name the model uses to call it
        description: Human readable description sent to the model
        parameters_schema: JSON schema of the accepted arguments

    ``execute`` returns a string or a JSON-serializable dict. Raising, or
    returning a dict with ``"success": False``, reports a tool error back to
    the model without ending the conversation.
    """

    @property
    def name(self) -> str: ...

    @property
    def description(self) -> str: ...

    @property
    def parameters_schema(self) -> dict[str, Any]: ...

    async def execute(self, **kwargs: Any) -> Any: ...

    async def dispose(self) -> None: ...


class ToolFactory(Protocol):
    """Creates the tool sets for each session phase; called once per phase."""

    def planning_tools(self) -> dict[str, ToolProtocol]: ...

    def analysis_tools(self) -> dict[str, ToolProtocol]: ...

    def execution_tools(self) -> dict[str, ToolProtocol]: ...
