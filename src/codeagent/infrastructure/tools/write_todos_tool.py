"""Plan-writing tool used by the planner and summarizer calls."""

from typing import Any

from pydantic import BaseModel, Field, ValidationError

from codeagent.core.domain.todo import ReasoningEffort
from codeagent.core.tools.base import Tool


class ProposedTodo(BaseModel):
    description: str = Field(min_length=1)
    reasoning_effort: ReasoningEffort


class WriteTodosArgs(BaseModel):
    todos: list[ProposedTodo]


class WriteTodosTool(Tool):
    """
    Accepts the pending todos proposed by the model.

    The session reads the proposed list from the ``tool-call`` event; the
    tool itself only validates the payload and acknowledges it.
    """

    @property
    def name(self) -> str:
        return "write_todos"

    @property
    def description(self) -> str:
        return (
            "Write the list of pending todos needed to complete the user's request. "
            "Each todo has a description and the reasoning effort it needs."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "todos": {
                    "type": "array",
                    "description": "Sequential pending todos",
                    "items": {
                        "type": "object",
                        "properties": {
                            "description": {
                                "type": "string",
                                "description": "What the todo accomplishes",
                            },
                            "reasoning_effort": {
                                "type": "string",
                                "enum": [effort.value for effort in ReasoningEffort],
                                "description": "Reasoning effort required for the todo",
                            },
                        },
                        "required": ["description", "reasoning_effort"],
                        "additionalProperties": False,
                    },
                }
            },
            "required": ["todos"],
            "additionalProperties": False,
        }

    async def execute(self, **kwargs: Any) -> str:
        """
        Raises:
            ValueError: If the payload does not match the schema
        """
        try:
            WriteTodosArgs.model_validate(kwargs)
        except ValidationError as e:
            raise ValueError(f"Invalid todos: {e.error_count()} validation error(s): {e.errors()[0]['msg']}") from e
        return "success"
