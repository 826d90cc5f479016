"""
Base Tool

Abstract base for concrete tools. Subclasses declare ``name``,
``description`` and a JSON ``parameters_schema`` and implement ``execute``.
"""

from abc import ABC, abstractmethod
from typing import Any


class Tool(ABC):
    """Base class for all tools"""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        pass

    @property
    @abstractmethod
    def parameters_schema(self) -> dict[str, Any]:
        pass

    @abstractmethod
    async def execute(self, **kwargs: Any) -> Any:
        pass

    async def dispose(self) -> None:
        """Release resources held between calls. No-op by default."""


def validate_params(schema: dict[str, Any], params: dict[str, Any]) -> tuple[bool, str | None]:
    """Check that every required schema property is present."""
    for required in schema.get("required", []):
        if required not in params:
            return False, f"Missing required parameter: {required}"
    return True, None
