"""codeagent - a coding agent runtime.

Exposes ``query`` for running one request with the default wiring, and the
core types needed to consume its event stream.
"""

from .application.factory import SessionFactory, query  # noqa: F401
from .core.domain.events import Event, EventType, event_to_dict  # noqa: F401
from .core.domain.model_config import ModelConfig, SessionEnvironment  # noqa: F401
from .core.domain.session import Session  # noqa: F401
from .core.domain.todo import ReasoningEffort, Todo, TodoStatus, render_context  # noqa: F401

__version__ = "0.1.0"

__all__ = [
    "Event",
    "EventType",
    "ModelConfig",
    "ReasoningEffort",
    "Session",
    "SessionEnvironment",
    "SessionFactory",
    "Todo",
    "TodoStatus",
    "event_to_dict",
    "query",
    "render_context",
    "__version__",
]
