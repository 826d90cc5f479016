"""
Tool Call Execution

Shared by every adapter: parse the model's arguments, run the tool, and
turn the outcome into the events and the feedback content for the next
round. Tool failures never escape this module; they become ``tool-error``
events and error strings the model can react to.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import structlog

from codeagent.core.domain.errors import ToolNotFoundError
from codeagent.core.domain.events import Event, ToolCallEvent, ToolErrorEvent, ToolResultEvent
from codeagent.core.interfaces.provider import PromptRequest
from codeagent.core.interfaces.tools import ToolProtocol
from codeagent.core.tools.base import validate_params

EDIT_TOOL_NAME = "str_replace_based_edit_tool"
MAX_FEEDBACK_CHARS = 20000

logger = structlog.get_logger(component="tool_calls")


@dataclass
class ToolOutcome:
    """
    Result of one tool invocation.

    Attributes:
        event: tool-result or tool-error event to emit
        content: Text fed back to the model
        is_error: Whether the invocation failed
        early_return: The call should end now
    """

    event: Event
    content: str
    is_error: bool
    early_return: bool = False


def parse_tool_arguments(raw: Any) -> dict[str, Any]:
    """
    Parse tool arguments sent by the model.

    Raises:
        ValueError: If the arguments are not a JSON object
    """
    if isinstance(raw, dict):
        return raw
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return {}
    try:
        parsed = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as e:
        raise ValueError(f"Invalid tool arguments: {e}") from e
    if not isinstance(parsed, dict):
        raise ValueError("Invalid tool arguments: expected a JSON object")
    return parsed


def result_to_content(result: Any, max_chars: int = MAX_FEEDBACK_CHARS) -> str:
    """Serialize a tool result for the model, truncating large outputs."""
    if isinstance(result, str):
        content = result
    else:
        content = json.dumps(result, ensure_ascii=False, default=str)
    if len(content) > max_chars:
        content = content[:max_chars] + f"\n... [truncated {len(content) - max_chars} chars]"
    return content


def track_path(tool_name: str, args: dict[str, Any], paths_touched: dict[str, None] | None) -> None:
    """Record the file an edit call targets."""
    if paths_touched is None or tool_name != EDIT_TOOL_NAME:
        return
    path = args.get("path")
    if isinstance(path, str) and path:
        paths_touched.setdefault(path, None)


def tool_error(session_id: str, tool_call_id: str, tool_name: str, message: str) -> ToolOutcome:
    return ToolOutcome(
        event=ToolErrorEvent(
            session_id=session_id,
            tool_call_id=tool_call_id,
            tool_name=tool_name,
            error=message,
        ),
        content=f"Error: {message}",
        is_error=True,
    )


async def execute_tool_call(
    session_id: str,
    tools: dict[str, ToolProtocol],
    tool_call_id: str,
    tool_name: str,
    args: dict[str, Any],
    early_return_tool: str | None = None,
    paths_touched: dict[str, None] | None = None,
) -> ToolOutcome:
    """
    Run one tool call and describe what happened.

    Unknown tools, missing required arguments, raised exceptions and
    ``{"success": False}`` results are reported as tool errors. A successful
    call of ``early_return_tool`` sets ``early_return``.
    """
    tool = tools.get(tool_name)
    if tool is None:
        error = ToolNotFoundError(tool_name, list(tools))
        logger.warning("tool_not_found", tool=tool_name, available=error.available)
        return tool_error(session_id, tool_call_id, tool_name, str(error))

    valid, message = validate_params(tool.parameters_schema, args)
    if not valid:
        logger.warning("tool_invalid_params", tool=tool_name, error=message)
        return tool_error(session_id, tool_call_id, tool_name, f"Invalid parameters: {message}")

    track_path(tool_name, args, paths_touched)

    try:
        result = await tool.execute(**args)
    except Exception as e:
        logger.warning("tool_failed", tool=tool_name, error_type=type(e).__name__, error=str(e)[:200])
        return tool_error(session_id, tool_call_id, tool_name, str(e) or type(e).__name__)

    if isinstance(result, dict) and result.get("success") is False:
        message = str(result.get("error") or "Tool reported failure")
        logger.warning("tool_failed", tool=tool_name, error=message[:200])
        return tool_error(session_id, tool_call_id, tool_name, message)

    logger.debug("tool_succeeded", tool=tool_name)
    return ToolOutcome(
        event=ToolResultEvent(
            session_id=session_id,
            tool_call_id=tool_call_id,
            tool_name=tool_name,
            result=result,
        ),
        content=result_to_content(result),
        is_error=False,
        early_return=early_return_tool is not None and tool_name == early_return_tool,
    )


@dataclass
class PendingToolCall:
    """
    A tool invocation requested by the model, ready to announce and run.

    Arguments that fail to parse are kept as an error; running such a call
    yields a tool error instead of executing the tool.
    """

    request: PromptRequest
    tool_call_id: str
    tool_name: str
    args: dict[str, Any]
    parse_error: str | None = None

    @classmethod
    def from_raw(cls, request: PromptRequest, tool_call_id: str, tool_name: str, raw_args: Any) -> "PendingToolCall":
        try:
            return cls(request, tool_call_id, tool_name, parse_tool_arguments(raw_args))
        except ValueError as e:
            logger.warning("tool_args_parse_failed", tool=tool_name, raw_args=str(raw_args)[:200])
            return cls(request, tool_call_id, tool_name, {}, parse_error=str(e))

    @property
    def event(self) -> ToolCallEvent:
        return ToolCallEvent(
            session_id=self.request.session_id,
            tool_call_id=self.tool_call_id,
            tool_name=self.tool_name,
            args=self.args,
        )

    async def run(self) -> ToolOutcome:
        if self.parse_error is not None:
            return tool_error(self.request.session_id, self.tool_call_id, self.tool_name, self.parse_error)
        return await execute_tool_call(
            self.request.session_id,
            self.request.tools,
            self.tool_call_id,
            self.tool_name,
            self.args,
            early_return_tool=self.request.early_return_tool,
            paths_touched=self.request.paths_touched,
        )
