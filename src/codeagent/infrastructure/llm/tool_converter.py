"""
Tool Converter - vendor tool schema formats.

Converts tool definitions into the shapes the vendor endpoints expect.
"""

from typing import Any

from codeagent.core.interfaces.tools import ToolProtocol

STRICT_TOOLS = frozenset({"write_todos"})


def tools_to_openai_format(tools: dict[str, ToolProtocol]) -> list[dict[str, Any]]:
    """
    Convert tools to chat-completions function calling format.

    Returns:
        [{"type": "function", "function": {"name", "description", "parameters"}}, ...]
    """
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.parameters_schema,
            },
        }
        for tool in tools.values()
    ]


def tools_to_responses_format(tools: dict[str, ToolProtocol]) -> list[dict[str, Any]]:
    """
    Convert tools to the flat responses-endpoint format.

    The plan tool is sent in strict mode so its arguments always match the
    schema.
    """
    return [
        {
            "type": "function",
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.parameters_schema,
            "strict": tool.name in STRICT_TOOLS,
        }
        for tool in tools.values()
    ]


def tool_result_to_message(tool_call_id: str, content: str) -> dict[str, Any]:
    """Chat-completions tool message carrying a tool's feedback."""
    return {"role": "tool", "tool_call_id": tool_call_id, "content": content}


def tool_result_to_function_output(call_id: str, content: str) -> dict[str, Any]:
    """Responses-endpoint input item carrying a tool's feedback."""
    return {"type": "function_call_output", "call_id": call_id, "output": content}
