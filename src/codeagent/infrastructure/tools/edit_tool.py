# ============================================
# FILE EDIT TOOL
# ============================================

from pathlib import Path
from typing import Any

from codeagent.core.tools.base import Tool

COMMANDS = ("view", "create", "str_replace", "insert")
NEWLINE = "\n"


class StrReplaceEditTool(Tool):
    """
    View, create and edit single files.

    Problems are reported to the model as ``"Error: ..."`` strings rather
    than raised, so the model can correct its next call.
    """

    def __init__(self, working_directory: str):
        self.working_directory = Path(working_directory)

    @property
    def name(self) -> str:
        return "str_replace_based_edit_tool"

    @property
    def description(self) -> str:
        return (
            "File editing tool for viewing and editing individual files through string replacement, "
            f"creation, viewing, and insertion. Working directory: {self.working_directory}. "
            "Use relative paths from this directory or absolute paths."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "enum": list(COMMANDS),
                    "description": "The file operation to perform",
                },
                "path": {"type": "string", "description": "The file path to operate on"},
                "file_text": {"type": "string", "description": "The content for create command"},
                "insert_line": {
                    "type": "integer",
                    "description": "Line number to insert at (1-based). Use 1 to insert at the beginning, "
                    "2 to insert after line 1, etc.",
                },
                "new_str": {"type": "string", "description": "New string (str_replace and insert)"},
                "old_str": {"type": "string", "description": "Old string to replace (str_replace)"},
                "view_range": {
                    "type": "array",
                    "items": {"type": "integer"},
                    "minItems": 2,
                    "maxItems": 2,
                    "description": "Start and end line numbers for view, 1-based and inclusive",
                },
            },
            "required": ["command", "path"],
        }

    def _resolve(self, path: str) -> Path:
        candidate = Path(path)
        return candidate if candidate.is_absolute() else self.working_directory / candidate

    async def execute(
        self,
        command: str,
        path: str,
        file_text: str | None = None,
        insert_line: int | None = None,
        new_str: str | None = None,
        old_str: str | None = None,
        view_range: list[int] | None = None,
        **kwargs: Any,
    ) -> str:
        file_path = self._resolve(path)
        try:
            if command == "view":
                return self._view(file_path, view_range)
            if command == "create":
                return self._create(file_path, path, file_text)
            if command == "str_replace":
                return self._str_replace(file_path, path, old_str, new_str)
            if command == "insert":
                return self._insert(file_path, path, insert_line, new_str)
            return f"Error: Unknown command '{command}'"
        except OSError as e:
            return f"Error: {e}"

    def _view(self, file_path: Path, view_range: list[int] | None) -> str:
        if file_path.is_dir():
            return "Error: Cannot view directories. Use bash commands like 'ls' to list directory contents."
        content = file_path.read_text(encoding="utf-8")
        if view_range and len(view_range) == 2:
            start, end = int(view_range[0]), int(view_range[1])
            return "\n".join(content.split("\n")[max(start - 1, 0):end])
        return content

    def _create(self, file_path: Path, path: str, file_text: str | None) -> str:
        if not file_text:
            return "Error: file_text is required for create command"
        if file_path.exists():
            return f"Error: File '{path}' already exists. Use str_replace or view command instead."
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(file_text, encoding="utf-8")
        return f"File '{path}' created successfully with {file_text.count(NEWLINE) + 1} lines."

    def _str_replace(self, file_path: Path, path: str, old_str: str | None, new_str: str | None) -> str:
        if not old_str or new_str is None:
            return "Error: old_str and new_str are required for str_replace command"
        content = file_path.read_text(encoding="utf-8")
        if old_str not in content:
            return "Error: old_str not found in file"
        file_path.write_text(content.replace(old_str, new_str, 1), encoding="utf-8")
        return f"String replacement completed successfully in '{path}'."

    def _insert(self, file_path: Path, path: str, insert_line: int | None, new_str: str | None) -> str:
        if insert_line is None or new_str is None:
            return "Error: insert_line and new_str are required for insert command"
        if insert_line == 0:
            return (
                "Error: insert_line uses 1-based indexing (like view command). "
                "Use 1 to insert at beginning, 2 to insert after line 1, etc."
            )
        lines = file_path.read_text(encoding="utf-8").split("\n")
        if insert_line < 1 or insert_line > len(lines) + 1:
            return f"Error: insert_line must be between 1 and {len(lines) + 1} (1-based indexing)"
        lines.insert(insert_line - 1, new_str)
        file_path.write_text("\n".join(lines), encoding="utf-8")
        return f"Line inserted successfully at line {insert_line} in '{path}'."
