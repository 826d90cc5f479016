# ============================================
# BASH TOOL
# ============================================

import asyncio
import uuid
from pathlib import Path
from typing import Any

import structlog

from codeagent.core.tools.base import Tool

DANGEROUS_PATTERNS = [
    "rm -rf /",
    "rm -rf /*",
    "rm -rf ~",
    "dd if=/dev/zero",
    "dd if=/dev/random",
    ":(){ :|:& };:",  # fork bomb
    "> /dev/sda",
    "mkfs.",
]


class BashTool(Tool):
    """
    Run shell commands in the working directory.

    Each command runs in a fresh ``bash`` process; the current directory is
    carried over between calls so ``cd`` behaves like in an interactive
    shell. ``restart`` resets it to the working directory.
    """

    def __init__(self, working_directory: str, timeout: float = 60.0):
        self.working_directory = str(Path(working_directory).resolve())
        self.cwd = self.working_directory
        self.timeout = timeout
        self._process: asyncio.subprocess.Process | None = None
        self.logger = structlog.get_logger().bind(component="bash_tool")

    @property
    def name(self) -> str:
        return "bash"

    @property
    def description(self) -> str:
        return (
            "Run a bash command and return stdout, stderr and the exit code. "
            f"Working directory: {self.working_directory}. "
            "Do not start long-running processes or development servers."
        )

    @property
    def parameters_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {"type": "string", "description": "The bash command to run"},
                "restart": {
                    "type": "boolean",
                    "description": "Restart the shell and return to the working directory",
                },
            },
        }

    async def execute(self, command: str | None = None, restart: bool = False, **kwargs: Any) -> dict[str, Any]:
        if restart:
            await self.dispose()
            self.cwd = self.working_directory
            if not command:
                return {"stdout": "", "stderr": "", "exit_code": 0, "note": "Shell restarted"}

        if not command:
            raise ValueError("No command provided")

        if any(pattern in command.lower() for pattern in DANGEROUS_PATTERNS):
            raise PermissionError("Command blocked for safety reasons")

        marker = f"__CWD_{uuid.uuid4().hex}__"
        script = f'{command}\n__rc=$?\nprintf "\\n{marker}%s\\n" "$PWD"\nexit $__rc'

        self.logger.debug("bash_command_started", command=command[:200], cwd=self.cwd)
        self._process = await asyncio.create_subprocess_exec(
            "bash",
            "-c",
            script,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=self.cwd,
        )
        process = self._process

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            stdout, stderr = await process.communicate()
            self._process = None
            self.logger.warning("bash_command_timeout", command=command[:200], timeout=self.timeout)
            return {
                "stdout": stdout.decode(errors="replace"),
                "stderr": stderr.decode(errors="replace"),
                "exit_code": -1,
                "note": f"Command timed out after {self.timeout}s",
            }
        self._process = None

        stdout_text = stdout.decode(errors="replace")
        stdout_text = self._consume_marker(stdout_text, marker)

        return {
            "stdout": stdout_text,
            "stderr": stderr.decode(errors="replace"),
            "exit_code": process.returncode,
            "pwd": self.cwd,
        }

    def _consume_marker(self, stdout: str, marker: str) -> str:
        """Strip the directory marker from stdout and remember the directory."""
        head, found, tail = stdout.rpartition(marker)
        if not found:
            return stdout
        new_cwd = tail.strip()
        if new_cwd and Path(new_cwd).is_dir():
            self.cwd = new_cwd
        return head[:-1] if head.endswith("\n") else head

    async def dispose(self) -> None:
        """Kill a command that is still running."""
        process = self._process
        self._process = None
        if process is not None and process.returncode is None:
            process.kill()
            await process.wait()
            self.logger.info("bash_process_killed")
