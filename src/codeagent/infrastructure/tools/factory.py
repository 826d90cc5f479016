"""Default tool sets for the session phases."""

from codeagent.core.interfaces.tools import ToolProtocol
from codeagent.infrastructure.tools.bash_tool import BashTool
from codeagent.infrastructure.tools.edit_tool import StrReplaceEditTool
from codeagent.infrastructure.tools.web_fetch_tool import WebFetchTool
from codeagent.infrastructure.tools.web_search_tool import WebSearchTool
from codeagent.infrastructure.tools.write_todos_tool import WriteTodosTool


class DefaultToolFactory:
    """Builds fresh tool instances rooted at the working directory."""

    def __init__(self, working_directory: str, bash_timeout: float = 60.0):
        self.working_directory = working_directory
        self.bash_timeout = bash_timeout

    def planning_tools(self) -> dict[str, ToolProtocol]:
        return {"write_todos": WriteTodosTool()}

    def analysis_tools(self) -> dict[str, ToolProtocol]:
        return {"bash": BashTool(self.working_directory, timeout=self.bash_timeout)}

    def execution_tools(self) -> dict[str, ToolProtocol]:
        tools = [
            BashTool(self.working_directory, timeout=self.bash_timeout),
            StrReplaceEditTool(self.working_directory),
            WebSearchTool(),
            WebFetchTool(),
        ]
        return {tool.name: tool for tool in tools}
