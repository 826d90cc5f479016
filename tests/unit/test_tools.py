"""
Unit tests for the built-in tools.

Tests cover:
- Required parameter checks of the Tool base module
- File viewing and editing
- Plan payload validation
- Shell execution, blocking and timeouts
- Web search caching and result shaping
- Page text extraction
"""

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from codeagent.core.tools.base import validate_params
from codeagent.infrastructure.tools.bash_tool import BashTool
from codeagent.infrastructure.tools.edit_tool import StrReplaceEditTool
from codeagent.infrastructure.tools.factory import DefaultToolFactory
from codeagent.infrastructure.tools.web_fetch_tool import extract_text, extract_title
from codeagent.infrastructure.tools.web_search_tool import TTLCache, WebSearchTool
from codeagent.infrastructure.tools.write_todos_tool import WriteTodosTool


def test_validate_params_reports_first_missing_key():
    schema = {"type": "object", "properties": {"command": {}, "path": {}}, "required": ["command", "path"]}

    assert validate_params(schema, {"command": "view", "path": "a.py"}) == (True, None)
    assert validate_params(schema, {"path": "a.py"}) == (False, "Missing required parameter: command")
    assert validate_params({"type": "object"}, {}) == (True, None)


# -------------------------------
# Edit tool
# -------------------------------
class TestStrReplaceEditTool:
    @pytest.fixture
    def workspace(self, tmp_path):
        (tmp_path / "app.py").write_text("line 1\nline 2\nline 3\nline 4", encoding="utf-8")
        (tmp_path / "pkg").mkdir()
        return tmp_path

    @pytest.fixture
    def tool(self, workspace):
        return StrReplaceEditTool(str(workspace))

    @pytest.mark.asyncio
    async def test_view_whole_file(self, tool):
        assert await tool.execute(command="view", path="app.py") == "line 1\nline 2\nline 3\nline 4"

    @pytest.mark.asyncio
    async def test_view_range_is_inclusive(self, tool):
        assert await tool.execute(command="view", path="app.py", view_range=[2, 3]) == "line 2\nline 3"

    @pytest.mark.asyncio
    async def test_view_directory_is_rejected(self, tool):
        result = await tool.execute(command="view", path="pkg")
        assert result.startswith("Error: Cannot view directories")

    @pytest.mark.asyncio
    async def test_missing_file_is_reported(self, tool):
        result = await tool.execute(command="view", path="missing.py")
        assert result.startswith("Error:")

    @pytest.mark.asyncio
    async def test_create_never_overwrites(self, tool, workspace):
        created = await tool.execute(command="create", path="pkg/new.py", file_text="a\nb")
        assert created == "File 'pkg/new.py' created successfully with 2 lines."
        assert (workspace / "pkg" / "new.py").read_text(encoding="utf-8") == "a\nb"

        again = await tool.execute(command="create", path="app.py", file_text="x")
        assert again.startswith("Error: File 'app.py' already exists")
        assert (workspace / "app.py").read_text(encoding="utf-8").startswith("line 1")

    @pytest.mark.asyncio
    async def test_str_replace_first_occurrence(self, tool, workspace):
        result = await tool.execute(command="str_replace", path="app.py", old_str="line", new_str="row")
        assert result == "String replacement completed successfully in 'app.py'."
        assert (workspace / "app.py").read_text(encoding="utf-8").startswith("row 1\nline 2")

        missing = await tool.execute(command="str_replace", path="app.py", old_str="nope", new_str="x")
        assert missing == "Error: old_str not found in file"

    @pytest.mark.asyncio
    async def test_insert_bounds(self, tool, workspace):
        assert (await tool.execute(command="insert", path="app.py", insert_line=0, new_str="x")).startswith(
            "Error: insert_line uses 1-based indexing"
        )
        assert (
            await tool.execute(command="insert", path="app.py", insert_line=6, new_str="x")
            == "Error: insert_line must be between 1 and 5 (1-based indexing)"
        )

        await tool.execute(command="insert", path="app.py", insert_line=2, new_str="inserted")
        assert (workspace / "app.py").read_text(encoding="utf-8").split("\n")[:3] == ["line 1", "inserted", "line 2"]

    @pytest.mark.asyncio
    async def test_unknown_command(self, tool):
        assert await tool.execute(command="delete", path="app.py") == "Error: Unknown command 'delete'"


# -------------------------------
# Plan tool
# -------------------------------
class TestWriteTodosTool:
    @pytest.mark.asyncio
    async def test_accepts_valid_plan(self):
        result = await WriteTodosTool().execute(
            todos=[{"description": "Add endpoint", "reasoning_effort": "medium"}]
        )
        assert result == "success"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"todos": [{"description": "", "reasoning_effort": "low"}]},
            {"todos": [{"description": "Add endpoint", "reasoning_effort": "extreme"}]},
        ],
    )
    async def test_rejects_invalid_plan(self, payload):
        with pytest.raises(ValueError, match="Invalid todos"):
            await WriteTodosTool().execute(**payload)

    def test_schema_is_strict(self):
        schema = WriteTodosTool().parameters_schema
        assert schema["additionalProperties"] is False
        assert schema["properties"]["todos"]["items"]["properties"]["reasoning_effort"]["enum"] == [
            "low",
            "medium",
            "high",
        ]


# -------------------------------
# Bash tool
# -------------------------------
class TestBashTool:
    @pytest.mark.asyncio
    async def test_runs_command(self, tmp_path):
        tool = BashTool(str(tmp_path))
        result = await tool.execute(command="echo hello")
        assert result["stdout"] == "hello\n"
        assert result["exit_code"] == 0

    @pytest.mark.asyncio
    async def test_exit_code_and_stderr(self, tmp_path):
        result = await BashTool(str(tmp_path)).execute(command="echo oops >&2; exit 3")
        assert result["exit_code"] == 3
        assert result["stderr"].strip() == "oops"

    @pytest.mark.asyncio
    async def test_directory_persists_until_restart(self, tmp_path):
        (tmp_path / "sub").mkdir()
        tool = BashTool(str(tmp_path))

        await tool.execute(command="cd sub")
        moved = await tool.execute(command="pwd")
        assert Path(moved["stdout"].strip()).resolve() == (tmp_path / "sub").resolve()

        restarted = await tool.execute(restart=True)
        assert restarted["note"] == "Shell restarted"
        back = await tool.execute(command="pwd")
        assert Path(back["stdout"].strip()).resolve() == tmp_path.resolve()

    @pytest.mark.asyncio
    async def test_dangerous_command_is_blocked(self, tmp_path):
        with pytest.raises(PermissionError):
            await BashTool(str(tmp_path)).execute(command="rm -rf / --no-preserve-root")

    @pytest.mark.asyncio
    async def test_missing_command(self, tmp_path):
        with pytest.raises(ValueError, match="No command provided"):
            await BashTool(str(tmp_path)).execute()

    @pytest.mark.asyncio
    async def test_timeout_kills_command(self, tmp_path):
        tool = BashTool(str(tmp_path), timeout=0.3)
        result = await tool.execute(command="sleep 2")
        assert result["exit_code"] == -1
        assert "timed out" in result["note"]


# -------------------------------
# Web tools
# -------------------------------
class TestWebSearchTool:
    @pytest.fixture
    def tool(self):
        tool = WebSearchTool(cache=TTLCache())
        tool.pick_instance = AsyncMock(return_value="https://searx.example")
        return tool

    @pytest.mark.asyncio
    async def test_results_are_shaped_and_cached(self, tool):
        data = {
            "results": [
                {"title": f"Result {i}", "url": f"https://example.com/{i}", "content": "<b>bold</b> text", "engine": "ddg"}
                for i in range(30)
            ]
        }

        with patch.object(WebSearchTool, "_fetch_json", new=AsyncMock(return_value=data)) as fetch:
            first = await tool.execute(query="pydantic validators", topK=50)
            second = await tool.execute(query="pydantic validators", topK=50)

        assert len(first) == 20
        assert first[0] == {
            "title": "Result 0",
            "url": "https://example.com/0",
            "snippet": "bold text",
            "engine": "ddg",
        }
        assert second == first
        assert fetch.call_count == 1
        url, params = fetch.call_args.args
        assert url == "https://searx.example/search"
        assert params["format"] == "json"

    @pytest.mark.asyncio
    async def test_cached_results_are_copies(self, tool):
        data = {"results": [{"title": "a", "url": "https://a"}]}

        with patch.object(WebSearchTool, "_fetch_json", new=AsyncMock(return_value=data)):
            first = await tool.execute(query="asyncio")
            first.clear()
            second = await tool.execute(query="asyncio")

        assert [item["url"] for item in second] == ["https://a"]

    @pytest.mark.asyncio
    async def test_top_k_has_a_floor(self, tool):
        data = {"results": [{"title": "a", "href": "https://a"}, {"title": "b", "url": "https://b"}]}

        with patch.object(WebSearchTool, "_fetch_json", new=AsyncMock(return_value=data)):
            results = await tool.execute(query="x", topK=0)

        assert results == [{"title": "a", "url": "https://a", "snippet": "", "engine": ""}]

    @pytest.mark.asyncio
    async def test_pinned_instance(self, monkeypatch):
        monkeypatch.setenv("SEARX_URL", "https://pinned.example/")
        assert await WebSearchTool(cache=TTLCache()).pick_instance() == "https://pinned.example"


def test_ttl_cache_caps_entries():
    cache = TTLCache(max_entries=2)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.set("c", 3)
    assert cache.get("a") is None
    assert cache.get("c") == 3


class TestPageExtraction:
    def test_extract_text_drops_markup(self):
        page = (
            "<html><head><title>Docs &amp; Guides</title><style>p {color: red}</style></head>"
            "<body><script>alert(1)</script><h1>Intro</h1><p>First   paragraph.</p>"
            "<p>Second<br>line</p></body></html>"
        )

        assert extract_title(page) == "Docs & Guides"
        assert extract_text(page) == "Intro\nFirst paragraph.\nSecond\nline"

    def test_no_title(self):
        assert extract_title("<p>plain</p>") == ""


def test_factory_tool_sets(tmp_path):
    factory = DefaultToolFactory(str(tmp_path))
    assert list(factory.planning_tools()) == ["write_todos"]
    assert list(factory.analysis_tools()) == ["bash"]
    assert list(factory.execution_tools()) == ["bash", "str_replace_based_edit_tool", "web_search", "web_fetch"]
    assert factory.execution_tools()["bash"] is not factory.execution_tools()["bash"]
