"""Tests for the memory tool framework."""

import json

import pytest

from cortex.core.types import ActionResult
from cortex.memory.episodic import ImportanceLevel, MemorySource
from cortex.tools.base import Tool, ToolCall, ToolParameter
from cortex.tools.memory_tools import MemoryToolExecutor, parse_importance


async def echo(arg1: str) -> ActionResult:
    return ActionResult(success=True, data={"arg1": arg1})


class TestTool:
    """Test Tool class."""

    def make_tool(self) -> Tool:
        return Tool(
            name="test_tool",
            description="A test tool",
            parameters=[
                ToolParameter("arg1", "string", "First argument"),
                ToolParameter("mode", "string", "Mode", required=False, enum=["a", "b"]),
            ],
            executor=echo,
        )

    def test_validate_args_success(self):
        valid, error = self.make_tool().validate_args({"arg1": "value"})
        assert valid is True
        assert error is None

    def test_validate_args_missing_required(self):
        valid, error = self.make_tool().validate_args({"mode": "a"})
        assert valid is False
        assert error == "Missing required parameters: arg1"

    def test_validate_args_unknown(self):
        valid, error = self.make_tool().validate_args({"arg1": "x", "zeta": 1, "alpha": 2})
        assert valid is False
        assert error == "Unknown parameters: alpha, zeta"

    def test_validate_args_enum(self):
        tool = self.make_tool()
        assert tool.validate_args({"arg1": "x", "mode": " B "}) == (True, None)
        valid, error = tool.validate_args({"arg1": "x", "mode": "c"})
        assert valid is False
        assert error == "Invalid value for mode: 'c' (expected one of a, b)"

    def test_to_openai_function(self):
        spec = self.make_tool().to_openai_function()
        assert spec["type"] == "function"
        function = spec["function"]
        assert function["name"] == "test_tool"
        assert function["parameters"]["required"] == ["arg1"]
        assert function["parameters"]["properties"]["mode"]["enum"] == ["a", "b"]
        assert "enum" not in function["parameters"]["properties"]["arg1"]


def test_parse_importance():
    assert parse_importance("low") == ImportanceLevel.LOW
    assert parse_importance(" Critical ") == ImportanceLevel.CRITICAL
    assert parse_importance(None) == ImportanceLevel.HIGH
    assert parse_importance("urgent") == ImportanceLevel.HIGH


class TestMemoryToolExecutor:
    """Test the remember / recall / list_facts tools."""

    @pytest.fixture
    def executor(self, manager) -> MemoryToolExecutor:
        return MemoryToolExecutor(manager)

    def test_tool_specs(self, executor):
        names = [spec["function"]["name"] for spec in executor.to_openai_tools()]
        assert names == ["remember", "recall", "list_facts"]

    @pytest.mark.asyncio
    async def test_remember(self, executor, manager):
        result = await executor.execute(
            ToolCall("remember", {"content": "my locker code is 4512", "importance": "critical"})
        )

        assert result.success
        assert result.data == {"message": 'Remembered: "my locker code is 4512"'}
        [memory] = manager.recent_episodes
        assert memory.source == MemorySource.EXPLICIT
        assert memory.importance == 1.0
        await manager.wait_for_extraction()

    @pytest.mark.asyncio
    async def test_remember_blank(self, executor, manager):
        result = await executor.execute(ToolCall("remember", {"content": "   "}))
        assert not result.success
        assert result.error == "Nothing to remember."
        assert manager.recent_episodes == ()

    @pytest.mark.asyncio
    async def test_recall(self, executor, search):
        search.scripted = ["Dentist appointment on Tuesday"]
        result = await executor.execute(ToolCall("recall", {"query": "when is my dentist"}))

        assert result.success
        assert result.data["memories"].startswith("Found:\n- Dentist appointment on Tuesday")

    @pytest.mark.asyncio
    async def test_recall_blank(self, executor):
        result = await executor.execute(ToolCall("recall", {"query": ""}))
        assert result.error == "No search query provided."

    @pytest.mark.asyncio
    async def test_list_facts(self, executor, manager):
        result = await executor.execute(ToolCall("list_facts"))
        assert result.data == {"facts": "No facts stored yet."}

        await manager.store_conversation("I live in Oslo", "Nice")
        await manager.wait_for_extraction()

        result = await executor.execute(ToolCall("list_facts"))
        assert result.data == {"facts": "- User lives in Oslo"}

    @pytest.mark.asyncio
    async def test_unknown_tool(self, executor):
        result = await executor.execute(ToolCall("launch_rocket"))
        assert not result.success
        assert result.error == "Unknown tool: launch_rocket"

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, executor):
        result = await executor.execute(ToolCall("recall", {"q": "typo"}))
        assert result.error == "Invalid arguments: Missing required parameters: query"

    @pytest.mark.asyncio
    async def test_executor_exception_is_reported(self, executor, manager, monkeypatch):
        async def broken(query):
            raise RuntimeError("index corrupted")

        monkeypatch.setattr(manager, "recall_memories", broken)
        result = await executor.execute(ToolCall("recall", {"query": "anything at all"}))

        assert not result.success
        assert result.error == "Tool execution failed: index corrupted"

    @pytest.mark.asyncio
    async def test_execute_all_keeps_order(self, executor):
        results = await executor.execute_all(
            [ToolCall("launch_rocket"), ToolCall("list_facts")]
        )
        assert [r.success for r in results] == [False, True]


class TestFormatResults:
    def test_empty(self):
        assert MemoryToolExecutor.format_results_for_llm([]) == "No tools were executed."

    def test_mixed(self):
        text = MemoryToolExecutor.format_results_for_llm(
            [
                ActionResult(success=True, data={"message": "ok"}),
                ActionResult(success=False, error="boom"),
            ]
        )
        assert text == (
            "Tool 1: SUCCESS\n"
            f"Result: {json.dumps({'message': 'ok'}, indent=2)}\n"
            "\n"
            "Tool 2: FAILED\n"
            "Error: boom"
        )
