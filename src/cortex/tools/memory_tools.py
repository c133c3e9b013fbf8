"""Memory tools the model can call: remember, recall, list_facts.

Tool calling is an optional path; regex extraction keeps working when the
model never calls these.
"""

import json

from cortex.core.logging import get_logger
from cortex.core.types import ActionResult, ToolSpec
from cortex.memory.episodic import ImportanceLevel
from cortex.memory.manager import MemoryManager
from cortex.tools.base import Tool, ToolCall, ToolParameter

logger = get_logger("tools.memory")

IMPORTANCE_BY_NAME = {
    "low": ImportanceLevel.LOW,
    "medium": ImportanceLevel.MEDIUM,
    "high": ImportanceLevel.HIGH,
    "critical": ImportanceLevel.CRITICAL,
}


def parse_importance(value: str | None) -> ImportanceLevel:
    """Map a free-form importance name to a level; unknown names mean HIGH."""
    if not value:
        return ImportanceLevel.HIGH
    return IMPORTANCE_BY_NAME.get(value.strip().lower(), ImportanceLevel.HIGH)


def build_memory_tools(manager: MemoryManager) -> list[Tool]:
    """Bind the memory tools to a manager."""

    async def remember(content: str, importance: str | None = None) -> ActionResult:
        if not content.strip():
            return ActionResult(success=False, error="Nothing to remember.")
        await manager.remember_explicitly(content, importance=parse_importance(importance))
        return ActionResult(success=True, data={"message": f'Remembered: "{content}"'})

    async def recall(query: str) -> ActionResult:
        if not query.strip():
            return ActionResult(success=False, error="No search query provided.")
        return ActionResult(success=True, data={"memories": await manager.recall_memories(query)})

    async def list_facts() -> ActionResult:
        if not manager.get_all_facts():
            return ActionResult(success=True, data={"facts": "No facts stored yet."})
        return ActionResult(success=True, data={"facts": manager.get_facts_as_context()})

    return [
        Tool(
            name="remember",
            description=(
                "Store important information to remember. Use when user says "
                "\"remember\", \"don't forget\", or shares personal info."
            ),
            parameters=[
                ToolParameter("content", "string", "Information to remember"),
                ToolParameter(
                    "importance",
                    "string",
                    "low, medium, high, or critical",
                    required=False,
                    enum=list(IMPORTANCE_BY_NAME),
                ),
            ],
            executor=remember,
        ),
        Tool(
            name="recall",
            description="Search memories for relevant information.",
            parameters=[ToolParameter("query", "string", "What to search for")],
            executor=recall,
        ),
        Tool(
            name="list_facts",
            description="List all known facts about the user.",
            parameters=[],
            executor=list_facts,
        ),
    ]


class MemoryToolExecutor:
    """Executes memory tool calls with validation."""

    def __init__(self, manager: MemoryManager):
        self.tools = {t.name: t for t in build_memory_tools(manager)}

    def to_openai_tools(self) -> list[ToolSpec]:
        return [t.to_openai_function() for t in self.tools.values()]

    async def execute(self, tool_call: ToolCall) -> ActionResult:
        tool = self.tools.get(tool_call.tool_name)
        if not tool:
            return ActionResult(success=False, error=f"Unknown tool: {tool_call.tool_name}")

        valid, error = tool.validate_args(tool_call.arguments)
        if not valid:
            return ActionResult(success=False, error=f"Invalid arguments: {error}")

        try:
            logger.info(f"Executing tool: {tool_call.tool_name} with args: {tool_call.arguments}")
            return await tool.executor(**tool_call.arguments)
        except Exception as e:
            logger.error(f"Tool {tool_call.tool_name} failed: {e}", exc_info=True)
            return ActionResult(success=False, error=f"Tool execution failed: {e}")

    async def execute_all(self, tool_calls: list[ToolCall]) -> list[ActionResult]:
        """Run calls in order; results line up with the input."""
        return [await self.execute(call) for call in tool_calls]

    @staticmethod
    def format_results_for_llm(results: list[ActionResult]) -> str:
        if not results:
            return "No tools were executed."

        lines = []
        for i, result in enumerate(results, 1):
            if result.success:
                lines.append(f"Tool {i}: SUCCESS")
                if result.data:
                    lines.append(f"Result: {json.dumps(result.data, indent=2)}")
            else:
                lines.append(f"Tool {i}: FAILED")
                lines.append(f"Error: {result.error}")
            lines.append("")

        return "\n".join(lines).rstrip()
