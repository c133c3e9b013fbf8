"""Model-callable tools."""

from cortex.tools.base import Tool, ToolCall, ToolParameter
from cortex.tools.memory_tools import MemoryToolExecutor, build_memory_tools

__all__ = ["MemoryToolExecutor", "Tool", "ToolCall", "ToolParameter", "build_memory_tools"]
