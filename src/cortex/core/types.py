"""
Shared type definitions.

Core data structures used across modules.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, TypeAlias

JSONDict: TypeAlias = dict[str, Any]
MessageDict: TypeAlias = dict[str, Any]
ToolSpec: TypeAlias = dict[str, Any]


@dataclass
class ChatMessage:
    """One dialogue turn kept in conversation history."""

    role: str  # "user" | "assistant" | "system"
    content: str
    timestamp: datetime = field(default_factory=datetime.now)

    def to_llm_format(self) -> MessageDict:
        """Convert to chat-completion message format."""
        return {"role": self.role, "content": self.content}


@dataclass
class ActionResult:
    """Result of an executed action."""

    success: bool
    data: Any = None
    error: str | None = None
