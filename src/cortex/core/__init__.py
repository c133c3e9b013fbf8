"""
Core module - configuration, logging, shared types.

Components:
- config: Settings management via pydantic-settings
- logging: Structured logging setup
- errors: Library exception hierarchy
- types: Shared data structures (ChatMessage, ActionResult)
"""

from cortex.core.config import Settings
from cortex.core.types import ActionResult, ChatMessage

__all__ = ["Settings", "ActionResult", "ChatMessage"]
