"""Agents that sit on top of the memory core."""

from cortex.agents.dialog import DialogAgent

__all__ = ["DialogAgent"]
