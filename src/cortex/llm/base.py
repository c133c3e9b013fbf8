"""
Collaborator interfaces for generation, embedding, speech and vision.

The memory core depends only on these protocols; concrete providers live
in sibling modules and tests substitute scripted fakes.
"""

from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from cortex.core.types import MessageDict, ToolSpec


@dataclass
class GenerationResult:
    """Response from a text generator."""

    content: str
    model: str = ""
    tool_calls: list[dict] | None = None  # [{"id", "name", "input"}]
    input_tokens: int = 0
    output_tokens: int = 0


@runtime_checkable
class TextGenerator(Protocol):
    async def generate(
        self,
        messages: list[MessageDict],
        max_tokens: int = 300,
        tools: list[ToolSpec] | None = None,
    ) -> GenerationResult:
        """
        Generate a completion.

        Raises:
            ContextOverflowError: the conversation no longer fits the model context
        """
        ...

    def stream(self, messages: list[MessageDict], max_tokens: int = 300) -> AsyncIterator[str]:
        """Yield incremental tokens."""
        ...

    async def reset(self) -> None:
        """Drop any per-session generation state."""
        ...


@runtime_checkable
class Embedder(Protocol):
    async def embed(self, text: str) -> list[float]: ...


@runtime_checkable
class Transcriber(Protocol):
    async def transcribe(self, audio_path: Path) -> str: ...

    def stream_transcription(self, audio_path: Path) -> AsyncIterator[str]: ...


@runtime_checkable
class Captioner(Protocol):
    async def caption(self, image_path: Path, prompt: str) -> str: ...
