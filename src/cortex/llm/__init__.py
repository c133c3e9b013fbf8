"""Collaborator interfaces and the LiteLLM-backed provider."""

from cortex.llm.base import (
    Captioner,
    Embedder,
    GenerationResult,
    TextGenerator,
    Transcriber,
)

__all__ = ["Captioner", "Embedder", "GenerationResult", "TextGenerator", "Transcriber"]
