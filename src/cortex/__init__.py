"""
Cortex - cognitive memory engine for an on-device assistant.

Package structure:
- core: Configuration, logging, errors, shared types
- memory: Episodic/semantic/procedural stores, working memory, manager
- llm: Generation, embedding, speech and vision collaborators
- tools: Memory tools exposed to the model
- agents: Memory-grounded dialog agent
"""

__version__ = "0.1.0"
