"""
Memory module - human-inspired cognitive memory.

Layers:
- episodic: Timestamped events with forgetting-curve decay
- semantic: Extracted facts with reinforcement and contradiction
- procedural: Learned rules, preferences and habits
- working: Per-turn attention window (volatile)

The manager is the only writer; search and persistence are injected.
Storage: SQLite (FTS5 search index + JSON snapshots)
"""

from cortex.memory.episodic import (
    ConsolidationState,
    EmotionalValence,
    EpisodicMemory,
    ImportanceLevel,
    MemorySource,
)
from cortex.memory.manager import MemoryManager, MemoryRetrievalResult, MemoryStatistics
from cortex.memory.persistence import MemoryPersistence, SQLitePersistence
from cortex.memory.procedural import ProceduralMemory, ProceduralType, ProcedureStore
from cortex.memory.search import SearchIndex, SearchResult, SQLiteSearchIndex
from cortex.memory.semantic import FactCategory, FactStore, SemanticFact
from cortex.memory.working import SlotType, WorkingMemory, WorkingMemorySlot

__all__ = [
    "ConsolidationState",
    "EmotionalValence",
    "EpisodicMemory",
    "FactCategory",
    "FactStore",
    "ImportanceLevel",
    "MemoryManager",
    "MemoryPersistence",
    "MemoryRetrievalResult",
    "MemorySource",
    "MemoryStatistics",
    "ProceduralMemory",
    "ProceduralType",
    "ProcedureStore",
    "SQLitePersistence",
    "SQLiteSearchIndex",
    "SearchIndex",
    "SearchResult",
    "SemanticFact",
    "SlotType",
    "WorkingMemory",
    "WorkingMemorySlot",
]
