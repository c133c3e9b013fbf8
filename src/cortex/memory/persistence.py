"""Best-effort snapshot persistence for the fact, procedure and episode stores.

Each store is serialized as one JSON blob under a fixed key. A snapshot that
cannot be read loads as an empty collection so a corrupt file never blocks
startup.
"""

import json
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol, TypeVar, runtime_checkable

import aiosqlite

from cortex.core.logging import get_logger
from cortex.memory.episodic import EpisodicMemory
from cortex.memory.procedural import ProceduralMemory
from cortex.memory.semantic import SemanticFact

logger = get_logger("memory.persistence")

FACTS_KEY = "cortex_facts"
PROCEDURES_KEY = "cortex_procedures"
EPISODES_KEY = "cortex_episodes"

SCHEMA = """
CREATE TABLE IF NOT EXISTS snapshots (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

T = TypeVar("T")


@runtime_checkable
class MemoryPersistence(Protocol):
    """Load/save boundary for the durable stores."""

    async def save_facts(self, facts: Iterable[SemanticFact]) -> None: ...

    async def load_facts(self) -> list[SemanticFact]: ...

    async def save_procedures(self, procedures: Iterable[ProceduralMemory]) -> None: ...

    async def load_procedures(self) -> list[ProceduralMemory]: ...

    async def save_episodes(self, episodes: Iterable[EpisodicMemory]) -> None: ...

    async def load_episodes(self) -> list[EpisodicMemory]: ...

    async def clear(self) -> None: ...


class SQLitePersistence:
    """Key-value snapshot table in SQLite."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self.db_path)
        await self._conn.executescript(SCHEMA)
        await self._conn.commit()
        logger.info(f"Connected to snapshot store: {self.db_path}")

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Snapshot store not connected. Call connect() first.")
        return self._conn

    async def get_raw(self, key: str) -> str | None:
        async with self.conn.execute("SELECT value FROM snapshots WHERE key = ?", (key,)) as cursor:
            row = await cursor.fetchone()
            return row[0] if row else None

    async def set_raw(self, key: str, value: str) -> None:
        now = datetime.now().isoformat()
        await self.conn.execute(
            """INSERT INTO snapshots (key, value, updated_at)
               VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET value=?, updated_at=?""",
            (key, value, now, value, now),
        )
        await self.conn.commit()

    async def _save(self, key: str, items: Iterable[Any]) -> None:
        await self.set_raw(key, json.dumps(list(items)))

    async def _load(self, key: str, factory: Callable[[Any], T]) -> list[T]:
        try:
            raw = await self.get_raw(key)
            if raw is None:
                return []
            data = json.loads(raw)
            return [factory(item) for item in data]
        except (aiosqlite.Error, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Discarding unreadable snapshot {key}: {e}")
            return []

    async def save_facts(self, facts: Iterable[SemanticFact]) -> None:
        await self._save(FACTS_KEY, (f.to_dict() for f in facts))

    async def load_facts(self) -> list[SemanticFact]:
        return await self._load(FACTS_KEY, SemanticFact.from_dict)

    async def save_procedures(self, procedures: Iterable[ProceduralMemory]) -> None:
        await self._save(PROCEDURES_KEY, (p.to_dict() for p in procedures))

    async def load_procedures(self) -> list[ProceduralMemory]:
        return await self._load(PROCEDURES_KEY, ProceduralMemory.from_dict)

    async def save_episodes(self, episodes: Iterable[EpisodicMemory]) -> None:
        await self._save(EPISODES_KEY, (e.to_storage_format() for e in episodes))

    async def load_episodes(self) -> list[EpisodicMemory]:
        return await self._load(EPISODES_KEY, EpisodicMemory.from_storage_format)

    async def clear(self) -> None:
        await self.conn.execute(
            "DELETE FROM snapshots WHERE key IN (?, ?, ?)",
            (FACTS_KEY, PROCEDURES_KEY, EPISODES_KEY),
        )
        await self.conn.commit()
