"""Semantic search collaborator: ranked-relevance oracle over stored episodes."""

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol, runtime_checkable

import aiosqlite

from cortex.core.logging import get_logger
from cortex.memory.episodic import META_SEPARATOR

logger = get_logger("memory.search")

SCHEMA = """
-- Stored documents; payload keeps the metadata trailer intact
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    payload TEXT NOT NULL,
    stored_at TEXT NOT NULL
);

-- FTS5 index over the human-readable part only
CREATE VIRTUAL TABLE IF NOT EXISTS documents_fts USING fts5(
    id UNINDEXED,
    content,
    tokenize='porter'
);
"""

_TOKEN = re.compile(r"\w+")


@dataclass
class SearchResult:
    """One ranked hit; rank 0 is the most relevant."""

    content: str
    rank: int


@runtime_checkable
class SearchIndex(Protocol):
    """Opaque document store with ranked text search."""

    async def store(self, doc_id: str, content: str) -> None:
        ...

    async def search(self, query: str, limit: int) -> list[SearchResult]:
        ...

    async def clear(self) -> None:
        ...


class SQLiteSearchIndex:
    """SQLite FTS5 search index (bm25 ranking)."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Initialize database connection and schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self.db_path)
        await self._conn.executescript(SCHEMA)
        await self._conn.commit()
        logger.info(f"Connected to search index: {self.db_path}")

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Search index not connected. Call connect() first.")
        return self._conn

    @staticmethod
    def _escape_fts_query(query: str) -> str:
        """Quote every word so punctuation and FTS5 operators are literal; OR them together."""
        tokens = _TOKEN.findall(query)
        return " OR ".join(f'"{token}"' for token in tokens)

    async def store(self, doc_id: str, content: str) -> None:
        """Insert or replace a document."""
        text = content.split(META_SEPARATOR)[0].strip()
        await self.conn.execute(
            "INSERT OR REPLACE INTO documents (id, payload, stored_at) VALUES (?, ?, ?)",
            (doc_id, content, datetime.now().isoformat()),
        )
        await self.conn.execute("DELETE FROM documents_fts WHERE id = ?", (doc_id,))
        await self.conn.execute(
            "INSERT INTO documents_fts (id, content) VALUES (?, ?)", (doc_id, text)
        )
        await self.conn.commit()

    async def search(self, query: str, limit: int) -> list[SearchResult]:
        """Return stored payloads ranked by relevance."""
        fts_query = self._escape_fts_query(query)
        if not fts_query:
            return []

        payloads: list[str] = []
        try:
            async with self.conn.execute(
                """SELECT d.payload
                   FROM documents_fts f JOIN documents d ON d.id = f.id
                   WHERE documents_fts MATCH ?
                   ORDER BY f.rank
                   LIMIT ?""",
                (fts_query, limit),
            ) as cursor:
                async for row in cursor:
                    payloads.append(row[0])
            logger.debug(f"FTS search returned {len(payloads)} results for query: {query}")
        except aiosqlite.Error as e:
            logger.warning(f"FTS search failed, falling back to LIKE: {e}")
            payloads = await self._fallback_search(query, limit)

        return [SearchResult(content=payload, rank=i) for i, payload in enumerate(payloads)]

    async def _fallback_search(self, query: str, limit: int) -> list[str]:
        """Simple LIKE search when FTS fails."""
        async with self.conn.execute(
            "SELECT payload FROM documents WHERE payload LIKE ? ORDER BY stored_at DESC LIMIT ?",
            (f"%{query}%", limit),
        ) as cursor:
            return [row[0] async for row in cursor]

    async def clear(self) -> None:
        await self.conn.execute("DELETE FROM documents")
        await self.conn.execute("DELETE FROM documents_fts")
        await self.conn.commit()
