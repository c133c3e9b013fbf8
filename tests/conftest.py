"""Shared fixtures and scripted collaborators."""

from pathlib import Path

import pytest

from cortex.core.config import Settings
from cortex.memory.episodic import EpisodicMemory
from cortex.memory.manager import MemoryManager
from cortex.memory.search import SearchResult


class FakeSearch:
    """In-memory search index returning stored documents in insertion order."""

    def __init__(self):
        self.documents: dict[str, str] = {}
        self.search_calls: list[tuple[str, int]] = []
        self.scripted: list[str] | None = None
        self.fail_store = False
        self.fail_search = False
        self.cleared = False

    async def store(self, doc_id: str, content: str) -> None:
        if self.fail_store:
            raise ConnectionError("search index offline")
        self.documents[doc_id] = content

    async def search(self, query: str, limit: int) -> list[SearchResult]:
        self.search_calls.append((query, limit))
        if self.fail_search:
            raise ConnectionError("search index offline")
        payloads = self.scripted if self.scripted is not None else list(self.documents.values())
        return [SearchResult(content=p, rank=i) for i, p in enumerate(payloads[:limit])]

    async def clear(self) -> None:
        self.documents.clear()
        self.cleared = True


class FakePersistence:
    """Keeps snapshots as plain lists."""

    def __init__(self):
        self.facts = []
        self.procedures = []
        self.episodes = []
        self.cleared = False

    async def save_facts(self, facts):
        self.facts = list(facts)

    async def load_facts(self):
        return list(self.facts)

    async def save_procedures(self, procedures):
        self.procedures = list(procedures)

    async def load_procedures(self):
        return list(self.procedures)

    async def save_episodes(self, episodes: list[EpisodicMemory]):
        self.episodes = list(episodes)

    async def load_episodes(self):
        return list(self.episodes)

    async def clear(self):
        self.facts, self.procedures, self.episodes = [], [], []
        self.cleared = True


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings isolated from the environment and .env files."""
    return Settings(data_dir=tmp_path, _env_file=None)


@pytest.fixture
def search() -> FakeSearch:
    return FakeSearch()


@pytest.fixture
def persistence() -> FakePersistence:
    return FakePersistence()


@pytest.fixture
def manager(search, persistence, settings) -> MemoryManager:
    return MemoryManager(search=search, persistence=persistence, settings=settings)
