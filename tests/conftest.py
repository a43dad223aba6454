"""Shared fixtures: temporary store, local-only cache, fake collaborators."""

from datetime import datetime, timedelta
from pathlib import Path
from uuid import uuid4

import pytest

from memvolve.core.errors import UpstreamError
from memvolve.core.types import Agent, Memory
from memvolve.llm.base import Embedder, ProviderType, Summarizer
from memvolve.memory.cache import CacheLayer
from memvolve.memory.store import SQLiteMemoryStore


class FakeEmbedder(Embedder):
    """Looks vectors up by text; unknown text maps to a fixed vector."""

    provider_type = ProviderType.LOCAL

    def __init__(self, vectors: dict[str, list[float]] | None = None, fail: bool = False):
        self.vectors = vectors or {}
        self.fail = fail
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail:
            raise UpstreamError("embedder down")
        return self.vectors.get(text, [1.0, 0.0, 0.0])


class FakeSummarizer(Summarizer):
    def __init__(self, reply: str = "Synthesized summary", fail: bool = False):
        self.reply = reply
        self.fail = fail
        self.calls: list[list[str]] = []

    async def summarize(self, texts: list[str]) -> str:
        self.calls.append(list(texts))
        if self.fail:
            raise UpstreamError("summarizer down")
        return self.reply


@pytest.fixture
async def store(tmp_path: Path):
    """Create a temporary memory store."""
    store = SQLiteMemoryStore(tmp_path / "test.db")
    await store.connect()
    yield store
    await store.close()


@pytest.fixture
def cache() -> CacheLayer:
    """Cache with no shared tier."""
    return CacheLayer()


@pytest.fixture
def make_agent(store: SQLiteMemoryStore):
    async def _make(name: str = "agent", agent_id: str | None = None) -> Agent:
        now = datetime.now()
        return await store.create_agent(
            Agent(id=agent_id or str(uuid4()), name=name, created_at=now, updated_at=now)
        )

    return _make


@pytest.fixture
def make_memory(store: SQLiteMemoryStore):
    async def _make(
        agent_id: str,
        content: str = "memory",
        days_ago: float = 10,
        strength: float = 1.0,
        embedding: list[float] | None = None,
        metadata: dict | None = None,
    ) -> Memory:
        created = datetime.now() - timedelta(days=days_ago)
        return await store.create_memory(
            Memory(
                id=str(uuid4()),
                agent_id=agent_id,
                content=content,
                created_at=created,
                updated_at=created,
                strength=strength,
                embedding=embedding,
                metadata=metadata or {},
            )
        )

    return _make
