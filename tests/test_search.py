"""Tests for semantic similarity search."""

import pytest

from memvolve.core.errors import UpstreamError, ValidationError
from memvolve.memory.search import SimilaritySearch

from conftest import FakeEmbedder


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder({"python": [1.0, 0.0, 0.0]})


@pytest.fixture
def search(store, embedder) -> SimilaritySearch:
    return SimilaritySearch(store, embedder)


@pytest.mark.asyncio
async def test_results_sorted_by_similarity(search, make_agent, make_memory):
    agent = await make_agent("coder")
    exact = await make_memory(agent.id, "python tips", embedding=[1.0, 0.0, 0.0])
    close = await make_memory(agent.id, "coding", embedding=[0.8, 0.6, 0.0])
    unrelated = await make_memory(agent.id, "weather", embedding=[0.0, 1.0, 0.0])

    results = await search.search("python")

    assert [r.memory.id for r in results] == [exact.id, close.id, unrelated.id]
    assert results[0].similarity == pytest.approx(1.0)
    assert results[1].similarity == pytest.approx(0.8)
    assert results[2].similarity == pytest.approx(0.0)
    similarities = [r.similarity for r in results]
    assert similarities == sorted(similarities, reverse=True)


@pytest.mark.asyncio
async def test_skips_memories_without_embedding(search, make_agent, make_memory):
    agent = await make_agent()
    await make_memory(agent.id, "no vector")
    embedded = await make_memory(agent.id, "vector", embedding=[1.0, 0.0, 0.0])

    results = await search.search("python")

    assert [r.memory.id for r in results] == [embedded.id]
    assert all(r.memory.embedding is not None for r in results)


@pytest.mark.asyncio
async def test_ties_broken_oldest_first(search, make_agent, make_memory):
    agent = await make_agent()
    newer = await make_memory(agent.id, "b", days_ago=1, embedding=[1.0, 0.0, 0.0])
    older = await make_memory(agent.id, "a", days_ago=9, embedding=[1.0, 0.0, 0.0])

    results = await search.search("python")

    assert [r.memory.id for r in results] == [older.id, newer.id]


@pytest.mark.asyncio
async def test_limit_default_and_ceiling(search, make_agent, make_memory):
    agent = await make_agent()
    for i in range(60):
        await make_memory(agent.id, f"m{i}", embedding=[1.0, float(i) / 60, 0.0])

    assert len(await search.search("python")) == 10
    assert len(await search.search("python", limit=3)) == 3
    assert len(await search.search("python", limit=500)) == 50


@pytest.mark.asyncio
async def test_agent_filter_and_owner_attached(search, make_agent, make_memory):
    mine = await make_agent("mine")
    other = await make_agent("other")
    await make_memory(mine.id, "a", embedding=[1.0, 0.0, 0.0])
    await make_memory(other.id, "b", embedding=[1.0, 0.0, 0.0])

    results = await search.search("python", agent_id=mine.id)

    assert len(results) == 1
    assert results[0].agent is not None
    assert results[0].agent.name == "mine"


@pytest.mark.asyncio
async def test_blank_query_rejected_before_embedding(search, embedder):
    with pytest.raises(ValidationError):
        await search.search("   ")
    assert embedder.calls == []


@pytest.mark.asyncio
async def test_non_positive_limit_rejected(search):
    with pytest.raises(ValidationError):
        await search.search("python", limit=0)


@pytest.mark.asyncio
async def test_embedder_failure_is_fatal(store, make_agent, make_memory):
    agent = await make_agent()
    await make_memory(agent.id, "python", embedding=[1.0, 0.0, 0.0])
    search = SimilaritySearch(store, FakeEmbedder(fail=True))

    with pytest.raises(UpstreamError):
        await search.search("python")
