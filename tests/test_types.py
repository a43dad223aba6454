"""Tests for shared record types."""

from datetime import datetime

import pytest

from memvolve.core.types import (
    Agent,
    AgentDetail,
    EvolutionRecord,
    EvolutionResult,
    Memory,
    MemoryPage,
    clamp_strength,
)

NOW = datetime(2024, 5, 1, 12, 0, 0, 123456)


def _memory(**kwargs) -> Memory:
    defaults = dict(id="m1", agent_id="a1", content="hello", created_at=NOW, updated_at=NOW)
    defaults.update(kwargs)
    return Memory(**defaults)


@pytest.mark.parametrize(
    "value, expected",
    [(-0.5, 0.0), (0.0, 0.0), (0.42, 0.42), (1.0, 1.0), (3, 1.0)],
)
def test_clamp_strength(value, expected):
    assert clamp_strength(value) == expected


def test_memory_clamps_on_construction():
    assert _memory(strength=1.5).strength == 1.0
    assert _memory(strength=-1).strength == 0.0


def test_memory_dict_hides_embedding_by_default():
    memory = _memory(embedding=[0.1, 0.2])

    assert "embedding" not in memory.to_dict()
    restored = Memory.from_dict(memory.to_dict(include_embedding=True))
    assert restored.embedding == [0.1, 0.2]
    assert restored.created_at == NOW


def test_agent_detail_from_cached_dict():
    agent = Agent(id="a1", name="scout", created_at=NOW, updated_at=NOW)
    detail = AgentDetail(agent=agent, memories=[_memory()])

    restored = AgentDetail.from_dict(detail.to_dict())

    assert restored.agent.name == "scout"
    assert [m.id for m in restored.memories] == ["m1"]


def test_memory_page_has_more():
    page = MemoryPage(memories=[_memory()], total=3, limit=1, offset=1)
    assert page.has_more is True

    last = MemoryPage(memories=[_memory()], total=3, limit=1, offset=2)
    assert last.has_more is False


def test_evolution_result_summary():
    result = EvolutionResult(processed_count=5)
    result.evolutions.append(EvolutionRecord("a1", "e1", 3))

    assert result.summary == "Processed 5 memories, created 1 evolved memories"
    assert EvolutionResult().summary == "Processed 0 memories, created 0 evolved memories"
