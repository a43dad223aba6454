"""
Shared type definitions.

Agent and Memory records plus the result shapes returned by the
search and evolution engines.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from memvolve.core.typing import JSONDict, Vector

MIN_STRENGTH = 0.0
MAX_STRENGTH = 1.0


def clamp_strength(value: float) -> float:
    """Clamp a requested strength into [0, 1]. Out-of-range values are not errors."""
    return max(MIN_STRENGTH, min(MAX_STRENGTH, float(value)))


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class Agent:
    """Owner of a set of memories."""

    id: str
    name: str
    created_at: datetime
    updated_at: datetime
    metadata: JSONDict = field(default_factory=dict)
    memory_count: int | None = None

    def to_dict(self) -> JSONDict:
        data = {
            "id": self.id,
            "name": self.name,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if self.memory_count is not None:
            data["memory_count"] = self.memory_count
        return data

    @classmethod
    def from_dict(cls, data: JSONDict) -> "Agent":
        return cls(
            id=data["id"],
            name=data["name"],
            metadata=data.get("metadata") or {},
            created_at=_parse_dt(data["created_at"]),
            updated_at=_parse_dt(data["updated_at"]),
            memory_count=data.get("memory_count"),
        )


@dataclass
class Memory:
    """Single stored memory.

    `embedding` is only present when the embedder succeeded at creation.
    `metadata` holds caller data and engine-written lineage keys side by side.
    """

    id: str
    agent_id: str
    content: str
    created_at: datetime
    updated_at: datetime
    strength: float = 1.0
    embedding: Vector | None = None
    metadata: JSONDict = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.strength = clamp_strength(self.strength)

    def to_dict(self, include_embedding: bool = False) -> JSONDict:
        data = {
            "id": self.id,
            "agent_id": self.agent_id,
            "content": self.content,
            "metadata": self.metadata,
            "strength": self.strength,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if include_embedding:
            data["embedding"] = self.embedding
        return data

    @classmethod
    def from_dict(cls, data: JSONDict) -> "Memory":
        return cls(
            id=data["id"],
            agent_id=data["agent_id"],
            content=data["content"],
            metadata=data.get("metadata") or {},
            strength=data.get("strength", 1.0),
            embedding=data.get("embedding"),
            created_at=_parse_dt(data["created_at"]),
            updated_at=_parse_dt(data["updated_at"]),
        )


@dataclass
class AgentDetail:
    """Agent with its most recent memories."""

    agent: Agent
    memories: list[Memory] = field(default_factory=list)

    def to_dict(self) -> JSONDict:
        return {**self.agent.to_dict(), "memories": [m.to_dict() for m in self.memories]}

    @classmethod
    def from_dict(cls, data: JSONDict) -> "AgentDetail":
        return cls(
            agent=Agent.from_dict(data),
            memories=[Memory.from_dict(m) for m in data.get("memories", [])],
        )


@dataclass
class MemoryPage:
    """One page of a memory listing."""

    memories: list[Memory]
    total: int
    limit: int
    offset: int

    @property
    def has_more(self) -> bool:
        return self.offset + len(self.memories) < self.total

    def to_dict(self) -> JSONDict:
        return {
            "memories": [m.to_dict() for m in self.memories],
            "total": self.total,
            "limit": self.limit,
            "offset": self.offset,
        }

    @classmethod
    def from_dict(cls, data: JSONDict) -> "MemoryPage":
        return cls(
            memories=[Memory.from_dict(m) for m in data["memories"]],
            total=data["total"],
            limit=data["limit"],
            offset=data["offset"],
        )


@dataclass
class SearchResult:
    """Similarity search hit."""

    memory: Memory
    similarity: float
    agent: Agent | None = None


@dataclass
class EvolutionRecord:
    """One consolidation performed during a pass."""

    agent_id: str
    evolved_memory_id: str
    source_count: int


@dataclass
class EvolutionResult:
    """Outcome of an evolution pass. An empty result is a success."""

    processed_count: int = 0
    evolutions: list[EvolutionRecord] = field(default_factory=list)

    @property
    def summary(self) -> str:
        return (
            f"Processed {self.processed_count} memories, "
            f"created {len(self.evolutions)} evolved memories"
        )


@dataclass
class EvolutionStats:
    """Backlog snapshot for the evolution engine."""

    eligible_for_evolution: int
    by_agent: dict[str, int]
    total_evolved: int
    threshold_days: int
