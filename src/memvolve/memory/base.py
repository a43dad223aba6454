"""
Durable store interface.

The engines only need id-based CRUD, filtered/ordered listing, vector
ranking and two batched write paths for the evolution engine.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from memvolve.core.types import Agent, Memory
from memvolve.core.typing import JSONDict, Vector


@dataclass
class StrengthUpdate:
    """Batched write for one memory during an evolution pass."""

    memory_id: str
    strength: float
    metadata: JSONDict | None = None  # full replacement when set


class MemoryStore(ABC):
    """Abstract agent/memory storage."""

    # Agents

    @abstractmethod
    async def create_agent(self, agent: Agent) -> Agent:
        ...

    @abstractmethod
    async def get_agent(self, agent_id: str) -> Agent | None:
        ...

    @abstractmethod
    async def list_agents(self) -> list[Agent]:
        """All agents, newest first, with memory counts."""
        ...

    @abstractmethod
    async def delete_agent(self, agent_id: str) -> bool:
        """Delete agent and, by cascade, its memories."""
        ...

    # Memories

    @abstractmethod
    async def create_memory(self, memory: Memory) -> Memory:
        ...

    @abstractmethod
    async def get_memory(self, memory_id: str) -> Memory | None:
        ...

    @abstractmethod
    async def get_memories(self, memory_ids: list[str]) -> list[Memory]:
        """Fetch several memories; missing ids are skipped."""
        ...

    @abstractmethod
    async def update_memory(
        self,
        memory_id: str,
        *,
        strength: float | None = None,
        metadata: JSONDict | None = None,
    ) -> Memory | None:
        """Update strength and/or replace metadata. Returns None if absent."""
        ...

    @abstractmethod
    async def delete_memory(self, memory_id: str) -> bool:
        ...

    @abstractmethod
    async def list_memories(
        self,
        agent_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
        newest_first: bool = True,
    ) -> list[Memory]:
        ...

    @abstractmethod
    async def count_memories(self, agent_id: str | None = None) -> int:
        ...

    # Evolution and retrieval

    @abstractmethod
    async def find_evolution_candidates(
        self,
        cutoff: datetime,
        min_strength: float,
        agent_id: str | None = None,
        limit: int = 50,
    ) -> list[Memory]:
        """Memories created before `cutoff` with strength above `min_strength`, oldest first."""
        ...

    @abstractmethod
    async def rank_by_vector(
        self,
        vector: Vector,
        agent_id: str | None = None,
        limit: int = 10,
    ) -> list[tuple[Memory, float]]:
        """(memory, cosine distance) pairs for embedded memories, nearest first."""
        ...

    @abstractmethod
    async def apply_decay(self, updates: list[StrengthUpdate]) -> None:
        """Write a batch of strength updates as one unit."""
        ...

    @abstractmethod
    async def apply_consolidation(
        self, evolved: Memory, updates: list[StrengthUpdate]
    ) -> None:
        """Insert the evolved memory and update its sources as one unit."""
        ...

    @abstractmethod
    async def eligible_counts_by_agent(
        self, cutoff: datetime, min_strength: float
    ) -> dict[str, int]:
        ...

    @abstractmethod
    async def count_evolved(self) -> int:
        ...
