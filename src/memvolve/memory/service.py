"""Agent and memory CRUD with read-through caching and invalidation on mutation."""

from datetime import datetime

from memvolve.core.errors import NotFoundError, ValidationError
from memvolve.core.logging import get_logger
from memvolve.core.types import Agent, AgentDetail, Memory, MemoryPage
from memvolve.core.typing import JSONDict
from memvolve.llm.base import Embedder
from memvolve.memory import cache as keys
from memvolve.memory.base import MemoryStore
from memvolve.memory.cache import CacheLayer
from memvolve.memory.lineage import merge_metadata

logger = get_logger("memory.service")

AGENT_RECENT_MEMORIES = 50


class MemoryService:
    """Entry point for everything except search and evolution."""

    def __init__(
        self,
        store: MemoryStore,
        cache: CacheLayer,
        embedder: Embedder | None = None,
        agent_ttl: int = 120,
        memory_ttl: int = 300,
        list_max_limit: int = 100,
    ):
        self.store = store
        self.cache = cache
        self.embedder = embedder
        self.agent_ttl = agent_ttl
        self.memory_ttl = memory_ttl
        self.list_max_limit = list_max_limit

    # Agents

    async def create_agent(self, name: str, metadata: JSONDict | None = None) -> Agent:
        if not name or not name.strip():
            raise ValidationError("Agent name is required")
        now = datetime.now()
        agent = await self.store.create_agent(
            Agent(
                id="",
                name=name.strip(),
                metadata=metadata or {},
                created_at=now,
                updated_at=now,
            )
        )
        await self.cache.delete(keys.agents_list_key())
        logger.info(f"Created agent {agent.id} ({agent.name})")
        return agent

    async def get_agent(self, agent_id: str) -> AgentDetail:
        """Agent with its newest memories."""
        cache_key = keys.agent_key(agent_id)
        cached = await self.cache.get(cache_key)
        if cached:
            return AgentDetail.from_dict(cached)

        agent = await self.store.get_agent(agent_id)
        if agent is None:
            raise NotFoundError("Agent", agent_id)
        memories = await self.store.list_memories(
            agent_id=agent_id, limit=AGENT_RECENT_MEMORIES
        )
        detail = AgentDetail(agent=agent, memories=memories)
        await self.cache.set(cache_key, detail.to_dict(), self.agent_ttl)
        return detail

    async def list_agents(self) -> list[Agent]:
        cache_key = keys.agents_list_key()
        cached = await self.cache.get(cache_key)
        if cached:
            return [Agent.from_dict(a) for a in cached]

        agents = await self.store.list_agents()
        await self.cache.set(cache_key, [a.to_dict() for a in agents], self.memory_ttl)
        return agents

    async def delete_agent(self, agent_id: str) -> None:
        if not await self.store.delete_agent(agent_id):
            raise NotFoundError("Agent", agent_id)
        await self.cache.delete(keys.agents_list_key())
        await self.cache.invalidate_agent(agent_id)
        logger.info(f"Deleted agent {agent_id}")

    # Memories

    async def create_memory(
        self, agent_id: str, content: str, metadata: JSONDict | None = None
    ) -> Memory:
        if not agent_id or not content or not content.strip():
            raise ValidationError("agentId and content are required")
        if await self.store.get_agent(agent_id) is None:
            raise NotFoundError("Agent", agent_id)

        embedding = None
        if self.embedder is not None:
            try:
                embedding = await self.embedder.embed(content)
            except Exception as e:
                logger.warning(f"Failed to generate embedding, storing without: {e}")

        now = datetime.now()
        memory = await self.store.create_memory(
            Memory(
                id="",
                agent_id=agent_id,
                content=content,
                embedding=embedding,
                metadata=metadata or {},
                strength=1.0,
                created_at=now,
                updated_at=now,
            )
        )
        await self.cache.invalidate_agent(agent_id)
        await self.cache.delete(keys.agents_list_key())
        return memory

    async def get_memory(self, memory_id: str) -> Memory:
        cache_key = keys.memory_key(memory_id)
        cached = await self.cache.get(cache_key)
        if cached:
            return Memory.from_dict(cached)

        memory = await self.store.get_memory(memory_id)
        if memory is None:
            raise NotFoundError("Memory", memory_id)
        await self.cache.set(cache_key, memory.to_dict(include_embedding=True), self.memory_ttl)
        return memory

    async def list_memories(
        self, agent_id: str | None = None, limit: int = 50, offset: int = 0
    ) -> MemoryPage:
        """Newest first. Only per-agent pages are cached."""
        if limit < 1 or offset < 0:
            raise ValidationError("limit must be positive and offset non-negative")
        limit = min(limit, self.list_max_limit)

        cache_key = keys.agent_memories_list_key(agent_id, limit, offset) if agent_id else None
        if cache_key:
            cached = await self.cache.get(cache_key)
            if cached:
                return MemoryPage.from_dict(cached)

        page = MemoryPage(
            memories=await self.store.list_memories(agent_id, limit=limit, offset=offset),
            total=await self.store.count_memories(agent_id),
            limit=limit,
            offset=offset,
        )
        if cache_key:
            await self.cache.set(cache_key, page.to_dict(), self.memory_ttl)
        return page

    async def update_memory(
        self,
        memory_id: str,
        strength: float | None = None,
        metadata: JSONDict | None = None,
    ) -> Memory:
        """Strength is clamped into [0, 1]; metadata is merged over existing keys."""
        existing = await self.store.get_memory(memory_id)
        if existing is None:
            raise NotFoundError("Memory", memory_id)

        merged = merge_metadata(existing.metadata, metadata) if metadata else None
        memory = await self.store.update_memory(memory_id, strength=strength, metadata=merged)
        if memory is None:
            raise NotFoundError("Memory", memory_id)

        await self.cache.delete(keys.memory_key(memory_id))
        await self.cache.invalidate_agent(memory.agent_id)
        return memory

    async def delete_memory(self, memory_id: str) -> None:
        memory = await self.store.get_memory(memory_id)
        if memory is None or not await self.store.delete_memory(memory_id):
            raise NotFoundError("Memory", memory_id)

        await self.cache.delete(keys.memory_key(memory_id))
        await self.cache.invalidate_agent(memory.agent_id)
        await self.cache.delete(keys.agents_list_key())
