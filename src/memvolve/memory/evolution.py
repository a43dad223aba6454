"""Evolution engine - decays stale memories and consolidates aged clusters."""

from collections.abc import Callable
from datetime import datetime, timedelta
from uuid import uuid4

from memvolve.core.errors import ValidationError
from memvolve.core.logging import get_logger
from memvolve.core.types import (
    EvolutionRecord,
    EvolutionResult,
    EvolutionStats,
    Memory,
)
from memvolve.llm.base import Embedder, Summarizer
from memvolve.memory.base import MemoryStore, StrengthUpdate
from memvolve.memory.cache import CacheLayer, agents_list_key, memory_key
from memvolve.memory.lineage import EvolvedLineage, evolved_into, mark_evolved_into
from memvolve.memory.locks import AgentLocks

logger = get_logger("memory.evolution")

QUORUM = 3  # Smallest group worth consolidating
CANDIDATE_MIN_STRENGTH = 0.1
DECAY_FLOOR = 0.1
SOURCE_FLOOR = 0.05
SOURCE_DECAY_FACTOR = 2
EVOLVED_STRENGTH = 0.9


def fallback_content(memories: list[Memory]) -> str:
    """Synthesis used when the summarizer is unavailable."""
    earliest = min(m.created_at for m in memories)
    return (
        f"Consolidated memory cluster: {len(memories)} memories "
        f"from {earliest.strftime('%Y-%m-%d')}"
    )


def _decayed(strength: float, amount: float, floor: float) -> float:
    return round(max(floor, strength - amount), 6)


class EvolutionEngine:
    """Batch decay/consolidation pass over aged memories.

    Pass pipeline:
    1. Select memories older than the cutoff with strength above 0.1,
       oldest first, capped per pass
    2. Group them by owning agent
    3. Per agent, under that agent's lock:
       - fewer than 3 unconsumed memories: plain decay
       - otherwise: synthesize one evolved memory, decay and link sources
    4. Invalidate the agent's cache entries
    """

    def __init__(
        self,
        store: MemoryStore,
        summarizer: Summarizer,
        cache: CacheLayer,
        locks: AgentLocks | None = None,
        embedder: Embedder | None = None,
        older_than_days: int = 7,
        decay_rate: float = 0.1,
        batch_size: int = 50,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.summarizer = summarizer
        self.cache = cache
        self.locks = locks or AgentLocks()
        self.embedder = embedder
        self.older_than_days = older_than_days
        self.decay_rate = decay_rate
        self.batch_size = batch_size
        self._clock = clock

    def _cutoff(self, older_than_days: int | None) -> tuple[datetime, int]:
        days = self.older_than_days if older_than_days is None else older_than_days
        if days < 0:
            raise ValidationError("olderThanDays must not be negative")
        now = self._clock()
        return now - timedelta(days=days), days

    async def evolve(
        self,
        agent_id: str | None = None,
        older_than_days: int | None = None,
        decay_rate: float | None = None,
    ) -> EvolutionResult:
        """Run one evolution pass. An empty pass is a valid result."""
        rate = self.decay_rate if decay_rate is None else decay_rate
        if rate < 0:
            raise ValidationError("decayRate must not be negative")
        cutoff, days = self._cutoff(older_than_days)

        candidates = await self.store.find_evolution_candidates(
            cutoff, CANDIDATE_MIN_STRENGTH, agent_id=agent_id, limit=self.batch_size
        )
        result = EvolutionResult()
        if not candidates:
            logger.info(f"No memories to evolve (older than {days} days)")
            return result

        groups = self._group_by_agent(candidates)
        logger.info(
            f"Evolution pass: {len(candidates)} candidates across {len(groups)} agents"
        )

        # Groups run one at a time to bound summarizer load
        for owner_id, group in groups.items():
            async with self.locks.hold(owner_id):
                try:
                    group = await self._revalidate(group)
                    if not group:
                        continue
                    record = await self._process_group(owner_id, group, rate)
                    result.processed_count += len(group)
                    if record:
                        result.evolutions.append(record)
                finally:
                    await self._invalidate(owner_id, group)

        logger.info(f"Evolution pass complete: {result.summary}")
        return result

    def _group_by_agent(self, memories: list[Memory]) -> dict[str, list[Memory]]:
        groups: dict[str, list[Memory]] = {}
        for memory in memories:
            groups.setdefault(memory.agent_id, []).append(memory)
        return groups

    async def _invalidate(self, agent_id: str, group: list[Memory]) -> None:
        await self.cache.invalidate_agent(agent_id)
        await self.cache.delete(agents_list_key())
        for memory in group:
            await self.cache.delete(memory_key(memory.id))

    async def _revalidate(self, group: list[Memory]) -> list[Memory]:
        """Re-read rows under the agent lock; drop any changed since selection."""
        fresh = {m.id: m for m in await self.store.get_memories([m.id for m in group])}
        kept = [
            fresh[m.id]
            for m in group
            if m.id in fresh
            and fresh[m.id].updated_at == m.updated_at
            and fresh[m.id].strength > CANDIDATE_MIN_STRENGTH
        ]
        if len(kept) != len(group):
            logger.debug(f"Skipped {len(group) - len(kept)} memories changed by another pass")
        return kept

    async def _process_group(
        self, agent_id: str, group: list[Memory], rate: float
    ) -> EvolutionRecord | None:
        # Memories already absorbed by an earlier pass only decay
        unconsumed = [m for m in group if evolved_into(m.metadata) is None]
        consumed = [m for m in group if evolved_into(m.metadata) is not None]

        if len(unconsumed) < QUORUM:
            updates = [
                StrengthUpdate(m.id, _decayed(m.strength, rate, DECAY_FLOOR)) for m in group
            ]
            await self.store.apply_decay(updates)
            logger.debug(f"Agent {agent_id}: decayed {len(updates)} memories")
            return None

        return await self._consolidate(agent_id, unconsumed, consumed, rate)

    async def _consolidate(
        self,
        agent_id: str,
        sources: list[Memory],
        consumed: list[Memory],
        rate: float,
    ) -> EvolutionRecord:
        sources = sorted(sources, key=lambda m: (m.created_at, m.id))
        content = await self._synthesize(sources)

        start, end = sources[0].created_at, sources[-1].created_at
        # Evolved memory must postdate every source
        created_at = max(self._clock(), end + timedelta(microseconds=1))
        lineage = EvolvedLineage(
            source_memory_ids=[m.id for m in sources],
            evolution_date=created_at,
            range_start=start,
            range_end=end,
        )
        evolved = Memory(
            id=str(uuid4()),
            agent_id=agent_id,
            content=content,
            created_at=created_at,
            updated_at=created_at,
            strength=EVOLVED_STRENGTH,
            embedding=await self._embed(content),
            metadata=lineage.to_metadata(),
        )

        updates = [
            StrengthUpdate(
                m.id,
                _decayed(m.strength, SOURCE_DECAY_FACTOR * rate, SOURCE_FLOOR),
                mark_evolved_into(m.metadata, evolved.id),
            )
            for m in sources
        ]
        updates += [
            StrengthUpdate(m.id, _decayed(m.strength, rate, DECAY_FLOOR)) for m in consumed
        ]
        await self.store.apply_consolidation(evolved, updates)

        logger.info(
            f"Agent {agent_id}: consolidated {len(sources)} memories into {evolved.id}"
        )
        return EvolutionRecord(
            agent_id=agent_id, evolved_memory_id=evolved.id, source_count=len(sources)
        )

    async def _synthesize(self, sources: list[Memory]) -> str:
        try:
            return await self.summarizer.summarize([m.content for m in sources])
        except Exception as e:
            logger.warning(f"AI summarization failed, using fallback: {e}")
            return fallback_content(sources)

    async def _embed(self, content: str) -> list[float] | None:
        if self.embedder is None:
            return None
        try:
            return await self.embedder.embed(content)
        except Exception as e:
            logger.warning(f"Evolved memory stored without embedding: {e}")
            return None

    async def stats(self, older_than_days: int | None = None) -> EvolutionStats:
        """Backlog eligible for evolution and count of evolved memories."""
        cutoff, days = self._cutoff(older_than_days)
        by_agent = await self.store.eligible_counts_by_agent(cutoff, CANDIDATE_MIN_STRENGTH)
        return EvolutionStats(
            eligible_for_evolution=sum(by_agent.values()),
            by_agent=by_agent,
            total_evolved=await self.store.count_evolved(),
            threshold_days=days,
        )
