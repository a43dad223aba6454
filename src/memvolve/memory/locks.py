"""Per-agent exclusivity for evolution passes in a single process."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class AgentLocks:
    """One asyncio.Lock per agent id, created on first use."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def lock_for(self, agent_id: str) -> asyncio.Lock:
        return self._locks.setdefault(agent_id, asyncio.Lock())

    def is_locked(self, agent_id: str) -> bool:
        lock = self._locks.get(agent_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, agent_id: str) -> AsyncIterator[None]:
        async with self.lock_for(agent_id):
            yield
