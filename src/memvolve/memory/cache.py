"""
Two-tier best-effort cache.

The shared tier is Redis and may be absent. Every operation tries it first;
on absence or any error the in-process tier answers instead. Callers never
see a cache failure, and the store stays the source of truth.
"""

import json
import re
import time
from collections.abc import Callable
from typing import Any

import redis.asyncio as aioredis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff

from memvolve.core.config import Settings
from memvolve.core.logging import get_logger

logger = get_logger("memory.cache")

WILDCARD = "*"


# Key layout


def agent_key(agent_id: str) -> str:
    return f"agent:{agent_id}"


def agents_list_key() -> str:
    return "agents:list"


def memory_key(memory_id: str) -> str:
    return f"memory:{memory_id}"


def agent_memories_pattern(agent_id: str) -> str:
    return f"memory:agent:{agent_id}:{WILDCARD}"


def agent_memories_list_key(agent_id: str, limit: int, offset: int) -> str:
    return f"memory:agent:{agent_id}:list:{limit}:{offset}"


_GLOB_SPECIAL = re.compile(r"([\\*?\[\]])")


def _literal_prefix(pattern: str) -> str:
    return pattern[:-1] if pattern.endswith(WILDCARD) else pattern


def redis_match(pattern: str) -> str:
    """SCAN MATCH argument that treats everything before the trailing `*` literally."""
    escaped = _GLOB_SPECIAL.sub(r"\\\1", _literal_prefix(pattern))
    return escaped + WILDCARD if pattern.endswith(WILDCARD) else escaped


def _matches(key: str, pattern: str) -> bool:
    literal = _literal_prefix(pattern)
    if pattern.endswith(WILDCARD):
        return key.startswith(literal)
    return key == literal


class LocalCache:
    """In-process map of key -> (value, expiry timestamp)."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expiry = entry
        if expiry <= self._clock():
            # Expired entries are dropped on read, not by a sweeper
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self._entries[key] = (value, self._clock() + ttl_seconds)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear_pattern(self, pattern: str) -> int:
        doomed = [key for key in self._entries if _matches(key, pattern)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def __len__(self) -> int:
        return len(self._entries)


class CacheLayer:
    """Cache facade: shared Redis tier with local fallback."""

    def __init__(
        self,
        shared: aioredis.Redis | None = None,
        default_ttl: int = 3600,
        local: LocalCache | None = None,
    ):
        self._shared = shared
        self.default_ttl = default_ttl
        self._local = local or LocalCache()

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheLayer":
        """Build the cache; the shared tier is attached only when configured."""
        shared = None
        url = settings.shared_cache_url
        if url:
            try:
                shared = aioredis.from_url(
                    url,
                    decode_responses=True,
                    retry=Retry(ExponentialBackoff(cap=2.0, base=0.05), 3),
                )
                logger.info("Shared cache tier configured")
            except Exception as e:
                logger.error(f"Failed to initialize Redis, using local cache only: {e}")
                shared = None
        return cls(shared=shared, default_ttl=settings.cache_default_ttl)

    @property
    def has_shared_tier(self) -> bool:
        return self._shared is not None

    async def get(self, key: str) -> Any | None:
        if self._shared is not None:
            try:
                raw = await self._shared.get(key)
                return json.loads(raw) if raw is not None else None
            except Exception as e:
                logger.warning(f"Redis get error for {key}: {e}")

        return self._local.get(key)

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self.default_ttl
        if self._shared is not None:
            try:
                await self._shared.setex(key, ttl, json.dumps(value, default=str))
                return
            except Exception as e:
                logger.warning(f"Redis set error for {key}: {e}")

        self._local.set(key, value, ttl)

    async def delete(self, key: str) -> None:
        # Local copies may exist from an earlier Redis outage
        self._local.delete(key)
        if self._shared is not None:
            try:
                await self._shared.delete(key)
            except Exception as e:
                logger.warning(f"Redis del error for {key}: {e}")

    async def clear_pattern(self, pattern: str) -> None:
        """Remove keys sharing the pattern's literal prefix (single trailing `*`)."""
        removed = self._local.clear_pattern(pattern)
        logger.debug(f"Cleared {removed} local keys for {pattern}")
        if self._shared is not None:
            try:
                match = redis_match(pattern)
                keys = [key async for key in self._shared.scan_iter(match=match)]
                if keys:
                    await self._shared.delete(*keys)
                logger.debug(f"Cleared {len(keys)} shared keys for {pattern}")
            except Exception as e:
                logger.warning(f"Redis clearPattern error for {pattern}: {e}")

    async def invalidate_agent(self, agent_id: str) -> None:
        """Drop the agent's entity key and all its memory listing keys."""
        await self.delete(agent_key(agent_id))
        await self.clear_pattern(agent_memories_pattern(agent_id))

    async def close(self) -> None:
        if self._shared is not None:
            try:
                await self._shared.aclose()
            except Exception as e:
                logger.warning(f"Redis close error: {e}")
            self._shared = None
