"""SQLite memory store with agent ownership and in-database vector ranking."""

import asyncio
import json
import math
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

import aiosqlite

from memvolve.core.errors import PersistenceError
from memvolve.core.logging import get_logger
from memvolve.core.types import Agent, Memory, clamp_strength
from memvolve.core.typing import JSONDict, Vector
from memvolve.memory.base import MemoryStore, StrengthUpdate

logger = get_logger("memory.store")


# Fixed-width ISO strings keep lexical order equal to chronological order
def _adapt_datetime(dt: datetime) -> str:
    """Convert datetime to ISO format string for SQLite storage."""
    return dt.isoformat(timespec="microseconds")


def _convert_datetime(val: bytes) -> datetime:
    """Convert ISO format string from SQLite to datetime."""
    return datetime.fromisoformat(val.decode())


sqlite3.register_adapter(datetime, _adapt_datetime)
sqlite3.register_converter("DATETIME", _convert_datetime)


def _to_datetime(value: Any) -> datetime:
    # Columns read through subqueries lose their declared type
    if isinstance(value, datetime):
        return value
    if isinstance(value, bytes):
        value = value.decode()
    return datetime.fromisoformat(value)


def _cosine_distance(a_json: str | None, b_json: str | None) -> float | None:
    """SQL function: 1 - cosine similarity of two JSON-encoded vectors."""
    if a_json is None or b_json is None:
        return None
    a = json.loads(a_json)
    b = json.loads(b_json)
    if len(a) != len(b) or not a:
        return None
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return None
    return 1.0 - dot / (norm_a * norm_b)


SCHEMA = """
CREATE TABLE IF NOT EXISTS agents (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    metadata TEXT NOT NULL DEFAULT '{}',  -- JSON object
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL
);

CREATE TABLE IF NOT EXISTS memories (
    id TEXT PRIMARY KEY,
    agent_id TEXT NOT NULL REFERENCES agents(id) ON DELETE CASCADE,
    content TEXT NOT NULL,
    embedding TEXT,  -- JSON array, NULL when embedding failed
    metadata TEXT NOT NULL DEFAULT '{}',  -- JSON object
    strength REAL NOT NULL DEFAULT 1.0 CHECK (strength >= 0 AND strength <= 1),
    created_at DATETIME NOT NULL,
    updated_at DATETIME NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_memories_agent_created
    ON memories(agent_id, created_at);

CREATE INDEX IF NOT EXISTS idx_memories_created
    ON memories(created_at);
"""

MEMORY_COLUMNS = "id, agent_id, content, embedding, metadata, strength, created_at, updated_at"


def _row_to_memory(row: tuple) -> Memory:
    return Memory(
        id=row[0],
        agent_id=row[1],
        content=row[2],
        embedding=json.loads(row[3]) if row[3] else None,
        metadata=json.loads(row[4]) if row[4] else {},
        strength=row[5],
        created_at=_to_datetime(row[6]),
        updated_at=_to_datetime(row[7]),
    )


def _row_to_agent(row: tuple) -> Agent:
    return Agent(
        id=row[0],
        name=row[1],
        metadata=json.loads(row[2]) if row[2] else {},
        created_at=_to_datetime(row[3]),
        updated_at=_to_datetime(row[4]),
        memory_count=row[5] if len(row) > 5 else None,
    )


class SQLiteMemoryStore(MemoryStore):
    """SQLite-backed agent and memory store."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        # One connection is shared, so a rollback would discard every open write
        self._write_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Initialize database connection and schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(
            self.db_path,
            detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
        )
        await self._conn.execute("PRAGMA foreign_keys = ON")
        await self._conn.create_function(
            "cosine_distance", 2, _cosine_distance, deterministic=True
        )
        await self._conn.executescript(SCHEMA)
        await self._conn.commit()
        logger.info(f"Connected to memory store: {self.db_path}")

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Memory store not connected. Call connect() first.")
        return self._conn

    @asynccontextmanager
    async def _transaction(self, action: str) -> AsyncIterator[aiosqlite.Connection]:
        """Commit on success, roll back everything on any failure.

        Transactions are serialized on the write lock so that one writer's
        rollback never touches another writer's pending statements.
        """
        async with self._write_lock:
            try:
                yield self.conn
                await self.conn.commit()
            except sqlite3.Error as e:
                await self.conn.rollback()
                logger.error(f"{action} failed, rolled back: {e}")
                raise PersistenceError(f"{action} failed: {e}") from e
            except BaseException:
                await self.conn.rollback()
                raise

    async def _fetchall(self, sql: str, params: tuple | list = ()) -> list[tuple]:
        try:
            async with self.conn.execute(sql, params) as cursor:
                return list(await cursor.fetchall())
        except sqlite3.Error as e:
            raise PersistenceError(f"Query failed: {e}") from e

    async def _fetchone(self, sql: str, params: tuple | list = ()) -> tuple | None:
        rows = await self._fetchall(sql, params)
        return rows[0] if rows else None

    # Agents

    async def create_agent(self, agent: Agent) -> Agent:
        agent.id = agent.id or str(uuid4())
        async with self._transaction("Create agent") as conn:
            await conn.execute(
                """INSERT INTO agents (id, name, metadata, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    agent.id,
                    agent.name,
                    json.dumps(agent.metadata or {}),
                    agent.created_at,
                    agent.updated_at,
                ),
            )
        return agent

    async def get_agent(self, agent_id: str) -> Agent | None:
        row = await self._fetchone(
            "SELECT id, name, metadata, created_at, updated_at FROM agents WHERE id = ?",
            (agent_id,),
        )
        return _row_to_agent(row) if row else None

    async def list_agents(self) -> list[Agent]:
        rows = await self._fetchall(
            """SELECT a.id, a.name, a.metadata, a.created_at, a.updated_at, COUNT(m.id)
               FROM agents a LEFT JOIN memories m ON m.agent_id = a.id
               GROUP BY a.id
               ORDER BY a.created_at DESC"""
        )
        return [_row_to_agent(row) for row in rows]

    async def delete_agent(self, agent_id: str) -> bool:
        async with self._transaction("Delete agent") as conn:
            cursor = await conn.execute("DELETE FROM agents WHERE id = ?", (agent_id,))
            deleted = cursor.rowcount > 0
        return deleted

    # Memories

    async def create_memory(self, memory: Memory) -> Memory:
        memory.id = memory.id or str(uuid4())
        async with self._transaction("Create memory") as conn:
            await self._insert_memory(conn, memory)
        return memory

    async def _insert_memory(self, conn: aiosqlite.Connection, memory: Memory) -> None:
        await conn.execute(
            f"INSERT INTO memories ({MEMORY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                memory.id,
                memory.agent_id,
                memory.content,
                json.dumps(memory.embedding) if memory.embedding is not None else None,
                json.dumps(memory.metadata or {}),
                clamp_strength(memory.strength),
                memory.created_at,
                memory.updated_at,
            ),
        )

    async def get_memory(self, memory_id: str) -> Memory | None:
        row = await self._fetchone(
            f"SELECT {MEMORY_COLUMNS} FROM memories WHERE id = ?", (memory_id,)
        )
        return _row_to_memory(row) if row else None

    async def get_memories(self, memory_ids: list[str]) -> list[Memory]:
        if not memory_ids:
            return []
        placeholders = ", ".join("?" for _ in memory_ids)
        rows = await self._fetchall(
            f"SELECT {MEMORY_COLUMNS} FROM memories WHERE id IN ({placeholders})",
            memory_ids,
        )
        by_id = {row[0]: _row_to_memory(row) for row in rows}
        return [by_id[i] for i in memory_ids if i in by_id]

    async def update_memory(
        self,
        memory_id: str,
        *,
        strength: float | None = None,
        metadata: JSONDict | None = None,
    ) -> Memory | None:
        updates = ["updated_at = ?"]
        values: list[Any] = [datetime.now()]
        if strength is not None:
            updates.append("strength = ?")
            values.append(clamp_strength(strength))
        if metadata is not None:
            updates.append("metadata = ?")
            values.append(json.dumps(metadata))
        values.append(memory_id)

        async with self._transaction("Update memory") as conn:
            cursor = await conn.execute(
                f"UPDATE memories SET {', '.join(updates)} WHERE id = ?", values
            )
            found = cursor.rowcount > 0
        if not found:
            return None
        return await self.get_memory(memory_id)

    async def delete_memory(self, memory_id: str) -> bool:
        async with self._transaction("Delete memory") as conn:
            cursor = await conn.execute("DELETE FROM memories WHERE id = ?", (memory_id,))
            deleted = cursor.rowcount > 0
        return deleted

    async def list_memories(
        self,
        agent_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
        newest_first: bool = True,
    ) -> list[Memory]:
        query = f"SELECT {MEMORY_COLUMNS} FROM memories"
        params: list[Any] = []
        if agent_id:
            query += " WHERE agent_id = ?"
            params.append(agent_id)
        direction = "DESC" if newest_first else "ASC"
        query += f" ORDER BY created_at {direction}, id {direction} LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        return [_row_to_memory(row) for row in await self._fetchall(query, params)]

    async def count_memories(self, agent_id: str | None = None) -> int:
        if agent_id:
            row = await self._fetchone(
                "SELECT COUNT(*) FROM memories WHERE agent_id = ?", (agent_id,)
            )
        else:
            row = await self._fetchone("SELECT COUNT(*) FROM memories")
        return row[0] if row else 0

    # Evolution and retrieval

    async def find_evolution_candidates(
        self,
        cutoff: datetime,
        min_strength: float,
        agent_id: str | None = None,
        limit: int = 50,
    ) -> list[Memory]:
        query = f"SELECT {MEMORY_COLUMNS} FROM memories WHERE created_at < ? AND strength > ?"
        params: list[Any] = [cutoff, min_strength]
        if agent_id:
            query += " AND agent_id = ?"
            params.append(agent_id)
        query += " ORDER BY created_at ASC, id ASC LIMIT ?"
        params.append(limit)
        return [_row_to_memory(row) for row in await self._fetchall(query, params)]

    async def rank_by_vector(
        self,
        vector: Vector,
        agent_id: str | None = None,
        limit: int = 10,
    ) -> list[tuple[Memory, float]]:
        inner = (
            f"SELECT {MEMORY_COLUMNS}, cosine_distance(embedding, ?) AS distance "
            "FROM memories WHERE embedding IS NOT NULL"
        )
        params: list[Any] = [json.dumps(vector)]
        if agent_id:
            inner += " AND agent_id = ?"
            params.append(agent_id)
        # Vectors of another dimension or zero norm yield NULL and drop out
        query = (
            f"SELECT * FROM ({inner}) WHERE distance IS NOT NULL "
            "ORDER BY distance ASC, created_at ASC, id ASC LIMIT ?"
        )
        params.append(limit)
        rows = await self._fetchall(query, params)
        logger.debug(f"Vector ranking returned {len(rows)} rows")
        return [(_row_to_memory(row[:8]), row[8]) for row in rows]

    async def apply_decay(self, updates: list[StrengthUpdate]) -> None:
        if not updates:
            return
        async with self._transaction("Apply decay") as conn:
            await self._write_updates(conn, updates)

    async def apply_consolidation(
        self, evolved: Memory, updates: list[StrengthUpdate]
    ) -> None:
        async with self._transaction("Apply consolidation") as conn:
            await self._insert_memory(conn, evolved)
            await self._write_updates(conn, updates)

    async def _write_updates(
        self, conn: aiosqlite.Connection, updates: list[StrengthUpdate]
    ) -> None:
        now = datetime.now()
        for update in updates:
            if update.metadata is None:
                await conn.execute(
                    "UPDATE memories SET strength = ?, updated_at = ? WHERE id = ?",
                    (clamp_strength(update.strength), now, update.memory_id),
                )
            else:
                await conn.execute(
                    "UPDATE memories SET strength = ?, metadata = ?, updated_at = ? WHERE id = ?",
                    (
                        clamp_strength(update.strength),
                        json.dumps(update.metadata),
                        now,
                        update.memory_id,
                    ),
                )

    async def eligible_counts_by_agent(
        self, cutoff: datetime, min_strength: float
    ) -> dict[str, int]:
        rows = await self._fetchall(
            """SELECT agent_id, COUNT(*) FROM memories
               WHERE created_at < ? AND strength > ?
               GROUP BY agent_id""",
            (cutoff, min_strength),
        )
        return {row[0]: row[1] for row in rows}

    async def count_evolved(self) -> int:
        row = await self._fetchone(
            "SELECT COUNT(*) FROM memories WHERE json_extract(metadata, '$.type') = 'evolved'"
        )
        return row[0] if row else 0
