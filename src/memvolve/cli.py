"""
CLI entry point.

Commands:
- init: Initialize data directory and database
- add-agent: Create an agent
- agents: List agents
- remember: Store a memory for an agent
- search: Semantic search over memories
- evolve: Run one decay/consolidation pass
- stats: Show evolution backlog

Flags:
- --debug: Enable debug logging to file
"""

import argparse
import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from memvolve.core.config import Settings, get_settings
from memvolve.core.errors import MemvolveError
from memvolve.core.logging import get_logger, setup_logging
from memvolve.llm.litellm_adapter import create_adapter
from memvolve.llm.summarizer import create_embedder, create_summarizer
from memvolve.memory.cache import CacheLayer
from memvolve.memory.evolution import EvolutionEngine
from memvolve.memory.search import SimilaritySearch
from memvolve.memory.service import MemoryService
from memvolve.memory.store import SQLiteMemoryStore


@dataclass
class Runtime:
    """Wired components for one CLI invocation."""

    store: SQLiteMemoryStore
    cache: CacheLayer
    service: MemoryService
    search: SimilaritySearch
    engine: EvolutionEngine


@asynccontextmanager
async def open_runtime(settings: Settings) -> AsyncIterator[Runtime]:
    store = SQLiteMemoryStore(settings.db_path)
    await store.connect()
    cache = CacheLayer()
    try:
        cache = CacheLayer.from_settings(settings)
        adapter = create_adapter()
        embedder = create_embedder(settings, adapter)
        yield Runtime(
            store=store,
            cache=cache,
            service=MemoryService(
                store,
                cache,
                embedder=embedder,
                agent_ttl=settings.agent_cache_ttl,
                memory_ttl=settings.memory_cache_ttl,
                list_max_limit=settings.list_max_limit,
            ),
            search=SimilaritySearch(
                store,
                embedder,
                default_limit=settings.search_default_limit,
                max_limit=settings.search_max_limit,
            ),
            engine=EvolutionEngine(
                store,
                create_summarizer(settings, adapter),
                cache,
                embedder=embedder,
                older_than_days=settings.evolution_threshold_days,
                decay_rate=settings.memory_decay_rate,
                batch_size=settings.evolution_batch_size,
            ),
        )
    finally:
        await cache.close()
        await store.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="memvolve", description="Agent memory pool")
    parser.add_argument("--debug", action="store_true", help="Debug logging to data/memvolve.log")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Initialize data directory and database")

    add_agent = sub.add_parser("add-agent", help="Create an agent")
    add_agent.add_argument("name")

    sub.add_parser("agents", help="List agents")

    remember = sub.add_parser("remember", help="Store a memory")
    remember.add_argument("agent_id")
    remember.add_argument("content")

    search = sub.add_parser("search", help="Semantic search")
    search.add_argument("query")
    search.add_argument("--agent", dest="agent_id")
    search.add_argument("--limit", type=int)

    evolve = sub.add_parser("evolve", help="Run one evolution pass")
    evolve.add_argument("--agent", dest="agent_id")
    evolve.add_argument("--days", type=int, dest="older_than_days")
    evolve.add_argument("--decay", type=float, dest="decay_rate")

    stats = sub.add_parser("stats", help="Evolution backlog")
    stats.add_argument("--days", type=int, dest="older_than_days")

    return parser


async def _run(args: argparse.Namespace, settings: Settings) -> int:
    async with open_runtime(settings) as rt:
        if args.command == "init":
            print(f"Initialized: {settings.db_path}")

        elif args.command == "add-agent":
            agent = await rt.service.create_agent(args.name)
            print(f"{agent.id}  {agent.name}")

        elif args.command == "agents":
            for agent in await rt.service.list_agents():
                print(f"{agent.id}  {agent.name}  ({agent.memory_count or 0} memories)")

        elif args.command == "remember":
            memory = await rt.service.create_memory(args.agent_id, args.content)
            embedded = "embedded" if memory.embedding is not None else "no embedding"
            print(f"{memory.id}  [{embedded}]")

        elif args.command == "search":
            results = await rt.search.search(args.query, agent_id=args.agent_id, limit=args.limit)
            for r in results:
                owner = r.agent.name if r.agent else r.memory.agent_id
                print(f"{r.similarity:.3f}  {owner}: {r.memory.content}")

        elif args.command == "evolve":
            result = await rt.engine.evolve(
                agent_id=args.agent_id,
                older_than_days=args.older_than_days,
                decay_rate=args.decay_rate,
            )
            print(result.summary)
            for ev in result.evolutions:
                print(f"  {ev.agent_id}: {ev.source_count} -> {ev.evolved_memory_id}")

        elif args.command == "stats":
            stats = await rt.engine.stats(args.older_than_days)
            print(f"Eligible for evolution: {stats.eligible_for_evolution}")
            print(f"Total evolved: {stats.total_evolved}")
            print(f"Threshold: {stats.threshold_days} days")
            for agent_id, count in stats.by_agent.items():
                print(f"  {agent_id}: {count}")

    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    settings = get_settings()
    args = build_parser().parse_args(argv)

    log_level = logging.DEBUG if args.debug else logging.INFO
    log_file = settings.data_dir / "memvolve.log"
    setup_logging(level=log_level, log_file=log_file if args.debug else None)
    logger = get_logger("cli")
    logger.debug(f"Running command: {args.command}")

    try:
        return asyncio.run(_run(args, settings))
    except MemvolveError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
