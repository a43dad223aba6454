"""Semantic retrieval: rank embedded memories by cosine similarity to a query."""

from memvolve.core.errors import UpstreamError, ValidationError
from memvolve.core.logging import get_logger
from memvolve.core.types import Agent, SearchResult
from memvolve.llm.base import Embedder
from memvolve.memory.base import MemoryStore

logger = get_logger("memory.search")

DEFAULT_LIMIT = 10
MAX_LIMIT = 50


class SimilaritySearch:
    """Embeds a query and ranks stored memories by vector distance.

    Distances come from the store; this class only converts them to
    similarities, enforces the ordering contract and attaches owners.
    There is no lexical fallback when the embedder fails.
    """

    def __init__(
        self,
        store: MemoryStore,
        embedder: Embedder,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
    ):
        self.store = store
        self.embedder = embedder
        self.default_limit = default_limit
        self.max_limit = max_limit

    def _clamp_limit(self, limit: int | None) -> int:
        if limit is None:
            return min(self.default_limit, self.max_limit)
        if limit < 1:
            raise ValidationError("limit must be a positive integer")
        return min(limit, self.max_limit)

    async def search(
        self,
        query: str,
        agent_id: str | None = None,
        limit: int | None = None,
    ) -> list[SearchResult]:
        """Most similar memories first; ties broken oldest first."""
        if not query or not query.strip():
            raise ValidationError("Query parameter is required")
        limit = self._clamp_limit(limit)

        try:
            vector = await self.embedder.embed(query)
        except UpstreamError:
            raise
        except Exception as e:
            raise UpstreamError(f"Failed to generate query embedding: {e}") from e

        ranked = await self.store.rank_by_vector(vector, agent_id=agent_id, limit=limit)

        results = [
            SearchResult(memory=memory, similarity=1.0 - distance)
            for memory, distance in ranked
            if memory.embedding is not None
        ]
        results.sort(key=lambda r: (-r.similarity, r.memory.created_at, r.memory.id))
        results = results[:limit]

        agents: dict[str, Agent | None] = {}
        for result in results:
            owner_id = result.memory.agent_id
            if owner_id not in agents:
                agents[owner_id] = await self.store.get_agent(owner_id)
            result.agent = agents[owner_id]

        logger.debug(f"Similarity search returned {len(results)} results for query: {query}")
        return results
