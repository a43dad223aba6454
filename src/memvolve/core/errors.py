"""
Error taxonomy.

Cache failures never appear here: the cache layer recovers them itself.
"""


class MemvolveError(Exception):
    """Base class for errors surfaced to callers."""


class NotFoundError(MemvolveError):
    """Referenced agent or memory does not exist."""

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class ValidationError(MemvolveError):
    """Request rejected before any side effect."""


class UpstreamError(MemvolveError):
    """Embedding or summarization collaborator failed."""


class PersistenceError(MemvolveError):
    """Durable store unreachable or write rejected."""
