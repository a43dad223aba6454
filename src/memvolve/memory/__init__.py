"""
Memory module - lifecycle and retrieval engine.

Components:
- store: durable agents/memories (SQLite)
- cache: two-tier best-effort cache (Redis + in-process)
- search: semantic similarity retrieval
- evolution: decay and consolidation passes
- service: CRUD with cache invalidation
"""
