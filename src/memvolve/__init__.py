"""
Memvolve - lifecycle-managed memory pool for software agents.

Package structure:
- core: config, logging, errors, shared types
- llm: embedding and summarization collaborators
- memory: store, cache, similarity search, evolution engine
"""

__version__ = "0.1.0"
