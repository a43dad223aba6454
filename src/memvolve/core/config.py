"""
Configuration management.

Loads settings from environment variables and .env file.
Prefix: MEMVOLVE_
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MEMVOLVE_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Storage
    data_dir: Path = Field(default=Path("data"), description="Data storage directory")
    db_name: str = Field(default="memvolve.db", description="SQLite database name")

    # Shared cache tier
    redis_enabled: bool = Field(default=False, description="Use Redis as shared cache tier")
    redis_url: str = Field(default="", description="Redis connection URL")
    cache_default_ttl: int = Field(default=3600, description="Default cache TTL in seconds")
    agent_cache_ttl: int = Field(default=120, description="TTL for a cached agent")
    memory_cache_ttl: int = Field(default=300, description="TTL for cached memories and lists")

    # Evolution
    evolution_threshold_days: int = Field(
        default=7, description="Memories older than this are evolution candidates"
    )
    memory_decay_rate: float = Field(default=0.1, description="Strength lost per pass")
    evolution_batch_size: int = Field(default=50, description="Max candidates per pass")

    # Retrieval
    search_default_limit: int = Field(default=10, description="Default similarity results")
    search_max_limit: int = Field(default=50, description="Similarity result ceiling")
    list_max_limit: int = Field(default=100, description="Memory listing page ceiling")

    # LLM collaborators
    embedding_provider: str = Field(
        default="litellm", description="Embedding backend: litellm | local"
    )
    embedding_model: str = Field(default="text-embedding-004", description="Embedding model id")
    summarization_model: str = Field(
        default="gemini-2.5-flash", description="Summarization model id"
    )
    local_embedding_url: str = Field(
        default="http://localhost:11434/v1",
        description="Local embedding endpoint (OpenAI-compatible)",
    )

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    @property
    def shared_cache_url(self) -> str | None:
        """Redis URL when the shared tier is configured, else None."""
        if self.redis_enabled and self.redis_url:
            return self.redis_url
        return None


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()
