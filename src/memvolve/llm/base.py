"""
LLM collaborator interfaces.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum

from memvolve.core.typing import Vector


class ProviderType(Enum):
    LITELLM = "litellm"
    LOCAL = "local"


@dataclass
class LLMResponse:
    """Response from LLM provider."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0


@dataclass
class LLMConfig:
    """Configuration for LLM call."""

    model: str | None
    max_tokens: int = 1024
    temperature: float = 0.3
    system_prompt: str | None = None


class Embedder(ABC):
    """Text -> fixed-length vector."""

    provider_type: ProviderType

    @abstractmethod
    async def embed(self, text: str) -> Vector:
        """Embed text. Raises UpstreamError on any failure."""
        ...


class Summarizer(ABC):
    """Ordered snippets -> synthesized text."""

    @abstractmethod
    async def summarize(self, texts: list[str]) -> str:
        """Synthesize snippets in the given order. Raises UpstreamError on failure."""
        ...
