"""Embedding and summarization collaborators backed by the LiteLLM adapter."""

from memvolve.core.config import Settings
from memvolve.core.errors import UpstreamError
from memvolve.core.logging import get_logger
from memvolve.core.typing import Vector
from memvolve.llm.base import Embedder, LLMConfig, ProviderType, Summarizer
from memvolve.llm.litellm_adapter import LiteLLMAdapter, create_adapter
from memvolve.llm.local import LocalEmbedder

logger = get_logger("llm.summarizer")

CONSOLIDATE_PROMPT = """You are a memory consolidation system. Analyze the following memories \
and create a concise, meaningful summary that captures the essential information and patterns.

Memories:
{memories}

Write a coherent summary that:
1. Identifies common themes and patterns
2. Preserves important details
3. Reduces redundancy
4. Maintains chronological context where relevant

Summary:"""


def format_memories(texts: list[str]) -> str:
    """Number snippets in the order given."""
    return "\n".join(f"{i}. {text}" for i, text in enumerate(texts, start=1))


class LLMSummarizer(Summarizer):
    """Consolidates memory snippets with a chat model."""

    def __init__(self, adapter: LiteLLMAdapter, model_id: str, max_tokens: int = 512):
        self.adapter = adapter
        self.model_id = model_id
        self.max_tokens = max_tokens

    async def summarize(self, texts: list[str]) -> str:
        if not texts:
            raise ValueError("Nothing to summarize")

        prompt = CONSOLIDATE_PROMPT.format(memories=format_memories(texts))
        messages = [{"role": "user", "content": prompt}]
        config = LLMConfig(model=self.model_id, max_tokens=self.max_tokens, temperature=0.3)

        try:
            response = await self.adapter.complete(self.model_id, messages, config)
        except Exception as e:
            logger.warning(f"Memory summarization failed: {e}")
            raise UpstreamError(f"Summarization failed: {e}") from e

        summary = response.content.strip()
        if not summary:
            raise UpstreamError("Empty summary response")
        return summary


class LiteLLMEmbedder(Embedder):
    """Embeddings from a hosted model in the registry."""

    provider_type = ProviderType.LITELLM

    def __init__(self, adapter: LiteLLMAdapter, model_id: str):
        self.adapter = adapter
        self.model_id = model_id

    async def embed(self, text: str) -> Vector:
        try:
            return await self.adapter.embed(self.model_id, text)
        except Exception as e:
            logger.warning(f"Embedding generation failed: {e}")
            raise UpstreamError(f"Embedding failed: {e}") from e


def create_embedder(settings: Settings, adapter: LiteLLMAdapter | None = None) -> Embedder:
    """Embedder selected by `embedding_provider`."""
    if settings.embedding_provider == ProviderType.LOCAL.value:
        return LocalEmbedder(settings.local_embedding_url, settings.embedding_model)
    if settings.embedding_provider != ProviderType.LITELLM.value:
        raise ValueError(f"Unknown embedding provider: {settings.embedding_provider}")
    return LiteLLMEmbedder(adapter or create_adapter(), settings.embedding_model)


def create_summarizer(
    settings: Settings, adapter: LiteLLMAdapter | None = None
) -> LLMSummarizer:
    return LLMSummarizer(adapter or create_adapter(), settings.summarization_model)
