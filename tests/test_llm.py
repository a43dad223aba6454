"""Tests for the embedding and summarization collaborators."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from memvolve.core.config import Settings
from memvolve.core.errors import UpstreamError
from memvolve.llm.base import LLMConfig, LLMResponse
from memvolve.llm.litellm_adapter import create_adapter
from memvolve.llm.local import LocalEmbedder
from memvolve.llm.summarizer import (
    LiteLLMEmbedder,
    LLMSummarizer,
    create_embedder,
    format_memories,
)


def test_llm_config_defaults():
    config = LLMConfig(model="test-model")
    assert config.max_tokens == 1024
    assert config.temperature == 0.3
    assert config.system_prompt is None


def test_registry_loads_models():
    adapter = create_adapter()
    embedding = adapter.registry.get("text-embedding-004")
    assert embedding is not None
    assert embedding.kind == "embedding"
    assert adapter.registry.get("gemini-2.5-flash").kind == "chat"
    assert all(m.kind == "embedding" for m in adapter.registry.by_kind("embedding"))


def test_format_memories_numbers_in_order():
    assert format_memories(["a", "b"]) == "1. a\n2. b"


@pytest.mark.asyncio
async def test_summarizer_returns_stripped_text():
    adapter = AsyncMock()
    adapter.complete.return_value = LLMResponse(content="  Summary.  ", model="m")
    summarizer = LLMSummarizer(adapter, "gemini-2.5-flash")

    result = await summarizer.summarize(["first", "second"])

    assert result == "Summary."
    model_id, messages, _ = adapter.complete.call_args.args
    assert model_id == "gemini-2.5-flash"
    assert "1. first\n2. second" in messages[0]["content"]


@pytest.mark.asyncio
async def test_summarizer_empty_reply_is_failure():
    adapter = AsyncMock()
    adapter.complete.return_value = LLMResponse(content="   ", model="m")

    with pytest.raises(UpstreamError):
        await LLMSummarizer(adapter, "m").summarize(["x"])


@pytest.mark.asyncio
async def test_summarizer_wraps_provider_errors():
    adapter = AsyncMock()
    adapter.complete.side_effect = RuntimeError("quota exceeded")

    with pytest.raises(UpstreamError):
        await LLMSummarizer(adapter, "m").summarize(["x"])


@pytest.mark.asyncio
async def test_litellm_embed(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    adapter = create_adapter()
    response = SimpleNamespace(data=[{"embedding": [0.1, 0.2, 0.3]}])

    with patch(
        "memvolve.llm.litellm_adapter.aembedding", AsyncMock(return_value=response)
    ) as mock_embed:
        vector = await LiteLLMEmbedder(adapter, "text-embedding-004").embed("hello")

    assert vector == [0.1, 0.2, 0.3]
    kwargs = mock_embed.call_args.kwargs
    assert kwargs["model"] == "gemini/text-embedding-004"
    assert kwargs["input"] == ["hello"]
    assert kwargs["api_key"] == "test-key"


@pytest.mark.asyncio
async def test_litellm_embed_missing_credentials(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    embedder = LiteLLMEmbedder(create_adapter(), "text-embedding-004")

    with pytest.raises(UpstreamError):
        await embedder.embed("hello")


@pytest.mark.asyncio
async def test_local_embedder():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path.endswith("/embeddings")
        return httpx.Response(200, json={"data": [{"embedding": [1, 2]}]})

    embedder = LocalEmbedder("http://local/v1", "nomic-embed-text")
    embedder._client = httpx.AsyncClient(
        base_url="http://local/v1", transport=httpx.MockTransport(handler)
    )

    assert await embedder.embed("hi") == [1.0, 2.0]
    await embedder.close()


@pytest.mark.asyncio
async def test_local_embedder_http_error():
    embedder = LocalEmbedder("http://local/v1", "nomic-embed-text")
    embedder._client = httpx.AsyncClient(
        base_url="http://local/v1",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )

    with pytest.raises(UpstreamError):
        await embedder.embed("hi")
    await embedder.close()


def test_create_embedder_selects_provider():
    local = create_embedder(Settings(_env_file=None, embedding_provider="local"))
    assert isinstance(local, LocalEmbedder)

    hosted = create_embedder(Settings(_env_file=None), adapter=create_adapter())
    assert isinstance(hosted, LiteLLMEmbedder)

    with pytest.raises(ValueError):
        create_embedder(Settings(_env_file=None, embedding_provider="bogus"))
