"""Local embedding provider - OpenAI-compatible API for Ollama, LM Studio, etc."""

import httpx

from memvolve.core.errors import UpstreamError
from memvolve.core.logging import get_logger
from memvolve.core.typing import Vector
from memvolve.llm.base import Embedder, ProviderType

logger = get_logger("llm.local")


class LocalEmbedder(Embedder):
    """Embeddings via a local OpenAI-compatible `/embeddings` endpoint."""

    provider_type = ProviderType.LOCAL

    def __init__(self, base_url: str, model: str, timeout: float = 60.0):
        self.base_url = base_url
        self.model = model
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def embed(self, text: str) -> Vector:
        payload = {"model": self.model, "input": text}
        logger.debug(f"Local embedding request: model={self.model}, url={self.base_url}")

        try:
            response = await self.client.post("/embeddings", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.ConnectError as e:
            logger.warning(f"Local embedder not reachable at {self.base_url}: {e}")
            raise UpstreamError(f"Local embedder not reachable: {e}") from e
        except httpx.HTTPError as e:
            logger.warning(f"Local embedding request failed: {e}")
            raise UpstreamError(f"Local embedding failed: {e}") from e

        try:
            vector = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as e:
            raise UpstreamError("Malformed embedding response") from e
        if not vector:
            raise UpstreamError("Empty embedding response")
        return [float(x) for x in vector]

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
