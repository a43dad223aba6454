"""LiteLLM adapter - unified interface for hosted completion and embedding models."""

import os
from pathlib import Path
from typing import Any

import litellm
import yaml
from litellm import acompletion, aembedding

from memvolve.core.logging import get_logger
from memvolve.core.typing import Vector
from memvolve.llm.base import LLMConfig, LLMResponse

logger = get_logger("llm.litellm_adapter")

# Disable LiteLLM's verbose logging
litellm.suppress_debug_info = True

DEFAULT_REGISTRY_PATH = Path(__file__).parent.parent / "configs" / "models.yaml"


class ModelConfig:
    """Model configuration from YAML."""

    def __init__(self, data: dict[str, Any]):
        self.model_id = data["model_id"]
        self.litellm_name = data["litellm_name"]
        self.kind = data.get("kind", "chat")
        self.cost_per_1m_input = data.get("cost_per_1m_input", 0.0)
        self.cost_per_1m_output = data.get("cost_per_1m_output", 0.0)
        self.dimensions = data.get("dimensions")
        self.notes = data.get("notes", "")
        self.auth_env = data.get("auth_env")
        self.base_url_env = data.get("base_url_env")

    @property
    def api_key(self) -> str | None:
        """Get API key from environment."""
        if not self.auth_env:
            return None
        return os.getenv(self.auth_env)

    @property
    def base_url(self) -> str | None:
        """Get base URL from environment."""
        if not self.base_url_env:
            return None
        return os.getenv(self.base_url_env)

    @property
    def is_available(self) -> bool:
        """Check if model is available (has required credentials)."""
        if self.auth_env and not self.api_key:
            return False
        if self.base_url_env and not self.base_url:
            return False
        return True


class ModelRegistry:
    """Load and manage model configurations from YAML."""

    def __init__(self, config_path: Path | str):
        with open(config_path) as f:
            data = yaml.safe_load(f)

        self.models = {m["model_id"]: ModelConfig(m) for m in data["models"]}

        logger.info(f"Loaded {len(self.models)} models from registry")
        available = [m.model_id for m in self.models.values() if m.is_available]
        logger.debug(f"Available models: {', '.join(available) or 'none'}")

    def get(self, model_id: str) -> ModelConfig | None:
        """Get model config by ID."""
        return self.models.get(model_id)

    def by_kind(self, kind: str) -> list[ModelConfig]:
        """All models of a kind (chat | embedding)."""
        return [m for m in self.models.values() if m.kind == kind]


class LiteLLMAdapter:
    """Adapter for LiteLLM with registry-resolved credentials."""

    def __init__(self, registry: ModelRegistry):
        self.registry = registry

    def _resolve(self, model_id: str, kind: str) -> ModelConfig:
        model_config = self.registry.get(model_id)
        if not model_config:
            raise ValueError(f"Model {model_id} not in registry")
        if model_config.kind != kind:
            raise ValueError(f"Model {model_id} is a {model_config.kind} model, not {kind}")
        if not model_config.is_available:
            raise ValueError(
                f"Model {model_id} not available (missing credentials/config)"
            )
        return model_config

    def _auth_params(self, model_config: ModelConfig) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if model_config.api_key:
            params["api_key"] = model_config.api_key
        if model_config.base_url:
            params["api_base"] = model_config.base_url
        return params

    async def complete(
        self,
        model_id: str,
        messages: list[dict],
        config: LLMConfig,
    ) -> LLMResponse:
        """Call LiteLLM completion with model from registry.

        Args:
            model_id: Model ID from registry (e.g., 'gemini-2.5-flash')
            messages: OpenAI-format messages
            config: LLM configuration

        Returns:
            LLMResponse with standardized format
        """
        model_config = self._resolve(model_id, "chat")

        if config.system_prompt:
            messages = [{"role": "system", "content": config.system_prompt}, *messages]

        params = {
            "model": model_config.litellm_name,
            "messages": messages,
            "max_tokens": config.max_tokens,
            "temperature": config.temperature,
            **self._auth_params(model_config),
        }

        logger.debug(
            f"LiteLLM request: model={model_config.litellm_name}, messages={len(messages)}"
        )

        try:
            response = await acompletion(**params)
        except Exception as e:
            logger.error(f"LiteLLM error for {model_id}: {e}")
            raise

        content = response.choices[0].message.content or ""
        usage = response.usage
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0

        cost_usd = (
            (input_tokens / 1_000_000) * model_config.cost_per_1m_input
            + (output_tokens / 1_000_000) * model_config.cost_per_1m_output
        )

        logger.debug(
            f"LiteLLM response: model={response.model}, "
            f"tokens={input_tokens}+{output_tokens}, cost=${cost_usd:.4f}"
        )

        return LLMResponse(
            content=content,
            model=response.model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost_usd=cost_usd,
        )

    async def embed(self, model_id: str, text: str) -> Vector:
        """Embed a single text with an embedding model from the registry."""
        model_config = self._resolve(model_id, "embedding")

        try:
            response = await aembedding(
                model=model_config.litellm_name,
                input=[text],
                **self._auth_params(model_config),
            )
        except Exception as e:
            logger.error(f"LiteLLM embedding error for {model_id}: {e}")
            raise

        if not response.data:
            raise ValueError("Empty embedding response")
        item = response.data[0]
        vector = item["embedding"] if isinstance(item, dict) else item.embedding
        if not vector:
            raise ValueError("Empty embedding response")
        return [float(x) for x in vector]


def create_adapter(config_path: Path | str | None = None) -> LiteLLMAdapter:
    """Create LiteLLM adapter with model registry."""
    path = Path(config_path) if config_path else DEFAULT_REGISTRY_PATH

    if not path.exists():
        raise FileNotFoundError(f"Model registry not found at {path}")

    return LiteLLMAdapter(ModelRegistry(path))
