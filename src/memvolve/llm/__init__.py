"""
LLM module - model collaborators used by the memory engines.

Providers:
- litellm: hosted models (embedding + summarization) via LiteLLM
- local: OpenAI-compatible embedding endpoint (Ollama, LM Studio, vLLM)

Both collaborators may fail; failures surface as UpstreamError.
"""
