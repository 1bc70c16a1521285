"""LLM provider factory with auto-detection."""

import os

from .base import LLMError, LLMProvider

_PROVIDER_ENV_KEYS = {
    "claude": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GOOGLE_API_KEY",
}

_AUTO_DETECT_ORDER = ["openai", "claude", "gemini"]

# Providers exposing an embedding endpoint, in preference order
_EMBEDDING_PROVIDERS = ["openai", "gemini"]


def create_llm_provider(
    provider: str | None = None,
    api_key: str | None = None,
    model: str | None = None,
    client=None,
    embedding_model: str | None = None,
) -> LLMProvider:
    """Create an LLM provider instance.

    Args:
        provider: "claude", "openai", "gemini", "auto", or None (auto-detect)
        api_key: Explicit API key (overrides env var)
        model: Default model name (None = provider default)
        client: Pre-built SDK client for testing/DI
        embedding_model: Embedding model (ignored by providers without embeddings)

    Returns:
        LLMProvider instance
    """
    resolved = provider or "auto"

    if resolved == "auto":
        resolved = _auto_detect_provider(api_key)

    if not api_key and not client:
        env_var = _PROVIDER_ENV_KEYS.get(resolved)
        if env_var:
            api_key = os.getenv(env_var)

    if resolved == "claude":
        from .providers.claude import ClaudeProvider

        return ClaudeProvider(api_key=api_key, model=model, client=client)
    elif resolved == "openai":
        from .providers.openai import OpenAIProvider

        return OpenAIProvider(
            api_key=api_key, model=model, client=client, embedding_model=embedding_model
        )
    elif resolved == "gemini":
        from .providers.gemini import GeminiProvider

        return GeminiProvider(
            api_key=api_key, model=model, client=client, embedding_model=embedding_model
        )
    else:
        raise LLMError(f"Unknown provider: {resolved}. Use: claude, openai, gemini")


def create_embedding_provider(
    provider: str | None = None,
    api_key: str | None = None,
    embedding_model: str | None = None,
    client=None,
) -> LLMProvider:
    """Create a provider used only for ``embed``.

    With no explicit provider, picks the first embedding-capable provider
    whose API key is set.
    """
    resolved = provider or "auto"
    if resolved == "auto":
        resolved = next(
            (name for name in _EMBEDDING_PROVIDERS if os.getenv(_PROVIDER_ENV_KEYS[name])),
            None,
        )
        if resolved is None and api_key:
            inferred = _detect_provider_from_key(api_key)
            resolved = inferred if inferred in _EMBEDDING_PROVIDERS else None
        if resolved is None:
            raise LLMError("No embedding-capable provider configured. Set OPENAI_API_KEY or GOOGLE_API_KEY")
    return create_llm_provider(
        provider=resolved, api_key=api_key, client=client, embedding_model=embedding_model
    )


def _detect_provider_from_key(api_key: str) -> str | None:
    """Infer provider from API key prefix."""
    if api_key.startswith("sk-ant-"):
        return "claude"
    if api_key.startswith("sk-"):
        return "openai"
    if api_key.startswith("AI"):
        return "gemini"
    return None


def _auto_detect_provider(api_key: str | None = None) -> str:
    """Detect provider from explicit key prefix, then env vars."""
    if api_key:
        inferred = _detect_provider_from_key(api_key)
        if inferred:
            return inferred

    for name in _AUTO_DETECT_ORDER:
        env_var = _PROVIDER_ENV_KEYS[name]
        if os.getenv(env_var):
            return name
    raise LLMError(
        "No LLM API key found. Set one of: OPENAI_API_KEY, ANTHROPIC_API_KEY, GOOGLE_API_KEY"
    )
