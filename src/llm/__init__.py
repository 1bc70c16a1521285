"""Multi-provider LLM abstraction layer."""

from .base import (
    Completion,
    LLMAuthError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    Usage,
)
from .factory import create_embedding_provider, create_llm_provider

__all__ = [
    "LLMProvider",
    "create_llm_provider",
    "create_embedding_provider",
    "LLMError",
    "LLMRateLimitError",
    "LLMAuthError",
    "Completion",
    "Usage",
]
