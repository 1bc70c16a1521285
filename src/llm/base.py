"""Base LLM provider abstraction."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class LLMError(Exception):
    """Base LLM error."""


class LLMRateLimitError(LLMError):
    """Rate limit hit."""


class LLMAuthError(LLMError):
    """Authentication failure."""


@dataclass
class Usage:
    """Token counts reported by the provider for one call."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class Completion:
    """Result of a chat completion."""

    content: str | None
    usage: Usage
    model: str
    finish_reason: str = "stop"  # "stop" | "max_tokens"


class LLMProvider(ABC):
    """Abstract LLM provider interface."""

    provider_name: str = "base"
    model: str = ""

    @abstractmethod
    def complete(
        self,
        messages: list[dict],
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        response_format: str | None = None,
    ) -> Completion:
        """Run a chat completion.

        Args:
            messages: List of {"role": ..., "content": ...} dicts; a leading
                "system" message is mapped to the provider's system prompt
            model: Model override (None = provider default)
            max_tokens: Max response tokens
            temperature: Sampling temperature
            response_format: "json" to request a JSON object, None for text

        Returns:
            Completion with content and token usage
        """
        ...

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Return an embedding vector for ``text``."""
        ...


def split_system(messages: list[dict]) -> tuple[str | None, list[dict]]:
    """Separate system messages from the conversation turns."""
    system_parts = [m["content"] for m in messages if m.get("role") == "system"]
    rest = [m for m in messages if m.get("role") != "system"]
    return ("\n\n".join(system_parts) if system_parts else None), rest
