"""Claude (Anthropic) LLM provider."""

from ..base import (
    Completion,
    LLMAuthError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    Usage,
    split_system,
)


class ClaudeProvider(LLMProvider):
    """Anthropic Claude provider.

    Anthropic has no embedding endpoint, so ``embed`` always raises and
    retrieval falls back to rule-only results.
    """

    provider_name = "claude"

    def __init__(self, api_key: str | None = None, model: str | None = None, client=None):
        self.model = model or "claude-sonnet-4-20250514"

        if client:
            self.client = client
            return

        try:
            from anthropic import Anthropic
        except ImportError:
            raise LLMError("anthropic package not installed. Run: pip install anthropic")

        self.client = Anthropic(api_key=api_key)

    def _handle_error(self, e: Exception):
        from anthropic import APIError, AuthenticationError, RateLimitError

        if isinstance(e, AuthenticationError):
            raise LLMAuthError(f"Claude auth failed: {e}") from e
        if isinstance(e, RateLimitError):
            raise LLMRateLimitError(f"Claude rate limit: {e}") from e
        if isinstance(e, APIError):
            raise LLMError(f"Claude API error: {e}") from e
        raise LLMError(f"Claude error: {e}") from e

    def complete(
        self,
        messages: list[dict],
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        response_format: str | None = None,
    ) -> Completion:
        system, turns = split_system(messages)
        if response_format == "json":
            hint = "Respond with a single JSON object and nothing else."
            system = f"{system}\n\n{hint}" if system else hint

        kwargs = {
            "model": model or self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": turns,
        }
        if system:
            kwargs["system"] = system

        try:
            response = self.client.messages.create(**kwargs)
        except Exception as e:
            self._handle_error(e)

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        return Completion(
            content=text,
            usage=Usage(
                input_tokens=response.usage.input_tokens,
                output_tokens=response.usage.output_tokens,
            ),
            model=kwargs["model"],
            finish_reason="max_tokens" if response.stop_reason == "max_tokens" else "stop",
        )

    def embed(self, text: str) -> list[float]:
        raise LLMError("Claude does not provide embeddings; configure llm.embedding_provider")
