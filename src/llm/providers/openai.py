"""OpenAI LLM provider."""

from ..base import (
    Completion,
    LLMAuthError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    Usage,
)

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"


def _handle_openai_error(e: Exception):
    from openai import APIError, AuthenticationError, RateLimitError

    if isinstance(e, AuthenticationError):
        raise LLMAuthError(f"OpenAI auth failed: {e}") from e
    if isinstance(e, RateLimitError):
        raise LLMRateLimitError(f"OpenAI rate limit: {e}") from e
    if isinstance(e, APIError):
        raise LLMError(f"OpenAI API error: {e}") from e
    raise LLMError(f"OpenAI error: {e}") from e


class OpenAIProvider(LLMProvider):
    """OpenAI GPT provider (chat completions + embeddings)."""

    provider_name = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        client=None,
        embedding_model: str | None = None,
    ):
        self.model = model or "gpt-4o-mini"
        self.embedding_model = embedding_model or DEFAULT_EMBEDDING_MODEL

        if client:
            self.client = client
            return

        try:
            from openai import OpenAI
        except ImportError:
            raise LLMError("openai package not installed. Run: pip install openai")

        self.client = OpenAI(api_key=api_key)

    def complete(
        self,
        messages: list[dict],
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        response_format: str | None = None,
    ) -> Completion:
        kwargs = {
            "model": model or self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": messages,
        }
        if response_format == "json":
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = self.client.chat.completions.create(**kwargs)
        except Exception as e:
            _handle_openai_error(e)

        choice = response.choices[0]
        usage = response.usage
        return Completion(
            content=choice.message.content,
            usage=Usage(
                input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            ),
            model=kwargs["model"],
            finish_reason="max_tokens" if choice.finish_reason == "length" else "stop",
        )

    def embed(self, text: str) -> list[float]:
        try:
            response = self.client.embeddings.create(model=self.embedding_model, input=text)
            return list(response.data[0].embedding)
        except Exception as e:
            _handle_openai_error(e)
