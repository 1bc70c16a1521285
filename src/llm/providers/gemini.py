"""Google Gemini LLM provider using google-genai SDK."""

from ..base import (
    Completion,
    LLMAuthError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    Usage,
    split_system,
)

DEFAULT_EMBEDDING_MODEL = "text-embedding-004"


def _handle_gemini_error(e: Exception):
    err_str = str(e).lower()
    if "api key" in err_str or "authentication" in err_str or "permission" in err_str:
        raise LLMAuthError(f"Gemini auth failed: {e}") from e
    if ("resource" in err_str and "exhausted" in err_str) or "rate" in err_str:
        raise LLMRateLimitError(f"Gemini rate limit: {e}") from e
    raise LLMError(f"Gemini API error: {e}") from e


class GeminiProvider(LLMProvider):
    """Google Gemini provider (google-genai SDK)."""

    provider_name = "gemini"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        client=None,
        embedding_model: str | None = None,
    ):
        self.model = model or "gemini-2.5-flash"
        self.embedding_model = embedding_model or DEFAULT_EMBEDDING_MODEL

        if client:
            self.client = client
            return

        try:
            from google import genai
        except ImportError:
            raise LLMError("google-genai package not installed. Run: pip install google-genai")

        self.client = genai.Client(api_key=api_key)

    def complete(
        self,
        messages: list[dict],
        model: str | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.7,
        response_format: str | None = None,
    ) -> Completion:
        from google.genai import types

        system, turns = split_system(messages)
        prompt = "\n".join(m["content"] for m in turns)
        model_name = model or self.model

        config = types.GenerateContentConfig(
            max_output_tokens=max_tokens,
            temperature=temperature,
            system_instruction=system,
            response_mime_type="application/json" if response_format == "json" else None,
        )
        try:
            response = self.client.models.generate_content(
                model=model_name, contents=prompt, config=config
            )
        except Exception as e:
            _handle_gemini_error(e)

        meta = getattr(response, "usage_metadata", None)
        return Completion(
            content=response.text,
            usage=Usage(
                input_tokens=getattr(meta, "prompt_token_count", 0) or 0,
                output_tokens=getattr(meta, "candidates_token_count", 0) or 0,
            ),
            model=model_name,
        )

    def embed(self, text: str) -> list[float]:
        try:
            response = self.client.models.embed_content(model=self.embedding_model, contents=text)
            return list(response.embeddings[0].values)
        except Exception as e:
            _handle_gemini_error(e)
