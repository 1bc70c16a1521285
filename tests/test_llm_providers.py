"""Tests for LLM provider adapters."""

from unittest.mock import MagicMock

import pytest

from llm import LLMAuthError, LLMError, LLMRateLimitError
from llm.base import split_system
from llm.providers.claude import ClaudeProvider
from llm.providers.gemini import GeminiProvider
from llm.providers.openai import OpenAIProvider

MESSAGES = [
    {"role": "system", "content": "Be helpful"},
    {"role": "user", "content": "hi"},
]


def claude_response(text="Hello from Claude", stop_reason="end_turn"):
    resp = MagicMock()
    resp.content = [MagicMock(type="text", text=text)]
    resp.usage = MagicMock(input_tokens=12, output_tokens=5)
    resp.stop_reason = stop_reason
    return resp


def openai_response(content="Hello from GPT", finish_reason="stop"):
    resp = MagicMock()
    resp.choices = [MagicMock(message=MagicMock(content=content), finish_reason=finish_reason)]
    resp.usage = MagicMock(prompt_tokens=30, completion_tokens=10)
    return resp


class TestSplitSystem:
    def test_separates_system(self):
        system, turns = split_system(MESSAGES)
        assert system == "Be helpful"
        assert turns == [{"role": "user", "content": "hi"}]

    def test_no_system(self):
        assert split_system([{"role": "user", "content": "hi"}])[0] is None


class TestClaudeProvider:
    def test_complete(self):
        mock_client = MagicMock()
        mock_client.messages.create.return_value = claude_response()

        provider = ClaudeProvider(client=mock_client)
        result = provider.complete(MESSAGES, max_tokens=100)

        assert result.content == "Hello from Claude"
        assert result.usage.input_tokens == 12
        assert result.usage.total_tokens == 17
        assert result.finish_reason == "stop"
        call_kwargs = mock_client.messages.create.call_args.kwargs
        assert call_kwargs["system"] == "Be helpful"
        assert call_kwargs["messages"] == [{"role": "user", "content": "hi"}]
        assert call_kwargs["model"] == "claude-sonnet-4-20250514"

    def test_complete_no_system(self):
        mock_client = MagicMock()
        mock_client.messages.create.return_value = claude_response()

        ClaudeProvider(client=mock_client).complete([{"role": "user", "content": "hi"}])

        assert "system" not in mock_client.messages.create.call_args.kwargs

    def test_json_hint_added_to_system(self):
        mock_client = MagicMock()
        mock_client.messages.create.return_value = claude_response("{}")

        ClaudeProvider(client=mock_client).complete(MESSAGES, response_format="json")

        system = mock_client.messages.create.call_args.kwargs["system"]
        assert system.startswith("Be helpful")
        assert "JSON" in system

    def test_truncated(self):
        mock_client = MagicMock()
        mock_client.messages.create.return_value = claude_response(stop_reason="max_tokens")
        assert ClaudeProvider(client=mock_client).complete(MESSAGES).finish_reason == "max_tokens"

    def test_auth_error(self):
        from anthropic import AuthenticationError

        mock_client = MagicMock()
        mock_client.messages.create.side_effect = AuthenticationError(
            message="bad key", response=MagicMock(status_code=401), body={}
        )

        provider = ClaudeProvider(client=mock_client)
        with pytest.raises(LLMAuthError):
            provider.complete(MESSAGES)

    def test_rate_limit_error(self):
        from anthropic import RateLimitError

        mock_client = MagicMock()
        mock_client.messages.create.side_effect = RateLimitError(
            message="rate limited", response=MagicMock(status_code=429), body={}
        )

        provider = ClaudeProvider(client=mock_client)
        with pytest.raises(LLMRateLimitError):
            provider.complete(MESSAGES)

    def test_api_error(self):
        from anthropic import APIError

        mock_client = MagicMock()
        mock_client.messages.create.side_effect = APIError(
            message="server error", request=MagicMock(), body=None
        )

        provider = ClaudeProvider(client=mock_client)
        with pytest.raises(LLMError):
            provider.complete(MESSAGES)

    def test_no_embeddings(self):
        with pytest.raises(LLMError, match="embeddings"):
            ClaudeProvider(client=MagicMock()).embed("text")


class TestOpenAIProvider:
    def test_complete(self):
        mock_client = MagicMock()
        mock_client.chat.completions.create.return_value = openai_response()

        provider = OpenAIProvider(client=mock_client)
        result = provider.complete(MESSAGES, model="gpt-4o", response_format="json")

        assert result.content == "Hello from GPT"
        assert result.model == "gpt-4o"
        assert (result.usage.input_tokens, result.usage.output_tokens) == (30, 10)
        call_kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert call_kwargs["messages"] == MESSAGES
        assert call_kwargs["response_format"] == {"type": "json_object"}

    def test_plain_text_request(self):
        mock_client = MagicMock()
        mock_client.chat.completions.create.return_value = openai_response()

        OpenAIProvider(client=mock_client).complete(MESSAGES)

        assert "response_format" not in mock_client.chat.completions.create.call_args.kwargs

    def test_length_finish_reason(self):
        mock_client = MagicMock()
        mock_client.chat.completions.create.return_value = openai_response(finish_reason="length")
        assert OpenAIProvider(client=mock_client).complete(MESSAGES).finish_reason == "max_tokens"

    def test_embed(self):
        mock_client = MagicMock()
        mock_client.embeddings.create.return_value = MagicMock(data=[MagicMock(embedding=[0.1, 0.2])])

        provider = OpenAIProvider(client=mock_client)
        assert provider.embed("three bedroom") == [0.1, 0.2]
        mock_client.embeddings.create.assert_called_once_with(
            model="text-embedding-3-small", input="three bedroom"
        )

    def test_generic_error(self):
        mock_client = MagicMock()
        mock_client.chat.completions.create.side_effect = RuntimeError("socket closed")

        with pytest.raises(LLMError, match="socket closed"):
            OpenAIProvider(client=mock_client).complete(MESSAGES)


class TestGeminiProvider:
    def test_complete(self):
        mock_client = MagicMock()
        mock_resp = MagicMock()
        mock_resp.text = "Hello from Gemini"
        mock_resp.usage_metadata = MagicMock(prompt_token_count=9, candidates_token_count=4)
        mock_client.models.generate_content.return_value = mock_resp

        provider = GeminiProvider(client=mock_client)
        result = provider.complete(MESSAGES, response_format="json")

        assert result.content == "Hello from Gemini"
        assert result.usage.output_tokens == 4
        call_kwargs = mock_client.models.generate_content.call_args.kwargs
        assert call_kwargs["contents"] == "hi"
        assert call_kwargs["config"].system_instruction == "Be helpful"
        assert call_kwargs["config"].response_mime_type == "application/json"

    def test_embed(self):
        mock_client = MagicMock()
        mock_client.models.embed_content.return_value = MagicMock(embeddings=[MagicMock(values=[0.5, 0.25])])

        assert GeminiProvider(client=mock_client).embed("yard") == [0.5, 0.25]

    def test_auth_error(self):
        mock_client = MagicMock()
        mock_client.models.generate_content.side_effect = Exception("API key not valid")

        provider = GeminiProvider(client=mock_client)
        with pytest.raises(LLMAuthError):
            provider.complete(MESSAGES)

    def test_rate_limit_error(self):
        mock_client = MagicMock()
        mock_client.models.generate_content.side_effect = Exception("429 RESOURCE_EXHAUSTED")

        with pytest.raises(LLMRateLimitError):
            GeminiProvider(client=mock_client).complete(MESSAGES)

    def test_generic_error(self):
        mock_client = MagicMock()
        mock_client.models.generate_content.side_effect = Exception("something broke")

        provider = GeminiProvider(client=mock_client)
        with pytest.raises(LLMError):
            provider.complete(MESSAGES)
