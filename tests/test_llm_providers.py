"""Tests for LLM provider adapters."""

from unittest.mock import MagicMock

import pytest

from llm import LLMAuthError, LLMError, LLMRateLimitError, LLMTimeoutError
from llm.providers.claude import ClaudeProvider
from llm.providers.gemini import GeminiProvider
from llm.providers.openai import OpenAIProvider


def _claude_response(text, input_tokens=12, output_tokens=7):
    resp = MagicMock()
    resp.content = [MagicMock(type="text", text=text)]
    resp.usage = MagicMock(input_tokens=input_tokens, output_tokens=output_tokens)
    return resp


class TestClaudeProvider:
    def test_complete(self):
        mock_client = MagicMock()
        mock_client.messages.create.return_value = _claude_response("Hello from Claude")

        provider = ClaudeProvider(client=mock_client)
        result = provider.complete(
            messages=[{"role": "user", "content": "hi"}],
            system="Be helpful",
            max_tokens=100,
            timeout=30.0,
        )

        assert result.text == "Hello from Claude"
        assert result.usage == {"input_tokens": 12, "output_tokens": 7}
        mock_client.messages.create.assert_called_once_with(
            model="claude-sonnet-4-20250514",
            max_tokens=100,
            messages=[{"role": "user", "content": "hi"}],
            system="Be helpful",
            timeout=30.0,
        )

    def test_generate_returns_text_only(self):
        mock_client = MagicMock()
        mock_client.messages.create.return_value = _claude_response("just text")

        provider = ClaudeProvider(client=mock_client)
        assert provider.generate(messages=[{"role": "user", "content": "hi"}]) == "just text"

    def test_no_system_no_timeout(self):
        mock_client = MagicMock()
        mock_client.messages.create.return_value = _claude_response("response")

        provider = ClaudeProvider(client=mock_client)
        provider.complete(messages=[{"role": "user", "content": "hi"}])

        call_kwargs = mock_client.messages.create.call_args.kwargs
        assert "system" not in call_kwargs
        assert "timeout" not in call_kwargs

    def test_skips_non_text_blocks(self):
        mock_client = MagicMock()
        resp = _claude_response("answer")
        resp.content.insert(0, MagicMock(type="thinking", text="hidden"))
        mock_client.messages.create.return_value = resp

        provider = ClaudeProvider(client=mock_client)
        assert provider.complete(messages=[{"role": "user", "content": "hi"}]).text == "answer"

    def test_auth_error(self):
        from anthropic import AuthenticationError

        mock_client = MagicMock()
        mock_client.messages.create.side_effect = AuthenticationError(
            message="bad key", response=MagicMock(status_code=401), body={}
        )

        provider = ClaudeProvider(client=mock_client)
        with pytest.raises(LLMAuthError):
            provider.complete(messages=[{"role": "user", "content": "hi"}])

    def test_rate_limit_error(self):
        from anthropic import RateLimitError

        mock_client = MagicMock()
        mock_client.messages.create.side_effect = RateLimitError(
            message="rate limited", response=MagicMock(status_code=429), body={}
        )

        provider = ClaudeProvider(client=mock_client)
        with pytest.raises(LLMRateLimitError):
            provider.complete(messages=[{"role": "user", "content": "hi"}])

    def test_timeout_error(self):
        from anthropic import APITimeoutError

        mock_client = MagicMock()
        mock_client.messages.create.side_effect = APITimeoutError(request=MagicMock())

        provider = ClaudeProvider(client=mock_client)
        with pytest.raises(LLMTimeoutError):
            provider.complete(messages=[{"role": "user", "content": "hi"}], timeout=1.0)

    def test_api_error(self):
        from anthropic import APIError

        mock_client = MagicMock()
        mock_client.messages.create.side_effect = APIError(
            message="server error", request=MagicMock(), body=None
        )

        provider = ClaudeProvider(client=mock_client)
        with pytest.raises(LLMError):
            provider.complete(messages=[{"role": "user", "content": "hi"}])


class TestOpenAIProvider:
    def test_complete(self):
        mock_client = MagicMock()
        mock_resp = MagicMock()
        mock_resp.choices = [MagicMock(message=MagicMock(content="Hello from GPT"))]
        mock_resp.usage = MagicMock(prompt_tokens=5, completion_tokens=3)
        mock_client.chat.completions.create.return_value = mock_resp

        provider = OpenAIProvider(client=mock_client)
        result = provider.complete(
            messages=[{"role": "user", "content": "hi"}],
            system="Be helpful",
            timeout=10.0,
        )

        assert result.text == "Hello from GPT"
        assert result.usage == {"input_tokens": 5, "output_tokens": 3}
        call_kwargs = mock_client.chat.completions.create.call_args.kwargs
        # System message should be prepended
        assert call_kwargs["messages"][0] == {"role": "system", "content": "Be helpful"}
        assert call_kwargs["messages"][1] == {"role": "user", "content": "hi"}
        assert call_kwargs["timeout"] == 10.0

    def test_no_system(self):
        mock_client = MagicMock()
        mock_resp = MagicMock()
        mock_resp.choices = [MagicMock(message=MagicMock(content="response"))]
        mock_client.chat.completions.create.return_value = mock_resp

        provider = OpenAIProvider(client=mock_client)
        provider.complete(messages=[{"role": "user", "content": "hi"}])

        call_kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert len(call_kwargs["messages"]) == 1
        assert "timeout" not in call_kwargs

    def test_none_content_becomes_empty(self):
        mock_client = MagicMock()
        mock_resp = MagicMock()
        mock_resp.choices = [MagicMock(message=MagicMock(content=None))]
        mock_client.chat.completions.create.return_value = mock_resp

        provider = OpenAIProvider(client=mock_client)
        assert provider.generate(messages=[{"role": "user", "content": "hi"}]) == ""

    def test_generic_error(self):
        mock_client = MagicMock()
        mock_client.chat.completions.create.side_effect = RuntimeError("boom")

        provider = OpenAIProvider(client=mock_client)
        with pytest.raises(LLMError):
            provider.complete(messages=[{"role": "user", "content": "hi"}])


class TestGeminiProvider:
    @pytest.fixture(autouse=True)
    def _requires_sdk(self):
        pytest.importorskip("google.genai")

    def test_complete(self):
        mock_client = MagicMock()
        mock_resp = MagicMock()
        mock_resp.text = "Hello from Gemini"
        mock_resp.usage_metadata = MagicMock(prompt_token_count=4, candidates_token_count=2)
        mock_client.models.generate_content.return_value = mock_resp

        provider = GeminiProvider(client=mock_client)
        result = provider.complete(
            messages=[{"role": "user", "content": "hi"}],
            system="Be helpful",
        )

        assert result.text == "Hello from Gemini"
        assert result.usage == {"input_tokens": 4, "output_tokens": 2}
        call_kwargs = mock_client.models.generate_content.call_args.kwargs
        assert call_kwargs["contents"] == "hi"
        assert call_kwargs["config"].system_instruction == "Be helpful"

    def test_auth_error(self):
        mock_client = MagicMock()
        mock_client.models.generate_content.side_effect = Exception("API key not valid")

        provider = GeminiProvider(client=mock_client)
        with pytest.raises(LLMAuthError):
            provider.complete(messages=[{"role": "user", "content": "hi"}])

    def test_deadline_error(self):
        mock_client = MagicMock()
        mock_client.models.generate_content.side_effect = Exception("Deadline exceeded")

        provider = GeminiProvider(client=mock_client)
        with pytest.raises(LLMTimeoutError):
            provider.complete(messages=[{"role": "user", "content": "hi"}], timeout=2.0)

    def test_generic_error(self):
        mock_client = MagicMock()
        mock_client.models.generate_content.side_effect = Exception("something broke")

        provider = GeminiProvider(client=mock_client)
        with pytest.raises(LLMError):
            provider.complete(messages=[{"role": "user", "content": "hi"}])
