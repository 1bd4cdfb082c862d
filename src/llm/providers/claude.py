"""Claude (Anthropic) LLM provider."""

from ..base import (
    Completion,
    LLMAuthError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    LLMTimeoutError,
)


class ClaudeProvider(LLMProvider):
    """Anthropic Claude provider."""

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

    def _get_exceptions(self):
        from anthropic import APIError, APITimeoutError, AuthenticationError, RateLimitError

        return AuthenticationError, RateLimitError, APITimeoutError, APIError

    def _handle_error(self, e: Exception):
        AuthenticationError, RateLimitError, APITimeoutError, APIError = self._get_exceptions()
        if isinstance(e, AuthenticationError):
            raise LLMAuthError(f"Claude auth failed: {e}") from e
        if isinstance(e, RateLimitError):
            raise LLMRateLimitError(f"Claude rate limit: {e}") from e
        if isinstance(e, APITimeoutError):
            raise LLMTimeoutError(f"Claude request timed out: {e}") from e
        if isinstance(e, APIError):
            raise LLMError(f"Claude API error: {e}") from e
        raise LLMError(f"Claude error: {e}") from e

    def complete(
        self,
        messages: list[dict],
        system: str | None = None,
        max_tokens: int = 2000,
        timeout: float | None = None,
    ) -> Completion:
        try:
            self._get_exceptions()
        except ImportError:
            raise LLMError("anthropic package not installed")

        try:
            kwargs = {
                "model": self.model,
                "max_tokens": max_tokens,
                "messages": messages,
            }
            if system:
                kwargs["system"] = system
            if timeout is not None:
                kwargs["timeout"] = timeout

            response = self.client.messages.create(**kwargs)
            text = "".join(
                block.text for block in response.content if getattr(block, "type", "text") == "text"
            )
            usage = {}
            if getattr(response, "usage", None) is not None:
                usage = {
                    "input_tokens": getattr(response.usage, "input_tokens", 0),
                    "output_tokens": getattr(response.usage, "output_tokens", 0),
                }
            return Completion(text=text, model=self.model, usage=usage)
        except Exception as e:
            self._handle_error(e)
