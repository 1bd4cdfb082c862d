"""OpenAI LLM provider."""

from ..base import (
    Completion,
    LLMAuthError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    LLMTimeoutError,
)

# Lazy exception references, resolved on first error
_openai_exceptions = None


def _get_openai_exceptions():
    global _openai_exceptions
    if _openai_exceptions is None:
        try:
            from openai import APIError, APITimeoutError, AuthenticationError, RateLimitError

            _openai_exceptions = (AuthenticationError, RateLimitError, APITimeoutError, APIError)
        except ImportError:
            _openai_exceptions = ()
    return _openai_exceptions


def _handle_openai_error(e: Exception):
    exc = _get_openai_exceptions()
    if exc:
        AuthErr, RateErr, TimeoutErr, ApiErr = exc
        if isinstance(e, AuthErr):
            raise LLMAuthError(f"OpenAI auth failed: {e}") from e
        if isinstance(e, RateErr):
            raise LLMRateLimitError(f"OpenAI rate limit: {e}") from e
        if isinstance(e, TimeoutErr):
            raise LLMTimeoutError(f"OpenAI request timed out: {e}") from e
        if isinstance(e, ApiErr):
            raise LLMError(f"OpenAI API error: {e}") from e
    raise LLMError(f"OpenAI error: {e}") from e


class OpenAIProvider(LLMProvider):
    """OpenAI GPT provider."""

    provider_name = "openai"

    def __init__(self, api_key: str | None = None, model: str | None = None, client=None):
        self.model = model or "gpt-4o"

        if client:
            self.client = client
            return

        try:
            from openai import OpenAI
        except ImportError:
            raise LLMError("openai package not installed. Run: pip install 'factfusion[openai]'")

        self.client = OpenAI(api_key=api_key)

    def complete(
        self,
        messages: list[dict],
        system: str | None = None,
        max_tokens: int = 2000,
        timeout: float | None = None,
    ) -> Completion:
        full_messages = []
        if system:
            full_messages.append({"role": "system", "content": system})
        full_messages.extend(messages)

        kwargs = {"model": self.model, "max_tokens": max_tokens, "messages": full_messages}
        if timeout is not None:
            kwargs["timeout"] = timeout

        try:
            response = self.client.chat.completions.create(**kwargs)
            usage = {}
            if getattr(response, "usage", None) is not None:
                usage = {
                    "input_tokens": getattr(response.usage, "prompt_tokens", 0),
                    "output_tokens": getattr(response.usage, "completion_tokens", 0),
                }
            return Completion(
                text=response.choices[0].message.content or "", model=self.model, usage=usage
            )
        except Exception as e:
            _handle_openai_error(e)
