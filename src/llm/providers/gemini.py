"""Google Gemini LLM provider using google-genai SDK."""

from ..base import (
    Completion,
    LLMAuthError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    LLMTimeoutError,
)


def _handle_gemini_error(e: Exception):
    err_str = str(e).lower()
    if "api key" in err_str or "authentication" in err_str or "permission" in err_str:
        raise LLMAuthError(f"Gemini auth failed: {e}") from e
    if ("resource" in err_str and "exhausted" in err_str) or "rate" in err_str:
        raise LLMRateLimitError(f"Gemini rate limit: {e}") from e
    if "deadline" in err_str or "timed out" in err_str or "timeout" in err_str:
        raise LLMTimeoutError(f"Gemini request timed out: {e}") from e
    raise LLMError(f"Gemini API error: {e}") from e


class GeminiProvider(LLMProvider):
    """Google Gemini provider (google-genai SDK)."""

    provider_name = "gemini"

    def __init__(self, api_key: str | None = None, model: str | None = None, client=None):
        self.model_name = model or "gemini-2.5-flash"

        if client:
            self.client = client
            return

        try:
            from google import genai
        except ImportError:
            raise LLMError(
                "google-genai package not installed. Run: pip install 'factfusion[gemini]'"
            )

        self.client = genai.Client(api_key=api_key)

    def complete(
        self,
        messages: list[dict],
        system: str | None = None,
        max_tokens: int = 2000,
        timeout: float | None = None,
    ) -> Completion:
        prompt = "\n".join(msg["content"] for msg in messages)

        try:
            from google.genai import types

            config_kwargs = {"max_output_tokens": max_tokens}
            if system:
                config_kwargs["system_instruction"] = system
            if timeout is not None:
                # HttpOptions.timeout is in milliseconds
                config_kwargs["http_options"] = types.HttpOptions(timeout=int(timeout * 1000))

            response = self.client.models.generate_content(
                model=self.model_name,
                contents=prompt,
                config=types.GenerateContentConfig(**config_kwargs),
            )
            usage = {}
            meta = getattr(response, "usage_metadata", None)
            if meta is not None:
                usage = {
                    "input_tokens": getattr(meta, "prompt_token_count", 0) or 0,
                    "output_tokens": getattr(meta, "candidates_token_count", 0) or 0,
                }
            return Completion(text=response.text or "", model=self.model_name, usage=usage)
        except Exception as e:
            _handle_gemini_error(e)
