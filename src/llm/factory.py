"""LLM provider factory with auto-detection and model tiers."""

import os

from .base import LLMError, LLMProvider

_PROVIDER_ENV_KEYS = {
    "claude": "ANTHROPIC_API_KEY",
    "openai": "OPENAI_API_KEY",
    "gemini": "GOOGLE_API_KEY",
}

_AUTO_DETECT_ORDER = ["claude", "openai", "gemini"]

# Oracle model hints -> concrete model per provider. "default" means provider default.
_MODEL_TIERS = {
    "cheap": {
        "claude": "claude-3-5-haiku-latest",
        "openai": "gpt-4o-mini",
        "gemini": "gemini-2.0-flash",
    },
    "default": {},
}


def resolve_model(provider: str, hint: str | None) -> str | None:
    """Map a model hint ("cheap", "default", or a literal model name) to a model id."""
    if not hint or hint == "default":
        return None
    tier = _MODEL_TIERS.get(hint)
    if tier is None:
        return hint
    return tier.get(provider)


def create_cheap_provider(
    provider: str | None = None,
    api_key: str | None = None,
    model: str | None = None,
    client=None,
) -> LLMProvider:
    """Create a cheap-tier provider for classification calls."""
    resolved = provider or "auto"
    if resolved == "auto":
        resolved = _auto_detect_provider(api_key)
    cheap_model = model or resolve_model(resolved, "cheap")
    return create_llm_provider(provider=resolved, api_key=api_key, model=cheap_model, client=client)


def create_llm_provider(
    provider: str | None = None,
    api_key: str | None = None,
    model: str | None = None,
    client=None,
) -> LLMProvider:
    """Create an LLM provider instance.

    Args:
        provider: "claude", "openai", "gemini", "auto", or None (auto-detect)
        api_key: Explicit API key (overrides env var)
        model: Model name or tier hint (None = provider default)
        client: Pre-built SDK client for testing/DI

    Returns:
        LLMProvider instance
    """
    resolved = provider or "auto"

    if resolved == "auto":
        resolved = _auto_detect_provider(api_key)

    if resolved not in _PROVIDER_ENV_KEYS:
        raise LLMError(f"Unknown provider: {resolved}. Use: claude, openai, gemini")

    if not api_key and not client:
        api_key = os.getenv(_PROVIDER_ENV_KEYS[resolved])

    model = resolve_model(resolved, model)

    if resolved == "claude":
        from .providers.claude import ClaudeProvider

        return ClaudeProvider(api_key=api_key, model=model, client=client)
    if resolved == "openai":
        from .providers.openai import OpenAIProvider

        return OpenAIProvider(api_key=api_key, model=model, client=client)

    from .providers.gemini import GeminiProvider

    return GeminiProvider(api_key=api_key, model=model, client=client)


def _detect_provider_from_key(api_key: str) -> str | None:
    """Infer provider from API key prefix."""
    if api_key.startswith("sk-ant-"):
        return "claude"
    if api_key.startswith("sk-"):
        return "openai"
    if api_key.startswith("AI"):
        return "gemini"
    return None


def _auto_detect_provider(api_key: str | None = None) -> str:
    """Detect provider from explicit key prefix, then env vars."""
    if api_key:
        inferred = _detect_provider_from_key(api_key)
        if inferred:
            return inferred

    for name in _AUTO_DETECT_ORDER:
        if os.getenv(_PROVIDER_ENV_KEYS[name]):
            return name
    raise LLMError(
        "No LLM API key found. Set one of: ANTHROPIC_API_KEY, OPENAI_API_KEY, GOOGLE_API_KEY"
    )
