"""Multi-provider LLM abstraction layer and reasoning oracle."""

from .base import (
    Completion,
    LLMAuthError,
    LLMError,
    LLMProvider,
    LLMRateLimitError,
    LLMTimeoutError,
)
from .factory import create_cheap_provider, create_llm_provider
from .oracle import OracleError, OracleRequest, OracleResponse, ReasoningOracle

__all__ = [
    "LLMProvider",
    "create_llm_provider",
    "create_cheap_provider",
    "LLMError",
    "LLMRateLimitError",
    "LLMAuthError",
    "LLMTimeoutError",
    "Completion",
    "ReasoningOracle",
    "OracleRequest",
    "OracleResponse",
    "OracleError",
]
