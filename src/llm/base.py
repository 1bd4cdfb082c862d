"""Base LLM provider abstraction."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


class LLMError(Exception):
    """Base LLM error."""


class LLMRateLimitError(LLMError):
    """Rate limit hit."""


class LLMAuthError(LLMError):
    """Authentication failure."""


class LLMTimeoutError(LLMError):
    """Request exceeded its deadline."""


@dataclass
class Completion:
    """Raw provider output plus token accounting."""

    text: str
    model: str = ""
    usage: dict = field(default_factory=dict)  # {"input_tokens": int, "output_tokens": int}


class LLMProvider(ABC):
    """Abstract LLM provider interface."""

    provider_name: str = "base"

    @abstractmethod
    def complete(
        self,
        messages: list[dict],
        system: str | None = None,
        max_tokens: int = 2000,
        timeout: float | None = None,
    ) -> Completion:
        """Generate a completion from messages.

        Args:
            messages: List of {"role": ..., "content": ...} dicts
            system: Optional system prompt
            max_tokens: Max response tokens
            timeout: Per-request deadline in seconds (None = SDK default)

        Returns:
            Completion with text and usage
        """
        ...

    def generate(
        self,
        messages: list[dict],
        system: str | None = None,
        max_tokens: int = 2000,
        timeout: float | None = None,
    ) -> str:
        """Generate a response and return only its text."""
        return self.complete(messages, system=system, max_tokens=max_tokens, timeout=timeout).text
