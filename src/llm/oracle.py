"""Reasoning oracle: structured-output LLM calls validated against a schema."""

import json
import time
from dataclasses import dataclass, field

import structlog
from pydantic import BaseModel, ValidationError

from cli.retry import llm_retry
from observability import metrics

from .base import LLMError, LLMProvider, LLMRateLimitError

logger = structlog.get_logger()

_JSON_INSTRUCTION = (
    "Respond with a single JSON object matching this JSON Schema. "
    "Output ONLY JSON. No preamble.\n{schema}"
)


class OracleError(Exception):
    """Oracle call failed: transport, timeout, or malformed/invalid output."""


@dataclass
class OracleRequest:
    """One structured reasoning request."""

    task: str
    prompt: str
    schema: type[BaseModel]
    model: str | None = None  # tier hint ("cheap", "default") or literal model id
    timeout: float = 30.0
    system: str | None = None
    max_tokens: int = 500


@dataclass
class OracleResponse:
    data: BaseModel
    usage: dict = field(default_factory=dict)
    duration: float = 0.0
    raw: str = ""


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences around a JSON payload."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[-1]
    if text.endswith("```"):
        text = text.rsplit("```", 1)[0]
    return text.strip()


def parse_json_object(text: str) -> dict:
    """Extract the JSON object from an LLM response.

    Raises:
        OracleError: if no JSON object can be decoded.
    """
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise OracleError("Response contained no JSON object")
        try:
            data = json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError as e:
            raise OracleError(f"Malformed JSON response: {e}") from e
    if not isinstance(data, dict):
        raise OracleError(f"Expected JSON object, got {type(data).__name__}")
    return data


class ReasoningOracle:
    """Sends prompts to an LLM provider and validates JSON answers.

    Rate-limit errors are retried with backoff; timeouts and other provider
    errors are not. Every failure surfaces as OracleError.
    """

    def __init__(
        self,
        provider: LLMProvider | None = None,
        provider_name: str | None = None,
        api_key: str | None = None,
        max_attempts: int = 3,
        min_wait: float = 2.0,
        max_wait: float = 30.0,
    ):
        self._provider = provider
        self._provider_name = provider_name
        self._api_key = api_key
        self._providers: dict[str, LLMProvider] = {}
        self._retry = llm_retry(
            max_attempts=max_attempts,
            min_wait=min_wait,
            max_wait=max_wait,
            exceptions=(LLMRateLimitError,),
        )

    def _get_provider(self, model_hint: str | None) -> LLMProvider:
        if self._provider:
            return self._provider
        key = model_hint or "default"
        if key not in self._providers:
            from .factory import create_llm_provider

            self._providers[key] = create_llm_provider(
                provider=self._provider_name, api_key=self._api_key, model=model_hint
            )
        return self._providers[key]

    def call(self, request: OracleRequest) -> OracleResponse:
        """Run a structured request and return the validated payload.

        Raises:
            OracleError: on any provider failure or invalid response.
        """
        schema_json = json.dumps(request.schema.model_json_schema())
        system = _JSON_INSTRUCTION.format(schema=schema_json)
        if request.system:
            system = f"{request.system}\n\n{system}"

        metrics.counter("oracle.calls")
        start = time.monotonic()
        try:
            provider = self._get_provider(request.model)
            with metrics.timer(f"oracle.{request.task}"):
                completion = self._retry(provider.complete)(
                    messages=[{"role": "user", "content": request.prompt}],
                    system=system,
                    max_tokens=request.max_tokens,
                    timeout=request.timeout,
                )
        except LLMError as e:
            metrics.counter("oracle.errors")
            logger.warning("oracle.call_failed", task=request.task, error=str(e))
            raise OracleError(f"{request.task}: {e}") from e

        duration = time.monotonic() - start
        try:
            data = request.schema.model_validate(parse_json_object(completion.text))
        except ValidationError as e:
            metrics.counter("oracle.errors")
            logger.warning("oracle.invalid_response", task=request.task, error=str(e))
            raise OracleError(f"{request.task}: response failed validation") from e
        except OracleError:
            metrics.counter("oracle.errors")
            logger.warning("oracle.unparseable_response", task=request.task)
            raise

        logger.debug(
            "oracle.call_completed",
            task=request.task,
            duration=round(duration, 3),
            **completion.usage,
        )
        return OracleResponse(data=data, usage=completion.usage, duration=duration, raw=completion.text)
