"""LLM-backed classification of how a new fact relates to an existing one."""

from typing import Literal

import structlog
from pydantic import AliasChoices, BaseModel, Field

from llm.oracle import OracleError, OracleRequest, ReasoningOracle
from observability import metrics

from .cache import DecisionCache, TTLDecisionCache
from .models import Fact, FactSource, FusionAction, FusionDecision
from .policy import DEFAULT_POLICY, FusionPolicy

logger = structlog.get_logger()

FUSION_TASK = "fact_fusion"

_FUSION_SYSTEM = """You compare two facts about the same person or organization and classify their relationship.

Actions:
1. confirm: same information restated. "Works at Acme" ~ "Works at Acme Corp".
2. enrich: complementary details that merge into a richer fact. "At Acme" + "Lead engineer at Acme Corp"
   -> "Lead engineer at Acme Corp". You MUST provide merged_value.
3. supersede: the new fact is more precise or more recent. "Birthday in March" -> "Birthday 1990-03-15".
4. coexist: both are valid at once or for different periods. "CTO in 2020" + "CEO in 2024".
5. conflict: they contradict each other and a human must decide. "Works at Acme" + "Works at Globex" (same time).

Set merged_value only for enrich. Keep explanation to 1-2 sentences."""


class FusionDecisionSchema(BaseModel):
    """Structured oracle answer for a fusion decision."""

    action: Literal["confirm", "enrich", "supersede", "coexist", "conflict"]
    merged_value: str | None = Field(
        default=None, validation_alias=AliasChoices("merged_value", "mergedValue")
    )
    explanation: str
    confidence: float = Field(ge=0.0, le=1.0)


def build_fusion_prompt(
    existing: Fact,
    new_value: str,
    new_source: FactSource,
    message_context: str | None = None,
    max_context_chars: int = 300,
) -> str:
    added = existing.created_at.strftime("%Y-%m-%d") if existing.created_at else "unknown"
    confidence = existing.confidence if existing.confidence is not None else "not set"
    lines = [
        "EXISTING FACT:",
        f"- Type: {existing.fact_type}",
        f'- Value: "{existing.value or ""}"',
        f"- Source: {existing.source.value} (priority: {existing.source.priority})",
        f"- Confidence: {confidence}",
        f"- Added: {added}",
        "",
        "NEW FACT:",
        f"- Type: {existing.fact_type}",
        f'- Value: "{new_value}"',
        f"- Source: {new_source.value} (priority: {new_source.priority})",
    ]
    if message_context:
        lines.append(f'- Message context: "{message_context[:max_context_chars]}"')
    lines += ["", "SOURCE PRIORITY: MANUAL(100) > EXTRACTED(70) > IMPORTED(50)"]
    return "\n".join(lines)


class FusionClassifier:
    """Asks the reasoning oracle to classify a (existing fact, new value) pair.

    Uncertain answers (confidence below the fusion threshold) and every oracle
    failure come back as CONFLICT, so ambiguity always reaches a human.
    """

    def __init__(
        self,
        oracle: ReasoningOracle,
        cache: DecisionCache | None = None,
        policy: FusionPolicy = DEFAULT_POLICY,
    ):
        self.oracle = oracle
        self.policy = policy
        self.cache = cache if cache is not None else TTLDecisionCache(
            ttl=policy.cache_ttl_seconds, max_size=policy.cache_max_size
        )

    def decide(
        self,
        existing: Fact,
        new_value: str,
        new_source: FactSource = FactSource.EXTRACTED,
        context: str | None = None,
    ) -> FusionDecision:
        key = (existing.id, new_value)
        cached = self.cache.get(key)
        if cached is not None:
            metrics.counter("fusion.cache.hit")
            return cached
        metrics.counter("fusion.cache.miss")

        prompt = build_fusion_prompt(
            existing, new_value, new_source, context, self.policy.context_max_chars
        )
        try:
            response = self.oracle.call(
                OracleRequest(
                    task=FUSION_TASK,
                    prompt=prompt,
                    schema=FusionDecisionSchema,
                    model=self.policy.oracle_model,
                    timeout=self.policy.oracle_timeout,
                    system=_FUSION_SYSTEM,
                )
            )
        except OracleError as e:
            logger.error("fusion_decision_failed", fact_id=existing.id, error=str(e))
            metrics.counter("fusion.oracle_failure")
            return FusionDecision(
                action=FusionAction.CONFLICT,
                explanation=f"Error analysing facts: {e}",
                confidence=0.0,
            )

        data: FusionDecisionSchema = response.data
        decision = FusionDecision(
            action=FusionAction(data.action),
            explanation=data.explanation,
            confidence=data.confidence,
            merged_value=data.merged_value,
        )
        logger.debug(
            "fusion_decided",
            fact_id=existing.id,
            action=decision.action.value,
            confidence=decision.confidence,
        )

        if (
            decision.confidence < self.policy.fusion_confidence_threshold
            and decision.action != FusionAction.CONFLICT
        ):
            logger.warning(
                "fusion_low_confidence_escalated",
                fact_id=existing.id,
                proposed=decision.action.value,
                confidence=decision.confidence,
            )
            metrics.counter("fusion.escalated")
            decision = FusionDecision(
                action=FusionAction.CONFLICT,
                explanation=f"Low confidence in decision ({decision.confidence}). {decision.explanation}",
                confidence=decision.confidence,
            )

        self.cache.set(key, decision)
        return decision
