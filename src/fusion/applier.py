"""Applies a fusion decision to the fact store."""

import structlog

from observability import metrics

from .conflicts import ConflictResolutionService
from .models import (
    Fact,
    FusionAction,
    FusionDecision,
    FusionResult,
    NewFactData,
    ResultAction,
)
from .policy import DEFAULT_POLICY, FusionPolicy
from .store import FactStore

logger = structlog.get_logger()


class FusionApplier:
    """Mutates facts according to the five fusion actions.

    Never raises for an unrecognized action; the result is ``skipped`` with a
    diagnostic reason instead.
    """

    def __init__(
        self,
        store: FactStore,
        conflicts: ConflictResolutionService | None = None,
        policy: FusionPolicy = DEFAULT_POLICY,
    ):
        self.store = store
        self.conflicts = conflicts
        self.policy = policy
        self._handlers = {
            FusionAction.CONFIRM: self._confirm,
            FusionAction.ENRICH: self._enrich,
            FusionAction.SUPERSEDE: self._supersede,
            FusionAction.COEXIST: self._coexist,
            FusionAction.CONFLICT: self._conflict,
        }

    def apply(
        self,
        existing: Fact,
        new_fact_data: NewFactData,
        decision: FusionDecision,
        entity_id: str,
        embedding: list[float] | None = None,
    ) -> FusionResult:
        try:
            action = FusionAction(decision.action)
        except ValueError:
            logger.warning("fusion_unknown_action", action=str(decision.action), fact_id=existing.id)
            return FusionResult(
                fact=existing,
                action=ResultAction.SKIPPED,
                reason=f"Unknown action: {decision.action}",
                existing_fact_id=existing.id,
            )

        metrics.counter(f"fusion.action.{action.value}")
        result = self._handlers[action](existing, new_fact_data, decision, entity_id, embedding)
        result.fusion_action = action
        logger.info(
            "fusion_applied",
            action=action.value,
            result=result.action.value,
            fact_id=result.fact.id if result.fact else None,
            existing_fact_id=existing.id,
        )
        return result

    def confirmed_confidence(self, current: float | None) -> float:
        if current is None:
            return self.policy.confirm_default_confidence
        return min(1.0, current + self.policy.confirm_boost)

    def enriched_confidence(self, current: float | None) -> float:
        base = current if current is not None else self.policy.enrich_base_confidence
        return min(1.0, base + self.policy.enrich_boost)

    def _confirm(self, existing, new_fact_data, decision, entity_id, embedding):
        fact = self.store.record_confirmation(
            existing.id, self.confirmed_confidence(existing.confidence)
        )
        return FusionResult(
            fact=fact,
            action=ResultAction.UPDATED,
            reason=f"Confirmed: {decision.explanation}",
            existing_fact_id=existing.id,
        )

    def _enrich(self, existing, new_fact_data, decision, entity_id, embedding):
        if not decision.merged_value:
            logger.warning("fusion_enrich_missing_value", fact_id=existing.id)
            return FusionResult(
                fact=existing,
                action=ResultAction.SKIPPED,
                reason="ENRICH decision without merged value",
                existing_fact_id=existing.id,
            )
        fact = self.store.enrich(
            existing.id, decision.merged_value, self.enriched_confidence(existing.confidence)
        )
        return FusionResult(
            fact=fact,
            action=ResultAction.UPDATED,
            reason=f"Enriched: {decision.explanation}",
            existing_fact_id=existing.id,
        )

    def _supersede(self, existing, new_fact_data, decision, entity_id, embedding):
        _, new_fact = self.store.supersede(existing.id, entity_id, new_fact_data, embedding)
        return FusionResult(
            fact=new_fact,
            action=ResultAction.CREATED,
            reason=f"Superseded: {decision.explanation}",
            existing_fact_id=existing.id,
        )

    def _coexist(self, existing, new_fact_data, decision, entity_id, embedding):
        new_fact = self.store.create(entity_id, new_fact_data, embedding=embedding)
        return FusionResult(
            fact=new_fact,
            action=ResultAction.CREATED,
            reason=f"Coexists: {decision.explanation}",
            existing_fact_id=existing.id,
        )

    def _conflict(self, existing, new_fact_data, decision, entity_id, embedding):
        reason = f'Conflict with new fact: "{new_fact_data.value}". {decision.explanation}'
        self.store.mark_needs_review(existing.id, reason)

        token = None
        if self.conflicts:
            try:
                token = self.conflicts.notify_conflict(
                    existing, new_fact_data, entity_id, decision.explanation
                )
            except Exception as e:
                logger.error("fact_conflict_notify_failed", fact_id=existing.id, error=str(e))

        return FusionResult(
            fact=self.store.get(existing.id) or existing,
            action=ResultAction.SKIPPED,
            reason=f"Conflict detected: {decision.explanation}",
            existing_fact_id=existing.id,
            needs_review=True,
            new_fact_data=new_fact_data,
            conflict_token=token,
        )
