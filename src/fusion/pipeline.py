"""Create-with-dedup flow: candidates -> classifier -> applier."""

import structlog

from .applier import FusionApplier
from .candidates import DuplicateCandidateFinder
from .classifier import FusionClassifier
from .models import FusionAction, FusionDecision, FusionResult, NewFactData, ResultAction
from .similarity import normalize_value
from .store import FactStore

logger = structlog.get_logger()


class FusionPipeline:
    """Entry point for adding a proposed fact to an entity.

    Exact duplicates are skipped before the classifier is ever consulted.
    Without a classifier (or with ``skip_fusion``) a temporal-band candidate is
    superseded directly and any other candidate is skipped.
    """

    def __init__(
        self,
        store: FactStore,
        finder: DuplicateCandidateFinder,
        applier: FusionApplier,
        classifier: FusionClassifier | None = None,
    ):
        self.store = store
        self.finder = finder
        self.applier = applier
        self.classifier = classifier

    def create_with_dedup(
        self,
        entity_id: str,
        new_fact: NewFactData,
        message_context: str | None = None,
        skip_fusion: bool = False,
    ) -> FusionResult:
        embedding = None
        if new_fact.value and self.store.index is not None:
            embedding = self.store.index.embed(new_fact.value)

        candidates = self.finder.find_candidates(entity_id, new_fact, embedding=embedding)
        if not candidates:
            fact = self.store.create(entity_id, new_fact, embedding=embedding)
            logger.debug("fact_created", fact_id=fact.id, entity_id=entity_id)
            return FusionResult(
                fact=fact,
                action=ResultAction.CREATED,
                reason="Created with embedding" if embedding else "Created without embedding",
            )

        top = candidates[0]
        if top.match == "exact":
            return FusionResult(
                fact=top.fact,
                action=ResultAction.SKIPPED,
                reason="Exact duplicate exists",
                existing_fact_id=top.fact.id,
            )

        if skip_fusion or self.classifier is None or not new_fact.value:
            if top.match == "temporal":
                decision = FusionDecision(
                    action=FusionAction.SUPERSEDE,
                    explanation=f"Temporal update (similarity: {top.similarity:.2f})",
                    confidence=top.similarity,
                )
                return self.applier.apply(top.fact, new_fact, decision, entity_id, embedding)
            return FusionResult(
                fact=top.fact,
                action=ResultAction.SKIPPED,
                reason=f"Similar fact exists ({top.match}, similarity: {top.similarity:.2f})",
                existing_fact_id=top.fact.id,
            )

        # Near-exact lexical matches still go to the classifier; only check_duplicate skips them.
        decision = self.classifier.decide(top.fact, new_fact.value, new_fact.source, message_context)
        return self.applier.apply(top.fact, new_fact, decision, entity_id, embedding)

    def create_batch(self, entity_id: str, facts: list[NewFactData]) -> list[FusionResult]:
        """Run create_with_dedup for each fact, collapsing in-batch duplicates first."""
        unique: dict[tuple[str, str], NewFactData] = {}
        for fact in facts:
            key = (fact.fact_type, normalize_value(fact.value or ""))
            prior = unique.get(key)
            if prior is None or (fact.confidence or 0) > (prior.confidence or 0):
                unique[key] = fact
        return [self.create_with_dedup(entity_id, f) for f in unique.values()]
