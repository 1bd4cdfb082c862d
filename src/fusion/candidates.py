"""Duplicate candidate detection for proposed facts."""

from dataclasses import dataclass, field

import structlog

from .models import TEMPORAL_FACT_TYPES, DuplicateCandidate, Fact, NewFactData
from .policy import DEFAULT_POLICY, FusionPolicy
from .similarity import lexical_similarity, normalize_value
from .store import FactStore
from .vectors import VectorIndex

logger = structlog.get_logger()


@dataclass
class DeduplicationResult:
    action: str  # create | skip | supersede | update
    reason: str
    existing_fact_id: str | None = None
    similarity: float = 0.0


@dataclass
class BatchDeduplication:
    to_create: list[NewFactData] = field(default_factory=list)
    to_supersede: list[tuple[NewFactData, str]] = field(default_factory=list)
    skipped: int = 0


class DuplicateCandidateFinder:
    """Finds existing current facts that may be the same as a proposed fact.

    Exact normalized matches short-circuit. Otherwise lexical and semantic
    candidates are merged, best similarity first. Semantic search is
    best-effort: a missing or failing index contributes nothing.
    """

    def __init__(
        self,
        store: FactStore,
        index: VectorIndex | None = None,
        policy: FusionPolicy = DEFAULT_POLICY,
    ):
        self.store = store
        self.index = index if index is not None else store.index
        self.policy = policy

    def find_candidates(
        self,
        entity_id: str,
        new_fact: NewFactData,
        embedding: list[float] | None = None,
    ) -> list[DuplicateCandidate]:
        existing = self.store.get_current(entity_id, new_fact.fact_type)

        exact = self._exact_match(existing, new_fact)
        if exact:
            return [DuplicateCandidate(fact=exact, similarity=1.0, match="exact")]

        found: dict[str, DuplicateCandidate] = {}
        if new_fact.value:
            for cand in self._lexical_candidates(existing, new_fact):
                found[cand.fact.id] = cand
            for cand in self._semantic_candidates(entity_id, new_fact, embedding):
                prior = found.get(cand.fact.id)
                if prior is None or cand.similarity > prior.similarity:
                    found[cand.fact.id] = cand

        return sorted(found.values(), key=lambda c: c.similarity, reverse=True)

    def check_duplicate(self, entity_id: str, new_fact: NewFactData) -> DeduplicationResult:
        """Classify a proposed fact without consulting the oracle."""
        existing = self.store.get_current(entity_id, new_fact.fact_type)
        if not existing:
            return DeduplicationResult(action="create", reason="No existing facts of this type")

        exact = self._exact_match(existing, new_fact)
        if exact:
            return DeduplicationResult(
                action="skip",
                reason="Exact duplicate exists",
                existing_fact_id=exact.id,
                similarity=1.0,
            )

        for cand in self._lexical_candidates(existing, new_fact):
            if cand.match == "temporal":
                return DeduplicationResult(
                    action="supersede",
                    reason=f"Temporal update detected (similarity: {cand.similarity:.2f})",
                    existing_fact_id=cand.fact.id,
                    similarity=cand.similarity,
                )
            if cand.similarity >= self.policy.lexical_duplicate_threshold:
                return DeduplicationResult(
                    action="skip",
                    reason=f"Near-exact duplicate (similarity: {cand.similarity:.2f})",
                    existing_fact_id=cand.fact.id,
                    similarity=cand.similarity,
                )
            return DeduplicationResult(
                action="update",
                reason=f"Similar fact exists (similarity: {cand.similarity:.2f})",
                existing_fact_id=cand.fact.id,
                similarity=cand.similarity,
            )

        if new_fact.value:
            for cand in self._semantic_candidates(entity_id, new_fact, None):
                if cand.similarity >= self.policy.semantic_duplicate_threshold:
                    return DeduplicationResult(
                        action="skip",
                        reason=f"Semantic duplicate (similarity: {cand.similarity:.2f})",
                        existing_fact_id=cand.fact.id,
                        similarity=cand.similarity,
                    )

        return DeduplicationResult(action="create", reason="No similar facts found")

    def process_batch(self, entity_id: str, facts: list[NewFactData]) -> BatchDeduplication:
        """Deduplicate a batch against the store and against itself.

        Within the batch, identical (type, normalized value) pairs collapse to
        the higher-confidence item.
        """
        result = BatchDeduplication()
        seen: dict[str, NewFactData] = {}
        order: list[str] = []

        for fact in facts:
            key = f"{fact.fact_type}:{normalize_value(fact.value or '')}"
            if key in seen:
                if (fact.confidence or 0) > (seen[key].confidence or 0):
                    seen[key] = fact
                result.skipped += 1
                continue
            seen[key] = fact
            order.append(key)

        for key in order:
            fact = seen[key]
            check = self.check_duplicate(entity_id, fact)
            if check.action == "create":
                result.to_create.append(fact)
            elif check.action == "supersede":
                result.to_supersede.append((fact, check.existing_fact_id))
            else:
                result.skipped += 1

        logger.info(
            "fact_batch_deduplicated",
            entity_id=entity_id,
            create=len(result.to_create),
            supersede=len(result.to_supersede),
            skipped=result.skipped,
        )
        return result

    # -- strategies ----------------------------------------------------------

    @staticmethod
    def _exact_match(existing: list[Fact], new_fact: NewFactData) -> Fact | None:
        if new_fact.value:
            target = normalize_value(new_fact.value)
            for fact in existing:
                if fact.value and normalize_value(fact.value) == target:
                    return fact
            return None
        # Structured or date-only facts compare on their payload
        for fact in existing:
            if fact.value:
                continue
            if new_fact.value_json is not None and fact.value_json == new_fact.value_json:
                return fact
            if new_fact.value_date and fact.value_date == new_fact.value_date:
                return fact
        return None

    def _lexical_candidates(
        self, existing: list[Fact], new_fact: NewFactData
    ) -> list[DuplicateCandidate]:
        if not new_fact.value:
            return []
        target = normalize_value(new_fact.value)
        temporal = new_fact.fact_type in TEMPORAL_FACT_TYPES
        out = []
        for fact in existing:
            if not fact.value:
                continue
            sim = lexical_similarity(normalize_value(fact.value), target)
            if sim >= self.policy.lexical_duplicate_threshold:
                out.append(DuplicateCandidate(fact=fact, similarity=sim, match="lexical"))
            elif temporal and sim >= self.policy.temporal_min_similarity:
                out.append(DuplicateCandidate(fact=fact, similarity=sim, match="temporal"))
            elif not temporal and sim >= self.policy.fuzzy_match_threshold:
                out.append(DuplicateCandidate(fact=fact, similarity=sim, match="lexical"))
        out.sort(key=lambda c: c.similarity, reverse=True)
        return out

    def _semantic_candidates(
        self,
        entity_id: str,
        new_fact: NewFactData,
        embedding: list[float] | None,
    ) -> list[DuplicateCandidate]:
        if self.index is None or not self.index.available:
            return []
        if embedding is None:
            embedding = self.index.embed(new_fact.value)
            if embedding is None:
                logger.warning("semantic_candidates_skipped", entity_id=entity_id, reason="no embedding")
                return []

        hits = self.index.query(
            embedding,
            filters={"entity_id": entity_id, "fact_type": new_fact.fact_type},
            top_k=self.policy.semantic_top_k,
            min_similarity=self.policy.semantic_similarity_threshold,
        )
        if not hits:
            return []

        facts = self.store.get_many([fact_id for fact_id, _ in hits])
        out = []
        for fact_id, sim in hits:
            fact = facts.get(fact_id)
            if fact and fact.is_current:
                out.append(DuplicateCandidate(fact=fact, similarity=sim, match="semantic"))
        return out
