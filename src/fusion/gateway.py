"""Dedup gateway for tasks, entities and commitments.

Routing: exact normalized-name match merges outright; otherwise the best
candidate (semantic for tasks, substring for entities) goes to the oracle,
and its duplicate confidence decides between merge, pending approval and
create.
"""

from dataclasses import dataclass
from enum import Enum

import structlog
from pydantic import BaseModel, Field

from entities.activities import ActivityStore, embedding_text
from entities.models import ActivityStatus, ActivityType, EntityType
from entities.store import EntityStore
from llm.oracle import OracleError, OracleRequest, ReasoningOracle

from .policy import DEFAULT_POLICY, FusionPolicy
from .similarity import normalize_name

logger = structlog.get_logger()

DEDUP_TASK = "dedup_decision"


class DedupAction(str, Enum):
    CREATE = "create"
    MERGE = "merge"
    PENDING_APPROVAL = "pending_approval"


@dataclass
class DedupDecision:
    action: DedupAction
    confidence: float
    reason: str
    existing_id: str | None = None


@dataclass
class TaskCandidate:
    name: str
    owner_entity_id: str
    description: str | None = None
    project_name: str | None = None


@dataclass
class EntityCandidate:
    name: str
    entity_type: EntityType = EntityType.PERSON
    context: str | None = None


@dataclass
class CommitmentCandidate:
    what: str
    entity_id: str | None = None
    activity_context: str | None = None


class DuplicateJudgment(BaseModel):
    is_duplicate: bool
    confidence: float = Field(ge=0.0, le=1.0)
    reason: str = ""


_DEDUP_SYSTEM = """You decide whether a newly extracted item is the same real-world thing as an existing one.
Different wording of the same task, person or organization is a duplicate. Related but distinct
items (a subtask, a different person with the same first name) are not."""


class DedupGateway:
    def __init__(
        self,
        activities: ActivityStore,
        entities: EntityStore,
        oracle: ReasoningOracle | None = None,
        policy: FusionPolicy = DEFAULT_POLICY,
    ):
        self.activities = activities
        self.entities = entities
        self.oracle = oracle
        self.policy = policy

    def check_task(self, candidate: TaskCandidate) -> DedupDecision:
        normalized = normalize_name(candidate.name)
        if not normalized:
            return self._create("Empty name after normalization")

        exact = self.activities.find_exact(normalized, candidate.owner_entity_id, ActivityType.TASK)
        if exact:
            logger.info("dedup_exact_task_match", name=candidate.name, existing_id=exact.id)
            return DedupDecision(
                action=DedupAction.MERGE,
                confidence=1.0,
                reason=f'Exact name match: "{exact.name}"',
                existing_id=exact.id,
            )

        matches = self._semantic_task_candidates(normalized, candidate)
        if not matches:
            return self._create("No similar tasks found")

        top, similarity = matches[0]
        logger.debug("dedup_task_candidate", existing_id=top.id, similarity=round(similarity, 3))
        judgment = self._judge(
            item_type="task",
            new_name=candidate.name,
            new_detail=candidate.description,
            existing_id=top.id,
            existing_name=top.name,
            existing_detail=top.description,
            context=candidate.project_name,
        )
        return self._route(judgment, top.id, top.name)

    def check_entity(self, candidate: EntityCandidate) -> DedupDecision:
        normalized = normalize_name(candidate.name)
        if not normalized:
            return self._create("Empty name after normalization")

        exact = self.entities.find_exact(normalized, candidate.entity_type)
        if exact:
            logger.info("dedup_exact_entity_match", name=candidate.name, existing_id=exact.id)
            return DedupDecision(
                action=DedupAction.MERGE,
                confidence=1.0,
                reason=f'Exact name match: "{exact.name}"',
                existing_id=exact.id,
            )

        partial = self.entities.search_partial(
            normalized, candidate.entity_type, limit=self.policy.semantic_top_k
        )
        if not partial:
            return self._create("No similar entities found")

        top = partial[0]
        judgment = self._judge(
            item_type="entity",
            new_name=candidate.name,
            new_detail=None,
            existing_id=top.id,
            existing_name=top.name,
            existing_detail=None,
            context=candidate.context,
        )
        return self._route(judgment, top.id, top.name)

    def check_commitment(self, candidate: CommitmentCandidate) -> DedupDecision:
        if not candidate.entity_id:
            logger.debug("dedup_commitment_without_entity", what=candidate.what)
            return self._create("No entity_id for commitment dedup")
        return self.check_task(
            TaskCandidate(
                name=candidate.what,
                owner_entity_id=candidate.entity_id,
                project_name=candidate.activity_context,
            )
        )

    # -- helpers -------------------------------------------------------------

    def _semantic_task_candidates(self, normalized: str, candidate: TaskCandidate):
        index = self.activities.index
        if index is None or not index.available:
            logger.warning("dedup_semantic_unavailable", name=candidate.name)
            return []
        embedding = index.embed(embedding_text(normalized, candidate.description))
        if embedding is None:
            return []

        hits = index.query(
            embedding,
            filters={
                "owner_entity_id": candidate.owner_entity_id,
                "activity_type": ActivityType.TASK.value,
            },
            top_k=self.policy.semantic_top_k,
            min_similarity=self.policy.semantic_similarity_threshold,
        )
        rows = self.activities.get_many([item_id for item_id, _ in hits])
        out = []
        for item_id, sim in hits:
            activity = rows.get(item_id)
            if activity and activity.status != ActivityStatus.CANCELLED and not activity.deleted_at:
                out.append((activity, sim))
        return out

    def _judge(
        self,
        item_type: str,
        new_name: str,
        new_detail: str | None,
        existing_id: str,
        existing_name: str,
        existing_detail: str | None,
        context: str | None,
    ) -> DuplicateJudgment:
        if self.oracle is None:
            return DuplicateJudgment(is_duplicate=False, confidence=0.0, reason="LLM dedup unavailable")

        lines = [f"Item type: {item_type}", f'New item: "{new_name}"']
        if new_detail:
            lines.append(f"  Description: {new_detail}")
        if context:
            lines.append(f"  Context: {context}")
        lines.append(f'Existing item [{existing_id}]: "{existing_name}"')
        if existing_detail:
            lines.append(f"  Description: {existing_detail}")

        try:
            response = self.oracle.call(
                OracleRequest(
                    task=DEDUP_TASK,
                    prompt="\n".join(lines),
                    schema=DuplicateJudgment,
                    model=self.policy.oracle_model,
                    timeout=self.policy.oracle_timeout,
                    system=_DEDUP_SYSTEM,
                )
            )
        except OracleError as e:
            logger.error("dedup_judgment_failed", item_type=item_type, error=str(e))
            return DuplicateJudgment(
                is_duplicate=False, confidence=0.0, reason=f"LLM dedup failed: {e}"
            )
        return response.data

    def _route(self, judgment: DuplicateJudgment, existing_id: str, existing_name: str) -> DedupDecision:
        if not judgment.is_duplicate:
            return self._create(f"LLM says not duplicate: {judgment.reason}")

        if judgment.confidence >= self.policy.auto_merge_threshold:
            logger.info(
                "dedup_auto_merge",
                existing_id=existing_id,
                existing_name=existing_name,
                confidence=judgment.confidence,
            )
            return DedupDecision(
                action=DedupAction.MERGE,
                confidence=judgment.confidence,
                reason=judgment.reason,
                existing_id=existing_id,
            )

        if judgment.confidence >= self.policy.approval_threshold:
            logger.info(
                "dedup_pending_approval",
                existing_id=existing_id,
                existing_name=existing_name,
                confidence=judgment.confidence,
            )
            return DedupDecision(
                action=DedupAction.PENDING_APPROVAL,
                confidence=judgment.confidence,
                reason=judgment.reason,
                existing_id=existing_id,
            )

        return self._create(
            f"Low confidence duplicate ({judgment.confidence}): {judgment.reason}",
            confidence=judgment.confidence,
        )

    @staticmethod
    def _create(reason: str, confidence: float = 0.0) -> DedupDecision:
        return DedupDecision(action=DedupAction.CREATE, confidence=confidence, reason=reason)
