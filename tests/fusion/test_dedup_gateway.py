"""Tests for task, entity and commitment dedup routing."""

from unittest.mock import MagicMock

import pytest

from entities.activities import ActivityStore
from entities.models import ActivityStatus, EntityType
from fusion.gateway import (
    CommitmentCandidate,
    DedupAction,
    DedupGateway,
    DuplicateJudgment,
    EntityCandidate,
    TaskCandidate,
)
from llm.oracle import OracleError, OracleResponse


def _judgment(is_duplicate=True, confidence=0.95, reason="Same task"):
    return OracleResponse(
        data=DuplicateJudgment(is_duplicate=is_duplicate, confidence=confidence, reason=reason)
    )


@pytest.fixture
def index():
    index = MagicMock()
    index.available = True
    index.embed.return_value = [0.3, 0.4]
    index.query.return_value = []
    return index


@pytest.fixture
def activities(db_path, index):
    return ActivityStore(db_path, index=index)


@pytest.fixture
def oracle():
    oracle = MagicMock()
    oracle.call.return_value = _judgment()
    return oracle


@pytest.fixture
def gateway(activities, entity_store, oracle):
    return DedupGateway(activities, entity_store, oracle)


class TestCheckTask:
    def test_exact_name_merges_without_oracle(self, gateway, activities, oracle):
        existing = activities.create("Buy milk", "ent-1")

        decision = gateway.check_task(TaskCandidate(name="Buy Milk (500 rub).", owner_entity_id="ent-1"))

        assert decision.action == DedupAction.MERGE
        assert decision.confidence == 1.0
        assert decision.existing_id == existing.id
        oracle.call.assert_not_called()

    def test_exact_match_scoped_to_owner(self, gateway, activities, index):
        activities.create("Buy milk", "ent-2")
        decision = gateway.check_task(TaskCandidate(name="Buy milk", owner_entity_id="ent-1"))
        assert decision.action == DedupAction.CREATE

    def test_cancelled_tasks_do_not_match(self, gateway, activities):
        activities.create("Buy milk", "ent-1", status=ActivityStatus.CANCELLED)
        decision = gateway.check_task(TaskCandidate(name="Buy milk", owner_entity_id="ent-1"))
        assert decision.action == DedupAction.CREATE

    def test_empty_name_creates(self, gateway):
        decision = gateway.check_task(TaskCandidate(name="  (10k) ", owner_entity_id="ent-1"))
        assert decision.action == DedupAction.CREATE
        assert decision.reason == "Empty name after normalization"

    def test_no_semantic_candidates_creates(self, gateway, oracle):
        decision = gateway.check_task(TaskCandidate(name="Write report", owner_entity_id="ent-1"))
        assert decision.action == DedupAction.CREATE
        assert decision.reason == "No similar tasks found"
        oracle.call.assert_not_called()

    def test_semantic_query_filters(self, gateway, index):
        gateway.check_task(
            TaskCandidate(name="Write report", owner_entity_id="ent-1", description="Q3 numbers")
        )
        index.embed.assert_called_with("write report - Q3 numbers")
        assert index.query.call_args.kwargs["filters"] == {
            "owner_entity_id": "ent-1",
            "activity_type": "task",
        }

    @pytest.mark.parametrize(
        "confidence,expected",
        [
            (0.95, DedupAction.MERGE),
            (0.9, DedupAction.MERGE),
            (0.8, DedupAction.PENDING_APPROVAL),
            (0.7, DedupAction.PENDING_APPROVAL),
            (0.6, DedupAction.CREATE),
        ],
    )
    def test_oracle_confidence_routing(self, gateway, activities, index, oracle, confidence, expected):
        existing = activities.create("Prepare quarterly report", "ent-1")
        index.query.return_value = [(existing.id, 0.82)]
        oracle.call.return_value = _judgment(confidence=confidence)

        decision = gateway.check_task(TaskCandidate(name="Write Q3 report", owner_entity_id="ent-1"))

        assert decision.action == expected
        if expected != DedupAction.CREATE:
            assert decision.existing_id == existing.id
        assert decision.confidence == confidence

    def test_not_duplicate_creates(self, gateway, activities, index, oracle):
        existing = activities.create("Prepare quarterly report", "ent-1")
        index.query.return_value = [(existing.id, 0.7)]
        oracle.call.return_value = _judgment(is_duplicate=False, confidence=0.99, reason="Different")

        decision = gateway.check_task(TaskCandidate(name="Send report", owner_entity_id="ent-1"))

        assert decision.action == DedupAction.CREATE
        assert decision.reason == "LLM says not duplicate: Different"

    def test_prompt_mentions_both_items(self, gateway, activities, index, oracle):
        existing = activities.create("Prepare quarterly report", "ent-1", description="For the board")
        index.query.return_value = [(existing.id, 0.7)]

        gateway.check_task(
            TaskCandidate(name="Write Q3 report", owner_entity_id="ent-1", project_name="Finance")
        )

        request = oracle.call.call_args.args[0]
        assert request.task == "dedup_decision"
        assert 'New item: "Write Q3 report"' in request.prompt
        assert f'Existing item [{existing.id}]: "Prepare quarterly report"' in request.prompt
        assert "Context: Finance" in request.prompt
        assert "Description: For the board" in request.prompt

    def test_cancelled_semantic_hit_ignored(self, gateway, activities, index, oracle):
        existing = activities.create("Old task", "ent-1", status=ActivityStatus.CANCELLED)
        index.query.return_value = [(existing.id, 0.9)]

        decision = gateway.check_task(TaskCandidate(name="New task", owner_entity_id="ent-1"))

        assert decision.action == DedupAction.CREATE
        oracle.call.assert_not_called()

    def test_oracle_failure_creates(self, gateway, activities, index, oracle):
        existing = activities.create("Prepare quarterly report", "ent-1")
        index.query.return_value = [(existing.id, 0.8)]
        oracle.call.side_effect = OracleError("timeout")

        decision = gateway.check_task(TaskCandidate(name="Write Q3 report", owner_entity_id="ent-1"))

        assert decision.action == DedupAction.CREATE
        assert "LLM dedup failed" in decision.reason

    def test_without_index_creates(self, db_path, entity_store, oracle):
        gateway = DedupGateway(ActivityStore(db_path), entity_store, oracle)
        decision = gateway.check_task(TaskCandidate(name="Write report", owner_entity_id="ent-1"))
        assert decision.action == DedupAction.CREATE

    def test_without_oracle_creates(self, activities, entity_store, index):
        existing = activities.create("Prepare quarterly report", "ent-1")
        index.query.return_value = [(existing.id, 0.9)]
        gateway = DedupGateway(activities, entity_store, oracle=None)

        decision = gateway.check_task(TaskCandidate(name="Write Q3 report", owner_entity_id="ent-1"))

        assert decision.action == DedupAction.CREATE


class TestCheckEntity:
    def test_exact_name_merges(self, gateway, entity_store, oracle):
        existing = entity_store.create("John Smith")
        decision = gateway.check_entity(EntityCandidate(name="john smith"))
        assert decision.action == DedupAction.MERGE
        assert decision.existing_id == existing.id
        oracle.call.assert_not_called()

    def test_type_must_match(self, gateway, entity_store):
        entity_store.create("Acme", EntityType.ORGANIZATION)
        decision = gateway.check_entity(EntityCandidate(name="Acme", entity_type=EntityType.PERSON))
        assert decision.action == DedupAction.CREATE

    def test_partial_match_goes_to_oracle(self, gateway, entity_store, oracle):
        existing = entity_store.create("John Smith")
        oracle.call.return_value = _judgment(confidence=0.75, reason="Probably the same John")

        decision = gateway.check_entity(EntityCandidate(name="John", context="from the sales call"))

        assert decision.action == DedupAction.PENDING_APPROVAL
        assert decision.existing_id == existing.id
        assert "Context: from the sales call" in oracle.call.call_args.args[0].prompt

    def test_no_partial_match_creates(self, gateway, entity_store):
        entity_store.create("Jane Doe")
        assert gateway.check_entity(EntityCandidate(name="John")).action == DedupAction.CREATE


class TestCheckCommitment:
    def test_without_entity_creates(self, gateway):
        decision = gateway.check_commitment(CommitmentCandidate(what="Send the contract"))
        assert decision.action == DedupAction.CREATE
        assert decision.reason == "No entity_id for commitment dedup"

    def test_delegates_to_task_check(self, gateway, activities):
        existing = activities.create("Send the contract", "ent-1")
        decision = gateway.check_commitment(
            CommitmentCandidate(what="send the contract.", entity_id="ent-1")
        )
        assert decision.action == DedupAction.MERGE
        assert decision.existing_id == existing.id
