"""Fixtures for approval tests: draft targets sharing one database."""

from datetime import datetime, timedelta

import pytest

from approval.manager import ApprovalManager
from approval.models import ApprovalItemType, CreateApproval
from approval.retention import RetentionPolicy
from entities.activities import ActivityStore, CommitmentStore
from fusion.models import FactStatus, NewFactData


class FakeClock:
    def __init__(self, start=datetime(2025, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def activities(db_path):
    return ActivityStore(db_path)


@pytest.fixture
def commitments(db_path):
    return CommitmentStore(db_path)


@pytest.fixture
def approvals(db_path, fact_store, activities, commitments, clock):
    return ApprovalManager(db_path, retention=RetentionPolicy(30), clock=clock)


@pytest.fixture
def draft_fact(fact_store):
    def _make(value="CTO", entity_id="ent-1"):
        return fact_store.create(
            entity_id, NewFactData(fact_type="position", value=value, status=FactStatus.DRAFT)
        )

    return _make


@pytest.fixture
def queue_fact(approvals, draft_fact):
    """Create a draft fact plus its pending approval; returns (approval, fact)."""

    def _make(batch_id="batch-1", value="CTO", confidence=0.8):
        fact = draft_fact(value)
        approval = approvals.create(
            CreateApproval(
                item_type=ApprovalItemType.FACT,
                target_id=fact.id,
                batch_id=batch_id,
                confidence=confidence,
                source_quote=f"he is the {value}",
            )
        )
        return approval, fact

    return _make
