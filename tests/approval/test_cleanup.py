"""Tests for retention-based cleanup of rejected approvals and orphaned drafts."""

from datetime import datetime, timedelta

import pytest

from approval.cleanup import ApprovalCleanup
from approval.models import ApprovalItemType, CreateApproval
from approval.retention import RetentionPolicy


@pytest.fixture
def cleanup_at(db_path):
    """ApprovalCleanup whose clock reads the given moment."""

    def _make(now, batch_size=100, days=30):
        return ApprovalCleanup(
            db_path, retention=RetentionPolicy(days), batch_size=batch_size, clock=lambda: now
        )

    return _make


class TestCleanupRejected:
    def test_old_rejections_purged_with_targets(self, approvals, queue_fact, fact_store, clock, cleanup_at):
        approval, fact = queue_fact()
        approvals.reject(approval.id)

        result = cleanup_at(clock.now + timedelta(days=31)).run()

        assert result.approvals == 1
        assert result.targets == 1
        assert approvals.get(approval.id) is None
        assert fact_store.get(fact.id) is None

    def test_recent_rejections_kept(self, approvals, queue_fact, fact_store, clock, cleanup_at):
        approval, fact = queue_fact()
        approvals.reject(approval.id)

        result = cleanup_at(clock.now + timedelta(days=29)).run()

        assert result.approvals == 0
        assert approvals.get(approval.id) is not None
        assert fact_store.get(fact.id) is not None

    def test_pending_and_approved_untouched(self, approvals, queue_fact, clock, cleanup_at):
        pending, _ = queue_fact(value="A")
        approved, _ = queue_fact(value="B")
        approvals.approve(approved.id)

        cleanup_at(clock.now + timedelta(days=365)).run()

        assert approvals.get(pending.id) is not None
        assert approvals.get(approved.id) is not None

    def test_chunked(self, approvals, queue_fact, clock, cleanup_at):
        for i in range(5):
            approval, _ = queue_fact(value=f"V{i}")
            approvals.reject(approval.id)

        result = cleanup_at(clock.now + timedelta(days=31), batch_size=2).run()

        assert result.approvals == 5
        assert result.targets == 5
        assert approvals.list_approvals()[1] == 0

    def test_unknown_item_type_rows_still_removed(self, approvals, db_path, clock, cleanup_at):
        from db import wal_connect

        with wal_connect(db_path) as conn:
            conn.execute(
                """INSERT INTO pending_approvals
                   (id, item_type, target_id, batch_id, confidence, status, created_at, reviewed_at)
                   VALUES ('legacy', 'project', 't1', 'b', 0.5, 'rejected', ?, ?)""",
                (clock.now.isoformat(), clock.now.isoformat()),
            )

        result = cleanup_at(clock.now + timedelta(days=31)).cleanup_rejected(
            (clock.now + timedelta(days=1)).isoformat()
        )

        assert result == (1, 0)


class TestOrphanedDrafts:
    def test_orphan_draft_removed(self, approvals, draft_fact, activities, fact_store, cleanup_at):
        orphan = draft_fact("orphan")
        draft_activity = activities.create("Orphan task", "ent-1")

        result = cleanup_at(datetime.now() + timedelta(days=31)).run()

        assert result.orphaned["entity_facts"] == 1
        assert result.orphaned["activities"] == 1
        assert result.total_orphaned == 2
        assert fact_store.get(orphan.id) is None
        assert activities.get(draft_activity.id) is None

    def test_draft_with_approval_kept(self, approvals, queue_fact, fact_store, cleanup_at):
        _, fact = queue_fact()

        result = cleanup_at(datetime.now() + timedelta(days=31)).run()

        assert result.total_orphaned == 0
        assert fact_store.get(fact.id) is not None

    def test_active_rows_never_touched(self, approvals, fact_store, new_fact, cleanup_at):
        active = fact_store.create("ent-1", new_fact("email", "a@b.com"))
        cleanup_at(datetime.now() + timedelta(days=365)).run()
        assert fact_store.get(active.id) is not None

    def test_young_orphans_kept(self, approvals, draft_fact, fact_store, cleanup_at):
        orphan = draft_fact()
        result = cleanup_at(datetime.now() + timedelta(days=1)).run()
        assert result.total_orphaned == 0
        assert fact_store.get(orphan.id) is not None

    def test_missing_tables_skipped(self, tmp_path):
        from approval.manager import ApprovalManager

        db = tmp_path / "only_approvals.db"
        ApprovalManager(db, retention=RetentionPolicy(30))

        result = ApprovalCleanup(db, retention=RetentionPolicy(30)).run()

        assert result.orphaned == {"entity_facts": 0, "activities": 0, "commitments": 0}
