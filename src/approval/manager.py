"""Pending approval workflow over draft facts, activities and commitments.

Targets are created with a draft status and an approval row points at them
through (item_type, target_id). Approving activates the target; rejecting
soft-deletes it, or hard-deletes target and approval when retention is zero.
Each transition runs in one BEGIN IMMEDIATE transaction covering both rows.
"""

import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable

import structlog

from db import transaction, wal_connect
from errors import ConflictError, FusionError, NotFoundError
from observability import metrics

from . import registry
from .models import (
    ApprovalItemType,
    ApprovalStatus,
    BatchOperationResult,
    CreateApproval,
    PendingApproval,
)
from .retention import RetentionPolicy

logger = structlog.get_logger()

STAT_KEYS = ("total", "pending", "approved", "rejected")


class ApprovalManager:
    """SQLite-backed pending approvals.

    The target tables (entity_facts, activities, commitments) must live in the
    same database file; their stores create them.
    """

    def __init__(
        self,
        db_path: str | Path,
        retention: RetentionPolicy | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.retention = retention or RetentionPolicy.from_env()
        self._clock = clock
        self._init_db()

    def _init_db(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS pending_approvals (
                    id TEXT PRIMARY KEY,
                    item_type TEXT NOT NULL,
                    target_id TEXT NOT NULL,
                    batch_id TEXT NOT NULL,
                    confidence REAL NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    source_quote TEXT,
                    source_interaction_id TEXT,
                    message_ref TEXT,
                    source_entity_id TEXT,
                    context TEXT,
                    created_at TIMESTAMP NOT NULL,
                    reviewed_at TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_approvals_batch
                ON pending_approvals(batch_id, status)
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_approvals_target
                ON pending_approvals(item_type, target_id)
            """)

    def create(self, dto: CreateApproval) -> PendingApproval:
        approval = PendingApproval(
            id=uuid.uuid4().hex[:16],
            item_type=ApprovalItemType(dto.item_type),
            target_id=dto.target_id,
            batch_id=dto.batch_id,
            confidence=dto.confidence,
            source_quote=dto.source_quote,
            source_interaction_id=dto.source_interaction_id,
            message_ref=dto.message_ref,
            source_entity_id=dto.source_entity_id,
            context=dto.context,
            created_at=self._clock(),
        )
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """INSERT INTO pending_approvals
                   (id, item_type, target_id, batch_id, confidence, status, source_quote,
                    source_interaction_id, message_ref, source_entity_id, context, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    approval.id,
                    approval.item_type.value,
                    approval.target_id,
                    approval.batch_id,
                    approval.confidence,
                    ApprovalStatus.PENDING.value,
                    approval.source_quote,
                    approval.source_interaction_id,
                    approval.message_ref,
                    approval.source_entity_id,
                    approval.context,
                    approval.created_at.isoformat(),
                ),
            )
        logger.debug(
            "approval_created",
            approval_id=approval.id,
            item_type=approval.item_type.value,
            batch_id=approval.batch_id,
        )
        return approval

    def get(self, approval_id: str) -> PendingApproval | None:
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute(
                "SELECT * FROM pending_approvals WHERE id = ?", (approval_id,)
            ).fetchone()
        return self._row_to_approval(row) if row else None

    def list_approvals(
        self,
        batch_id: str | None = None,
        status: ApprovalStatus | str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[PendingApproval], int]:
        """Newest first. Returns (page, total matching)."""
        where = " WHERE 1=1"
        params: list = []
        if batch_id:
            where += " AND batch_id = ?"
            params.append(batch_id)
        if status:
            where += " AND status = ?"
            params.append(ApprovalStatus(status).value)

        with wal_connect(self.db_path, row_factory=True) as conn:
            total = conn.execute(
                "SELECT COUNT(*) FROM pending_approvals" + where, params
            ).fetchone()[0]
            rows = conn.execute(
                "SELECT * FROM pending_approvals" + where
                + " ORDER BY created_at DESC LIMIT ? OFFSET ?",
                [*params, limit, offset],
            ).fetchall()
        return [self._row_to_approval(r) for r in rows], total

    def approve(self, approval_id: str) -> None:
        """Activate the target and mark the approval APPROVED.

        Raises:
            NotFoundError: approval or its target row missing.
            ConflictError: approval already reviewed.
        """
        with transaction(self.db_path) as conn:
            approval = self._load_pending(conn, approval_id)
            if not registry.activate_target(conn, approval.item_type, approval.target_id):
                raise NotFoundError(
                    f"Target {approval.item_type.value} {approval.target_id} not found"
                )
            self._mark(conn, approval_id, ApprovalStatus.APPROVED)

        metrics.counter("approval.approved")
        logger.info(
            "approval_approved",
            approval_id=approval_id,
            item_type=approval.item_type.value,
            target_id=approval.target_id,
        )

    def reject(self, approval_id: str) -> None:
        """Soft-delete the target (or hard-delete both rows at zero retention).

        Raises:
            NotFoundError: approval missing.
            ConflictError: approval already reviewed.
        """
        with transaction(self.db_path) as conn:
            approval = self._load_pending(conn, approval_id)
            if self.retention.hard_delete_on_reject:
                registry.hard_delete_target(conn, approval.item_type, approval.target_id)
                conn.execute("DELETE FROM pending_approvals WHERE id = ?", (approval_id,))
            else:
                registry.soft_delete_target(conn, approval.item_type, approval.target_id)
                self._mark(conn, approval_id, ApprovalStatus.REJECTED)

        metrics.counter("approval.rejected")
        logger.info(
            "approval_rejected",
            approval_id=approval_id,
            item_type=approval.item_type.value,
            target_id=approval.target_id,
            hard_deleted=self.retention.hard_delete_on_reject,
            retention_days=self.retention.retention_days,
        )

    def update_target(self, approval_id: str, updates: dict) -> None:
        """Edit a still-pending draft before it is approved.

        Raises:
            NotFoundError: approval or its target row missing.
            ConflictError: approval already reviewed.
        """
        with transaction(self.db_path) as conn:
            approval = self._load_pending(conn, approval_id)
            if not registry.get_config(approval.item_type).editable:
                logger.warning(
                    "approval_target_not_editable",
                    approval_id=approval_id,
                    item_type=approval.item_type.value,
                )
                return
            if not registry.update_target(conn, approval.item_type, approval.target_id, updates):
                raise NotFoundError(
                    f"Target {approval.item_type.value} {approval.target_id} not found"
                )
        logger.info("approval_target_updated", approval_id=approval_id, fields=sorted(updates))

    def approve_batch(self, batch_id: str) -> BatchOperationResult:
        return self._run_batch(batch_id, self.approve, "approve")

    def reject_batch(self, batch_id: str) -> BatchOperationResult:
        return self._run_batch(batch_id, self.reject, "reject")

    def get_batch_stats(self, batch_id: str) -> dict[str, int]:
        return self._stats(" WHERE batch_id = ?", [batch_id])

    def get_global_stats(self) -> dict[str, int]:
        return self._stats("", [])

    # -- internals -----------------------------------------------------------

    def _run_batch(self, batch_id: str, operation: Callable[[str], None], verb: str) -> BatchOperationResult:
        """Apply operation to each PENDING approval in the batch, one transaction each."""
        with wal_connect(self.db_path) as conn:
            ids = [
                r[0]
                for r in conn.execute(
                    """SELECT id FROM pending_approvals
                       WHERE batch_id = ? AND status = 'pending' ORDER BY created_at""",
                    (batch_id,),
                ).fetchall()
            ]

        result = BatchOperationResult()
        for approval_id in ids:
            try:
                operation(approval_id)
                result.processed += 1
            except FusionError as e:
                result.failed += 1
                result.errors.append(f"{approval_id}: {e}")
            except Exception as e:
                logger.warning(
                    f"approval_batch_{verb}_item_failed", approval_id=approval_id, error=str(e)
                )
                result.failed += 1
                result.errors.append(f"{approval_id}: {e}")

        logger.info(
            f"approval_batch_{verb}",
            batch_id=batch_id,
            processed=result.processed,
            failed=result.failed,
        )
        return result

    def _load_pending(self, conn: sqlite3.Connection, approval_id: str) -> PendingApproval:
        row = conn.execute(
            "SELECT * FROM pending_approvals WHERE id = ?", (approval_id,)
        ).fetchone()
        if row is None:
            raise NotFoundError(f"Approval {approval_id} not found")
        approval = self._row_to_approval(row)
        if approval.status != ApprovalStatus.PENDING:
            raise ConflictError(f"Approval {approval_id} is already {approval.status.value}")
        return approval

    def _mark(self, conn: sqlite3.Connection, approval_id: str, status: ApprovalStatus) -> None:
        conn.execute(
            "UPDATE pending_approvals SET status = ?, reviewed_at = ? WHERE id = ?",
            (status.value, self._clock().isoformat(), approval_id),
        )

    def _stats(self, where: str, params: list) -> dict[str, int]:
        stats = dict.fromkeys(STAT_KEYS, 0)
        with wal_connect(self.db_path) as conn:
            rows = conn.execute(
                f"SELECT status, COUNT(*) FROM pending_approvals{where} GROUP BY status", params
            ).fetchall()
        for status, count in rows:
            stats["total"] += count
            if status in stats:
                stats[status] = count
        return stats

    @staticmethod
    def _row_to_approval(row: sqlite3.Row) -> PendingApproval:
        return PendingApproval(
            id=row["id"],
            item_type=ApprovalItemType(row["item_type"]),
            target_id=row["target_id"],
            batch_id=row["batch_id"],
            confidence=row["confidence"],
            status=ApprovalStatus(row["status"]),
            source_quote=row["source_quote"],
            source_interaction_id=row["source_interaction_id"],
            message_ref=row["message_ref"],
            source_entity_id=row["source_entity_id"],
            context=row["context"],
            created_at=datetime.fromisoformat(row["created_at"]),
            reviewed_at=datetime.fromisoformat(row["reviewed_at"]) if row["reviewed_at"] else None,
        )
