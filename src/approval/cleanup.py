"""Periodic purge of old rejected approvals and orphaned drafts."""

from datetime import datetime
from pathlib import Path
from typing import Callable

import structlog

from db import transaction, wal_connect

from . import registry
from .models import CleanupResult
from .retention import RetentionPolicy

logger = structlog.get_logger()


class ApprovalCleanup:
    """Hard-deletes what retention no longer protects.

    1. REJECTED approvals reviewed before the cutoff, together with their targets.
    2. Draft rows created before the cutoff that no approval points at.

    Work is done in chunks of ``batch_size``, one transaction per chunk.
    """

    def __init__(
        self,
        db_path: str | Path,
        retention: RetentionPolicy | None = None,
        batch_size: int = 100,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db_path = Path(db_path).expanduser()
        self.retention = retention or RetentionPolicy.from_env()
        self.batch_size = batch_size
        self._clock = clock

    def run(self) -> CleanupResult:
        cutoff = self.retention.cutoff(self._clock()).isoformat()
        result = CleanupResult()
        result.approvals, result.targets = self.cleanup_rejected(cutoff)
        result.orphaned = self.cleanup_orphaned_drafts(cutoff)
        logger.info(
            "approval_cleanup_complete",
            approvals=result.approvals,
            targets=result.targets,
            orphaned=result.orphaned,
            retention_days=self.retention.retention_days,
        )
        return result

    def cleanup_rejected(self, cutoff: str) -> tuple[int, int]:
        approvals_deleted = 0
        targets_deleted = 0
        while True:
            with transaction(self.db_path) as conn:
                rows = conn.execute(
                    """SELECT id, item_type, target_id FROM pending_approvals
                       WHERE status = 'rejected' AND reviewed_at < ?
                       ORDER BY reviewed_at ASC LIMIT ?""",
                    (cutoff, self.batch_size),
                ).fetchall()
                if not rows:
                    break

                by_type: dict[str, list[str]] = {}
                for row in rows:
                    by_type.setdefault(row["item_type"], []).append(row["target_id"])
                for item_type, target_ids in by_type.items():
                    targets_deleted += registry.hard_delete_targets(conn, item_type, target_ids)

                ids = [row["id"] for row in rows]
                conn.execute(
                    f"DELETE FROM pending_approvals WHERE id IN ({','.join('?' * len(ids))})", ids
                )
                approvals_deleted += len(ids)

            if len(rows) < self.batch_size:
                break
        return approvals_deleted, targets_deleted

    def cleanup_orphaned_drafts(self, cutoff: str) -> dict[str, int]:
        deleted: dict[str, int] = {}
        for table, (draft_status, item_types) in registry.unique_table_configs().items():
            deleted[table] = self._cleanup_orphans(table, draft_status, item_types, cutoff)
        return deleted

    def _cleanup_orphans(self, table: str, draft_status: str, item_types: list, cutoff: str) -> int:
        type_values = [t.value for t in item_types]
        placeholders = ",".join("?" * len(type_values))
        total = 0
        with wal_connect(self.db_path) as conn:
            exists = conn.execute(
                "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
            ).fetchone()
        if not exists:
            return 0

        while True:
            with transaction(self.db_path) as conn:
                rows = conn.execute(
                    f"""SELECT id FROM {table} t
                        WHERE t.status = ? AND t.created_at < ?
                          AND NOT EXISTS (
                              SELECT 1 FROM pending_approvals pa
                              WHERE pa.target_id = t.id AND pa.item_type IN ({placeholders})
                          )
                        LIMIT ?""",
                    [draft_status, cutoff, *type_values, self.batch_size],
                ).fetchall()
                if not rows:
                    break
                ids = [row["id"] for row in rows]
                conn.execute(f"DELETE FROM {table} WHERE id IN ({','.join('?' * len(ids))})", ids)
                total += len(ids)
            if len(rows) < self.batch_size:
                break
        return total
