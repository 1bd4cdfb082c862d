"""Pending confirmation lifecycle: create, resolve exactly once, expire."""

import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Callable

import structlog

from db import dumps, loads, transaction, wal_connect
from errors import NotFoundError

from .handlers import HandlerRegistry
from .models import (
    DECLINE_OPTION_ID,
    DEFAULT_EXPIRY,
    ConfirmationOption,
    ConfirmationStatus,
    ConfirmationType,
    CreateConfirmation,
    PendingConfirmation,
    ResolvedBy,
)

logger = structlog.get_logger()


class ConfirmationManager:
    """Creates, lists and resolves pending confirmations.

    ``resolve`` is a compare-and-swap on the status column: only the caller
    whose UPDATE still sees ``pending`` wins; everyone else gets the stored
    record back. Confirmed rows are dispatched to the handler for their type;
    handler failures are recorded on the row and never re-raised.
    """

    def __init__(
        self,
        db_path: str | Path,
        handlers: HandlerRegistry,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.handlers = handlers
        self.handlers.validate()
        self._clock = clock
        self._init_db()

    def _init_db(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS pending_confirmations (
                    id TEXT PRIMARY KEY,
                    type TEXT NOT NULL,
                    context TEXT NOT NULL,
                    options TEXT NOT NULL,
                    confidence REAL,
                    source_message_id TEXT,
                    source_entity_id TEXT,
                    source_pending_fact_id TEXT,
                    source_extracted_event_id TEXT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    selected_option_id TEXT,
                    resolution TEXT,
                    resolved_at TIMESTAMP,
                    resolved_by TEXT,
                    expires_at TIMESTAMP,
                    created_at TIMESTAMP NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_confirmations_status
                ON pending_confirmations(status, type)
            """)

    def create(self, dto: CreateConfirmation) -> PendingConfirmation:
        """Persist a new PENDING confirmation, or return a matching pending one."""
        now = self._clock()
        with transaction(self.db_path) as conn:
            existing = self._find_similar(conn, dto)
            if existing:
                logger.debug("confirmation_deduplicated", confirmation_id=existing.id, type=dto.type.value)
                return existing

            confirmation = PendingConfirmation(
                id=uuid.uuid4().hex[:16],
                type=dto.type,
                context=dict(dto.context),
                options=list(dto.options),
                confidence=dto.confidence,
                source_message_id=dto.source_message_id,
                source_entity_id=dto.source_entity_id,
                source_pending_fact_id=dto.source_pending_fact_id,
                source_extracted_event_id=dto.source_extracted_event_id,
                expires_at=now + DEFAULT_EXPIRY[dto.type],
                created_at=now,
            )
            conn.execute(
                """INSERT INTO pending_confirmations
                   (id, type, context, options, confidence, source_message_id, source_entity_id,
                    source_pending_fact_id, source_extracted_event_id, status, expires_at, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    confirmation.id,
                    dto.type.value,
                    dumps(confirmation.context),
                    dumps([o.to_dict() for o in confirmation.options]),
                    dto.confidence,
                    dto.source_message_id,
                    dto.source_entity_id,
                    dto.source_pending_fact_id,
                    dto.source_extracted_event_id,
                    ConfirmationStatus.PENDING.value,
                    confirmation.expires_at.isoformat(),
                    now.isoformat(),
                ),
            )

        logger.info(
            "confirmation_created",
            confirmation_id=confirmation.id,
            type=dto.type.value,
            options=len(dto.options),
        )
        return confirmation

    def get(self, confirmation_id: str) -> PendingConfirmation | None:
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute(
                "SELECT * FROM pending_confirmations WHERE id = ?", (confirmation_id,)
            ).fetchone()
        return self._row_to_confirmation(row) if row else None

    def resolve(
        self,
        confirmation_id: str,
        option_id: str,
        resolution: dict | None = None,
        resolved_by: ResolvedBy = ResolvedBy.USER,
    ) -> PendingConfirmation:
        """Resolve a pending confirmation with the chosen option.

        Raises:
            NotFoundError: no confirmation with this id.
        """
        confirmation = self.get(confirmation_id)
        if confirmation is None:
            raise NotFoundError(f"Confirmation not found: {confirmation_id}")
        if not confirmation.is_pending:
            return confirmation

        option = next((o for o in confirmation.options if o.id == option_id), None)
        is_decline = (option is not None and option.is_decline) or option_id == DECLINE_OPTION_ID
        status = ConfirmationStatus.DECLINED if is_decline else ConfirmationStatus.CONFIRMED

        with wal_connect(self.db_path) as conn:
            cur = conn.execute(
                """UPDATE pending_confirmations
                   SET status = ?, selected_option_id = ?, resolution = ?,
                       resolved_at = ?, resolved_by = ?
                   WHERE id = ? AND status = 'pending'""",
                (
                    status.value,
                    option_id,
                    dumps(resolution),
                    self._clock().isoformat(),
                    resolved_by.value,
                    confirmation_id,
                ),
            )
            affected = cur.rowcount

        if affected == 0:
            logger.info("confirmation_already_resolved", confirmation_id=confirmation_id)
            return self.get(confirmation_id)

        resolved = self.get(confirmation_id)
        logger.info(
            "confirmation_resolved",
            confirmation_id=confirmation_id,
            status=status.value,
            option_id=option_id,
        )
        if status == ConfirmationStatus.CONFIRMED:
            self._dispatch(resolved)
            resolved = self.get(confirmation_id)
        return resolved

    def get_pending(
        self,
        confirmation_type: ConfirmationType | None = None,
        entity_id: str | None = None,
        limit: int = 10,
    ) -> list[PendingConfirmation]:
        """Pending rows, least confident (NULL first) and oldest first."""
        sql = "SELECT * FROM pending_confirmations WHERE status = 'pending'"
        params: list = []
        if confirmation_type:
            sql += " AND type = ?"
            params.append(ConfirmationType(confirmation_type).value)
        if entity_id:
            sql += " AND source_entity_id = ?"
            params.append(entity_id)
        sql += " ORDER BY confidence IS NOT NULL, confidence ASC, created_at ASC LIMIT ?"
        params.append(limit)
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_confirmation(r) for r in rows]

    def count_pending(self) -> dict[ConfirmationType, int]:
        counts = {t: 0 for t in ConfirmationType}
        with wal_connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT type, COUNT(*) FROM pending_confirmations WHERE status = 'pending' GROUP BY type"
            ).fetchall()
        for type_value, count in rows:
            counts[ConfirmationType(type_value)] = count
        return counts

    def find_by_source_entity(self, entity_id: str) -> list[PendingConfirmation]:
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                """SELECT * FROM pending_confirmations WHERE source_entity_id = ?
                   ORDER BY created_at DESC""",
                (entity_id,),
            ).fetchall()
        return [self._row_to_confirmation(r) for r in rows]

    def expire_old(self) -> int:
        """Flip PENDING rows past expires_at to EXPIRED. Returns the count."""
        now = self._clock().isoformat()
        with wal_connect(self.db_path) as conn:
            cur = conn.execute(
                """UPDATE pending_confirmations
                   SET status = 'expired', resolved_by = 'expired', resolved_at = ?
                   WHERE status = 'pending' AND expires_at < ?""",
                (now, now),
            )
            expired = cur.rowcount
        if expired:
            logger.info("confirmations_expired", count=expired)
        return expired

    # -- internals -----------------------------------------------------------

    def _dispatch(self, confirmation: PendingConfirmation) -> None:
        handler = self.handlers.get(confirmation.type)
        try:
            handler.handle(confirmation)
        except Exception as e:
            logger.error(
                "confirmation_handler_failed",
                confirmation_id=confirmation.id,
                type=confirmation.type.value,
                error=str(e),
            )
            resolution = dict(confirmation.resolution or {})
            resolution["handler_error"] = str(e)
            resolution["handler_failed_at"] = self._clock().isoformat()
            with wal_connect(self.db_path) as conn:
                conn.execute(
                    "UPDATE pending_confirmations SET resolution = ? WHERE id = ?",
                    (dumps(resolution), confirmation.id),
                )

    @staticmethod
    def _find_similar(
        conn: sqlite3.Connection, dto: CreateConfirmation
    ) -> PendingConfirmation | None:
        sql = "SELECT * FROM pending_confirmations WHERE type = ? AND status = 'pending'"
        params: list = [dto.type.value]
        title = dto.context.get("title")
        description = dto.context.get("description")

        if dto.type == ConfirmationType.FACT_SUBJECT:
            if description:
                sql += " AND json_extract(context, '$.description') = ?"
                params.append(description)
            elif dto.source_pending_fact_id:
                sql += " AND source_pending_fact_id = ?"
                params.append(dto.source_pending_fact_id)
            elif dto.source_extracted_event_id:
                sql += " AND source_extracted_event_id = ?"
                params.append(dto.source_extracted_event_id)
            else:
                return None
        elif dto.source_pending_fact_id:
            sql += " AND source_pending_fact_id = ?"
            params.append(dto.source_pending_fact_id)
        elif dto.source_extracted_event_id:
            sql += " AND source_extracted_event_id = ?"
            params.append(dto.source_extracted_event_id)
        elif dto.source_entity_id and dto.source_message_id:
            sql += " AND source_entity_id = ? AND source_message_id = ?"
            params += [dto.source_entity_id, dto.source_message_id]
        elif dto.source_entity_id and title:
            sql += " AND source_entity_id = ? AND json_extract(context, '$.title') = ?"
            params += [dto.source_entity_id, title]
        else:
            return None

        row = conn.execute(sql + " ORDER BY created_at ASC LIMIT 1", params).fetchone()
        return ConfirmationManager._row_to_confirmation(row) if row else None

    @staticmethod
    def _row_to_confirmation(row: sqlite3.Row) -> PendingConfirmation:
        def ts(value):
            return datetime.fromisoformat(value) if value else None

        return PendingConfirmation(
            id=row["id"],
            type=ConfirmationType(row["type"]),
            context=loads(row["context"], {}),
            options=[ConfirmationOption.from_dict(o) for o in loads(row["options"], [])],
            status=ConfirmationStatus(row["status"]),
            confidence=row["confidence"],
            source_message_id=row["source_message_id"],
            source_entity_id=row["source_entity_id"],
            source_pending_fact_id=row["source_pending_fact_id"],
            source_extracted_event_id=row["source_extracted_event_id"],
            selected_option_id=row["selected_option_id"],
            resolution=loads(row["resolution"]),
            resolved_at=ts(row["resolved_at"]),
            resolved_by=ResolvedBy(row["resolved_by"]) if row["resolved_by"] else None,
            expires_at=ts(row["expires_at"]),
            created_at=ts(row["created_at"]) or datetime.now(),
        )
