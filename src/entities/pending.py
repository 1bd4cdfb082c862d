"""Pending facts and extracted events awaiting subject resolution."""

import uuid
from datetime import datetime
from pathlib import Path

from db import dumps, loads, wal_connect
from errors import NotFoundError

from .models import ExtractedEvent, PendingFact, PendingFactStatus


class PendingFactStore:
    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS pending_facts (
                    id TEXT PRIMARY KEY,
                    entity_id TEXT,
                    fact_type TEXT NOT NULL,
                    value TEXT,
                    confidence REAL,
                    source_quote TEXT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    created_at TIMESTAMP NOT NULL,
                    reviewed_at TIMESTAMP
                )
            """)

    def create(
        self,
        fact_type: str,
        value: str | None,
        entity_id: str | None = None,
        confidence: float | None = None,
        source_quote: str | None = None,
    ) -> PendingFact:
        pf = PendingFact(
            id=uuid.uuid4().hex[:16],
            entity_id=entity_id,
            fact_type=fact_type,
            value=value,
            confidence=confidence,
            source_quote=source_quote,
        )
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """INSERT INTO pending_facts
                   (id, entity_id, fact_type, value, confidence, source_quote, status, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    pf.id,
                    entity_id,
                    fact_type,
                    value,
                    confidence,
                    source_quote,
                    pf.status.value,
                    pf.created_at.isoformat(),
                ),
            )
        return pf

    def get(self, pending_fact_id: str) -> PendingFact | None:
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute(
                "SELECT * FROM pending_facts WHERE id = ?", (pending_fact_id,)
            ).fetchone()
        if not row:
            return None
        return PendingFact(
            id=row["id"],
            entity_id=row["entity_id"],
            fact_type=row["fact_type"],
            value=row["value"],
            confidence=row["confidence"],
            source_quote=row["source_quote"],
            status=PendingFactStatus(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            reviewed_at=datetime.fromisoformat(row["reviewed_at"]) if row["reviewed_at"] else None,
        )

    def assign_subject(self, pending_fact_id: str, entity_id: str, approve: bool = False) -> None:
        """Point a pending fact at its subject; optionally approve it in the same write."""
        status_sql = ", status = 'approved', reviewed_at = ?" if approve else ""
        params: list = [entity_id]
        if approve:
            params.append(datetime.now().isoformat())
        params.append(pending_fact_id)
        with wal_connect(self.db_path) as conn:
            cur = conn.execute(
                f"UPDATE pending_facts SET entity_id = ?{status_sql} WHERE id = ?", params
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Pending fact not found: {pending_fact_id}")


class ExtractedEventStore:
    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS extracted_events (
                    id TEXT PRIMARY KEY,
                    event_type TEXT NOT NULL,
                    content TEXT NOT NULL,
                    entity_id TEXT,
                    enrichment TEXT,
                    created_at TIMESTAMP NOT NULL
                )
            """)

    def create(
        self,
        event_type: str,
        content: str,
        entity_id: str | None = None,
        enrichment: dict | None = None,
    ) -> ExtractedEvent:
        event = ExtractedEvent(
            id=uuid.uuid4().hex[:16],
            event_type=event_type,
            content=content,
            entity_id=entity_id,
            enrichment=enrichment or {},
        )
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """INSERT INTO extracted_events (id, event_type, content, entity_id, enrichment, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    event.id,
                    event_type,
                    content,
                    entity_id,
                    dumps(event.enrichment),
                    event.created_at.isoformat(),
                ),
            )
        return event

    def get(self, event_id: str) -> ExtractedEvent | None:
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute("SELECT * FROM extracted_events WHERE id = ?", (event_id,)).fetchone()
        if not row:
            return None
        return ExtractedEvent(
            id=row["id"],
            event_type=row["event_type"],
            content=row["content"],
            entity_id=row["entity_id"],
            enrichment=loads(row["enrichment"], {}),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def assign_subject(self, event_id: str, entity_id: str) -> None:
        """Set the event's subject and clear its needs_subject_resolution flag."""
        event = self.get(event_id)
        if event is None:
            raise NotFoundError(f"Extracted event not found: {event_id}")
        enrichment = dict(event.enrichment)
        enrichment["needs_subject_resolution"] = False
        with wal_connect(self.db_path) as conn:
            conn.execute(
                "UPDATE extracted_events SET entity_id = ?, enrichment = ? WHERE id = ?",
                (entity_id, dumps(enrichment), event_id),
            )
