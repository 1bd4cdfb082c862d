"""Conflict notification and human resolution of contradicting facts."""

import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol

import structlog

from db import dumps, loads, transaction, wal_connect
from errors import FusionError

from .models import Fact, NewFactData
from .store import FactStore

logger = structlog.get_logger()


class ConflictChoice(str, Enum):
    USE_NEW = "new"
    KEEP_OLD = "old"
    KEEP_BOTH = "both"


@dataclass
class ConflictNotice:
    """What a human sees when asked to settle a conflict."""

    token: str
    entity_id: str
    existing_fact: Fact
    new_fact_data: NewFactData
    explanation: str
    choices: tuple[ConflictChoice, ...] = tuple(ConflictChoice)


@dataclass
class ConflictResolutionResult:
    success: bool
    action: str | None = None  # used_new | kept_old | created_both
    fact_id: str | None = None
    error: str | None = None


class ConflictNotifier(Protocol):
    def notify(self, notice: ConflictNotice) -> bool: ...


class LoggingConflictNotifier:
    """Default notifier: emits a structured log event for the review queue."""

    def notify(self, notice: ConflictNotice) -> bool:
        logger.warning(
            "fact_conflict_needs_review",
            token=notice.token,
            entity_id=notice.entity_id,
            fact_id=notice.existing_fact.id,
            fact_type=notice.existing_fact.fact_type,
            existing_value=notice.existing_fact.value,
            new_value=notice.new_fact_data.value,
            explanation=notice.explanation,
            choices=[c.value for c in notice.choices],
        )
        return True


class ConflictResolutionService:
    """Stores pending conflicts under short tokens and applies human choices.

    A token resolves at most once: it is claimed (deleted) before the choice is
    applied and restored if applying fails.
    """

    def __init__(self, store: FactStore, notifier: ConflictNotifier | None = None):
        self.store = store
        self.db_path = store.db_path
        self.notifier = notifier or LoggingConflictNotifier()
        self._init_db()

    def _init_db(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS fact_conflicts (
                    token TEXT PRIMARY KEY,
                    entity_id TEXT NOT NULL,
                    existing_fact_id TEXT NOT NULL,
                    new_fact_data TEXT NOT NULL,
                    explanation TEXT,
                    created_at TIMESTAMP NOT NULL
                )
            """)

    def notify_conflict(
        self,
        existing: Fact,
        new_fact_data: NewFactData,
        entity_id: str,
        explanation: str,
    ) -> str:
        """Persist the conflict, notify a human, and return its correlation token."""
        token = uuid.uuid4().hex[:8]
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """INSERT INTO fact_conflicts
                   (token, entity_id, existing_fact_id, new_fact_data, explanation, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    token,
                    entity_id,
                    existing.id,
                    dumps(new_fact_data.to_dict()),
                    explanation,
                    datetime.now().isoformat(),
                ),
            )

        delivered = self.notifier.notify(
            ConflictNotice(
                token=token,
                entity_id=entity_id,
                existing_fact=existing,
                new_fact_data=new_fact_data,
                explanation=explanation,
            )
        )
        logger.info("fact_conflict_stored", token=token, fact_id=existing.id, delivered=delivered)
        return token

    def get_conflict(self, token: str) -> dict | None:
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute("SELECT * FROM fact_conflicts WHERE token = ?", (token,)).fetchone()
        return self._row_to_dict(row) if row else None

    def list_open(self, entity_id: str | None = None) -> list[dict]:
        sql = "SELECT * FROM fact_conflicts"
        params: list = []
        if entity_id:
            sql += " WHERE entity_id = ?"
            params.append(entity_id)
        sql += " ORDER BY created_at ASC"
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_dict(r) for r in rows]

    def resolve_conflict(self, token: str, choice: ConflictChoice | str) -> ConflictResolutionResult:
        try:
            choice = ConflictChoice(choice)
        except ValueError:
            return ConflictResolutionResult(success=False, error=f"Unknown choice: {choice}")

        with transaction(self.db_path) as conn:
            row = conn.execute("SELECT * FROM fact_conflicts WHERE token = ?", (token,)).fetchone()
            if row is not None:
                conn.execute("DELETE FROM fact_conflicts WHERE token = ?", (token,))
        if row is None:
            return ConflictResolutionResult(
                success=False, error="Conflict not found or already resolved"
            )

        conflict = self._row_to_dict(row)
        try:
            result = self._apply(conflict, choice)
        except (FusionError, sqlite3.Error) as e:
            logger.error("fact_conflict_resolution_failed", token=token, error=str(e))
            result = ConflictResolutionResult(success=False, error=str(e))

        if not result.success:
            self._restore(row)
        else:
            logger.info(
                "fact_conflict_resolved", token=token, action=result.action, fact_id=result.fact_id
            )
        return result

    def _apply(self, conflict: dict, choice: ConflictChoice) -> ConflictResolutionResult:
        existing = self.store.get(conflict["existing_fact_id"])
        if existing is None:
            return ConflictResolutionResult(success=False, error="Existing fact not found")

        data: NewFactData = conflict["new_fact_data"]
        entity_id = conflict["entity_id"]

        if choice == ConflictChoice.USE_NEW:
            _, new_fact = self.store.supersede(existing.id, entity_id, data)
            return ConflictResolutionResult(success=True, action="used_new", fact_id=new_fact.id)

        if choice == ConflictChoice.KEEP_OLD:
            self.store.clear_review(existing.id, increment_count=True)
            return ConflictResolutionResult(success=True, action="kept_old", fact_id=existing.id)

        new_fact = self.store.create(entity_id, data)
        self.store.clear_review(existing.id)
        return ConflictResolutionResult(success=True, action="created_both", fact_id=new_fact.id)

    def _restore(self, row: sqlite3.Row) -> None:
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """INSERT OR IGNORE INTO fact_conflicts
                   (token, entity_id, existing_fact_id, new_fact_data, explanation, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    row["token"],
                    row["entity_id"],
                    row["existing_fact_id"],
                    row["new_fact_data"],
                    row["explanation"],
                    row["created_at"],
                ),
            )

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> dict:
        return {
            "token": row["token"],
            "entity_id": row["entity_id"],
            "existing_fact_id": row["existing_fact_id"],
            "new_fact_data": NewFactData.from_dict(loads(row["new_fact_data"], {})),
            "explanation": row["explanation"],
            "created_at": datetime.fromisoformat(row["created_at"]),
        }
