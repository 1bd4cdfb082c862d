"""Persistent storage for entity facts: SQLite rows plus ChromaDB embeddings."""

import sqlite3
import uuid
from datetime import datetime
from pathlib import Path

import structlog

from db import dumps, loads, transaction, wal_connect
from errors import ConflictError, NotFoundError

from .models import Fact, FactCategory, FactRank, FactSource, FactStatus, NewFactData
from .vectors import VectorIndex

logger = structlog.get_logger()

_CURRENT = "valid_until IS NULL AND deleted_at IS NULL AND status = 'active'"

_RANK_ORDER = (
    "CASE rank WHEN 'preferred' THEN 0 WHEN 'normal' THEN 1 ELSE 2 END"
)


def new_id() -> str:
    return uuid.uuid4().hex[:16]


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class FactStore:
    """Versioned fact rows with rank and supersession links.

    "Current" facts are active, not soft-deleted and have no valid_until.
    """

    def __init__(self, db_path: str | Path, index: VectorIndex | None = None):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.index = index
        self._init_db()

    def _init_db(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS entity_facts (
                    id TEXT PRIMARY KEY,
                    entity_id TEXT NOT NULL,
                    fact_type TEXT NOT NULL,
                    category TEXT,
                    value TEXT,
                    value_date TEXT,
                    value_json TEXT,
                    source TEXT NOT NULL DEFAULT 'extracted',
                    confidence REAL CHECK (confidence IS NULL OR (confidence >= 0 AND confidence <= 1)),
                    confirmation_count INTEGER NOT NULL DEFAULT 1,
                    rank TEXT NOT NULL DEFAULT 'normal',
                    valid_from TIMESTAMP,
                    valid_until TIMESTAMP,
                    superseded_by TEXT,
                    supersedes_id TEXT,
                    needs_review INTEGER NOT NULL DEFAULT 0,
                    review_reason TEXT,
                    source_interaction_id TEXT,
                    status TEXT NOT NULL DEFAULT 'active',
                    deleted_at TIMESTAMP,
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_entity_facts_current
                ON entity_facts(entity_id, fact_type, valid_until)
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_entity_facts_review
                ON entity_facts(needs_review)
            """)

    # -- writes --------------------------------------------------------------

    def add(self, fact: Fact, conn: sqlite3.Connection | None = None) -> Fact:
        """Insert a fact row; index its value when it is current.

        With an outer conn the caller owns the transaction and indexes the
        fact after it commits.
        """
        if not fact.id:
            fact.id = new_id()
        params = (
            fact.id,
            fact.entity_id,
            fact.fact_type,
            fact.category.value if fact.category else None,
            fact.value,
            fact.value_date,
            dumps(fact.value_json),
            fact.source.value,
            fact.confidence,
            fact.confirmation_count,
            fact.rank.value,
            _ts(fact.valid_from),
            _ts(fact.valid_until),
            fact.superseded_by,
            fact.supersedes_id,
            int(fact.needs_review),
            fact.review_reason,
            fact.source_interaction_id,
            fact.status.value,
            _ts(fact.deleted_at),
            _ts(fact.created_at),
            _ts(fact.updated_at),
        )
        sql = """INSERT INTO entity_facts
                 (id, entity_id, fact_type, category, value, value_date, value_json, source,
                  confidence, confirmation_count, rank, valid_from, valid_until, superseded_by,
                  supersedes_id, needs_review, review_reason, source_interaction_id, status,
                  deleted_at, created_at, updated_at)
                 VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"""
        if conn is not None:
            conn.execute(sql, params)
            return fact

        with wal_connect(self.db_path) as c:
            c.execute(sql, params)
        self._index_fact(fact)
        return fact

    def create(
        self,
        entity_id: str,
        data: NewFactData,
        rank: FactRank = FactRank.NORMAL,
        valid_from: datetime | None = None,
        embedding: list[float] | None = None,
    ) -> Fact:
        fact = self._build(entity_id, data, rank, valid_from, embedding)
        return self.add(fact)

    def supersede(
        self,
        old_fact_id: str,
        entity_id: str,
        data: NewFactData,
        embedding: list[float] | None = None,
    ) -> tuple[Fact, Fact]:
        """Replace a current fact with a new preferred one.

        Both rows change in one transaction: the new fact gets rank preferred,
        valid_from now and supersedes_id; the old one is deprecated with
        valid_until now and superseded_by. Returns (old, new).

        Raises:
            NotFoundError: old fact missing.
            ConflictError: old fact already superseded or otherwise not current.
        """
        now = datetime.now()
        new_fact = self._build(entity_id, data, FactRank.PREFERRED, now, embedding)
        new_fact.supersedes_id = old_fact_id

        with transaction(self.db_path) as conn:
            row = conn.execute(
                "SELECT * FROM entity_facts WHERE id = ?", (old_fact_id,)
            ).fetchone()
            if row is None:
                raise NotFoundError(f"Fact not found: {old_fact_id}")
            old = self._row_to_fact(row)
            if not old.is_current:
                raise ConflictError(f"Fact {old_fact_id} is not current")

            self.add(new_fact, conn=conn)
            conn.execute(
                f"""UPDATE entity_facts
                    SET rank = 'deprecated', valid_until = ?, superseded_by = ?,
                        needs_review = 0, review_reason = NULL, updated_at = ?
                    WHERE id = ? AND {_CURRENT}""",
                (now.isoformat(), new_fact.id, now.isoformat(), old_fact_id),
            )

        if self.index:
            self.index.remove(old_fact_id)
        self._index_fact(new_fact)
        old.rank = FactRank.DEPRECATED
        old.valid_until = now
        old.superseded_by = new_fact.id
        old.needs_review = False
        old.review_reason = None
        logger.info("fact_superseded", old_id=old_fact_id, new_id=new_fact.id)
        return old, new_fact

    def record_confirmation(self, fact_id: str, confidence: float | None) -> Fact:
        """Increment confirmation_count and store the new confidence."""
        with wal_connect(self.db_path) as conn:
            cur = conn.execute(
                """UPDATE entity_facts
                   SET confirmation_count = confirmation_count + 1, confidence = ?, updated_at = ?
                   WHERE id = ?""",
                (confidence, datetime.now().isoformat(), fact_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Fact not found: {fact_id}")
        return self.get(fact_id)

    def enrich(self, fact_id: str, value: str, confidence: float | None) -> Fact:
        """Replace the value with a merged one and count it as a confirmation."""
        with wal_connect(self.db_path) as conn:
            cur = conn.execute(
                """UPDATE entity_facts
                   SET value = ?, confirmation_count = confirmation_count + 1,
                       confidence = ?, updated_at = ?
                   WHERE id = ?""",
                (value, confidence, datetime.now().isoformat(), fact_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Fact not found: {fact_id}")
        fact = self.get(fact_id)
        self._index_fact(fact)
        return fact

    def update_value(self, fact_id: str, value: str) -> Fact:
        with wal_connect(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE entity_facts SET value = ?, updated_at = ? WHERE id = ? AND deleted_at IS NULL",
                (value, datetime.now().isoformat(), fact_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Fact not found: {fact_id}")
        fact = self.get(fact_id)
        self._index_fact(fact)
        return fact

    def mark_needs_review(self, fact_id: str, reason: str) -> None:
        """Flag a current fact for human review. No-op on non-current facts."""
        with wal_connect(self.db_path) as conn:
            conn.execute(
                f"""UPDATE entity_facts SET needs_review = 1, review_reason = ?, updated_at = ?
                    WHERE id = ? AND {_CURRENT}""",
                (reason, datetime.now().isoformat(), fact_id),
            )

    def clear_review(self, fact_id: str, increment_count: bool = False) -> Fact:
        bump = ", confirmation_count = confirmation_count + 1" if increment_count else ""
        with wal_connect(self.db_path) as conn:
            cur = conn.execute(
                f"""UPDATE entity_facts SET needs_review = 0, review_reason = NULL,
                        updated_at = ?{bump}
                    WHERE id = ?""",
                (datetime.now().isoformat(), fact_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Fact not found: {fact_id}")
        return self.get(fact_id)

    # -- reads ---------------------------------------------------------------

    def get(self, fact_id: str) -> Fact | None:
        """Get a single fact by ID."""
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute("SELECT * FROM entity_facts WHERE id = ?", (fact_id,)).fetchone()
            if row:
                return self._row_to_fact(row)
        return None

    def get_many(self, fact_ids: list[str]) -> dict[str, Fact]:
        if not fact_ids:
            return {}
        placeholders = ",".join("?" for _ in fact_ids)
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                f"SELECT * FROM entity_facts WHERE id IN ({placeholders})", list(fact_ids)
            ).fetchall()
        return {r["id"]: self._row_to_fact(r) for r in rows}

    def get_current(self, entity_id: str, fact_type: str | None = None) -> list[Fact]:
        """Current facts for an entity, preferred rank first, newest first."""
        sql = f"SELECT * FROM entity_facts WHERE entity_id = ? AND {_CURRENT}"
        params: list = [entity_id]
        if fact_type:
            sql += " AND fact_type = ?"
            params.append(fact_type)
        sql += f" ORDER BY {_RANK_ORDER}, created_at DESC"
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(sql, params).fetchall()
            return [self._row_to_fact(r) for r in rows]

    def list_for_entity(self, entity_id: str, include_history: bool = False) -> list[Fact]:
        if not include_history:
            return self.get_current(entity_id)
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                f"""SELECT * FROM entity_facts WHERE entity_id = ? AND deleted_at IS NULL
                    ORDER BY fact_type, {_RANK_ORDER}, created_at DESC""",
                (entity_id,),
            ).fetchall()
            return [self._row_to_fact(r) for r in rows]

    def get_needing_review(self, entity_id: str | None = None, limit: int = 50) -> list[Fact]:
        sql = f"SELECT * FROM entity_facts WHERE needs_review = 1 AND {_CURRENT}"
        params: list = []
        if entity_id:
            sql += " AND entity_id = ?"
            params.append(entity_id)
        sql += " ORDER BY updated_at ASC LIMIT ?"
        params.append(limit)
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(sql, params).fetchall()
            return [self._row_to_fact(r) for r in rows]

    def get_history(self, fact_id: str) -> list[Fact]:
        """Return the full supersession chain containing a fact, oldest first."""
        start = self.get(fact_id)
        if not start:
            return []

        older = []
        seen = {start.id}
        current = start
        while current.supersedes_id and current.supersedes_id not in seen:
            prev = self.get(current.supersedes_id)
            if not prev:
                break
            seen.add(prev.id)
            older.append(prev)
            current = prev

        newer = []
        current = start
        while current.superseded_by and current.superseded_by not in seen:
            nxt = self.get(current.superseded_by)
            if not nxt:
                break
            seen.add(nxt.id)
            newer.append(nxt)
            current = nxt

        older.reverse()
        return older + [start] + newer

    # -- helpers -------------------------------------------------------------

    def _build(
        self,
        entity_id: str,
        data: NewFactData,
        rank: FactRank,
        valid_from: datetime | None,
        embedding: list[float] | None,
    ) -> Fact:
        now = datetime.now()
        return Fact(
            id=new_id(),
            entity_id=entity_id,
            fact_type=data.fact_type,
            value=data.value,
            category=data.category,
            value_date=data.value_date,
            value_json=data.value_json,
            source=data.source,
            confidence=data.confidence,
            rank=rank,
            valid_from=valid_from or now,
            source_interaction_id=data.source_interaction_id,
            status=data.status,
            embedding=embedding,
            created_at=now,
            updated_at=now,
        )

    def _index_fact(self, fact: Fact | None) -> None:
        if not self.index or not fact or not fact.value or not fact.is_current:
            return
        self.index.upsert(
            fact.id,
            fact.value,
            metadata={"entity_id": fact.entity_id, "fact_type": fact.fact_type},
            embedding=fact.embedding,
        )

    @staticmethod
    def _row_to_fact(row: sqlite3.Row) -> Fact:
        d = dict(row)
        return Fact(
            id=d["id"],
            entity_id=d["entity_id"],
            fact_type=d["fact_type"],
            value=d.get("value"),
            category=FactCategory(d["category"]) if d.get("category") else None,
            value_date=d.get("value_date"),
            value_json=loads(d.get("value_json")),
            source=FactSource(d["source"]),
            confidence=d.get("confidence"),
            confirmation_count=d.get("confirmation_count") or 1,
            rank=FactRank(d["rank"]),
            valid_from=_dt(d.get("valid_from")),
            valid_until=_dt(d.get("valid_until")),
            superseded_by=d.get("superseded_by"),
            supersedes_id=d.get("supersedes_id"),
            needs_review=bool(d.get("needs_review")),
            review_reason=d.get("review_reason"),
            source_interaction_id=d.get("source_interaction_id"),
            status=FactStatus(d.get("status") or "active"),
            deleted_at=_dt(d.get("deleted_at")),
            created_at=_dt(d.get("created_at")) or datetime.now(),
            updated_at=_dt(d.get("updated_at")) or datetime.now(),
        )
