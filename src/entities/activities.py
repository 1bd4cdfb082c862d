"""Activities (tasks, projects) and commitments, created as drafts."""

import uuid
from datetime import datetime
from pathlib import Path

import structlog

from db import wal_connect
from fusion.vectors import VectorIndex

from .models import Activity, ActivityStatus, ActivityType, Commitment, CommitmentStatus

logger = structlog.get_logger()


def embedding_text(name: str, description: str | None = None) -> str:
    return f"{name} - {description}" if description else name


class ActivityStore:
    """SQLite rows for activities; names optionally indexed for semantic dedup."""

    def __init__(self, db_path: str | Path, index: VectorIndex | None = None):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.index = index
        self._init_db()

    def _init_db(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS activities (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    owner_entity_id TEXT NOT NULL,
                    activity_type TEXT NOT NULL DEFAULT 'task',
                    description TEXT,
                    status TEXT NOT NULL DEFAULT 'draft',
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP,
                    deleted_at TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_activities_owner
                ON activities(owner_entity_id, activity_type)
            """)

    def create(
        self,
        name: str,
        owner_entity_id: str,
        activity_type: ActivityType = ActivityType.TASK,
        description: str | None = None,
        status: ActivityStatus = ActivityStatus.DRAFT,
    ) -> Activity:
        activity = Activity(
            id=uuid.uuid4().hex[:16],
            name=name,
            owner_entity_id=owner_entity_id,
            activity_type=activity_type,
            description=description,
            status=status,
        )
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """INSERT INTO activities
                   (id, name, owner_entity_id, activity_type, description, status, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    activity.id,
                    name,
                    owner_entity_id,
                    activity_type.value,
                    description,
                    status.value,
                    activity.created_at.isoformat(),
                ),
            )
        if self.index:
            text = embedding_text(name, description)
            self.index.upsert(
                activity.id,
                text,
                metadata={"owner_entity_id": owner_entity_id, "activity_type": activity_type.value},
                embedding=self.index.embed(text),
            )
        return activity

    def get(self, activity_id: str) -> Activity | None:
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute("SELECT * FROM activities WHERE id = ?", (activity_id,)).fetchone()
        return self._row_to_activity(row) if row else None

    def get_many(self, activity_ids: list[str]) -> dict[str, Activity]:
        if not activity_ids:
            return {}
        placeholders = ",".join("?" for _ in activity_ids)
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                f"SELECT * FROM activities WHERE id IN ({placeholders})", list(activity_ids)
            ).fetchall()
        return {r["id"]: self._row_to_activity(r) for r in rows}

    def find_exact(
        self,
        normalized_name: str,
        owner_entity_id: str,
        activity_type: ActivityType = ActivityType.TASK,
    ) -> Activity | None:
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute(
                """SELECT * FROM activities
                   WHERE LOWER(name) = ? AND owner_entity_id = ? AND activity_type = ?
                     AND status != 'cancelled' AND deleted_at IS NULL
                   ORDER BY created_at ASC LIMIT 1""",
                (normalized_name, owner_entity_id, activity_type.value),
            ).fetchone()
        return self._row_to_activity(row) if row else None

    @staticmethod
    def _row_to_activity(row) -> Activity:
        return Activity(
            id=row["id"],
            name=row["name"],
            owner_entity_id=row["owner_entity_id"],
            activity_type=ActivityType(row["activity_type"]),
            description=row["description"],
            status=ActivityStatus(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            deleted_at=datetime.fromisoformat(row["deleted_at"]) if row["deleted_at"] else None,
        )


class CommitmentStore:
    """SQLite rows for commitments (promises made to or by an entity)."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS commitments (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    entity_id TEXT,
                    description TEXT,
                    status TEXT NOT NULL DEFAULT 'draft',
                    created_at TIMESTAMP NOT NULL,
                    updated_at TIMESTAMP,
                    deleted_at TIMESTAMP
                )
            """)

    def create(
        self,
        title: str,
        entity_id: str | None = None,
        description: str | None = None,
        status: CommitmentStatus = CommitmentStatus.DRAFT,
    ) -> Commitment:
        commitment = Commitment(
            id=uuid.uuid4().hex[:16],
            title=title,
            entity_id=entity_id,
            description=description,
            status=status,
        )
        with wal_connect(self.db_path) as conn:
            conn.execute(
                """INSERT INTO commitments (id, title, entity_id, description, status, created_at)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    commitment.id,
                    title,
                    entity_id,
                    description,
                    status.value,
                    commitment.created_at.isoformat(),
                ),
            )
        return commitment

    def get(self, commitment_id: str) -> Commitment | None:
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute(
                "SELECT * FROM commitments WHERE id = ?", (commitment_id,)
            ).fetchone()
        if not row:
            return None
        return Commitment(
            id=row["id"],
            title=row["title"],
            entity_id=row["entity_id"],
            description=row["description"],
            status=CommitmentStatus(row["status"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            deleted_at=datetime.fromisoformat(row["deleted_at"]) if row["deleted_at"] else None,
        )
