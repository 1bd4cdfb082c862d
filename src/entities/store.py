"""Entities and their identifiers, including entity merge."""

import sqlite3
import uuid
from datetime import datetime
from pathlib import Path

import structlog

from db import transaction, wal_connect
from errors import ConflictError, NotFoundError

from .models import Entity, EntityIdentifier, EntityType

logger = structlog.get_logger()


class EntityStore:
    """SQLite persistence for entities (people, organizations)."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        with wal_connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS entities (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    entity_type TEXT NOT NULL DEFAULT 'person',
                    created_at TIMESTAMP NOT NULL,
                    deleted_at TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS entity_identifiers (
                    id TEXT PRIMARY KEY,
                    entity_id TEXT NOT NULL,
                    identifier_type TEXT NOT NULL,
                    identifier_value TEXT NOT NULL,
                    created_at TIMESTAMP NOT NULL,
                    UNIQUE (identifier_type, identifier_value)
                )
            """)

    def create(self, name: str, entity_type: EntityType = EntityType.PERSON) -> Entity:
        entity = Entity(id=uuid.uuid4().hex[:16], name=name, entity_type=entity_type)
        with wal_connect(self.db_path) as conn:
            conn.execute(
                "INSERT INTO entities (id, name, entity_type, created_at) VALUES (?, ?, ?, ?)",
                (entity.id, entity.name, entity.entity_type.value, entity.created_at.isoformat()),
            )
        logger.info("entity_created", entity_id=entity.id, entity_type=entity_type.value)
        return entity

    def get(self, entity_id: str, include_deleted: bool = False) -> Entity | None:
        sql = "SELECT * FROM entities WHERE id = ?"
        if not include_deleted:
            sql += " AND deleted_at IS NULL"
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute(sql, (entity_id,)).fetchone()
        return self._row_to_entity(row) if row else None

    def find_exact(self, normalized_name: str, entity_type: EntityType | str) -> Entity | None:
        with wal_connect(self.db_path, row_factory=True) as conn:
            row = conn.execute(
                """SELECT * FROM entities
                   WHERE LOWER(name) = ? AND entity_type = ? AND deleted_at IS NULL
                   LIMIT 1""",
                (normalized_name, EntityType(entity_type).value),
            ).fetchone()
        return self._row_to_entity(row) if row else None

    def search_partial(
        self, normalized_name: str, entity_type: EntityType | str, limit: int = 5
    ) -> list[Entity]:
        """Entities whose name contains the given name, excluding exact matches."""
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                """SELECT * FROM entities
                   WHERE entity_type = ? AND LOWER(name) LIKE ? AND LOWER(name) != ?
                     AND deleted_at IS NULL
                   ORDER BY created_at ASC LIMIT ?""",
                (EntityType(entity_type).value, f"%{normalized_name}%", normalized_name, limit),
            ).fetchall()
        return [self._row_to_entity(r) for r in rows]

    def add_identifier(
        self, entity_id: str, identifier_type: str, identifier_value: str
    ) -> EntityIdentifier:
        """Attach an identifier to an entity.

        Raises:
            NotFoundError: entity missing.
            ConflictError: identifier already exists (on any entity).
        """
        if not self.get(entity_id):
            raise NotFoundError(f"Entity not found: {entity_id}")
        ident = EntityIdentifier(
            id=uuid.uuid4().hex[:16],
            entity_id=entity_id,
            identifier_type=identifier_type,
            identifier_value=identifier_value,
        )
        try:
            with wal_connect(self.db_path) as conn:
                conn.execute(
                    """INSERT INTO entity_identifiers
                       (id, entity_id, identifier_type, identifier_value, created_at)
                       VALUES (?, ?, ?, ?, ?)""",
                    (
                        ident.id,
                        entity_id,
                        identifier_type,
                        identifier_value,
                        ident.created_at.isoformat(),
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise ConflictError(
                f"Identifier {identifier_type}:{identifier_value} already exists"
            ) from e
        return ident

    def get_identifiers(self, entity_id: str) -> list[EntityIdentifier]:
        with wal_connect(self.db_path, row_factory=True) as conn:
            rows = conn.execute(
                "SELECT * FROM entity_identifiers WHERE entity_id = ? ORDER BY created_at",
                (entity_id,),
            ).fetchall()
        return [
            EntityIdentifier(
                id=r["id"],
                entity_id=r["entity_id"],
                identifier_type=r["identifier_type"],
                identifier_value=r["identifier_value"],
                created_at=datetime.fromisoformat(r["created_at"]),
            )
            for r in rows
        ]

    def merge(self, source_id: str, target_id: str) -> dict:
        """Move identifiers and facts from source to target, then soft-delete source.

        Runs in one transaction. Requires the entity_facts table to exist.
        """
        if source_id == target_id:
            raise ConflictError("Cannot merge an entity into itself")

        now = datetime.now().isoformat()
        with transaction(self.db_path) as conn:
            for eid in (source_id, target_id):
                row = conn.execute(
                    "SELECT id FROM entities WHERE id = ? AND deleted_at IS NULL", (eid,)
                ).fetchone()
                if row is None:
                    raise NotFoundError(f"Entity not found: {eid}")

            identifiers = conn.execute(
                "UPDATE entity_identifiers SET entity_id = ? WHERE entity_id = ?",
                (target_id, source_id),
            ).rowcount
            facts = conn.execute(
                "UPDATE entity_facts SET entity_id = ?, updated_at = ? WHERE entity_id = ?",
                (target_id, now, source_id),
            ).rowcount
            conn.execute("UPDATE entities SET deleted_at = ? WHERE id = ?", (now, source_id))

        logger.info(
            "entities_merged",
            source_id=source_id,
            target_id=target_id,
            identifiers_moved=identifiers,
            facts_moved=facts,
        )
        return {"identifiers_moved": identifiers, "facts_moved": facts}

    @staticmethod
    def _row_to_entity(row: sqlite3.Row) -> Entity:
        return Entity(
            id=row["id"],
            name=row["name"],
            entity_type=EntityType(row["entity_type"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            deleted_at=datetime.fromisoformat(row["deleted_at"]) if row["deleted_at"] else None,
        )
