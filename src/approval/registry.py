"""Item type -> target table mapping for draft activation and deletion.

Every helper takes an open connection so callers can run it inside the same
transaction as the approval row update. Adding an item type means adding one
entry to ITEM_TYPE_REGISTRY.
"""

import sqlite3
from dataclasses import dataclass
from datetime import datetime

from .models import ApprovalItemType


@dataclass(frozen=True)
class ItemTypeConfig:
    table: str
    active_status: str
    draft_status: str
    # input field -> column, for edits before approval
    editable: tuple[tuple[str, str], ...] = ()


ITEM_TYPE_REGISTRY: dict[ApprovalItemType, ItemTypeConfig] = {
    ApprovalItemType.FACT: ItemTypeConfig(
        table="entity_facts",
        active_status="active",
        draft_status="draft",
    ),
    ApprovalItemType.ACTIVITY: ItemTypeConfig(
        table="activities",
        active_status="active",
        draft_status="draft",
        editable=(("name", "name"), ("description", "description")),
    ),
    ApprovalItemType.COMMITMENT: ItemTypeConfig(
        table="commitments",
        # draft -> pending, the natural first state of a commitment
        active_status="pending",
        draft_status="draft",
        editable=(("name", "title"), ("description", "description")),
    ),
}


def get_config(item_type: ApprovalItemType | str) -> ItemTypeConfig:
    try:
        return ITEM_TYPE_REGISTRY[ApprovalItemType(item_type)]
    except (KeyError, ValueError):
        raise ValueError(f"Unknown item type: {item_type}") from None


def _now() -> str:
    return datetime.now().isoformat()


def activate_target(conn: sqlite3.Connection, item_type: ApprovalItemType, target_id: str) -> bool:
    """Set the target's status to active. False when no live row matched."""
    config = get_config(item_type)
    cur = conn.execute(
        f"UPDATE {config.table} SET status = ?, updated_at = ? WHERE id = ? AND deleted_at IS NULL",
        (config.active_status, _now(), target_id),
    )
    return cur.rowcount > 0


def soft_delete_target(conn: sqlite3.Connection, item_type: ApprovalItemType, target_id: str) -> bool:
    config = get_config(item_type)
    now = _now()
    cur = conn.execute(
        f"UPDATE {config.table} SET deleted_at = ?, updated_at = ? WHERE id = ? AND deleted_at IS NULL",
        (now, now, target_id),
    )
    return cur.rowcount > 0


def hard_delete_target(conn: sqlite3.Connection, item_type: ApprovalItemType, target_id: str) -> bool:
    config = get_config(item_type)
    cur = conn.execute(f"DELETE FROM {config.table} WHERE id = ?", (target_id,))
    return cur.rowcount > 0


def hard_delete_targets(
    conn: sqlite3.Connection, item_type: ApprovalItemType | str, target_ids: list[str]
) -> int:
    """Bulk delete. Unknown item types (legacy rows) delete nothing."""
    if not target_ids:
        return 0
    try:
        config = get_config(item_type)
    except ValueError:
        return 0
    placeholders = ",".join("?" * len(target_ids))
    cur = conn.execute(f"DELETE FROM {config.table} WHERE id IN ({placeholders})", target_ids)
    return cur.rowcount


def update_target(
    conn: sqlite3.Connection, item_type: ApprovalItemType, target_id: str, updates: dict
) -> bool:
    """Apply whitelisted field edits to a draft target. Unknown fields are ignored."""
    config = get_config(item_type)
    columns = {col: updates[key] for key, col in config.editable if key in updates}
    if not columns:
        return True
    assignments = ", ".join(f"{col} = ?" for col in columns)
    cur = conn.execute(
        f"UPDATE {config.table} SET {assignments}, updated_at = ? WHERE id = ? AND deleted_at IS NULL",
        [*columns.values(), _now(), target_id],
    )
    return cur.rowcount > 0


def unique_table_configs() -> dict[str, tuple[str, list[ApprovalItemType]]]:
    """table -> (draft status, item types stored there)."""
    tables: dict[str, tuple[str, list[ApprovalItemType]]] = {}
    for item_type, config in ITEM_TYPE_REGISTRY.items():
        if config.table in tables:
            tables[config.table][1].append(item_type)
        else:
            tables[config.table] = (config.draft_status, [item_type])
    return tables
