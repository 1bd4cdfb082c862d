"""Shared SQLite helpers: WAL mode, busy timeout, row_factory defaults."""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path

DEFAULT_BUSY_TIMEOUT = 10.0


def wal_connect(
    db_path: str | Path,
    row_factory: bool = False,
    timeout: float = DEFAULT_BUSY_TIMEOUT,
) -> sqlite3.Connection:
    """Open SQLite connection with WAL journal mode.

    Args:
        db_path: Path to database file.
        row_factory: If True, set conn.row_factory = sqlite3.Row.
        timeout: Seconds to wait on a locked database before failing.
    """
    conn = sqlite3.connect(str(db_path), timeout=timeout)
    conn.execute("PRAGMA journal_mode=WAL")
    if row_factory:
        conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def transaction(db_path: str | Path, timeout: float = DEFAULT_BUSY_TIMEOUT):
    """Yield a connection inside a BEGIN IMMEDIATE transaction.

    The write lock is taken up front so read-check-write sequences cannot
    interleave with another writer. Commits on success, rolls back on any
    exception and re-raises it.
    """
    conn = wal_connect(db_path, row_factory=True, timeout=timeout)
    conn.isolation_level = None
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")
    finally:
        conn.close()


def dumps(value) -> str | None:
    """Serialize a JSON column value (None stays NULL)."""
    if value is None:
        return None
    return json.dumps(value, default=str)


def loads(raw: str | None, default=None):
    """Deserialize a JSON column value."""
    if not raw:
        return default
    return json.loads(raw)
