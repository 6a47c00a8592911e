"""
Database connection, initialization and transactions.
"""
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from soccer_fantasy.config import get_settings
from soccer_fantasy.logging_config import get_logger

from .schema import all_schema_sql

logger = get_logger(__name__)


def _run_membership_marker_migration(conn: sqlite3.Connection) -> None:
    """Add last_recomputed_gameweek_id to memberships (cache marker for standings)."""
    cur = conn.execute("PRAGMA table_info(memberships)")
    cols = [row[1] for row in cur.fetchall()]
    if "last_recomputed_gameweek_id" not in cols:
        conn.execute("ALTER TABLE memberships ADD COLUMN last_recomputed_gameweek_id TEXT")


# Default DB path (project root / data / fantasy.db)
def _default_db_path() -> Path:
    return Path(__file__).resolve().parent.parent.parent / "data" / "fantasy.db"


_db_path: Path | None = None


def set_db_path(path: str | Path) -> None:
    """Set the database path. Call before first get_connection if not using default."""
    global _db_path
    _db_path = Path(path)


def get_db_path() -> Path:
    """Return the current database path: explicit, then FANTASY_DB_PATH, then default."""
    if _db_path is not None:
        return _db_path
    configured = get_settings().db_path
    if configured is not None:
        return configured
    return _default_db_path()


def get_connection(db_path: str | Path | None = None) -> sqlite3.Connection:
    """
    Return a new SQLite connection.
    Use as context manager or ensure close() is called.
    """
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    One all-or-nothing unit of work: commit on success, roll back on any exception.
    Repositories never commit; services wrap each logical operation in this.
    BEGIN IMMEDIATE takes the write lock before the first read, so check-then-write
    sequences (capacity, code uniqueness) see no interleaved writer.
    Nested use joins the outer transaction; only the outermost commits.
    """
    if conn.in_transaction:
        yield conn
        return
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


def init_db(db_path: str | Path | None = None) -> None:
    """Create or ensure all tables exist, then apply column migrations."""
    path = Path(db_path) if db_path else get_db_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(all_schema_sql())
        _run_membership_marker_migration(conn)
        conn.commit()
    finally:
        conn.close()
    logger.info("Database ready at %s", path)
