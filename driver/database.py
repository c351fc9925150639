"""Database schema, migrations and connection management for SQLite."""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator, List, Optional, Tuple

from common.logging_config import get_logger
from driver.config import DATABASE_PATH

logger = get_logger(__name__)

BUSY_TIMEOUT_SECONDS = 30.0

# (version, up statements, down statements)
MIGRATIONS: List[Tuple[str, List[str], List[str]]] = [
    (
        "001_initial",
        [
            """
            CREATE TABLE files (
                dirname    TEXT    NOT NULL,
                basename   TEXT    NOT NULL,
                size_bytes INTEGER NOT NULL,
                mtime      TEXT    NOT NULL,
                content    BLOB,
                location   TEXT,
                PRIMARY KEY (dirname, basename)
            )
            """,
            """
            CREATE TABLE segments (
                location   TEXT    NOT NULL,
                number     INTEGER NOT NULL,
                size_bytes INTEGER NOT NULL,
                hash       TEXT    NOT NULL,
                PRIMARY KEY (location, number)
            )
            """,
        ],
        [
            "DROP TABLE files",
            "DROP TABLE segments",
        ],
    ),
]


def _resolve_path(database_path: Optional[str]) -> str:
    return database_path if database_path is not None else DATABASE_PATH


def _ensure_migrations_table(cursor: sqlite3.Cursor) -> None:
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            applied_at TEXT NOT NULL
        )
    """)


def applied_migrations(database_path: Optional[str] = None) -> List[str]:
    with get_db_connection(database_path) as conn:
        cursor = conn.cursor()
        _ensure_migrations_table(cursor)
        cursor.execute("SELECT version FROM schema_migrations ORDER BY version")
        return [row["version"] for row in cursor.fetchall()]


def init_database(database_path: Optional[str] = None) -> None:
    """
    Create the database file if needed and apply pending migrations.
    Safe to call repeatedly; applied migrations are skipped.
    """
    db_path = Path(_resolve_path(database_path))
    db_path.parent.mkdir(parents=True, exist_ok=True)

    with get_db_connection(database_path) as conn:
        conn.execute("PRAGMA journal_mode=WAL")
        cursor = conn.cursor()
        _ensure_migrations_table(cursor)
        cursor.execute("SELECT version FROM schema_migrations")
        done = {row["version"] for row in cursor.fetchall()}

        for version, up_statements, _ in MIGRATIONS:
            if version in done:
                continue
            try:
                for statement in up_statements:
                    cursor.execute(statement)
                cursor.execute(
                    "INSERT INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(timezone.utc).isoformat()),
                )
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                logger.error(f"Migration {version} failed: {e}", exc_info=True)
                raise
            logger.info(f"Applied migration {version}")


def rollback_database(database_path: Optional[str] = None) -> None:
    """
    Revert every applied migration, newest first.
    """
    with get_db_connection(database_path) as conn:
        cursor = conn.cursor()
        _ensure_migrations_table(cursor)
        cursor.execute("SELECT version FROM schema_migrations")
        done = {row["version"] for row in cursor.fetchall()}

        for version, _, down_statements in reversed(MIGRATIONS):
            if version not in done:
                continue
            for statement in down_statements:
                cursor.execute(statement)
            cursor.execute("DELETE FROM schema_migrations WHERE version = ?", (version,))
            conn.commit()
            logger.info(f"Reverted migration {version}")


@contextmanager
def get_db_connection(database_path: Optional[str] = None) -> Generator[sqlite3.Connection, None, None]:
    """
    Context manager for database connections.
    """
    conn = sqlite3.connect(_resolve_path(database_path), timeout=BUSY_TIMEOUT_SECONDS)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()
