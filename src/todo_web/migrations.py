"""
On-disk shape of the todos table.

Migrations are applied in order and tracked through SQLite's
``PRAGMA user_version``, so running ``migrate`` against an up-to-date
database is a no-op.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from typing import Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "todos"
    id: str = "id"
    title: str = "title"
    completed: str = "completed"
    created_at: str = "created_at"
    updated_at: str = "updated_at"


COLS = _Cols()


@dataclass(frozen=True)
class Migration:
    version: int
    name: str
    statements: Tuple[str, ...]


MIGRATIONS: Tuple[Migration, ...] = (
    Migration(
        version=1,
        name="create_todos",
        statements=(
            f"""
            CREATE TABLE IF NOT EXISTS {COLS.table} (
                {COLS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                {COLS.title} TEXT NOT NULL,
                {COLS.completed} INTEGER NOT NULL DEFAULT 0,
                {COLS.created_at} TEXT NOT NULL,
                {COLS.updated_at} TEXT NOT NULL
            )
            """,
            f"CREATE INDEX IF NOT EXISTS idx_{COLS.table}_created_at ON {COLS.table}({COLS.created_at})",
        ),
    ),
)


# PUBLIC_INTERFACE
def current_version(conn: sqlite3.Connection) -> int:
    """Return the schema version recorded in the database."""
    row = conn.execute("PRAGMA user_version").fetchone()
    return int(row[0]) if row else 0


# PUBLIC_INTERFACE
def migrate(conn: sqlite3.Connection) -> int:
    """
    Apply every pending migration inside a transaction and return the
    resulting schema version.
    """
    version = current_version(conn)
    for migration in MIGRATIONS:
        if migration.version <= version:
            continue
        logger.info("Applying migration %s_%s", migration.version, migration.name)
        with conn:
            for statement in migration.statements:
                conn.execute(statement)
            # PRAGMA does not accept bound parameters
            conn.execute(f"PRAGMA user_version = {int(migration.version)}")
        version = migration.version
    return version
