from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Generator, List, Mapping, Optional

from .errors import NotFound, StoreError
from .migrations import COLS, migrate
from .models import TodoEntity
from .repositories import Repository
from .schemas import validate_create, validate_update

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


def _format_dt(value: datetime) -> str:
    # Fixed-width timestamps keep lexical ORDER BY consistent with time order
    return value.isoformat(timespec="microseconds")


class SQLiteRepository(Repository):
    """
    SQLite repository implementing the Repository interface.

    Holds a single connection for the lifetime of the store; callers open it
    by constructing the repository and release it with ``close()``.
    """

    def __init__(self, db_path: str) -> None:
        super().__init__()
        if db_path != MEMORY_PATH:
            os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        try:
            self._conn: Optional[sqlite3.Connection] = sqlite3.connect(db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            version = migrate(self._conn)
        except sqlite3.Error as exc:
            raise StoreError(f"Could not open todo store at {db_path}", exc) from exc
        logger.info("Opened sqlite store %s (schema version %s)", db_path, version)

    @contextmanager
    def _tx(self) -> Generator[sqlite3.Connection, None, None]:
        with self._lock:
            if self._conn is None:
                raise StoreError("Todo store is closed")
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as exc:
                logger.exception("sqlite operation failed")
                raise StoreError("Todo store operation failed", exc) from exc

    def _row_to_entity(self, row: sqlite3.Row) -> TodoEntity:
        return {
            "id": int(row[COLS.id]),
            "title": str(row[COLS.title]),
            "completed": bool(row[COLS.completed]),
            "created_at": datetime.fromisoformat(row[COLS.created_at]),
            "updated_at": datetime.fromisoformat(row[COLS.updated_at]),
        }

    def _fetch(self, conn: sqlite3.Connection, todo_id: int) -> TodoEntity:
        row = conn.execute(f"SELECT * FROM {COLS.table} WHERE {COLS.id} = ?", (todo_id,)).fetchone()
        if row is None:
            raise NotFound(todo_id)
        return self._row_to_entity(row)

    def create(self, fields: Mapping[str, Any]) -> TodoEntity:
        data = validate_create(fields)
        with self._tx() as conn:
            now = _format_dt(self._now())
            cur = conn.execute(
                f"""
                INSERT INTO {COLS.table} ({COLS.title}, {COLS.completed}, {COLS.created_at}, {COLS.updated_at})
                VALUES (?, ?, ?, ?)
                """,
                (data.title, 1 if data.completed else 0, now, now),
            )
            return self._fetch(conn, int(cur.lastrowid))

    def find(self, todo_id: int) -> TodoEntity:
        with self._tx() as conn:
            return self._fetch(conn, todo_id)

    def update(self, todo_id: int, fields: Mapping[str, Any]) -> TodoEntity:
        with self._tx() as conn:
            current = self._fetch(conn, todo_id)
            changes = validate_update(fields).changes()

            title = changes.get("title", current["title"])
            completed = changes.get("completed", current["completed"])
            conn.execute(
                f"""
                UPDATE {COLS.table}
                SET {COLS.title} = ?, {COLS.completed} = ?, {COLS.updated_at} = ?
                WHERE {COLS.id} = ?
                """,
                (title, 1 if completed else 0, _format_dt(self._now()), todo_id),
            )
            return self._fetch(conn, todo_id)

    def delete(self, todo_id: int) -> None:
        with self._tx() as conn:
            cur = conn.execute(f"DELETE FROM {COLS.table} WHERE {COLS.id} = ?", (todo_id,))
            if cur.rowcount == 0:
                raise NotFound(todo_id)

    def list(self, completed: Optional[bool] = None) -> List[TodoEntity]:
        where_sql = ""
        params: list = []
        if completed is not None:
            where_sql = f"WHERE {COLS.completed} = ?"
            params.append(1 if completed else 0)

        with self._tx() as conn:
            rows = conn.execute(
                f"""
                SELECT * FROM {COLS.table}
                {where_sql}
                ORDER BY {COLS.created_at} DESC, {COLS.id} DESC
                """,
                params,
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("Closed sqlite store %s", self._db_path)
