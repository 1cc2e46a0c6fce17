from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import NotFound
from .models import TodoEntity
from .schemas import validate_create, validate_update
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


def _newest_first(item: TodoEntity) -> Tuple[datetime, int]:
    # id breaks ties between todos created within the same clock tick
    return item["created_at"], item["id"]


# PUBLIC_INTERFACE
class Repository(ABC):
    """
    Abstract record store contract for todo storage backends.

    Validation happens here, so no backend ever persists a todo with a blank
    title. Every mutation refreshes ``updated_at``. Access is serialised with
    a re-entrant lock; concurrent writers to the same todo are last-write-wins.
    """

    def __init__(self) -> None:
        self._lock = RLock()

    def _now(self) -> datetime:
        # UTC keeps created_at monotonic across local clock changes (DST).
        return datetime.now(timezone.utc)

    @abstractmethod
    def create(self, fields: Mapping[str, Any]) -> TodoEntity:
        """Validate and persist a new todo. Raises ValidationError."""

    @abstractmethod
    def find(self, todo_id: int) -> TodoEntity:
        """Return a todo by id. Raises NotFound."""

    @abstractmethod
    def update(self, todo_id: int, fields: Mapping[str, Any]) -> TodoEntity:
        """Apply the provided fields to a todo. Raises NotFound or ValidationError."""

    @abstractmethod
    def delete(self, todo_id: int) -> None:
        """Remove a todo. Raises NotFound."""

    @abstractmethod
    def list(self, completed: Optional[bool] = None) -> List[TodoEntity]:
        """Return todos newest first, optionally filtered by completion status."""

    def toggle(self, todo_id: int) -> TodoEntity:
        """Flip the completed flag of a todo and return the updated record."""
        with self._lock:
            current = self.find(todo_id)
            return self.update(todo_id, {"completed": not current["completed"]})

    def counts(self) -> Tuple[int, int]:
        """Return (total, completed) counts."""
        items = self.list()
        return len(items), sum(1 for t in items if t["completed"])

    def close(self) -> None:
        """Release backend resources. Safe to call more than once."""


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        super().__init__()
        self._items: Dict[int, TodoEntity] = {}
        self._next_id = 1

    def _allocate_id(self) -> int:
        with self._lock:
            i = self._next_id
            self._next_id += 1
            return i

    def create(self, fields: Mapping[str, Any]) -> TodoEntity:
        data = validate_create(fields)
        with self._lock:
            now = self._now()
            entity: TodoEntity = {
                "id": self._allocate_id(),
                "title": data.title,
                "completed": data.completed,
                "created_at": now,
                "updated_at": now,
            }
            self._items[entity["id"]] = entity
            return entity.copy()

    def find(self, todo_id: int) -> TodoEntity:
        with self._lock:
            item = self._items.get(todo_id)
            if item is None:
                raise NotFound(todo_id)
            return item.copy()

    def update(self, todo_id: int, fields: Mapping[str, Any]) -> TodoEntity:
        with self._lock:
            existing = self._items.get(todo_id)
            if existing is None:
                raise NotFound(todo_id)
            changes = validate_update(fields).changes()

            updated = existing.copy()
            updated.update(changes)  # type: ignore[typeddict-item]
            updated["updated_at"] = self._now()

            self._items[todo_id] = updated
            return updated.copy()

    def delete(self, todo_id: int) -> None:
        with self._lock:
            if self._items.pop(todo_id, None) is None:
                raise NotFound(todo_id)

    def list(self, completed: Optional[bool] = None) -> List[TodoEntity]:
        with self._lock:
            items = list(self._items.values())
            if completed is not None:
                items = [t for t in items if t["completed"] == completed]
            # Return copies to avoid external mutation
            return [t.copy() for t in sorted(items, key=_newest_first, reverse=True)]


# PUBLIC_INTERFACE
def create_repository(settings: Optional[Settings] = None) -> Repository:
    """
    Build the configured repository.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository at settings.sqlite_db_path
    """
    settings = settings or get_settings()
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        logger.info("Using sqlite store at %s", settings.sqlite_db_path)
        return SQLiteRepository(settings.sqlite_db_path)
    logger.info("Using in-memory store")
    return InMemoryRepository()
