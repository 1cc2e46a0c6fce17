from __future__ import annotations

from datetime import datetime
from typing import TypedDict


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A lightweight domain model representing a persisted Todo item.

    Fields:
    - id: Unique integer identifier assigned by the store
    - title: Non-blank title, stored exactly as submitted
    - completed: Boolean completion flag
    - created_at: Creation timestamp (datetime)
    - updated_at: Last mutation timestamp (datetime)
    """

    id: int
    title: str
    completed: bool
    created_at: datetime
    updated_at: datetime
