"""
Error taxonomy shared by the record store and the request handlers.

- ValidationError: user-correctable input problem; handlers re-render the form.
- NotFound: the referenced todo does not exist; surfaces as a 404 page.
- StoreError: the persistence layer failed; surfaces as a 500 page.
"""
from __future__ import annotations

from typing import Dict, List, Optional


class TodoError(Exception):
    """Base class for all todo application errors."""


# PUBLIC_INTERFACE
class ValidationError(TodoError):
    """Raised when todo fields fail validation. Carries per-field messages."""

    def __init__(self, errors: Dict[str, List[str]]) -> None:
        self.errors = errors
        super().__init__("; ".join(f"{field} {', '.join(msgs)}" for field, msgs in errors.items()))


# PUBLIC_INTERFACE
class NotFound(TodoError):
    """Raised when a todo id does not exist in the store."""

    def __init__(self, todo_id: int) -> None:
        self.todo_id = todo_id
        super().__init__(f"Todo {todo_id} not found")


# PUBLIC_INTERFACE
class StoreError(TodoError):
    """Raised when the underlying persistence layer is unavailable or fails."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        self.cause = cause
        super().__init__(message)
