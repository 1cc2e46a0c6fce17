from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models import TodoEntity

BLANK_MESSAGE = "can't be blank"
INVALID_MESSAGE = "is invalid"


def _require_present(value: str) -> str:
    # Whitespace-only titles count as blank; the value itself is stored untouched.
    if not value.strip():
        raise ValueError(BLANK_MESSAGE)
    return value


# PUBLIC_INTERFACE
class TodoCreate(BaseModel):
    """
    Schema for creating a new Todo item.
    """

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={"example": {"title": "Buy milk", "completed": False}},
    )

    title: str = Field(..., description="Title of the todo item; must not be blank")
    completed: bool = Field(default=False, description="Completion status flag")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _require_present(v)


# PUBLIC_INTERFACE
class TodoUpdate(BaseModel):
    """
    Schema for updating an existing Todo item.
    All fields are optional; only provided fields will be updated.
    """

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={"example": {"title": "Buy oat milk", "completed": True}},
    )

    title: Optional[str] = Field(default=None, description="Title of the todo item; must not be blank")
    completed: Optional[bool] = Field(default=None, description="Completion status flag")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _require_present(v)

    def changes(self) -> Dict[str, Any]:
        """Return only the fields that were explicitly provided with a value."""
        return self.model_dump(exclude_unset=True, exclude_none=True)


# PUBLIC_INTERFACE
class TodoForm(BaseModel):
    """
    Form state for rendering the creation and edit forms.

    A blank form backs the "new todo" form on the list page; a form built from
    rejected input keeps what the user typed alongside the error messages.
    """

    id: Optional[int] = None
    title: str = ""
    completed: bool = False
    errors: Dict[str, List[str]] = Field(default_factory=dict)

    @property
    def persisted(self) -> bool:
        return self.id is not None

    @property
    def full_messages(self) -> List[str]:
        return [f"{field.capitalize()} {msg}" for field, msgs in self.errors.items() for msg in msgs]

    @classmethod
    def blank(cls) -> "TodoForm":
        return cls()

    @classmethod
    def from_entity(cls, entity: TodoEntity) -> "TodoForm":
        return cls(id=entity["id"], title=entity["title"], completed=entity["completed"])


def _convert_errors(exc: PydanticValidationError) -> ValidationError:
    errors: Dict[str, List[str]] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err.get("loc") else "base"
        message = BLANK_MESSAGE if field == "title" else INVALID_MESSAGE
        bucket = errors.setdefault(field, [])
        if message not in bucket:
            bucket.append(message)
    return ValidationError(errors)


# PUBLIC_INTERFACE
def validate_create(fields: Mapping[str, Any]) -> TodoCreate:
    """Validate creation fields, raising errors.ValidationError on failure."""
    try:
        return TodoCreate.model_validate(dict(fields))
    except PydanticValidationError as exc:
        raise _convert_errors(exc) from exc


# PUBLIC_INTERFACE
def validate_update(fields: Mapping[str, Any]) -> TodoUpdate:
    """Validate update fields, raising errors.ValidationError on failure."""
    try:
        return TodoUpdate.model_validate(dict(fields))
    except PydanticValidationError as exc:
        raise _convert_errors(exc) from exc
