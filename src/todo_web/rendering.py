from __future__ import annotations

from pathlib import Path
from typing import Any

from fastapi.templating import Jinja2Templates

from .models import TodoEntity
from .repositories import Repository
from .streams import LIST_CONTAINER_ID, dom_id

PACKAGE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = PACKAGE_DIR / "templates"
STATIC_DIR = PACKAGE_DIR / "static"

SUMMARY_ID = "todos_summary"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.globals.update(dom_id=dom_id, list_container_id=LIST_CONTAINER_ID, summary_id=SUMMARY_ID)


# PUBLIC_INTERFACE
def render_partial(name: str, **context: Any) -> str:
    """Render a template fragment outside of a full-page response."""
    return templates.get_template(name).render(**context)


def render_todo(todo: TodoEntity, filter_name: str = "all") -> str:
    return render_partial("todos/_todo.html", todo=todo, filter_name=filter_name)


def render_summary(repo: Repository) -> str:
    total, completed = repo.counts()
    return render_partial("todos/_summary.html", total_count=total, completed_count=completed)
