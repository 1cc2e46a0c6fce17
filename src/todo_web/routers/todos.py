from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from ..errors import ValidationError
from ..models import TodoEntity
from ..rendering import SUMMARY_ID, render_summary, render_todo, templates
from ..repositories import Repository
from ..schemas import TodoForm
from ..streams import (
    LIST_CONTAINER_ID,
    TURBO_STREAM_MEDIA_TYPE,
    ResponseMode,
    StreamAction,
    dom_id,
    negotiate,
    render_stream,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/todos",
    tags=["todos"],
)

LIST_PATH = "/todos"

NOTICE_CREATED = "Todo was successfully created."
NOTICE_UPDATED = "Todo was successfully updated."
NOTICE_DESTROYED = "Todo was successfully destroyed."
_NOTICES = frozenset({NOTICE_CREATED, NOTICE_UPDATED, NOTICE_DESTROYED})

_FILTERS = {"all": None, "pending": False, "completed": True}
_TRUTHY = {"1", "true", "on", "yes"}
_FORM_KEYS = ("title", "completed", "_method", "filter")
JSON_MEDIA_TYPE = "application/json"


def _checked(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value if value is not None else "").strip().lower() in _TRUTHY


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _filter_name(value: Any) -> str:
    name = _text(value)
    return name if name in _FILTERS else "all"


def _matches(todo: TodoEntity, filter_name: str) -> bool:
    wanted = _FILTERS[filter_name]
    return wanted is None or todo["completed"] == wanted


def get_repo(request: Request) -> Repository:
    """
    Dependency returning the store opened by the application lifespan.
    """
    return request.app.state.repository


def response_mode(accept: Optional[str] = Header(None)) -> ResponseMode:
    """
    Dependency deciding, once per request, between DOM-patch and full-page responses.
    """
    return negotiate(accept)


async def form_fields(request: Request) -> Dict[str, Any]:
    """
    Dependency returning the submitted todo fields.

    Form bodies are read directly so an empty title stays an empty string
    rather than being treated as omitted. A repeated key (hidden "0" followed
    by a checked checkbox) resolves to its last value. JSON object bodies are
    passed through with their raw values, so booleans and nulls reach the
    validators unchanged.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.split(";")[0].strip().lower() == JSON_MEDIA_TYPE:
        try:
            payload = await request.json()
        except ValueError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed JSON body")
        if not isinstance(payload, dict):
            return {}
        return {key: payload[key] for key in _FORM_KEYS if key in payload}
    form = await request.form()
    return {key: str(form[key]) for key in _FORM_KEYS if key in form}


def _fields(form: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in form.items() if k in {"title", "completed"}}


def _stream(actions: List[StreamAction]) -> Response:
    return Response(content=render_stream(actions), media_type=TURBO_STREAM_MEDIA_TYPE)


def _redirect(notice: Optional[str] = None, filter_name: str = "all") -> RedirectResponse:
    params: Dict[str, str] = {}
    if filter_name != "all":
        params["filter"] = filter_name
    if notice:
        params["notice"] = notice
    url = f"{LIST_PATH}?{urlencode(params)}" if params else LIST_PATH
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


def _render_index(
    request: Request,
    repo: Repository,
    form: TodoForm,
    status_code: int = status.HTTP_200_OK,
    notice: Optional[str] = None,
    filter_name: str = "all",
) -> HTMLResponse:
    total, completed = repo.counts()
    return templates.TemplateResponse(
        request,
        "todos/index.html",
        {
            "todos": repo.list(completed=_FILTERS[filter_name]),
            "form": form,
            "notice": notice,
            "filter_name": filter_name,
            "total_count": total,
            "completed_count": completed,
        },
        status_code=status_code,
    )


def _render_edit(request: Request, form: TodoForm, status_code: int = status.HTTP_200_OK) -> HTMLResponse:
    return templates.TemplateResponse(request, "todos/edit.html", {"form": form}, status_code=status_code)


# PUBLIC_INTERFACE
@router.get("", response_class=HTMLResponse, summary="List Todos")
def list_todos(
    request: Request,
    notice: Optional[str] = Query(None, description="Flash message shown above the list"),
    filter_name: str = Query("all", alias="filter", description="One of all, pending, completed"),
    repo: Repository = Depends(get_repo),
) -> HTMLResponse:
    """
    Render every todo newest first along with a blank creation form.

    Only the notices this router issues are displayed; any other text is dropped.
    """
    if notice not in _NOTICES:
        notice = None
    return _render_index(request, repo, TodoForm.blank(), notice=notice, filter_name=_filter_name(filter_name))


# PUBLIC_INTERFACE
@router.post(
    "",
    summary="Create Todo",
    responses={
        200: {"description": "Todo created; DOM-patch instructions"},
        303: {"description": "Todo created; redirect to the list"},
        422: {"description": "Validation error; list page with the form re-rendered"},
    },
)
def create_todo(
    request: Request,
    form: Dict[str, Any] = Depends(form_fields),
    mode: ResponseMode = Depends(response_mode),
    repo: Repository = Depends(get_repo),
) -> Response:
    """
    Create a todo. On validation failure the list page is rendered at 422
    with the submitted input preserved.

    On a filtered page a new (pending) todo is only prepended when the
    filter shows pending todos.
    """
    filter_name = _filter_name(form.get("filter"))
    try:
        todo = repo.create(_fields(form))
    except ValidationError as exc:
        logger.info("Rejected todo create: %s", exc)
        todo_form = TodoForm(
            title=_text(form.get("title")),
            completed=_checked(form.get("completed")),
            errors=exc.errors,
        )
        return _render_index(request, repo, todo_form, status_code=422, filter_name=filter_name)

    logger.info("Created todo %s", todo["id"])
    if mode is ResponseMode.PARTIAL:
        actions = [StreamAction.replace(SUMMARY_ID, render_summary(repo))]
        if _matches(todo, filter_name):
            actions.insert(0, StreamAction.prepend(LIST_CONTAINER_ID, render_todo(todo, filter_name)))
        return _stream(actions)
    return _redirect(NOTICE_CREATED, filter_name)


# PUBLIC_INTERFACE
@router.get("/{todo_id}/edit", response_class=HTMLResponse, summary="Edit Todo form")
def edit_todo(request: Request, todo_id: int, repo: Repository = Depends(get_repo)) -> HTMLResponse:
    """
    Render the edit form for a single todo, wrapped in a frame scoped to that item.
    """
    todo = repo.find(todo_id)
    return _render_edit(request, TodoForm.from_entity(todo))


def _update(
    request: Request,
    todo_id: int,
    form: Dict[str, Any],
    mode: ResponseMode,
    repo: Repository,
) -> Response:
    current = repo.find(todo_id)
    try:
        todo = repo.update(todo_id, _fields(form))
    except ValidationError as exc:
        logger.info("Rejected todo %s update: %s", todo_id, exc)
        todo_form = TodoForm(
            id=todo_id,
            title=_text(form.get("title", current["title"])),
            completed=_checked(form["completed"]) if "completed" in form else current["completed"],
            errors=exc.errors,
        )
        return _render_edit(request, todo_form, status_code=422)

    logger.info("Updated todo %s", todo_id)
    if mode is ResponseMode.PARTIAL:
        return _stream(
            [
                StreamAction.replace(dom_id(todo), render_todo(todo)),
                StreamAction.replace(SUMMARY_ID, render_summary(repo)),
            ]
        )
    return _redirect(NOTICE_UPDATED)


def _destroy(todo_id: int, mode: ResponseMode, repo: Repository) -> Response:
    repo.delete(todo_id)
    logger.info("Deleted todo %s", todo_id)
    if mode is ResponseMode.PARTIAL:
        return _stream(
            [
                StreamAction.remove(dom_id(todo_id)),
                StreamAction.replace(SUMMARY_ID, render_summary(repo)),
            ]
        )
    return _redirect(NOTICE_DESTROYED)


# PUBLIC_INTERFACE
@router.patch(
    "/{todo_id}",
    summary="Update Todo",
    responses={
        404: {"description": "Todo not found"},
        422: {"description": "Validation error; edit form re-rendered"},
    },
)
def update_todo(
    request: Request,
    todo_id: int,
    form: Dict[str, Any] = Depends(form_fields),
    mode: ResponseMode = Depends(response_mode),
    repo: Repository = Depends(get_repo),
) -> Response:
    """
    Apply the submitted fields to a todo. Omitted fields keep their values.
    """
    return _update(request, todo_id, form, mode, repo)


# PUBLIC_INTERFACE
@router.delete("/{todo_id}", summary="Delete Todo", responses={404: {"description": "Todo not found"}})
def delete_todo(
    todo_id: int,
    mode: ResponseMode = Depends(response_mode),
    repo: Repository = Depends(get_repo),
) -> Response:
    """
    Delete a todo and remove its markup from the page.
    """
    return _destroy(todo_id, mode, repo)


# PUBLIC_INTERFACE
@router.post(
    "/{todo_id}",
    summary="Update or delete Todo via HTML form",
    description="HTML forms can only POST; the hidden `_method` field selects PATCH or DELETE.",
)
def override_todo(
    request: Request,
    todo_id: int,
    form: Dict[str, Any] = Depends(form_fields),
    mode: ResponseMode = Depends(response_mode),
    repo: Repository = Depends(get_repo),
) -> Response:
    """
    Dispatch a POSTed form to update or delete based on its `_method` field.
    """
    verb = _text(form.get("_method")).strip().lower()
    if verb in {"patch", "put"}:
        return _update(request, todo_id, form, mode, repo)
    if verb == "delete":
        return _destroy(todo_id, mode, repo)
    raise HTTPException(status_code=status.HTTP_405_METHOD_NOT_ALLOWED, detail="Unsupported _method")


# PUBLIC_INTERFACE
@router.api_route("/{todo_id}/toggle", methods=["POST", "PATCH"], summary="Toggle Todo")
def toggle_todo(
    todo_id: int,
    form: Dict[str, Any] = Depends(form_fields),
    mode: ResponseMode = Depends(response_mode),
    repo: Repository = Depends(get_repo),
) -> Response:
    """
    Flip a todo's completed flag. The full-page fallback redirects without a notice.

    When the submitting page is filtered and the todo no longer matches, it
    is removed from the list instead of replaced.
    """
    filter_name = _filter_name(form.get("filter"))
    todo = repo.toggle(todo_id)
    logger.info("Toggled todo %s to completed=%s", todo_id, todo["completed"])
    if mode is ResponseMode.PARTIAL:
        if _matches(todo, filter_name):
            item = StreamAction.replace(dom_id(todo), render_todo(todo, filter_name))
        else:
            item = StreamAction.remove(dom_id(todo))
        return _stream([item, StreamAction.replace(SUMMARY_ID, render_summary(repo))])
    return _redirect(filter_name=filter_name)
