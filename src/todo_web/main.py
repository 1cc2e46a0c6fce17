from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

from .errors import NotFound, StoreError
from .logging_utils import configure_logging, get_request_id, reset_request_id, set_request_id
from .rendering import STATIC_DIR, templates
from .repositories import Repository, create_repository
from .routers import todos as todos_router
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "todos",
        "description": "Server-rendered todo list with partial-update (Turbo Stream) responses.",
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the record store at startup and close it at shutdown."""
    settings: Settings = app.state.settings
    logger.info("Starting todo web (backend=%s)", settings.persistence_backend)
    repository: Repository = app.state.repository_factory(settings)
    app.state.repository = repository
    try:
        yield
    finally:
        logger.info("Shutting down todo web")
        repository.close()


async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request_token = set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        reset_request_id(request_token)
    response.headers["X-Request-ID"] = request_id
    return response


async def not_found_handler(request: Request, exc: NotFound):
    logger.warning("Todo %s not found for %s %s", exc.todo_id, request.method, request.url.path)
    return templates.TemplateResponse(
        request,
        "errors/404.html",
        {"message": "The todo you were looking for does not exist."},
        status_code=status.HTTP_404_NOT_FOUND,
    )


async def store_error_handler(request: Request, exc: StoreError):
    request_id = get_request_id()
    logger.error(
        "Store failure on %s %s (request %s): %s",
        request.method,
        request.url.path,
        request_id,
        exc,
        exc_info=exc.cause,
    )
    return templates.TemplateResponse(
        request,
        "errors/500.html",
        {"request_id": request_id},
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return a consistent JSON structure for malformed path or query values.

    Response format:
        {
            "error": "ValidationError",
            "detail": [... pydantic/fastapi error details ...],
            "message": "Request validation failed"
        }
    """
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": exc.errors(),
        },
    )


# PUBLIC_INTERFACE
def create_app(
    settings: Optional[Settings] = None,
    repository_factory: Callable[[Settings], Repository] = create_repository,
) -> FastAPI:
    """
    Build the FastAPI application.

    The record store is not created here; the lifespan builds it with
    ``repository_factory`` when the server starts and closes it on shutdown.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Todo Web",
        description="Server-rendered todo list with partial DOM updates.",
        version="0.1.0",
        openapi_tags=openapi_tags,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.repository_factory = repository_factory

    app.middleware("http")(request_id_middleware)
    app.add_exception_handler(NotFound, not_found_handler)
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    @app.get("/", include_in_schema=False)
    def root() -> RedirectResponse:
        return RedirectResponse(todos_router.LIST_PATH, status_code=status.HTTP_303_SEE_OTHER)

    # PUBLIC_INTERFACE
    @app.get("/health", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"message": "Healthy", "backend": settings.persistence_backend}

    app.include_router(todos_router.router)
    return app


app = create_app()


# PUBLIC_INTERFACE
def run() -> None:
    """Serve the application with uvicorn using HOST/PORT from settings."""
    import uvicorn

    settings = get_settings()
    logger.info("Starting on %s:%s", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    run()
