"""Shared fixtures for the todo web tests."""

import pytest
from fastapi.testclient import TestClient

from todo_web.db import SQLiteRepository
from todo_web.main import create_app
from todo_web.repositories import InMemoryRepository
from todo_web.settings import Settings

TURBO_ACCEPT = "text/vnd.turbo-stream.html, text/html, application/xhtml+xml"


@pytest.fixture(params=["memory", "sqlite"])
def repo(request, tmp_path):
    """Provide an empty record store for each backend."""
    if request.param == "memory":
        store = InMemoryRepository()
    else:
        store = SQLiteRepository(str(tmp_path / "todos.db"))
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite"])
def client(request, tmp_path):
    """Provide a test client whose app lifespan has opened a fresh store."""
    settings = Settings(persistence_backend=request.param, sqlite_db_path=str(tmp_path / "todos.db"))
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def store(client):
    """The record store opened by the client's app."""
    return client.app.state.repository


@pytest.fixture
def turbo_headers():
    return {"Accept": TURBO_ACCEPT}
