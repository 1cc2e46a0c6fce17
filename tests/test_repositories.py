import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from todo_web.db import SQLiteRepository
from todo_web.errors import NotFound, StoreError, ValidationError
from todo_web.repositories import InMemoryRepository, create_repository
from todo_web.settings import Settings


def _fall_back_clock(readings):
    """A clock during a DST fall-back: local wall time repeats an hour while UTC moves on."""

    class Clock(datetime):
        @classmethod
        def now(cls, tz=None):
            utc, local = readings.pop(0)
            return utc.astimezone(tz) if tz is not None else local

    return Clock


class TestCreate:
    @pytest.mark.parametrize("title", ["Buy milk", "  padded  ", "ünïcode ✓", "x"])
    def test_create_then_list_includes_todo(self, repo, title):
        created = repo.create({"title": title})
        listed = repo.list()
        assert [(t["id"], t["title"], t["completed"]) for t in listed] == [(created["id"], title, False)]
        assert created["created_at"] == created["updated_at"]

    def test_create_respects_completed_flag(self, repo):
        assert repo.create({"title": "done", "completed": True})["completed"] is True

    @pytest.mark.parametrize("fields", [{}, {"title": ""}, {"title": "   "}, {"title": None}])
    def test_blank_title_leaves_store_unchanged(self, repo, fields):
        with pytest.raises(ValidationError) as excinfo:
            repo.create(fields)
        assert excinfo.value.errors == {"title": ["can't be blank"]}
        assert repo.list() == []

    def test_ids_are_unique(self, repo):
        ids = {repo.create({"title": f"t{i}"})["id"] for i in range(5)}
        assert len(ids) == 5


class TestFindUpdateDelete:
    def test_find_missing_raises_not_found(self, repo):
        with pytest.raises(NotFound) as excinfo:
            repo.find(999)
        assert excinfo.value.todo_id == 999

    def test_update_applies_only_provided_fields(self, repo):
        todo = repo.create({"title": "Partial", "completed": True})
        updated = repo.update(todo["id"], {"title": "Partial Updated"})
        assert updated["title"] == "Partial Updated"
        assert updated["completed"] is True
        assert updated["created_at"] == todo["created_at"]
        assert updated["updated_at"] >= todo["updated_at"]

    def test_update_blank_title_is_rejected(self, repo):
        todo = repo.create({"title": "Keep"})
        with pytest.raises(ValidationError):
            repo.update(todo["id"], {"title": " "})
        assert repo.find(todo["id"])["title"] == "Keep"

    def test_update_missing_raises_not_found(self, repo):
        with pytest.raises(NotFound):
            repo.update(42, {"title": "Nope"})

    def test_delete_then_find_raises_not_found(self, repo):
        todo = repo.create({"title": "ToDelete"})
        repo.delete(todo["id"])
        with pytest.raises(NotFound):
            repo.find(todo["id"])
        with pytest.raises(NotFound):
            repo.delete(todo["id"])

    def test_returned_records_are_copies(self, repo):
        todo = repo.create({"title": "Original"})
        todo["title"] = "Mutated"
        assert repo.find(todo["id"])["title"] == "Original"


class TestToggle:
    def test_toggle_is_its_own_inverse(self, repo):
        todo = repo.create({"title": "Flip"})
        once = repo.toggle(todo["id"])
        assert once["completed"] is True
        twice = repo.toggle(todo["id"])
        assert twice["completed"] is False
        assert twice["updated_at"] >= once["updated_at"]

    def test_toggle_missing_raises_not_found(self, repo):
        with pytest.raises(NotFound):
            repo.toggle(7)


class TestListing:
    def test_newest_first(self, repo):
        created = [repo.create({"title": f"Task {i}"}) for i in range(6)]
        listed = repo.list()
        assert [t["id"] for t in listed] == [t["id"] for t in reversed(created)]
        created_ts = [t["created_at"] for t in listed]
        assert created_ts == sorted(created_ts, reverse=True)

    def test_new_todo_is_always_first(self, repo):
        repo.create({"title": "old"})
        newest = repo.create({"title": "new"})
        assert repo.list()[0]["id"] == newest["id"]

    def test_timestamps_are_utc(self, repo):
        todo = repo.create({"title": "stamped"})
        stored = repo.find(todo["id"])
        assert stored["created_at"].utcoffset() == timedelta(0)
        assert stored["updated_at"].utcoffset() == timedelta(0)

    def test_order_survives_local_clock_falling_back(self, repo, monkeypatch):
        readings = [
            (datetime(2026, 11, 1, 5, 45, tzinfo=timezone.utc), datetime(2026, 11, 1, 1, 45)),
            (datetime(2026, 11, 1, 6, 10, tzinfo=timezone.utc), datetime(2026, 11, 1, 1, 10)),
        ]
        monkeypatch.setattr("todo_web.repositories.datetime", _fall_back_clock(readings))
        repo.create({"title": "older"})
        newer = repo.create({"title": "newer"})
        assert [t["title"] for t in repo.list()] == ["newer", "older"]
        assert repo.list()[0]["id"] == newer["id"]

    def test_filter_by_completed(self, repo):
        done = repo.create({"title": "done"})
        repo.create({"title": "open"})
        repo.toggle(done["id"])
        assert [t["title"] for t in repo.list(completed=True)] == ["done"]
        assert [t["title"] for t in repo.list(completed=False)] == ["open"]
        assert repo.counts() == (2, 1)


class TestScenario:
    def test_buy_milk(self, repo):
        todo = repo.create({"title": "Buy milk"})
        assert [(t["title"], t["completed"]) for t in repo.list()] == [("Buy milk", False)]
        repo.toggle(todo["id"])
        assert repo.list()[0]["completed"] is True
        repo.update(todo["id"], {"title": "Buy oat milk"})
        assert [(t["title"], t["completed"]) for t in repo.list()] == [("Buy oat milk", True)]
        repo.delete(todo["id"])
        assert repo.list() == []


class TestSQLiteRepository:
    def test_data_survives_reopen(self, tmp_path):
        path = str(tmp_path / "nested" / "todos.db")
        first = SQLiteRepository(path)
        todo = first.create({"title": "persisted"})
        first.close()

        second = SQLiteRepository(path)
        try:
            assert second.find(todo["id"])["title"] == "persisted"
        finally:
            second.close()

    def test_in_memory_database(self):
        store = SQLiteRepository(":memory:")
        store.create({"title": "ephemeral"})
        assert len(store.list()) == 1
        store.close()

    def test_closed_store_raises_store_error(self):
        store = SQLiteRepository(":memory:")
        store.close()
        store.close()
        with pytest.raises(StoreError):
            store.list()

    def test_sqlite_failures_become_store_errors(self, tmp_path):
        store = SQLiteRepository(str(tmp_path / "todos.db"))
        store._conn.execute("DROP TABLE todos")
        with pytest.raises(StoreError) as excinfo:
            store.list()
        assert isinstance(excinfo.value.cause, sqlite3.Error)
        store.close()


class TestFactory:
    def test_memory_backend(self):
        assert isinstance(create_repository(Settings(persistence_backend="memory")), InMemoryRepository)

    def test_sqlite_backend(self, tmp_path):
        store = create_repository(Settings(persistence_backend="sqlite", sqlite_db_path=str(tmp_path / "t.db")))
        try:
            assert isinstance(store, SQLiteRepository)
        finally:
            store.close()
