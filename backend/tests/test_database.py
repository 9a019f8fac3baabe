"""
Tests for database.py - owner-scoped task CRUD, filtering/sorting, windows and stats.
"""
import pytest
import sqlite3
import sys
import os
from datetime import datetime

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
import database
from database import (
    create_task_db,
    get_task_db,
    list_tasks_db,
    update_task_db,
    delete_task_db,
    get_tasks_in_window,
    get_task_stats,
    normalize_due_date,
    normalize_priority,
    normalize_tags,
)
from errors import StoreError, ValidationError
from models import TaskFilter

USER = "user-1"
OTHER = "user-2"


class TestTaskCRUD:
    """Tests for basic task create/read/update/delete operations."""

    def test_create_task_basic(self, test_db):
        """Create a simple task with defaults."""
        task = create_task_db(USER, "Buy groceries", task_id="id-1")

        assert task.id == "id-1"
        assert task.user_id == USER
        assert task.title == "Buy groceries"
        assert task.status == "pending"
        assert task.priority == 2
        assert task.tags == []
        assert task.due_date is None
        assert task.created_at == task.updated_at

    def test_create_task_trims_title(self, test_db):
        task = create_task_db(USER, "   Write report  ")
        assert task.title == "Write report"

    def test_create_task_blank_title_rejected(self, test_db):
        with pytest.raises(ValidationError) as exc_info:
            create_task_db(USER, "   ")
        assert exc_info.value.code == "INVALID_TITLE"

    def test_create_task_title_too_long_rejected(self, test_db):
        with pytest.raises(ValidationError):
            create_task_db(USER, "x" * 201)

    def test_create_task_description_too_long_rejected(self, test_db):
        with pytest.raises(ValidationError) as exc_info:
            create_task_db(USER, "Task", description="d" * 1001)
        assert exc_info.value.code == "INVALID_DESCRIPTION"

    def test_create_task_coerces_priority_and_tags(self, test_db):
        task = create_task_db(USER, "Task", priority=7, tags=[" work ", "", 3, "health", "study", "extra"])

        assert task.priority == 2
        assert task.tags == ["work", "health", "study"]

    def test_create_task_persists_tags(self, test_db):
        create_task_db(USER, "회의 준비", tags=["업무"], task_id="id-1")
        assert get_task_db(USER, "id-1").tags == ["업무"]

    def test_create_task_with_due_datetime(self, test_db):
        task = create_task_db(USER, "Dentist", due_date="2026-10-20T15:00:00")
        assert task.due_date == "2026-10-20T15:00"

    def test_get_task_scoped_to_owner(self, test_db):
        create_task_db(USER, "Mine", task_id="id-1")

        assert get_task_db(USER, "id-1") is not None
        assert get_task_db(OTHER, "id-1") is None

    def test_update_task_fields(self, test_db):
        create_task_db(USER, "Old title", task_id="id-1", now=datetime(2026, 10, 18, 9, 0))
        updated = update_task_db(
            USER, "id-1", now=datetime(2026, 10, 18, 10, 0),
            title="New title", status="completed", priority=1,
        )

        assert updated.title == "New title"
        assert updated.status == "completed"
        assert updated.priority == 1
        assert updated.updated_at == "2026-10-18T10:00:00"
        assert updated.created_at == "2026-10-18T09:00:00"

    def test_update_without_changes_keeps_updated_at(self, test_db):
        create_task_db(USER, "Same", task_id="id-1", now=datetime(2026, 10, 18, 9, 0))
        updated = update_task_db(USER, "id-1", now=datetime(2026, 10, 18, 10, 0), title="Same")

        assert updated.updated_at == "2026-10-18T09:00:00"

    def test_update_clears_due_date(self, test_db):
        create_task_db(USER, "Task", due_date="2026-10-20", task_id="id-1")
        updated = update_task_db(USER, "id-1", due_date=None)
        assert updated.due_date is None

    def test_update_invalid_status_rejected(self, test_db):
        create_task_db(USER, "Task", task_id="id-1")
        with pytest.raises(ValidationError):
            update_task_db(USER, "id-1", status="in_progress")

    def test_update_null_priority_keeps_value(self, test_db):
        create_task_db(USER, "Task", priority=1, task_id="id-1")
        updated = update_task_db(USER, "id-1", priority=None, title="Renamed")

        assert updated.priority == 1
        assert updated.title == "Renamed"

    def test_update_task_not_owned(self, test_db):
        """Updating another user's task returns None and leaves the row alone."""
        create_task_db(USER, "Mine", task_id="id-1")

        assert update_task_db(OTHER, "id-1", title="Hijacked") is None
        assert get_task_db(USER, "id-1").title == "Mine"

    def test_update_task_not_found(self, test_db):
        assert update_task_db(USER, "nonexistent", title="New title") is None

    def test_delete_task(self, test_db):
        create_task_db(USER, "Delete me", task_id="id-1")
        assert delete_task_db(USER, "id-1") is True
        assert list_tasks_db(USER) == []

    def test_delete_task_not_owned(self, test_db):
        create_task_db(USER, "Mine", task_id="id-1")
        assert delete_task_db(OTHER, "id-1") is False
        assert get_task_db(USER, "id-1") is not None


class TestListTasks:
    """Tests for filter and sort translation."""

    @pytest.fixture
    def tasks(self, test_db):
        create_task_db(USER, "Write report", priority=1, due_date="2026-10-20",
                       task_id="a", now=datetime(2026, 10, 18, 9, 0))
        create_task_db(USER, "buy milk", priority=3, status="completed",
                       task_id="b", now=datetime(2026, 10, 18, 10, 0))
        create_task_db(USER, "Review PR", priority=2, due_date="2026-10-19T09:00",
                       task_id="c", now=datetime(2026, 10, 18, 11, 0))
        create_task_db(OTHER, "Someone else's report", task_id="d")

    def test_default_sort_newest_first(self, tasks):
        assert [t.id for t in list_tasks_db(USER)] == ["c", "b", "a"]

    def test_only_own_tasks(self, tasks):
        assert all(t.user_id == USER for t in list_tasks_db(USER))

    def test_search_case_insensitive(self, tasks):
        result = list_tasks_db(USER, TaskFilter(search="REPORT"))
        assert [t.id for t in result] == ["a"]

    def test_search_escapes_wildcards(self, tasks):
        assert list_tasks_db(USER, TaskFilter(search="%")) == []

    def test_status_filter(self, tasks):
        result = list_tasks_db(USER, TaskFilter(status="completed"))
        assert [t.id for t in result] == ["b"]

    def test_priority_filter(self, tasks):
        result = list_tasks_db(USER, TaskFilter(priority="1"))
        assert [t.id for t in result] == ["a"]

    def test_sort_by_priority_asc(self, tasks):
        result = list_tasks_db(USER, TaskFilter(sort_by="priority", sort_order="asc"))
        assert [t.priority for t in result] == [1, 2, 3]

    def test_sort_by_due_puts_missing_last(self, tasks):
        result = list_tasks_db(USER, TaskFilter(sort_by="due", sort_order="asc"))
        assert [t.id for t in result] == ["c", "a", "b"]

    def test_sort_by_title(self, tasks):
        result = list_tasks_db(USER, TaskFilter(sort_by="title", sort_order="asc"))
        assert [t.id for t in result] == ["c", "a", "b"]


class TestWindowsAndStats:

    def test_tasks_in_window_by_created_or_due(self, test_db):
        start, end = datetime(2026, 10, 18), datetime(2026, 10, 19)
        create_task_db(USER, "Created today", task_id="a", now=datetime(2026, 10, 18, 8, 0))
        create_task_db(USER, "Due today", due_date="2026-10-18T17:00", task_id="b",
                       now=datetime(2026, 10, 10, 8, 0))
        create_task_db(USER, "Old", task_id="c", now=datetime(2026, 10, 10, 8, 0))
        create_task_db(USER, "Due tomorrow", due_date="2026-10-19", task_id="d",
                       now=datetime(2026, 10, 10, 8, 0))
        create_task_db(OTHER, "Not mine", task_id="e", now=datetime(2026, 10, 18, 8, 0))

        result = get_tasks_in_window(USER, start, end)
        assert sorted(t.id for t in result) == ["a", "b"]

    def test_task_stats(self, test_db):
        create_task_db(USER, "Done", status="completed")
        create_task_db(USER, "Late", due_date="2026-10-01")
        create_task_db(USER, "Upcoming", due_date="2026-12-01")

        stats = get_task_stats(USER, now=datetime(2026, 10, 18, 12, 0))
        assert stats.total == 3
        assert stats.completed == 1
        assert stats.pending == 2
        assert stats.overdue == 1
        assert stats.completion_rate == 33.33

    def test_task_stats_empty(self, test_db):
        stats = get_task_stats(USER)
        assert stats.total == 0
        assert stats.completion_rate == 0.0


class TestNormalizers:

    def test_priority(self):
        assert normalize_priority(1) == 1
        assert normalize_priority(3) == 3
        assert normalize_priority(0) == 2
        assert normalize_priority("1") == 2
        assert normalize_priority(True) == 2
        assert normalize_priority(None) == 2

    def test_tags(self):
        assert normalize_tags(None) == []
        assert normalize_tags("work") == []
        assert normalize_tags(["a", " b ", "  "]) == ["a", "b"]

    def test_due_date(self):
        assert normalize_due_date(None) is None
        assert normalize_due_date("") is None
        assert normalize_due_date("2026-10-18") == "2026-10-18"
        assert normalize_due_date("2026-10-18T09:05:59") == "2026-10-18T09:05"
        with pytest.raises(ValidationError):
            normalize_due_date("next tuesday")

    def test_due_date_basic_form_stays_date_only(self):
        assert normalize_due_date("20261018") == "2026-10-18"


class TestStoreFailures:
    """sqlite errors surface as StoreError."""

    def test_missing_table(self, test_db):
        conn = sqlite3.connect(test_db)
        conn.execute("DROP TABLE todos")
        conn.commit()
        conn.close()

        with pytest.raises(StoreError) as exc_info:
            list_tasks_db(USER)
        assert exc_info.value.code == "STORE_ERROR"
        assert exc_info.value.status_code == 500

    def test_unopenable_file(self, monkeypatch, tmp_path):
        # A directory cannot be opened as a database file
        monkeypatch.setattr(database, "DATABASE_PATH", str(tmp_path))
        with pytest.raises(StoreError):
            get_task_stats(USER)


class TestInitDb:

    def test_database_path_is_absolute(self):
        assert os.path.isabs(config.DATABASE_PATH)

    def test_migrates_the_file_the_app_opens(self, monkeypatch, tmp_path):
        """Migrations target DATABASE_PATH whatever the working directory is."""
        db_path = str(tmp_path / "app.db")
        elsewhere = tmp_path / "elsewhere"
        elsewhere.mkdir()
        monkeypatch.setattr(database, "DATABASE_PATH", db_path)
        monkeypatch.chdir(elsewhere)

        database.init_db()

        task = create_task_db(USER, "After migration")
        assert get_task_db(USER, task.id).title == "After migration"
        assert not (elsewhere / "todos.db").exists()
