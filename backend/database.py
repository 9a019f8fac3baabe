import sqlite3
import json
import logging
import re
import uuid
from datetime import datetime
from typing import Any, Optional
from contextlib import contextmanager

import config
from errors import StoreError, ValidationError
from models import Task, TaskFilter, TaskStats

logger = logging.getLogger(__name__)

DATABASE_PATH = config.DATABASE_PATH

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000
MAX_TAGS = 3
DEFAULT_PRIORITY = 2

# Calendar dates without a time part, extended or basic ISO form
DATE_ONLY = re.compile(r"^\d{4}-?\d{2}-?\d{2}$")

# Whitelisted ORDER BY columns; short aliases come from the UI's sort menu
SORT_COLUMNS = {
    "created_at": "created_at",
    "created": "created_at",
    "due_date": "due_date",
    "due": "due_date",
    "title": "title",
    "priority": "priority",
}


@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = None
    try:
        conn = sqlite3.connect(DATABASE_PATH)
        conn.row_factory = sqlite3.Row
        yield conn
    except sqlite3.Error as e:
        logger.error(f"Database error: {e}")
        raise StoreError() from e
    finally:
        if conn is not None:
            conn.close()


def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess
    import os
    import sys

    # Run alembic from the backend directory against the file the app opens
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    subprocess.run(
        [sys.executable, "-m", "alembic", "upgrade", "head"],
        cwd=backend_dir,
        env={**os.environ, "DATABASE_PATH": DATABASE_PATH},
        check=True
    )


# Field normalization shared by the repository and the natural-language parser

def normalize_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("할 일 제목은 필수입니다.", "INVALID_TITLE")
    title = title.strip()
    if len(title) > MAX_TITLE_LENGTH:
        raise ValidationError(
            f"할 일 제목은 최대 {MAX_TITLE_LENGTH}자까지 입력 가능합니다.", "INVALID_TITLE"
        )
    return title


def normalize_description(description: Any) -> Optional[str]:
    if description is None:
        return None
    if not isinstance(description, str):
        raise ValidationError("설명은 문자열이어야 합니다.", "INVALID_DESCRIPTION")
    description = description.strip()
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"설명은 최대 {MAX_DESCRIPTION_LENGTH}자까지 입력 가능합니다.", "INVALID_DESCRIPTION"
        )
    return description or None


def normalize_priority(priority: Any) -> int:
    """Anything other than an integer 1-3 becomes medium priority."""
    if isinstance(priority, bool) or not isinstance(priority, int):
        return DEFAULT_PRIORITY
    if priority < 1 or priority > 3:
        return DEFAULT_PRIORITY
    return priority


def normalize_tags(tags: Any) -> list[str]:
    """Keep string tags only, trimmed and non-empty, at most MAX_TAGS."""
    if not isinstance(tags, list):
        return []
    cleaned = [tag.strip() for tag in tags if isinstance(tag, str) and tag.strip()]
    return cleaned[:MAX_TAGS]


def normalize_due_date(due_date: Any) -> Optional[str]:
    """
    Accept YYYY-MM-DD or an ISO datetime; store YYYY-MM-DD or YYYY-MM-DDTHH:MM.
    Aware datetimes are converted to naive local time so stored values compare as strings.
    """
    if due_date is None:
        return None
    if not isinstance(due_date, str):
        raise ValidationError("마감일 형식이 올바르지 않습니다.", "INVALID_DUE_DATE")
    due_date = due_date.strip()
    if not due_date:
        return None
    try:
        parsed = datetime.fromisoformat(due_date)
    except ValueError:
        raise ValidationError("마감일 형식이 올바르지 않습니다.", "INVALID_DUE_DATE")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    elif DATE_ONLY.match(due_date):
        return parsed.strftime("%Y-%m-%d")
    return parsed.strftime("%Y-%m-%dT%H:%M")


NORMALIZERS = {
    "title": normalize_title,
    "description": normalize_description,
    "due_date": normalize_due_date,
    "priority": normalize_priority,
    "tags": normalize_tags,
}


def _row_to_task(row) -> Task:
    """Convert a database row to a Task model."""
    try:
        tags = json.loads(row["tags"]) if row["tags"] else []
    except (TypeError, ValueError):
        tags = []
    return Task(
        id=row["id"],
        user_id=row["user_id"],
        title=row["title"],
        description=row["description"],
        due_date=row["due_date"],
        status=row["status"],
        priority=row["priority"],
        tags=tags,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def create_task_db(
    user_id: str,
    title: str,
    description: Optional[str] = None,
    due_date: Optional[str] = None,
    status: str = "pending",
    priority: Any = DEFAULT_PRIORITY,
    tags: Optional[list] = None,
    task_id: Optional[str] = None,
    now: Optional[datetime] = None
) -> Task:
    """Create a task owned by user_id.
    title is trimmed and required; priority outside 1-3 falls back to 2;
    tags are cleaned and capped at three.
    """
    task_id = task_id or str(uuid.uuid4())
    if status not in ("pending", "completed"):
        raise ValidationError("상태 값이 올바르지 않습니다.", "INVALID_STATUS")
    timestamp = (now or datetime.now()).isoformat()
    task = Task(
        id=task_id,
        user_id=user_id,
        title=normalize_title(title),
        description=normalize_description(description),
        due_date=normalize_due_date(due_date),
        status=status,
        priority=normalize_priority(priority),
        tags=normalize_tags(tags),
        created_at=timestamp,
        updated_at=timestamp,
    )

    with get_db() as conn:
        conn.execute(
            """INSERT INTO todos
               (id, user_id, title, description, due_date, status, priority, tags, created_at, updated_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (task.id, task.user_id, task.title, task.description, task.due_date, task.status,
             task.priority, json.dumps(task.tags, ensure_ascii=False), task.created_at, task.updated_at)
        )
        conn.commit()

    logger.info(f"Created task {task.id} for user {user_id}")
    return task


def get_task_db(user_id: str, task_id: str) -> Optional[Task]:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM todos WHERE id = ? AND user_id = ?",
            (task_id, user_id)
        ).fetchone()
        return _row_to_task(row) if row else None


def list_tasks_db(user_id: str, task_filter: Optional[TaskFilter] = None) -> list[Task]:
    """List a user's tasks with the UI's search/status/priority filters and sort."""
    task_filter = task_filter or TaskFilter()
    clauses = ["user_id = ?"]
    params: list[Any] = [user_id]

    if task_filter.search:
        escaped = (
            task_filter.search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        )
        clauses.append("lower(title) LIKE lower(?) ESCAPE '\\'")
        params.append(f"%{escaped}%")

    if task_filter.status != "all":
        clauses.append("status = ?")
        params.append(task_filter.status)

    if task_filter.priority != "all":
        clauses.append("priority = ?")
        params.append(int(task_filter.priority))

    column = SORT_COLUMNS[task_filter.sort_by]
    direction = "ASC" if task_filter.sort_order == "asc" else "DESC"
    # Tasks without a due date always sort last
    order = f"{column} {direction}"
    if column == "due_date":
        order = f"due_date IS NULL, {order}"

    query = f"SELECT * FROM todos WHERE {' AND '.join(clauses)} ORDER BY {order}, created_at DESC"
    with get_db() as conn:
        rows = conn.execute(query, params).fetchall()
        return [_row_to_task(row) for row in rows]


def get_tasks_in_window(user_id: str, start: datetime, end: datetime) -> list[Task]:
    """
    Tasks created within [start, end) or due on a calendar date within it.
    Newest first.
    """
    with get_db() as conn:
        rows = conn.execute(
            """SELECT * FROM todos
               WHERE user_id = ?
                 AND ((created_at >= ? AND created_at < ?)
                      OR (substr(due_date, 1, 10) >= ? AND substr(due_date, 1, 10) < ?))
               ORDER BY created_at DESC""",
            (user_id, start.isoformat(), end.isoformat(),
             start.strftime("%Y-%m-%d"), end.strftime("%Y-%m-%d"))
        ).fetchall()
        return [_row_to_task(row) for row in rows]


def update_task_db(user_id: str, task_id: str, now: Optional[datetime] = None, **updates) -> Optional[Task]:
    """
    Update a task with any fields provided.
    Only updates fields that differ from current values; updated_at is refreshed
    whenever something changes.

    Args:
        user_id: Owner of the task; other users' tasks are treated as missing
        task_id: Task ID to update
        **updates: title, description, due_date, status, priority, tags
    """
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM todos WHERE id = ? AND user_id = ?", (task_id, user_id)
        ).fetchone()
        if not row:
            return None

        current = _row_to_task(row)

        changes = {}
        for field, new_value in updates.items():
            if field == "status":
                if new_value not in ("pending", "completed"):
                    raise ValidationError("상태 값이 올바르지 않습니다.", "INVALID_STATUS")
            elif field == "priority" and new_value is None:
                # null priority keeps the stored value
                continue
            elif field in NORMALIZERS:
                new_value = NORMALIZERS[field](new_value)
            else:
                continue

            if new_value != getattr(current, field):
                changes[field] = new_value

        if changes:
            changes["updated_at"] = (now or datetime.now()).isoformat()
            if "tags" in changes:
                changes["tags"] = json.dumps(changes["tags"], ensure_ascii=False)
            set_clause = ", ".join(f"{field} = ?" for field in changes.keys())
            values = list(changes.values()) + [task_id, user_id]
            conn.execute(f"UPDATE todos SET {set_clause} WHERE id = ? AND user_id = ?", values)
            conn.commit()

        # Return updated task (re-fetch to get current state)
        updated_row = conn.execute(
            "SELECT * FROM todos WHERE id = ? AND user_id = ?", (task_id, user_id)
        ).fetchone()
        return _row_to_task(updated_row)


def delete_task_db(user_id: str, task_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM todos WHERE id = ? AND user_id = ?", (task_id, user_id)
        )
        conn.commit()
        return cursor.rowcount > 0


def get_task_stats(user_id: str, now: Optional[datetime] = None) -> TaskStats:
    """Totals for a user's whole task list; overdue means pending and past due."""
    now_str = (now or datetime.now()).strftime("%Y-%m-%dT%H:%M")
    with get_db() as conn:
        row = conn.execute(
            """SELECT
                   COUNT(*) AS total,
                   COUNT(CASE WHEN status = 'completed' THEN 1 END) AS completed,
                   COUNT(CASE WHEN status = 'pending' THEN 1 END) AS pending,
                   COUNT(CASE WHEN status = 'pending' AND due_date < ? THEN 1 END) AS overdue
               FROM todos WHERE user_id = ?""",
            (now_str, user_id)
        ).fetchone()

    total = row["total"]
    completion_rate = round(row["completed"] / total * 100, 2) if total else 0.0
    return TaskStats(
        total=total,
        completed=row["completed"],
        pending=row["pending"],
        overdue=row["overdue"],
        completion_rate=completion_rate,
    )
