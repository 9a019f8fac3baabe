"""Create todos table with owner-scoped indexes

Revision ID: 001
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    # tags holds a JSON array of strings
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS todos (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            title TEXT NOT NULL CHECK (length(trim(title)) > 0),
            description TEXT,
            due_date TEXT,
            status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'completed')),
            priority INTEGER NOT NULL DEFAULT 2 CHECK (priority IN (1, 2, 3)),
            tags TEXT NOT NULL DEFAULT '[]',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """))

    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_todos_user_created_at ON todos (user_id, created_at)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_todos_user_due_date ON todos (user_id, due_date)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_todos_user_status ON todos (user_id, status)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS idx_todos_user_priority ON todos (user_id, priority)"))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP TABLE IF EXISTS todos"))
