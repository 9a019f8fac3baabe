"""
Shared pytest fixtures for backend tests.
Uses a temp-file SQLite database per test and a canned completion collaborator.
"""
import pytest
import sqlite3
import sys
import os

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
import llm
from auth import create_access_token

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class FakeCompletion:
    """Stands in for the LLM: returns `response` (or raises `error`) and records prompts."""

    def __init__(self, response: str = "{}"):
        self.response = response
        self.error = None
        self.prompts = []

    async def __call__(self, prompt: str, max_tokens: int = None) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database, "init_db", lambda: None)

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE todos (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            title TEXT NOT NULL,
            description TEXT,
            due_date TEXT,
            status TEXT NOT NULL DEFAULT 'pending',
            priority INTEGER NOT NULL DEFAULT 2,
            tags TEXT NOT NULL DEFAULT '[]',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
    """)
    conn.commit()
    conn.close()

    yield db_path


@pytest.fixture
def fake_completion(monkeypatch):
    fake = FakeCompletion()
    monkeypatch.setattr(llm, "complete", fake)
    return fake


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {create_access_token(USER_ID)}"}


@pytest.fixture
def other_auth_headers():
    return {"Authorization": f"Bearer {create_access_token(OTHER_USER_ID)}"}


@pytest.fixture
def app_client(test_db, fake_completion):
    """
    Create a test client for the FastAPI app.
    init_db is already stubbed by test_db so alembic is skipped.
    """
    from fastapi.testclient import TestClient
    import main

    with TestClient(main.app) as client:
        yield client
