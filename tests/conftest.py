"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os
import tempfile

# ---------------------------------------------------------------------------
# Photos go to a throwaway directory.  Must be set before clubpoints.api.main
# is imported because the photo store reads it at module load.
# ---------------------------------------------------------------------------
os.environ.setdefault("CLUBPOINTS_PHOTO_DIR", tempfile.mkdtemp(prefix="clubpoints-photos-"))

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from clubpoints.config import ClubConfig  # noqa: E402
from clubpoints.database.models import Base, Member  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all clubpoints tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` in live sync and async routes).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def make_members(db_engine: Engine):
    """Factory: insert active members ``(name, points)`` and return their ids.

    Members are created directly (no ledger rows), as if they had just been
    added with the given balance.
    """

    def _make(*entries: tuple[str, int]) -> list[int]:
        with Session(db_engine) as session:
            members = [Member(name=name, points=points) for name, points in entries]
            session.add_all(members)
            session.commit()
            return [m.id for m in members]

    return _make


@pytest.fixture
def club_config() -> ClubConfig:
    return ClubConfig(
        club_name="Test Club",
        dashboard_port=8000,
        starting_points=100,
        airtable_base_id="appTEST",
        airtable_table_name="Attendance",
        live_sync_interval_seconds=30,
    )


class FakePollClient:
    """Stands in for :class:`AirtableClient`; returns whatever ``rows`` holds."""

    def __init__(self, rows: list[dict] | None = None) -> None:
        self.rows = rows or []
        self.calls = 0

    def fetch_all_rows(self) -> list[dict]:
        self.calls += 1
        return list(self.rows)


@pytest.fixture
def poll_client() -> FakePollClient:
    return FakePollClient()


@pytest.fixture
def client(db_engine, club_config, poll_client):
    """FastAPI TestClient wired to the SQLite engine and a fake poll source."""
    from fastapi.testclient import TestClient

    from clubpoints.api import deps
    from clubpoints.api.main import app

    app.dependency_overrides[deps.get_engine] = lambda: db_engine
    app.dependency_overrides[deps.get_config] = lambda: club_config
    app.dependency_overrides[deps.get_poll_client] = lambda: poll_client
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
    deps._live_sync = None
