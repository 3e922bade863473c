# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("PYTEST_RUNNING", "true")

from lockinspiel.db.pool import Database, PooledDatabase
from lockinspiel.main import app as fastapi_app
from lockinspiel.repositories.timesheet_repo import TimesheetRow

BASE_TIME = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)


def at(minutes: float) -> datetime:
    """Instant ``minutes`` after BASE_TIME."""
    return BASE_TIME + timedelta(minutes=minutes)


def interval(group: int, start: float, end: float, activity: int = 1) -> TimesheetRow:
    return TimesheetRow(group=group, start_time=at(start), end_time=at(end), activity=activity)


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "db.sqlite3"


@pytest.fixture()
def database(db_path: Path) -> Iterator[Database]:
    database = Database(db_path, pool_size=2)
    try:
        yield database
    finally:
        database.dispose()


@pytest.fixture()
def db(database: Database) -> Iterator[PooledDatabase]:
    with database.get() as pooled:
        yield pooled


@pytest.fixture()
def client() -> Iterator[TestClient]:
    with TestClient(fastapi_app, base_url="http://test") as test_client:
        yield test_client
