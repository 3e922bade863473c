from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest
import sqlalchemy as sa
from alembic.operations import Operations
from sqlalchemy.engine import Engine

from lockinspiel.db.errors import MigrationMissingError
from lockinspiel.db.migrations import MIGRATIONS, current_version, migrate

LATEST = len(MIGRATIONS) - 1


@pytest.fixture()
def engine(db_path: Path) -> Iterator[Engine]:
    engine = sa.create_engine(f"sqlite:///{db_path}")
    try:
        yield engine
    finally:
        engine.dispose()


def test_fresh_file_starts_before_first_migration(engine: Engine) -> None:
    with engine.connect() as connection:
        assert current_version(connection) == -1


def test_migrate_applies_every_migration_in_order(engine: Engine) -> None:
    with engine.connect() as connection:
        assert migrate(connection) == list(range(len(MIGRATIONS)))
        assert current_version(connection) == LATEST
        tables = set(sa.inspect(connection).get_table_names())

    assert {
        "migrations",
        "time_split",
        "time_split_timer",
        "timesheet_group",
        "timesheet",
        "tag",
        "timesheet_tag",
    } <= tables


def test_migrate_twice_applies_nothing_the_second_time(engine: Engine) -> None:
    with engine.connect() as connection:
        migrate(connection)
    with engine.connect() as connection:
        assert migrate(connection) == []
        assert current_version(connection) == LATEST


def test_initial_schema_seeds_time_splits(engine: Engine) -> None:
    with engine.connect() as connection:
        migrate(connection)
        names = connection.execute(sa.text("SELECT name FROM time_split ORDER BY id")).scalars().all()
        timers = connection.execute(sa.text("SELECT COUNT(*) FROM time_split_timer")).scalar_one()

    assert names == ["_paused_", "Pomodoro", "Time Magazine", "Tyson Split", "Build Night"]
    assert timers == 11


def test_lookup_indexes_created(engine: Engine) -> None:
    with engine.connect() as connection:
        migrate(connection)
        indexes = {index["name"] for index in sa.inspect(connection).get_indexes("timesheet")}

    assert "ix_timesheet_group" in indexes


def test_interrupted_run_resumes_from_stored_version(engine: Engine) -> None:
    with engine.connect() as connection:
        assert migrate(connection, target=0) == [0]
    with engine.connect() as connection:
        assert current_version(connection) == 0
        assert migrate(connection) == list(range(1, len(MIGRATIONS)))


def test_missing_migration_raises_after_applying_earlier_ones(engine: Engine) -> None:
    with engine.connect() as connection:
        with pytest.raises(MigrationMissingError) as excinfo:
            migrate(connection, target=len(MIGRATIONS))
        assert excinfo.value.index == len(MIGRATIONS)
        assert str(excinfo.value) == f"Migration {len(MIGRATIONS)} does not exist"
        assert current_version(connection) == LATEST


def test_migrate_runs_custom_scripts_with_operations(engine: Engine) -> None:
    seen: list[int] = []

    def first(op: Operations) -> None:
        seen.append(0)
        op.create_table("example", sa.Column("id", sa.Integer(), primary_key=True))

    def second(op: Operations) -> None:
        seen.append(1)
        op.add_column("example", sa.Column("note", sa.String(), nullable=True))

    with engine.connect() as connection:
        assert migrate(connection, [first, second]) == [0, 1]
        columns = {column["name"] for column in sa.inspect(connection).get_columns("example")}

    assert seen == [0, 1]
    assert columns == {"id", "note"}
