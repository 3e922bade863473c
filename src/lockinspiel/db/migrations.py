# src/lockinspiel/db/migrations.py
"""Forward-only schema migrations applied when a storage file is opened.

The storage file records a single integer schema version in the
``migrations`` table (``-1`` for a fresh file). Every migration after the
stored version is applied in ascending order, and the version is bumped and
committed after each one, so an interrupted run resumes where it stopped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy.engine import Connection

from lockinspiel.db.errors import MigrationMissingError
from lockinspiel.models.timesheet import GroupId

logger = logging.getLogger(__name__)

Migration = Callable[[Operations], None]

version_table = sa.table("migrations", sa.column("version", sa.Integer))

# (id, name, description)
_TIME_SPLITS: list[tuple[int, str, str | None]] = [
    (0, "_paused_", None),
    (1, "Pomodoro", "Classic, tried, and true"),
    (2, "Time Magazine", "Based on studies"),
    (3, "Tyson Split", "For those with extra dog in 'em"),
    (4, "Build Night", "We burnin' out tonight baby!"),
]

# (time_split_id, minutes, name, work)
_TIME_SPLIT_TIMERS: list[tuple[int, int, str, bool]] = [
    (0, 0, "_paused_", False),
    (1, 25, "Work", True),
    (1, 5, "Break", False),
    (1, 25, "Work", True),
    (1, 15, "Long Break", False),
    (2, 52, "Work", True),
    (2, 17, "Break", False),
    (3, 90, "Work", True),
    (3, 10, "Break", False),
    (4, 120, "Work", True),
    (4, 10, "Break", False),
]


def _initial_schema(op: Operations) -> None:
    time_split = op.create_table(
        "time_split",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    time_split_timer = op.create_table(
        "time_split_timer",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("time_split_id", sa.Integer(), sa.ForeignKey("time_split.id"), nullable=False),
        sa.Column("length_seconds", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("work", sa.Boolean(), nullable=False),
    )
    op.create_table(
        "timesheet_group",
        sa.Column("timesheet_group", GroupId, primary_key=True, autoincrement=True),
        sa.Column("time_split_id", sa.Integer(), sa.ForeignKey("time_split.id"), nullable=True),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "timesheet",
        sa.Column(
            "timesheet_group",
            GroupId,
            sa.ForeignKey("timesheet_group.timesheet_group"),
            nullable=False,
        ),
        sa.Column("start_time", sa.TIMESTAMP(), primary_key=True),
        sa.Column("end_time", sa.TIMESTAMP(), nullable=False, unique=True),
        sa.Column("activity", sa.Integer(), nullable=False),
    )
    op.create_table(
        "tag",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("tag", sa.String(), nullable=False, unique=True),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "timesheet_tag",
        sa.Column(
            "timesheet_group",
            GroupId,
            sa.ForeignKey("timesheet_group.timesheet_group"),
            primary_key=True,
        ),
        sa.Column("tag_id", sa.Integer(), sa.ForeignKey("tag.id"), primary_key=True),
    )

    op.bulk_insert(
        time_split,
        [
            {"id": split_id, "name": name, "description": description}
            for split_id, name, description in _TIME_SPLITS
        ],
    )
    op.bulk_insert(
        time_split_timer,
        [
            {
                "time_split_id": split_id,
                "length_seconds": minutes * 60,
                "name": name,
                "work": work,
            }
            for split_id, minutes, name, work in _TIME_SPLIT_TIMERS
        ],
    )


def _lookup_indexes(op: Operations) -> None:
    op.create_index("ix_timesheet_group", "timesheet", ["timesheet_group"])
    op.create_index("ix_timesheet_tag_tag_id", "timesheet_tag", ["tag_id"])


MIGRATIONS: list[Migration] = [
    _initial_schema,
    _lookup_indexes,
]


def current_version(connection: Connection) -> int:
    """Return the stored schema version, creating the version table if needed."""
    if not sa.inspect(connection).has_table("migrations"):
        connection.execute(sa.text("CREATE TABLE migrations(version INTEGER)"))
        connection.execute(sa.insert(version_table).values(version=-1))
        connection.commit()
    return connection.execute(sa.select(version_table.c.version)).scalar_one()


def migrate(
    connection: Connection,
    migrations: Sequence[Migration] = MIGRATIONS,
    target: int | None = None,
) -> list[int]:
    """Bring the schema up to ``target`` (default: the newest migration).

    Args:
        connection: Connection to the storage file being opened.
        migrations: Ordered migration scripts; index ``i`` produces version ``i``.
        target: Last migration index to apply.

    Returns:
        The indices that were applied, in order.

    Raises:
        MigrationMissingError: If an index up to ``target`` has no script. Every
            script before the missing one has already been applied and recorded.
    """
    version = current_version(connection)
    if target is None:
        target = len(migrations) - 1

    operations = Operations(MigrationContext.configure(connection))
    applied: list[int] = []
    for index in range(version + 1, target + 1):
        if index >= len(migrations):
            raise MigrationMissingError(index)
        logger.info("Applying migration %d", index)
        migrations[index](operations)
        connection.execute(sa.update(version_table).values(version=index))
        connection.commit()
        applied.append(index)
    return applied
