"""Data access helpers for timesheets, tags and timer presets."""
from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import String, bindparam, func, insert, select, type_coerce, update
from sqlalchemy.engine import Connection, Result, Row
from sqlalchemy.exc import SQLAlchemyError

from lockinspiel.db.errors import EngineError, TimesheetDecodeError
from lockinspiel.db.temporal import CodecError, decode_instant
from lockinspiel.models import Tag as TagModel
from lockinspiel.models import TimeSplit as TimeSplitModel
from lockinspiel.models import TimeSplitTimer as TimeSplitTimerModel
from lockinspiel.models import Timesheet, TimesheetGroup, TimesheetTag

__all__ = [
    "Tag",
    "TimeSplit",
    "TimeSplitTimer",
    "TimesheetAppender",
    "TimesheetIter",
    "TimesheetQuery",
    "TimesheetRepository",
    "TimesheetRow",
    "TimesheetTagAppender",
    "TimesheetTagRow",
]

timesheet = Timesheet.__table__
timesheet_group = TimesheetGroup.__table__
timesheet_tag = TimesheetTag.__table__
tag = TagModel.__table__
time_split = TimeSplitModel.__table__
time_split_timer = TimeSplitTimerModel.__table__

# Temporal columns are selected as raw text so that each row is decoded
# individually by TimesheetIter.
GET_TIMESHEET = (
    select(
        timesheet.c.timesheet_group,
        type_coerce(timesheet.c.start_time, String()),
        type_coerce(timesheet.c.end_time, String()),
        timesheet.c.activity,
    )
    .where(
        timesheet.c.start_time >= bindparam("start_time"),
        timesheet.c.end_time < bindparam("end_time"),
    )
    .order_by(timesheet.c.start_time)
)


@dataclass(frozen=True)
class TimesheetRow:
    """One interval of one activity within a timesheet group."""

    group: int
    start_time: datetime
    end_time: datetime
    activity: int

    def __post_init__(self) -> None:
        if self.end_time < self.start_time:
            raise ValueError(
                f"end_time {self.end_time.isoformat()} precedes "
                f"start_time {self.start_time.isoformat()}"
            )

    @classmethod
    def from_row(cls, row: Row[Any]) -> TimesheetRow:
        group, start_time, end_time, activity = row
        return cls(group=group, start_time=start_time, end_time=end_time, activity=activity)

    def as_params(self) -> dict[str, Any]:
        return {
            "timesheet_group": self.group,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "activity": self.activity,
        }


@dataclass(frozen=True)
class TimesheetTagRow:
    """Association of a tag with a timesheet group."""

    timesheet_group: int
    tag_id: int

    def as_params(self) -> dict[str, Any]:
        return {"timesheet_group": self.timesheet_group, "tag_id": self.tag_id}


@dataclass(frozen=True)
class Tag:
    id: int
    label: str


@dataclass(frozen=True)
class TimeSplit:
    id: int
    name: str
    description: str | None


@dataclass(frozen=True)
class TimeSplitTimer:
    name: str
    length: timedelta
    work: bool


@contextmanager
def engine_errors(action: str, connection: Connection | None = None) -> Iterator[None]:
    """Re-raise engine failures as EngineError.

    When ``connection`` is given, its open transaction is rolled back first.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        if connection is not None and connection.in_transaction():
            connection.rollback()
        raise EngineError(f"Failed to {action}: {exc}") from exc


class TimesheetIter:
    """Lazy, single-pass iterator over the rows of a timesheet query.

    A row that cannot be decoded raises TimesheetDecodeError from ``next()``;
    iteration may continue afterwards with the following row.
    """

    def __init__(self, result: Result[Any]) -> None:
        self._result = result

    def __iter__(self) -> TimesheetIter:
        return self

    def __next__(self) -> TimesheetRow:
        with engine_errors("fetch timesheet row"):
            raw = self._result.fetchone()
        if raw is None:
            raise StopIteration
        group, start_text, end_text, activity = raw
        try:
            return TimesheetRow(
                group=group,
                start_time=decode_instant(start_text),
                end_time=decode_instant(end_text),
                activity=activity,
            )
        except (CodecError, ValueError) as exc:
            raise TimesheetDecodeError(f"Failed to decode timesheet row {tuple(raw)!r}") from exc


class TimesheetQuery:
    """Range query over the timesheet, prepared once per connection."""

    def __init__(self, connection: Connection) -> None:
        self._connection = connection
        self._statement = GET_TIMESHEET

    def get_timesheet(self, start_time: datetime, end_time: datetime) -> TimesheetIter:
        """Return rows with ``start_time >= start_time`` and ``end_time < end_time``."""
        with engine_errors("query timesheet"):
            result = self._connection.execute(
                self._statement,
                {"start_time": start_time, "end_time": end_time},
            )
        return TimesheetIter(result)


class _Appender:
    """Buffers rows for one table and writes them in bulk on flush."""

    def __init__(self, connection: Connection, table: Any) -> None:
        self._connection = connection
        self._table = table
        self._rows: list[dict[str, Any]] = []

    @property
    def pending(self) -> int:
        """Number of appended rows not yet flushed."""
        return len(self._rows)

    def flush(self) -> None:
        """Write every buffered row and commit them."""
        if not self._rows:
            return
        with engine_errors(f"flush {self._table.name} appender", self._connection):
            self._connection.execute(insert(self._table), self._rows)
            self._connection.commit()
        self._rows.clear()


class TimesheetAppender(_Appender):
    def __init__(self, connection: Connection) -> None:
        super().__init__(connection, timesheet)

    def append_row(self, row: TimesheetRow) -> None:
        self._rows.append(row.as_params())


class TimesheetTagAppender(_Appender):
    def __init__(self, connection: Connection) -> None:
        super().__init__(connection, timesheet_tag)

    def append_row(self, row: TimesheetTagRow) -> None:
        self._rows.append(row.as_params())


class TimesheetRepository:
    """Timesheet store operations over a single connection.

    Each write is its own committed statement; there are no multi-statement
    transactions.
    """

    def __init__(self, connection: Connection) -> None:
        self.connection = connection

    def add_to_timesheet(self, row: TimesheetRow) -> None:
        """Insert one timesheet interval."""
        with engine_errors("add timesheet row", self.connection):
            self.connection.execute(insert(timesheet).values(**row.as_params()))
            self.connection.commit()

    def stop_timer(self, now: datetime, *, active_only: bool = False) -> int:
        """Rewrite the end time of the row holding the latest end time to ``now``.

        The row is picked by its end time alone, whether or not it is still
        running. With ``active_only`` the rewrite only happens when that row
        ends at or after ``now``. A row that starts after ``now`` is left alone,
        so a clock correction that moves ``now`` backwards never produces an
        interval ending before it starts.

        Returns:
            The number of rows rewritten (0 or 1).
        """
        latest = select(func.max(timesheet.c.end_time)).scalar_subquery()
        stmt = update(timesheet).where(
            timesheet.c.end_time == latest,
            timesheet.c.start_time <= now,
        )
        if active_only:
            stmt = stmt.where(timesheet.c.end_time >= now)
        with engine_errors("stop timer", self.connection):
            result = self.connection.execute(stmt.values(end_time=now))
            self.connection.commit()
        return result.rowcount

    def get_active_timer(self, now: datetime) -> TimesheetRow | None:
        """Return the row ending at or after ``now``, if any.

        Should several rows qualify, the one ending last is returned.
        """
        stmt = (
            select(timesheet)
            .where(timesheet.c.end_time >= now)
            .order_by(timesheet.c.end_time.desc())
            .limit(1)
        )
        with engine_errors("get active timer"):
            result = self.connection.execute(stmt)
        try:
            row = result.first()
            if row is None:
                return None
            return TimesheetRow.from_row(row)
        except (CodecError, ValueError) as exc:
            raise TimesheetDecodeError("Failed to decode the active timesheet row") from exc

    def add_tag(self, label: str) -> int:
        """Insert a tag and return its new identifier."""
        with engine_errors("add tag", self.connection):
            result = self.connection.execute(insert(tag).values(tag=label))
            self.connection.commit()
        return result.inserted_primary_key[0]

    def next_timesheet_group(self, time_split_id: int | None = None) -> int:
        """Allocate a fresh, strictly increasing timesheet group identifier."""
        with engine_errors("allocate timesheet group", self.connection):
            result = self.connection.execute(
                insert(timesheet_group).values(time_split_id=time_split_id)
            )
            self.connection.commit()
        return result.inserted_primary_key[0]

    def timesheet_appender(self) -> TimesheetAppender:
        return TimesheetAppender(self.connection)

    def timesheet_tag_appender(self) -> TimesheetTagAppender:
        return TimesheetTagAppender(self.connection)

    def get_timesheet_stmt(self) -> TimesheetQuery:
        return TimesheetQuery(self.connection)

    def get_timesheet(self, start_time: datetime, end_time: datetime) -> TimesheetIter:
        """Shortcut for ``get_timesheet_stmt().get_timesheet(start_time, end_time)``."""
        return self.get_timesheet_stmt().get_timesheet(start_time, end_time)

    def get_tags(self) -> list[Tag]:
        """Return every tag that has not been deleted, by identifier."""
        stmt = select(tag.c.id, tag.c.tag).where(tag.c.deleted.is_(False)).order_by(tag.c.id)
        with engine_errors("list tags"):
            rows = self.connection.execute(stmt).all()
        return [Tag(id=row.id, label=row.tag) for row in rows]

    def get_group_tags(self, group: int) -> list[Tag]:
        """Return the tags attached to a timesheet group."""
        stmt = (
            select(tag.c.id, tag.c.tag)
            .join(timesheet_tag, timesheet_tag.c.tag_id == tag.c.id)
            .where(timesheet_tag.c.timesheet_group == group)
            .order_by(tag.c.id)
        )
        with engine_errors("list group tags"):
            rows = self.connection.execute(stmt).all()
        return [Tag(id=row.id, label=row.tag) for row in rows]

    def get_time_splits(self) -> list[TimeSplit]:
        stmt = (
            select(time_split.c.id, time_split.c.name, time_split.c.description)
            .where(time_split.c.deleted.is_(False))
            .order_by(time_split.c.id)
        )
        with engine_errors("list time splits"):
            rows = self.connection.execute(stmt).all()
        return [TimeSplit(id=row.id, name=row.name, description=row.description) for row in rows]

    def get_time_split_timers(self, time_split_id: int) -> list[TimeSplitTimer]:
        """Return the phases of a time split in the order they run."""
        stmt = (
            select(
                time_split_timer.c.name,
                time_split_timer.c.length_seconds,
                time_split_timer.c.work,
            )
            .where(time_split_timer.c.time_split_id == time_split_id)
            .order_by(time_split_timer.c.id)
        )
        with engine_errors("list time split timers"):
            rows = self.connection.execute(stmt).all()
        return [
            TimeSplitTimer(
                name=row.name,
                length=timedelta(seconds=row.length_seconds),
                work=bool(row.work),
            )
            for row in rows
        ]
