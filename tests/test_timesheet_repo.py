from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import text

from conftest import at, interval
from lockinspiel.db.errors import EngineError, TimesheetDecodeError
from lockinspiel.db.pool import PooledDatabase
from lockinspiel.repositories.timesheet_repo import (
    Tag,
    TimesheetIter,
    TimesheetRow,
    TimesheetTagRow,
)


def test_timesheet_row_rejects_negative_interval() -> None:
    with pytest.raises(ValueError):
        interval(1, 10, 5)


def test_added_row_is_active_until_its_end(db: PooledDatabase) -> None:
    group = db.next_timesheet_group()
    row = interval(group, 0, 90)
    db.add_to_timesheet(row)

    assert db.get_active_timer(at(10)) == row
    assert db.get_active_timer(at(90)) == row
    assert db.get_active_timer(at(91)) is None


def test_active_timer_prefers_latest_end(db: PooledDatabase) -> None:
    group = db.next_timesheet_group()
    db.add_to_timesheet(interval(group, 0, 90))
    later = interval(group, 5, 100, activity=2)
    db.add_to_timesheet(later)

    assert db.get_active_timer(at(10)) == later


def test_no_active_timer_in_empty_store(db: PooledDatabase) -> None:
    assert db.get_active_timer(at(0)) is None


def test_stop_timer_ends_running_row(db: PooledDatabase) -> None:
    group = db.next_timesheet_group()
    db.add_to_timesheet(interval(group, 0, 90))

    assert db.stop_timer(at(30)) == 1
    assert db.get_active_timer(at(31)) is None
    assert list(db.get_timesheet(at(0), at(60))) == [interval(group, 0, 30)]


def test_stop_timer_rewrites_latest_row_even_when_finished(db: PooledDatabase) -> None:
    group = db.next_timesheet_group()
    db.add_to_timesheet(interval(group, 0, 5))
    db.add_to_timesheet(interval(group, 6, 10))

    assert db.stop_timer(at(60)) == 1
    rows = list(db.get_timesheet(at(0), at(120)))
    assert rows == [interval(group, 0, 5), interval(group, 6, 60)]


def test_stop_timer_active_only_leaves_finished_rows(db: PooledDatabase) -> None:
    group = db.next_timesheet_group()
    db.add_to_timesheet(interval(group, 0, 10))

    assert db.stop_timer(at(60), active_only=True) == 0
    assert list(db.get_timesheet(at(0), at(120))) == [interval(group, 0, 10)]


def test_stop_timer_on_empty_store(db: PooledDatabase) -> None:
    assert db.stop_timer(at(0)) == 0


def test_timesheet_groups_strictly_increase(db: PooledDatabase) -> None:
    groups = [db.next_timesheet_group() for _ in range(5)]
    assert groups == sorted(groups)
    assert len(set(groups)) == 5


def test_timesheet_group_with_time_split(db: PooledDatabase) -> None:
    assert db.next_timesheet_group(time_split_id=1) > 0


def test_foreign_keys_are_enforced(db: PooledDatabase) -> None:
    with pytest.raises(EngineError):
        db.next_timesheet_group(time_split_id=99)
    with pytest.raises(EngineError):
        db.add_to_timesheet(interval(12345, 0, 10))


def test_duplicate_start_time_is_rejected(db: PooledDatabase) -> None:
    group = db.next_timesheet_group()
    db.add_to_timesheet(interval(group, 0, 10))
    with pytest.raises(EngineError):
        db.add_to_timesheet(interval(group, 0, 20))

    # The connection stays usable after a failed write.
    db.add_to_timesheet(interval(group, 20, 30))
    assert len(list(db.get_timesheet(at(0), at(60)))) == 2


def test_tags_get_increasing_ids(db: PooledDatabase) -> None:
    first = db.add_tag("deep work")
    second = db.add_tag("email")

    assert second > first
    assert db.get_tags() == [Tag(id=first, label="deep work"), Tag(id=second, label="email")]


def test_duplicate_tag_label_is_rejected(db: PooledDatabase) -> None:
    db.add_tag("deep work")
    with pytest.raises(EngineError):
        db.add_tag("deep work")


def test_get_timesheet_bounds(db: PooledDatabase) -> None:
    group = db.next_timesheet_group()
    for start in (0, 10, 20):
        db.add_to_timesheet(interval(group, start, start + 10))

    rows = db.get_timesheet(at(0), at(30))

    assert isinstance(rows, TimesheetIter)
    assert list(rows) == [interval(group, 0, 10), interval(group, 10, 20)]
    assert list(db.get_timesheet(at(5), at(60))) == [
        interval(group, 10, 20),
        interval(group, 20, 30),
    ]


def test_prepared_query_can_be_reused(db: PooledDatabase) -> None:
    group = db.next_timesheet_group()
    db.add_to_timesheet(interval(group, 0, 10))
    query = db.get_timesheet_stmt()

    assert len(list(query.get_timesheet(at(0), at(60)))) == 1
    assert list(query.get_timesheet(at(60), at(120))) == []


def test_undecodable_row_does_not_end_iteration(db: PooledDatabase) -> None:
    group = db.next_timesheet_group()
    db.add_to_timesheet(interval(group, 0, 1))
    db.add_to_timesheet(interval(group, 10, 20))
    db.connection.execute(
        text("INSERT INTO timesheet VALUES (:group, :start, :end, 1)"),
        {"group": group, "start": "2024-03-01 09:05:9x", "end": "2024-03-01 09:06:9x"},
    )
    db.connection.commit()

    rows = db.get_timesheet(at(0), at(30))

    assert next(rows) == interval(group, 0, 1)
    with pytest.raises(TimesheetDecodeError):
        next(rows)
    assert next(rows) == interval(group, 10, 20)
    with pytest.raises(StopIteration):
        next(rows)


def test_timesheet_appender_writes_on_flush(db: PooledDatabase) -> None:
    group = db.next_timesheet_group()
    appender = db.timesheet_appender()
    for start in (0, 10, 20):
        appender.append_row(interval(group, start, start + 5))

    assert appender.pending == 3
    assert list(db.get_timesheet(at(0), at(60))) == []

    appender.flush()

    assert appender.pending == 0
    assert len(list(db.get_timesheet(at(0), at(60)))) == 3


def test_failed_flush_raises_engine_error(db: PooledDatabase) -> None:
    appender = db.timesheet_appender()
    appender.append_row(interval(4242, 0, 5))

    with pytest.raises(EngineError):
        appender.flush()


def test_timesheet_tag_appender(db: PooledDatabase) -> None:
    group = db.next_timesheet_group()
    tag_id = db.add_tag("deep work")
    appender = db.timesheet_tag_appender()
    appender.append_row(TimesheetTagRow(timesheet_group=group, tag_id=tag_id))
    appender.flush()

    assert db.get_group_tags(group) == [Tag(id=tag_id, label="deep work")]


def test_time_splits_are_seeded(db: PooledDatabase) -> None:
    splits = db.get_time_splits()
    assert [split.name for split in splits][:2] == ["_paused_", "Pomodoro"]

    pomodoro = db.get_time_split_timers(1)
    assert [(timer.name, timer.length, timer.work) for timer in pomodoro] == [
        ("Work", timedelta(minutes=25), True),
        ("Break", timedelta(minutes=5), False),
        ("Work", timedelta(minutes=25), True),
        ("Long Break", timedelta(minutes=15), False),
    ]


def test_microsecond_instants_survive_storage(db: PooledDatabase) -> None:
    group = db.next_timesheet_group()
    row = TimesheetRow(
        group=group,
        start_time=at(0) + timedelta(microseconds=1),
        end_time=at(1) + timedelta(microseconds=999_999),
        activity=3,
    )
    db.add_to_timesheet(row)

    assert db.get_active_timer(at(0)) == row


def test_stop_timer_before_start_leaves_row_intact(db: PooledDatabase) -> None:
    group = db.next_timesheet_group()
    db.add_to_timesheet(interval(group, 0, 90))

    assert db.stop_timer(at(-10)) == 0
    assert db.get_active_timer(at(-20)) == interval(group, 0, 90)


def test_stopping_twice_without_new_timer_changes_nothing(db: PooledDatabase) -> None:
    group = db.next_timesheet_group()
    db.add_to_timesheet(interval(group, 0, 90))

    db.stop_timer(at(30))
    db.stop_timer(at(30))

    assert list(db.get_timesheet(at(0), at(120))) == [interval(group, 0, 30)]


def test_second_stop_targets_timer_started_in_between(db: PooledDatabase) -> None:
    group = db.next_timesheet_group()
    db.add_to_timesheet(interval(group, 0, 90))
    db.stop_timer(at(30))
    db.add_to_timesheet(interval(group, 40, 130, activity=2))

    assert db.stop_timer(at(50)) == 1
    assert list(db.get_timesheet(at(0), at(200))) == [
        interval(group, 0, 30),
        interval(group, 40, 50, activity=2),
    ]


@pytest.mark.parametrize(
    ("start", "end"),
    [
        ("2024-03-01 09:05:9x", "2024-03-01 09:06:9x"),
        ("2024-03-01 09:50:00", "2024-03-01 09:40:00"),
    ],
)
def test_undecodable_active_timer_raises_store_error(
    db: PooledDatabase, start: str, end: str
) -> None:
    group = db.next_timesheet_group()
    db.connection.execute(
        text("INSERT INTO timesheet VALUES (:group, :start, :end, 1)"),
        {"group": group, "start": start, "end": end},
    )
    db.connection.commit()

    with pytest.raises(TimesheetDecodeError):
        db.get_active_timer(at(0))
