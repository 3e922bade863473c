# src/lockinspiel/models/timesheet.py
"""SQLAlchemy models for timesheet intervals and their groups."""

from datetime import datetime

from sqlalchemy import BigInteger, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from lockinspiel.db.base import Base
from lockinspiel.db.temporal import InstantType

# SQLite only hands out rowid-backed autoincrement keys for INTEGER columns.
GroupId = BigInteger().with_variant(Integer(), "sqlite")


class TimesheetGroup(Base):
    """One continuous work session spanning one or more activity intervals.

    Identifiers come from the table's autoincrement sequence and are never reused.
    """

    __tablename__ = "timesheet_group"
    __table_args__ = {"sqlite_autoincrement": True}

    timesheet_group: Mapped[int] = mapped_column(GroupId, primary_key=True, autoincrement=True)
    time_split_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("time_split.id"),
        nullable=True,
    )


class Timesheet(Base):
    """A single timed interval of one activity within a group."""

    __tablename__ = "timesheet"

    timesheet_group: Mapped[int] = mapped_column(
        GroupId,
        ForeignKey("timesheet_group.timesheet_group"),
        nullable=False,
    )
    start_time: Mapped[datetime] = mapped_column(InstantType, primary_key=True)
    end_time: Mapped[datetime] = mapped_column(InstantType, nullable=False, unique=True)
    activity: Mapped[int] = mapped_column(Integer, nullable=False)


class TimesheetTag(Base):
    """Association between a timesheet group and a tag."""

    __tablename__ = "timesheet_tag"

    timesheet_group: Mapped[int] = mapped_column(
        GroupId,
        ForeignKey("timesheet_group.timesheet_group"),
        primary_key=True,
    )
    tag_id: Mapped[int] = mapped_column(Integer, ForeignKey("tag.id"), primary_key=True)
