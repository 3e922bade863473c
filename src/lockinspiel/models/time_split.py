# src/lockinspiel/models/time_split.py
"""Models describing timer presets (time splits) and their phases."""

from sqlalchemy import Boolean, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from lockinspiel.db.base import Base


class TimeSplit(Base):
    """A named cycle of work and break timers, e.g. Pomodoro."""

    __tablename__ = "time_split"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class TimeSplitTimer(Base):
    """One phase of a time split. Phases run in ascending ``id`` order."""

    __tablename__ = "time_split_timer"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    time_split_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("time_split.id"),
        nullable=False,
    )
    length_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    work: Mapped[bool] = mapped_column(Boolean, nullable=False)
