# src/lockinspiel/models/__init__.py
"""SQLAlchemy models for the Lockinspiel store."""

from .tag import Tag
from .time_split import TimeSplit, TimeSplitTimer
from .timesheet import Timesheet, TimesheetGroup, TimesheetTag

__all__ = [
    "Tag",
    "TimeSplit", "TimeSplitTimer",
    "Timesheet", "TimesheetGroup", "TimesheetTag",
]
