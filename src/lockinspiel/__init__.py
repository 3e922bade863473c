"""Lockinspiel: clock-synchronised time tracking with an embedded timesheet store."""

__version__ = "0.1.0"
