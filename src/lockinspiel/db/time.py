# src/lockinspiel/db/time.py
"""Time utilities shared by the store, the clock client and the server."""

from datetime import UTC, datetime, timedelta

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def utcnow() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(UTC)


def time_micros() -> int:
    """Return the current wall-clock time in microseconds since the Unix epoch."""
    return to_micros(utcnow())


def from_micros(micros: int) -> datetime:
    """Build an instant from microseconds since the Unix epoch.

    Raises:
        OverflowError: If the instant falls outside the representable range.
    """
    return EPOCH + timedelta(microseconds=micros)


def to_micros(instant: datetime) -> int:
    """Return microseconds since the Unix epoch for an aware instant."""
    if instant.tzinfo is None:
        raise ValueError("instant must be timezone-aware")
    return (instant - EPOCH) // timedelta(microseconds=1)
