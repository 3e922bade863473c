# src/lockinspiel/db/temporal.py
"""Temporal codec between domain instants and the storage representations.

Instants are written as canonical text (``YYYY-MM-DD HH:MM:SS[.ffffff]``)
and read back from any of the native temporal kinds the storage engine may
hand out: timestamps with an explicit unit, day counts, time-of-day
microsecond counts, or one of several fixed-width text layouts.

Text is dispatched purely on its length. The length table is part of the
on-disk format and must not change for existing databases.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

from sqlalchemy import String
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeDecorator

from lockinspiel.db.time import EPOCH

SECONDS_PER_DAY = 86_400
NANOS_PER_SECOND = 1_000_000_000
MICROS_PER_SECOND = 1_000_000

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"
TIME_FRACTION_FORMAT = "%H:%M:%S.%f"
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
DATETIME_FRACTION_FORMAT = "%Y-%m-%d %H:%M:%S.%f"
DATETIME_OFFSET_FORMAT = "%Y-%m-%d %H:%M:%S.%f%z"

# text length -> strptime format
TEXT_FORMATS: dict[int, str] = {
    8: TIME_FORMAT,  # 23:56:04
    10: DATE_FORMAT,  # 2016-02-23
    12: TIME_FRACTION_FORMAT,  # 13:38:47.144
    19: DATETIME_FORMAT,  # 2016-02-23 23:56:04
    23: DATETIME_FRACTION_FORMAT,  # 2016-02-23 23:56:04.789
    26: DATETIME_FRACTION_FORMAT,  # 2016-02-23 23:56:04.789012
    29: DATETIME_OFFSET_FORMAT,  # 2016-02-23 23:56:04.789+00:00
}

_TIME_ONLY_FORMATS = frozenset({TIME_FORMAT, TIME_FRACTION_FORMAT})


class CodecError(RuntimeError):
    """Base exception for temporal encode/decode failures."""


class UnsupportedSourceError(CodecError):
    """Raised when a value of an unknown representation is decoded."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Unsupported source type for instant: {type(value).__name__}")
        self.value = value


class TemporalParseError(CodecError):
    """Raised when temporal text does not match the format its length implies."""

    def __init__(self, text: str, format: str) -> None:
        super().__init__(f"Failed to parse {text!r} with format {format!r}")
        self.text = text
        self.format = format


class TemporalRangeError(CodecError):
    """Raised when a decoded instant is outside the representable range."""


class TimeUnit(Enum):
    """Resolution of a native timestamp count (value is ticks per second)."""

    SECOND = 1
    MILLISECOND = 1_000
    MICROSECOND = 1_000_000
    NANOSECOND = 1_000_000_000


@dataclass(frozen=True)
class NativeTimestamp:
    """A timestamp stored as an integer count of ``unit`` since the epoch."""

    unit: TimeUnit
    value: int


@dataclass(frozen=True)
class NativeDate:
    """A date stored as a count of days since the epoch."""

    days: int


@dataclass(frozen=True)
class NativeTime:
    """A time of day stored as microseconds since midnight."""

    micros: int


NativeTemporal = NativeTimestamp | NativeDate | NativeTime | str | bytes


def encode_instant(instant: datetime) -> str:
    """Return the canonical text form of an instant.

    Naive datetimes are taken to already be in UTC.
    """
    if instant.tzinfo is not None:
        instant = instant.astimezone(UTC).replace(tzinfo=None)
    return instant.isoformat(sep=" ")


def _from_parts(seconds: int, nanos: int) -> datetime:
    try:
        return EPOCH + timedelta(seconds=seconds, microseconds=nanos // 1_000)
    except OverflowError as exc:
        raise TemporalRangeError(
            f"Instant {seconds}s + {nanos}ns since epoch is out of range"
        ) from exc


def decode_timestamp(value: NativeTimestamp) -> datetime:
    seconds, remainder = divmod(value.value, value.unit.value)
    nanos = remainder * (NANOS_PER_SECOND // value.unit.value)
    return _from_parts(seconds, nanos)


def decode_date(value: NativeDate) -> datetime:
    return _from_parts(value.days * SECONDS_PER_DAY, 0)


def decode_time(value: NativeTime) -> datetime:
    seconds, micros = divmod(value.micros, MICROS_PER_SECOND)
    return _from_parts(seconds, micros * 1_000)


def decode_text(text: str) -> datetime:
    """Decode fixed-width temporal text, dispatching on its length.

    Unknown lengths fall back to reading the first ten characters as a date.
    """
    fmt = TEXT_FORMATS.get(len(text))
    if fmt is None:
        text, fmt = text[:10], DATE_FORMAT
    elif len(text) > 10 and text[10] == "T":
        text = f"{text[:10]} {text[11:]}"

    try:
        parsed = datetime.strptime(text, fmt)
    except ValueError as exc:
        raise TemporalParseError(text, fmt) from exc

    if fmt in _TIME_ONLY_FORMATS:
        parsed = parsed.replace(year=EPOCH.year, month=EPOCH.month, day=EPOCH.day)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def decode_instant(value: NativeTemporal) -> datetime:
    """Decode any supported native representation into an aware UTC instant."""
    if isinstance(value, NativeTimestamp):
        return decode_timestamp(value)
    if isinstance(value, NativeDate):
        return decode_date(value)
    if isinstance(value, NativeTime):
        return decode_time(value)
    if isinstance(value, bytes):
        try:
            value = value.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise UnsupportedSourceError(value) from exc
    if isinstance(value, str):
        return decode_text(value)
    raise UnsupportedSourceError(value)


class InstantType(TypeDecorator[datetime]):
    """Column type storing instants through the temporal codec."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> str | None:
        if value is None:
            return None
        return encode_instant(value)

    def process_result_value(self, value: object, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        return decode_instant(value)  # type: ignore[arg-type]
