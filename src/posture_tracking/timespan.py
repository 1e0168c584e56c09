"""Closed millisecond intervals and calendar-day arithmetic."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterator

import numpy as np

from .constants import DAY_END_OFFSET_MS, MS_PER_DAY
from .errors import InvalidRange

EPOCH_DATE = date(1970, 1, 1)
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Timespan:
    """Inclusive ``[begin, end]`` interval over epoch-millisecond timestamps."""

    begin: int
    end: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "begin", int(self.begin))
        object.__setattr__(self, "end", int(self.end))
        if self.begin > self.end:
            raise InvalidRange(f"timespan begin {self.begin} is after end {self.end}")

    @classmethod
    def from_datetimes(cls, begin: datetime, end: datetime) -> Timespan:
        """Build a span from datetimes; naive values are read as UTC."""
        return cls(datetime_to_ms(begin), datetime_to_ms(end))

    @classmethod
    def to_day(cls, day: date) -> Timespan:
        """Span of one calendar day, ``00:00:00`` through ``23:59:59``."""
        begin = date_to_ms(day)
        return cls(begin, begin + DAY_END_OFFSET_MS)

    @property
    def duration_ms(self) -> int:
        return self.end - self.begin

    def is_inside(self, timestamp: int) -> bool:
        return self.begin <= timestamp <= self.end

    def mask(self, timestamps: np.ndarray | list[int]) -> np.ndarray:
        """Vectorised ``is_inside`` over a timestamp array."""
        values = np.asarray(timestamps)
        return (values >= self.begin) & (values <= self.end)

    def clamp(self, lower: int, upper: int) -> Timespan:
        """Truncate both endpoints into ``[lower, upper]``."""
        if lower > upper:
            raise InvalidRange(f"clamp window {lower}..{upper} is inverted")
        return Timespan(
            min(max(self.begin, lower), upper),
            min(max(self.end, lower), upper),
        )

    def days(self) -> list[tuple[date, Timespan]]:
        """Every calendar day touched by this span, paired with its day span."""
        return [(day, Timespan.to_day(day)) for day in _iter_dates(self.begin, self.end)]


def ms_to_date(timestamp: int) -> date:
    return (_EPOCH + timedelta(milliseconds=int(timestamp))).date()


def date_to_ms(day: date) -> int:
    return (day - EPOCH_DATE).days * MS_PER_DAY


def datetime_to_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // timedelta(milliseconds=1)


def ms_to_datetime(timestamp: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=int(timestamp))


def _iter_dates(begin_ms: int, end_ms: int) -> Iterator[date]:
    cursor = ms_to_date(begin_ms)
    last = ms_to_date(end_ms)
    while cursor <= last:
        yield cursor
        cursor += timedelta(days=1)
