"""
Half-open time interval used for reservations.

A range includes its start instant and excludes its end instant, so a booking
ending at 10:00 and another starting at 10:00 do not overlap.
"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta

from django.utils import timezone


@dataclass(frozen=True)
class TimeRange:
    """
    Time range value object, ``[start, end)``.

    Examples:
        - TimeRange(10:00, 12:00) overlaps TimeRange(11:00, 13:00) -> True
        - TimeRange(10:00, 12:00) overlaps TimeRange(12:00, 14:00) -> False (adjacent)
    """
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start is None or self.end is None:
            raise ValueError("Time range requires both start and end")
        if self.end <= self.start:
            raise ValueError(f"End ({self.end}) must be after start ({self.start})")

    def overlaps(self, other: 'TimeRange') -> bool:
        return overlaps(self, other)

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant < self.end

    @property
    def whole_days(self) -> int:
        return duration_in_whole_days(self)

    def __str__(self):
        return f"{self.start.isoformat()} - {self.end.isoformat()}"


def overlaps(a: TimeRange, b: TimeRange) -> bool:
    """Half-open overlap test: ``a.start < b.end and b.start < a.end``."""
    return a.start < b.end and b.start < a.end


def _wall_clock(value: datetime) -> datetime:
    if timezone.is_aware(value):
        return timezone.localtime(value)
    return value


def duration_in_whole_days(time_range: TimeRange) -> int:
    """
    Number of calendar days the range touches.

    Any part of a day counts as the whole day. Because the range is half-open,
    an end exactly at midnight does not touch the following day.

    2025-01-10 18:00 -> 2025-01-12 09:00 touches the 10th, 11th and 12th: 3 days.
    """
    start = _wall_clock(time_range.start)
    end = _wall_clock(time_range.end)

    last_day = end.date()
    if end.time() == time.min:
        last_day = (end - timedelta(microseconds=1)).date()

    return (last_day - start.date()).days + 1
