"""
Time-of-day helpers for schedule and segment times.

All times are fixed-width, zero-padded 24h strings (HH:MM:SS), so plain string
comparison orders them correctly. There is no overnight wraparound.
"""

import re
from datetime import datetime
from typing import Optional

from .errors import ValidationError

_TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d)?$')


def normalize_time(value: str) -> str:
    """Append ':00' to 5-character HH:MM input."""
    if len(value) == 5:
        return f"{value}:00"
    return value


def parse_time(value) -> str:
    """Validate and normalize a time field, raising ValidationError when malformed."""
    if not isinstance(value, str) or not _TIME_PATTERN.match(value.strip()):
        raise ValidationError("invalid time", {"time": value})
    return normalize_time(value.strip())


def is_valid_time(value) -> bool:
    return isinstance(value, str) and bool(_TIME_PATTERN.match(value.strip()))


def contains(time: str, start: str, end: str) -> bool:
    """Inclusive containment: start <= time <= end."""
    t = normalize_time(time)
    return normalize_time(start) <= t <= normalize_time(end)


def seconds_of_day(value: str) -> int:
    hours, minutes, seconds = (int(p) for p in normalize_time(value).split(':'))
    return hours * 3600 + minutes * 60 + seconds


def shift(value: str, delta_seconds: int) -> str:
    """Move a time by delta_seconds, clamped to the same day."""
    total = max(0, min(86399, seconds_of_day(value) + delta_seconds))
    return f"{total // 3600:02d}:{(total % 3600) // 60:02d}:{total % 60:02d}"


def time_of(moment: Optional[datetime] = None) -> str:
    """HH:MM:SS for a datetime (default: now)."""
    return (moment or datetime.now()).strftime('%H:%M:%S')


def parse_timestamp(value) -> datetime:
    """
    ISO-8601 timestamp as naive local time. Browsers send UTC with a trailing
    'Z'; aware values are converted so they compare against datetime.now().
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("invalid timestamp", {"timestamp": value})
    text = value.strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    try:
        moment = datetime.fromisoformat(text)
    except ValueError:
        # fromisoformat before 3.11 only takes 3 or 6 fractional digits
        try:
            moment = datetime.strptime(text, '%Y-%m-%dT%H:%M:%S.%f%z')
        except ValueError:
            raise ValidationError("invalid timestamp", {"timestamp": value})
    if moment.tzinfo is not None:
        moment = moment.astimezone().replace(tzinfo=None)
    return moment


class TimeRange:
    """An inclusive [start, end] interval of the day."""

    def __init__(self, start: str, end: str):
        self.start = normalize_time(start)
        self.end = normalize_time(end)

    def contains(self, time: str) -> bool:
        return contains(time, self.start, self.end)

    def __repr__(self):
        return f"TimeRange({self.start!r}, {self.end!r})"


def window(at: str, seconds: int) -> TimeRange:
    """The range covering the `seconds` before `at`, inclusive."""
    return TimeRange(shift(at, -seconds), at)


__all__ = [
    "TimeRange", "contains", "normalize_time", "parse_time", "is_valid_time",
    "seconds_of_day", "shift", "time_of", "window",
]
