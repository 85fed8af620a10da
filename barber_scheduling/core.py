# barber_scheduling/core.py
"""
Interval and clock primitives shared by every scheduling component.

All instants handled by the engine are timezone-aware UTC datetimes. The
database stores them as naive UTC (SQLite has no timezone type), so values
cross that boundary through ``to_storage`` / ``from_storage``.
"""

from datetime import date, datetime, time, timezone
from typing import Optional, Union

import pytz

from .exceptions import ValidationException

WEEKDAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)


def intervals_overlap(a_start, a_end, b_start, b_end) -> bool:
    """Half-open overlap test between ``[a_start, a_end)`` and ``[b_start, b_end)``.

    Works for datetimes and for minutes-since-midnight alike. Intervals that
    merely touch (one ends where the other starts) do not overlap.
    """
    return (
        (b_start <= a_start < b_end)
        or (b_start < a_end <= b_end)
        or (a_start <= b_start and a_end >= b_end)
    )


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_storage(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant
    return instant.astimezone(timezone.utc).replace(tzinfo=None)


def from_storage(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_timezone(name: str) -> pytz.BaseTzInfo:
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        raise ValidationException(
            f"Unknown timezone '{name}'",
            code="INVALID_TIMEZONE",
            details={"timezone": name},
        )


def localize(naive: datetime, tz: pytz.BaseTzInfo) -> datetime:
    """Attach ``tz`` to a wall-clock datetime, rejecting times skipped by DST."""
    try:
        return tz.localize(naive, is_dst=None)
    except pytz.exceptions.AmbiguousTimeError:
        # fall back: the wall-clock time happens twice, use the first one
        return tz.localize(naive, is_dst=True)
    except pytz.exceptions.NonExistentTimeError:
        raise ValidationException(
            f"{naive.strftime('%Y-%m-%d %H:%M')} does not exist in {tz.zone} "
            "because of a daylight saving change",
            code="INVALID_INTERVAL",
            details={"local_time": naive.isoformat(), "timezone": tz.zone},
        )


def parse_instant(value: Union[str, datetime], tz_name: str) -> datetime:
    """Normalize an ISO-8601 string or datetime to an aware UTC datetime.

    Values with an offset are absolute; values without one are read as
    wall-clock time in ``tz_name``.
    """
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationException(
                f"'{value}' is not a valid ISO-8601 date-time",
                code="INVALID_INTERVAL",
                details={"value": value},
            )
    if value.tzinfo is None:
        value = localize(value, resolve_timezone(tz_name))
    return value.astimezone(timezone.utc)


def to_local(instant: datetime, tz: pytz.BaseTzInfo) -> datetime:
    return from_storage(instant).astimezone(tz)


def parse_hhmm(value: str) -> time:
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def hhmm_to_minutes(value: str) -> int:
    parsed = parse_hhmm(value)
    return parsed.hour * 60 + parsed.minute


def minutes_of_day(moment: Union[datetime, time]) -> int:
    return moment.hour * 60 + moment.minute


def weekday_number(day: Union[date, datetime]) -> int:
    """Weekday with 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7


def weekday_name(number: int) -> str:
    if 0 <= number <= 6:
        return WEEKDAY_NAMES[number]
    return "Invalid day"
