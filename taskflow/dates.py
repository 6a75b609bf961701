"""Date and time normalization for due dates.

Relative phrases ("tomorrow", "next Friday") are resolved by the model
against the current date we hand it; nothing here interprets language.
These helpers only turn the resulting ISO fragments into absolute UTC
timestamps and compute calendar windows in the caller's timezone.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

LOGGER = logging.getLogger(__name__)

# Date-only due dates are anchored at noon UTC so the calendar date survives
# rendering in any offset between UTC-12 and UTC+14.
DATE_ONLY_ANCHOR = time(12, 0)


def combine_date_and_time(
    due_date: date | str | None,
    due_time: time | str | None = None,
) -> datetime | None:
    """Combine a calendar date and optional time-of-day into a UTC timestamp."""

    if not due_date:
        return None
    day = due_date if isinstance(due_date, date) else date.fromisoformat(due_date)
    if due_time:
        clock = due_time if isinstance(due_time, time) else time.fromisoformat(due_time)
        clock = clock.replace(tzinfo=None)
    else:
        clock = DATE_ONLY_ANCHOR
    return datetime.combine(day, clock, tzinfo=timezone.utc)


def to_utc_iso(value: datetime) -> str:
    """Format a timestamp as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_due_date(value: str) -> datetime:
    """Interpret a due date given either as ``YYYY-MM-DD`` or a full ISO datetime."""

    value = value.strip()
    if len(value) == 10:
        return datetime.combine(date.fromisoformat(value), DATE_ONLY_ANCHOR, tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Look up an IANA timezone, falling back to UTC for unknown names."""

    if not name:
        return ZoneInfo("UTC")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        LOGGER.warning("Unknown timezone %r, falling back to UTC", name)
        return ZoneInfo("UTC")


def zoned_now(tz_name: str | None, now: datetime | None = None) -> datetime:
    """Current time (or ``now``) expressed in the caller's timezone."""

    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return current.astimezone(resolve_timezone(tz_name))


def now_iso_with_offset(tz_name: str | None, now: datetime | None = None) -> str:
    """E.g. ``2024-01-15T09:30:00-05:00``."""

    return zoned_now(tz_name, now).isoformat(timespec="seconds")


def filter_window(
    filter_name: str | None,
    tz_name: str | None,
    now: datetime | None = None,
) -> tuple[str | None, str | None]:
    """Return ``(due_from, due_before)`` UTC bounds for a named task filter.

    The caller's timezone only decides which calendar date is "today".
    Stored due dates carry their calendar date in UTC (date-only values at
    noon), so each day is bounded by UTC midnights of that date.
    ``upcoming`` covers today plus the next seven days. Filters without a
    date window return ``(None, None)``.
    """

    today = datetime.combine(zoned_now(tz_name, now).date(), time(0, 0), tzinfo=timezone.utc)

    def _day(offset: int) -> str:
        return to_utc_iso(today + timedelta(days=offset))

    if filter_name == "today":
        return _day(0), _day(1)
    if filter_name == "tomorrow":
        return _day(1), _day(2)
    if filter_name == "upcoming":
        return _day(0), _day(8)
    if filter_name == "overdue":
        return None, _day(0)
    return None, None
