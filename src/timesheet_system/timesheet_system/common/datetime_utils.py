from __future__ import annotations

import calendar
from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional

from ..core.enums import DayType
from ..core.exceptions import ValidationError


def parse_iso_date(value: str) -> date:
    """Parse a YYYY-MM-DD string, or the date part of a full ISO datetime."""
    v = (value or "").strip() if isinstance(value, str) else ""
    try:
        if len(v) == 10:
            return datetime.strptime(v, "%Y-%m-%d").date()
        if len(v) > 10 and v[10] == "T":
            return datetime.fromisoformat(v.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    raise ValidationError(f"Invalid date (YYYY-MM-DD): {value!r}")


def parse_hhmm(value: str) -> time:
    try:
        return datetime.strptime((value or "").strip(), "%H:%M").time()
    except ValueError:
        raise ValidationError(f"Invalid time (HH:MM): {value!r}")


def parse_entry_time(value: str, work_date: date) -> datetime:
    """Accept either "HH:MM" (anchored on the entry date) or an ISO datetime."""
    v = (value or "").strip()
    if len(v) == 5 and ":" in v:
        return datetime.combine(work_date, parse_hhmm(v))
    try:
        parsed = datetime.fromisoformat(v.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid time value: {value!r}")
    # Stored as naive local wall-clock time; offsets are converted, not dropped.
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed.replace(tzinfo=None)


def format_hhmm(value: Optional[datetime]) -> Optional[str]:
    return value.strftime("%H:%M") if value else None


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def current_pay_period(today: date) -> tuple[date, date]:
    """Bi-monthly pay period: 1st-15th or 16th-end of month."""
    if today.day <= 15:
        return today.replace(day=1), today.replace(day=15)
    last_day = calendar.monthrange(today.year, today.month)[1]
    return today.replace(day=16), today.replace(day=last_day)


def iter_period_dates(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def day_type_for(work_date: date) -> DayType:
    weekday = work_date.weekday()
    if weekday == 6:
        return DayType.SUNDAY
    if weekday == 5:
        return DayType.SATURDAY
    return DayType.WEEKDAY


def period_label(start: date, end: date) -> str:
    return f"{start:%Y-%m-%d} - {end:%Y-%m-%d}"
