# utils/dates.py
"""Civil-date helpers pinned to one business timezone.

Calendar dates (``start_date``, ``due_date``) are plain ``YYYY-MM-DD`` values
and every "today" comparison is made in the CRM timezone, never the server's.
Timestamps (``created_at``, ``completed_at``) stay UTC instants.
"""
from __future__ import annotations

import math
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple, Union

from dateutil import parser, tz
from dateutil.relativedelta import relativedelta

from config import get_setting
from models.enums import DueUnit

DateLike = Union[str, date]

MS_PER_DAY = 86_400_000


class Clock:
    """Source of "now"; pass one to anything that needs today's date."""

    def __init__(self, tz_name: Optional[str] = None):
        self.tz_name = tz_name or get_setting("CRM_TIMEZONE")
        self.tz = tz.gettz(self.tz_name)
        if self.tz is None:
            raise ValueError(f"Unknown timezone {self.tz_name!r}")

    def utcnow(self) -> datetime:
        return datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self.utcnow().astimezone(self.tz)

    def today(self) -> str:
        return self.now().date().isoformat()

    def now_utc_iso(self) -> str:
        return self.utcnow().isoformat()


class FixedClock(Clock):
    def __init__(self, instant: Union[str, datetime], tz_name: Optional[str] = None):
        super().__init__(tz_name)
        if isinstance(instant, str):
            instant = parser.isoparse(instant)
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self.instant = instant

    def utcnow(self) -> datetime:
        return self.instant.astimezone(timezone.utc)


def is_instant(raw: str) -> bool:
    return "T" in raw or "Z" in raw or "+" in raw


def date_part(value: DateLike) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value.split("T")[0] if "T" in value else value


def to_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(date_part(value))


def parse_for_display(raw: Optional[DateLike], clock: Clock) -> datetime:
    """Aware datetime in the CRM zone, ready for formatting.

    Instants are converted into the zone. Bare calendar dates are read as
    noon local so that no zone shift can move them onto a neighbouring day.
    """
    if not raw:
        return clock.now()
    if isinstance(raw, datetime):
        inst = raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
        return inst.astimezone(clock.tz)
    if isinstance(raw, str) and is_instant(raw):
        inst = parser.isoparse(raw)
        if inst.tzinfo is None:
            inst = inst.replace(tzinfo=timezone.utc)
        return inst.astimezone(clock.tz)
    return datetime.combine(to_date(raw), time(12, 0), tzinfo=clock.tz)


def is_before_today(value: Optional[DateLike], clock: Clock) -> bool:
    if not value:
        return False
    return date_part(value) < clock.today()


def is_today_or_future(value: Optional[DateLike], clock: Clock) -> bool:
    if not value:
        return False
    return date_part(value) >= clock.today()


def days_from_today(value: DateLike, clock: Clock) -> int:
    """``today - value`` in whole days: positive when overdue, negative when still ahead."""
    today_mid = datetime.combine(to_date(clock.today()), time.min)
    value_mid = datetime.combine(to_date(value), time.min)
    diff_ms = (today_mid - value_mid) / timedelta(milliseconds=1)
    return math.floor(diff_ms / MS_PER_DAY)


def add_days(value: DateLike, days: int) -> str:
    return (to_date(value) + timedelta(days=days)).isoformat()


def future_date(days: int, clock: Clock) -> str:
    return add_days(clock.today(), days)


def add_offset(start: datetime, amount: int, unit: str) -> datetime:
    if unit == DueUnit.HOURS:
        return start + timedelta(hours=amount)
    if unit == DueUnit.DAYS:
        return start + timedelta(days=amount)
    if unit == DueUnit.WEEKS:
        return start + timedelta(weeks=amount)
    if unit == DueUnit.MONTHS:
        return start + relativedelta(months=amount)
    raise ValueError(f"Unsupported offset unit {unit!r}")


# ---- display ----
def _clock12(d: datetime) -> str:
    return f"{d.hour % 12 or 12}:{d:%M} {'PM' if d.hour >= 12 else 'AM'}"


def format_date(raw: Optional[DateLike], clock: Clock) -> str:
    if not raw:
        return ""
    return f"{parse_for_display(raw, clock):%m/%d/%Y}"


def format_date_time(raw: Optional[DateLike], clock: Clock) -> str:
    if not raw:
        return ""
    d = parse_for_display(raw, clock)
    return f"{d:%m/%d/%Y} {_clock12(d)}"


def format_date_compact(raw: Optional[DateLike], clock: Clock) -> str:
    # Mon, Feb 14
    if not raw:
        return ""
    d = parse_for_display(raw, clock)
    return f"{d:%a, %b} {d.day}"


def format_date_short(raw: Optional[DateLike], clock: Clock) -> str:
    if not raw:
        return ""
    d = parse_for_display(raw, clock)
    return f"{d:%b} {d.day}"


def format_date_medium(raw: Optional[DateLike], clock: Clock) -> str:
    if not raw:
        return ""
    d = parse_for_display(raw, clock)
    return f"{d:%b} {d.day}, {d.year}"


def format_date_long(raw: Optional[DateLike], clock: Clock) -> str:
    if not raw:
        return ""
    d = parse_for_display(raw, clock)
    return f"{d:%a, %b} {d.day}, {d.year}"


def format_time(raw: Optional[str]) -> str:
    """'14:05:00' -> '2:05 PM'."""
    if not raw:
        return ""
    hh, mm = raw.split(":")[:2]
    hour = int(hh)
    return f"{hour % 12 or 12}:{mm} {'PM' if hour >= 12 else 'AM'}"


def format_relative_time(raw: DateLike, clock: Clock) -> str:
    diff = clock.utcnow() - parse_for_display(raw, clock)
    mins = math.floor(diff.total_seconds() / 60)
    hours = math.floor(mins / 60)
    days = math.floor(hours / 24)
    if mins < 1:
        return "just now"
    if mins < 60:
        return f"{mins}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 30:
        return f"{days}d ago"
    return format_date(raw, clock)


def due_label(due: DateLike, clock: Clock) -> Tuple[str, bool]:
    """('3d overdue', True) or ('in 5h', False)."""
    diff = parse_for_display(due, clock) - clock.utcnow()
    overdue = diff.total_seconds() < 0
    hours = math.floor(abs(diff.total_seconds()) / 3600)
    days = hours // 24
    if days > 30:
        text = f"{days // 30}mo"
    elif days > 0:
        text = f"{days}d"
    elif hours > 0:
        text = f"{hours}h"
    else:
        text = "<1h"
    return (f"{text} overdue", True) if overdue else (f"in {text}", False)
