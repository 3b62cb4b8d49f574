"""Slot generation from doctor schedules.

Schedules are stored as UTC instants. Slot times are laid out in the clinic
time zone: a recurring schedule keeps its local start time on every
occurrence, so a daylight-saving change moves the UTC instant rather than
the time patients see.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")


@dataclass(frozen=True)
class Slot:
    """A bookable slot: what the patient sees and the canonical instant."""

    display: str
    starts_at: datetime


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _parse_datetime(value: datetime | str) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return as_utc(value)


def _parse_date(value: date | str) -> date:
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    if isinstance(value, datetime):
        return value.date()
    return value


def format_slot(value: datetime) -> str:
    """Format a local slot start the way patients see it, e.g. ``9:30AM``."""
    return value.strftime("%I:%M%p").lstrip("0")


def day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Return the UTC instants delimiting the local calendar ``day``."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)


def _occurrence_start(schedule: dict[str, Any], day: date, tz: ZoneInfo) -> datetime:
    start_local = _parse_datetime(schedule["start_time"]).astimezone(tz)
    return datetime.combine(day, start_local.time(), tzinfo=tz)


def _runs_on(schedule: dict[str, Any], day: date, tz: ZoneInfo) -> bool:
    if WEEKDAY_CODES[day.weekday()] not in (schedule.get("recurrence_days") or []):
        return False
    first_day = _parse_datetime(schedule["start_time"]).astimezone(tz).date()
    if day < first_day:
        return False
    until = schedule.get("recurrence_until")
    if until is not None and day > _parse_datetime(until).astimezone(tz).date():
        return False
    return True


def is_schedule_expired(schedule: dict[str, Any], now: datetime, tz: ZoneInfo) -> bool:
    """
    Return True once a schedule can no longer produce a future window.

    One-off schedules expire when their end time passes; recurring ones when
    no occurrence starts at or after ``now``.
    """
    now = as_utc(now)
    if not schedule["is_recurring"]:
        return now > _parse_datetime(schedule["end_time"])

    until = schedule.get("recurrence_until")
    if until is None:
        return False
    if not schedule.get("recurrence_days"):
        return True

    last_day = _parse_datetime(until).astimezone(tz).date()
    first_day = _parse_datetime(schedule["start_time"]).astimezone(tz).date()
    day = max(now.astimezone(tz).date(), first_day)
    while day <= last_day:
        if _runs_on(schedule, day, tz) and _occurrence_start(schedule, day, tz) >= now:
            return False
        day += timedelta(days=1)
    return True


def pick_active_schedule(
    schedules: Iterable[dict[str, Any]], now: datetime, tz: ZoneInfo
) -> dict[str, Any] | None:
    """Return the first schedule that has not expired."""
    for schedule in schedules:
        if not is_schedule_expired(schedule, now, tz):
            return schedule
    return None


def _exception_for(schedule: dict[str, Any], day: date) -> dict[str, Any] | None:
    for exception in schedule.get("exceptions") or []:
        if _parse_date(exception["date"]) == day:
            return exception
    return None


def _break_windows(
    schedule: dict[str, Any], day: date, tz: ZoneInfo
) -> list[tuple[datetime, datetime]]:
    windows = []
    for item in schedule.get("breaks") or []:
        start = _parse_datetime(item["start_time"])
        end = _parse_datetime(item["end_time"])
        if schedule["is_recurring"]:
            # Breaks repeat at the same local time on every occurrence
            start = datetime.combine(day, start.astimezone(tz).time(), tzinfo=tz)
            end = datetime.combine(day, end.astimezone(tz).time(), tzinfo=tz)
        windows.append((as_utc(start), as_utc(end)))
    return windows


def schedule_slots(schedule: dict[str, Any], day: date, tz: ZoneInfo) -> list[Slot]:
    """
    Lay out every slot the schedule offers on the local calendar ``day``.

    Booked slots are not removed here; see :func:`filter_available`.
    """
    exception = _exception_for(schedule, day)
    if exception and exception.get("is_off"):
        return []

    duration = timedelta(
        minutes=(exception or {}).get("override_slot_duration")
        or schedule["default_slot_duration"]
    )

    start = _parse_datetime(schedule["start_time"]).astimezone(tz)
    end = _parse_datetime(schedule["end_time"]).astimezone(tz)

    if schedule["is_recurring"]:
        if not _runs_on(schedule, day, tz):
            return []
        window_start = _occurrence_start(schedule, day, tz)
        # Aware + timedelta is wall-clock arithmetic, so the local length holds
        window_end = window_start + (end.replace(tzinfo=None) - start.replace(tzinfo=None))
    else:
        window_start, window_end = start, end

    breaks = _break_windows(schedule, day, tz)
    slots: list[Slot] = []
    current = window_start
    while current + duration <= window_end:
        slot_start = as_utc(current)
        slot_end = slot_start + duration
        overlaps_break = any(slot_start < b_end and b_start < slot_end for b_start, b_end in breaks)
        if current.date() == day and not overlaps_break:
            slots.append(Slot(display=format_slot(current), starts_at=slot_start))
        current = current + duration
    return slots


def filter_available(
    slots: Iterable[Slot],
    booked: Iterable[datetime],
    now: datetime | None = None,
) -> list[Slot]:
    """Drop slots that are already held, or that start at or before ``now``."""
    taken = {as_utc(value) for value in booked}
    cutoff = as_utc(now) if now is not None else None
    return [
        slot
        for slot in slots
        if slot.starts_at not in taken and (cutoff is None or slot.starts_at > cutoff)
    ]
