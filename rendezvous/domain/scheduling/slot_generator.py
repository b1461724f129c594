"""
Free/busy → available slot enumeration

Busy intervals are clipped to the search range, merged, inverted into free
intervals, then walked on a fixed grid. Candidates are filtered by local
time-of-day window and weekday in the thread's timezone.

All datetimes are naive UTC.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from ...config import DEFAULT_TIMEZONE

DEFAULT_MEETING_LENGTH_MIN = 60
DEFAULT_STEP_MIN = 30
DEFAULT_MAX_RESULTS = 8

WEEKDAY_KEYS = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")
BUSINESS_DAYS = ["mon", "tue", "wed", "thu", "fri"]

_WEEKDAY_LABELS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


@dataclass(frozen=True)
class DayTimeWindow:
    start_hour: int
    end_hour: int


# Time-of-day preferences offered to invitees
TIME_WINDOW_PRESETS = {
    "morning": DayTimeWindow(9, 12),
    "afternoon": DayTimeWindow(13, 17),
    "evening": DayTimeWindow(17, 21),
    "any": DayTimeWindow(9, 18),
}


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class AvailableSlot:
    start_at: datetime
    end_at: datetime
    label: str


def get_time_window(prefer: Optional[str]) -> DayTimeWindow:
    return TIME_WINDOW_PRESETS.get(prefer or "any", TIME_WINDOW_PRESETS["any"])


def to_local(dt: datetime, tz: str) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(ZoneInfo(tz))


def to_utc_naive(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def local_midnight_utc(day: date, tz: str) -> datetime:
    """Naive UTC instant of 00:00 on `day` in `tz`"""
    return to_utc_naive(datetime(day.year, day.month, day.day, tzinfo=ZoneInfo(tz)))


def format_slot_label(start_at: datetime, end_at: datetime, tz: str) -> str:
    """e.g. '1/24(Fri) 14:00-15:00' in the given timezone"""
    start = to_local(start_at, tz)
    end = to_local(end_at, tz)
    return f"{start.month}/{start.day}({_WEEKDAY_LABELS[start.weekday()]}) {start:%H:%M}-{end:%H:%M}"


def clip_intervals(busy: Iterable[Interval], time_min: datetime, time_max: datetime) -> list[Interval]:
    clipped = []
    for b in busy:
        if b.end <= time_min or b.start >= time_max:
            continue
        clipped.append(Interval(max(b.start, time_min), min(b.end, time_max)))
    return clipped


def merge_intervals(intervals: Iterable[Interval]) -> list[Interval]:
    """Merge overlapping or touching intervals"""
    merged: list[Interval] = []
    for current in sorted(intervals, key=lambda i: i.start):
        if merged and current.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, current.end))
        else:
            merged.append(current)
    return merged


def free_intervals(busy: list[Interval], time_min: datetime, time_max: datetime) -> list[Interval]:
    """Complement of merged busy intervals within [time_min, time_max]"""
    free = []
    cursor = time_min
    for b in busy:
        if cursor < b.start:
            free.append(Interval(cursor, b.start))
        cursor = max(cursor, b.end)
    if cursor < time_max:
        free.append(Interval(cursor, time_max))
    return free


def _align_to_grid(dt: datetime, step: timedelta) -> datetime:
    """Round up to the next multiple of step (counted from the hour)"""
    base = dt.replace(minute=0, second=0, microsecond=0)
    offset = dt - base
    steps = -(-offset // step)
    return base + steps * step


def _fits_window(start_local: datetime, end_local: datetime, window: DayTimeWindow) -> bool:
    midnight = start_local.replace(hour=0, minute=0, second=0, microsecond=0)
    window_start = midnight + timedelta(hours=window.start_hour)
    window_end = midnight + timedelta(hours=window.end_hour)
    return window_start <= start_local and end_local <= window_end


def generate_available_slots(
    time_min: datetime,
    time_max: datetime,
    busy: Iterable[Interval] = (),
    meeting_length_min: int = DEFAULT_MEETING_LENGTH_MIN,
    step_min: int = DEFAULT_STEP_MIN,
    max_results: int = DEFAULT_MAX_RESULTS,
    day_time_window: Optional[DayTimeWindow] = None,
    days: Optional[Iterable[str]] = None,
    timezone_name: str = DEFAULT_TIMEZONE,
    max_per_day: Optional[int] = None,
) -> list[AvailableSlot]:
    """Enumerate free slots of meeting_length_min, ordered by start time

    Args:
        time_min / time_max: search range (naive UTC)
        busy: intervals that must not overlap a slot
        step_min: grid step; slot starts are aligned to it
        day_time_window: local hours a slot must fall entirely within
        days: allowed local weekdays ('mon'..'sun'); all when None
        max_per_day: cap per local calendar day
    """
    if time_max <= time_min or meeting_length_min <= 0 or step_min <= 0 or max_results <= 0:
        return []

    length = timedelta(minutes=meeting_length_min)
    step = timedelta(minutes=step_min)
    allowed_days = {d.lower()[:3] for d in days} if days else None

    merged = merge_intervals(clip_intervals(busy, time_min, time_max))
    slots: list[AvailableSlot] = []
    per_day: dict[date, int] = {}

    for free in free_intervals(merged, time_min, time_max):
        cursor = _align_to_grid(free.start, step)
        while cursor + length <= free.end and len(slots) < max_results:
            slot_end = cursor + length
            start_local = to_local(cursor, timezone_name)
            end_local = to_local(slot_end, timezone_name)
            local_day = start_local.date()

            if allowed_days is not None and WEEKDAY_KEYS[start_local.weekday()] not in allowed_days:
                cursor += step
                continue
            if day_time_window and not _fits_window(start_local, end_local, day_time_window):
                cursor += step
                continue
            if max_per_day is not None and per_day.get(local_day, 0) >= max_per_day:
                cursor += step
                continue

            slots.append(
                AvailableSlot(
                    start_at=cursor,
                    end_at=slot_end,
                    label=format_slot_label(cursor, slot_end, timezone_name),
                )
            )
            per_day[local_day] = per_day.get(local_day, 0) + 1
            cursor += step

        if len(slots) >= max_results:
            break

    return slots
