"""Candidate slots for a thread's next proposal"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import OPEN_SLOTS_WINDOW_DAYS, REPROPOSAL_SLOT_COUNT
from ...models import SchedulingThread, utcnow
from .repository import SchedulingRepository
from .slot_generator import (
    BUSINESS_DAYS,
    AvailableSlot,
    Interval,
    generate_available_slots,
    get_time_window,
    local_midnight_utc,
    to_local,
)

logger = logging.getLogger(__name__)

RANGES = ("this_week", "next_week", "next_next_week", "any")
PREFERS = ("morning", "afternoon", "evening", "any")


@dataclass
class CandidateResult:
    slots: list[AvailableSlot]
    time_min: datetime
    time_max: datetime
    excluded_count: int


def resolve_range(range_key: str, now: datetime, tz: str) -> tuple[datetime, datetime]:
    """Search range (naive UTC) for a range preference, weeks starting Monday in tz"""
    today = to_local(now, tz).date()
    monday = today - timedelta(days=today.weekday())

    if range_key == "this_week":
        return now, local_midnight_utc(monday + timedelta(days=7), tz)
    if range_key == "next_week":
        return local_midnight_utc(monday + timedelta(days=7), tz), local_midnight_utc(monday + timedelta(days=14), tz)
    if range_key == "next_next_week":
        return local_midnight_utc(monday + timedelta(days=14), tz), local_midnight_utc(monday + timedelta(days=21), tz)
    return now, now + timedelta(days=OPEN_SLOTS_WINDOW_DAYS)


class CandidateGenerator:
    """Generates slots from the organizer's confirmed bookings

    Slots already proposed on the thread are treated as busy so a new
    proposal never repeats them.
    """

    def __init__(self, db: Session, slot_count: int = REPROPOSAL_SLOT_COUNT):
        self.db = db
        self.slot_count = slot_count
        self.repo = SchedulingRepository()

    def generate(
        self,
        thread: SchedulingThread,
        range_key: str = "any",
        prefer: str = "any",
        now: Optional[datetime] = None,
    ) -> CandidateResult:
        now = now or utcnow()
        time_min, time_max = resolve_range(range_key, now, thread.timezone)
        time_min = max(time_min, now)

        busy = [
            Interval(b.start_at, b.end_at)
            for b in self.repo.get_confirmed_bookings(self.db, thread.organizer_user_id, time_min, time_max)
        ]
        existing = [Interval(s.start_at, s.end_at) for s in self.repo.get_slots(self.db, thread.id)]

        slots = generate_available_slots(
            time_min=time_min,
            time_max=time_max,
            busy=busy + existing,
            meeting_length_min=thread.duration_minutes,
            step_min=thread.duration_minutes,
            max_results=self.slot_count,
            day_time_window=get_time_window(prefer),
            days=BUSINESS_DAYS,
            timezone_name=thread.timezone,
        )
        logger.debug(
            f"Generated {len(slots)} candidates for thread {thread.id} "
            f"(range={range_key}, prefer={prefer}, busy={len(busy)}, excluded={len(existing)})"
        )
        return CandidateResult(slots=slots, time_min=time_min, time_max=time_max, excluded_count=len(existing))
