"""Tests for free/busy slot enumeration."""

from datetime import datetime, timedelta

from rendezvous.domain.scheduling.candidates import resolve_range
from rendezvous.domain.scheduling.slot_generator import (
    TIME_WINDOW_PRESETS,
    Interval,
    format_slot_label,
    free_intervals,
    generate_available_slots,
    merge_intervals,
)

TZ = "Asia/Tokyo"
# 2025-01-20 09:00 → 18:00 JST (Monday)
DAY_START = datetime(2025, 1, 20, 0, 0)
DAY_END = datetime(2025, 1, 20, 9, 0)


def utc(hour, minute=0, day=20):
    return datetime(2025, 1, day, hour, minute)


class TestIntervals:
    def test_merge_overlapping_and_touching(self):
        merged = merge_intervals(
            [
                Interval(utc(3), utc(4)),
                Interval(utc(1), utc(2)),
                Interval(utc(2), utc(2, 30)),
                Interval(utc(3, 30), utc(5)),
            ]
        )

        assert merged == [Interval(utc(1), utc(2, 30)), Interval(utc(3), utc(5))]

    def test_free_is_complement(self):
        free = free_intervals([Interval(utc(1), utc(2))], utc(0), utc(3))

        assert free == [Interval(utc(0), utc(1)), Interval(utc(2), utc(3))]


class TestGenerateAvailableSlots:
    def test_full_day_on_half_hour_grid(self):
        slots = generate_available_slots(
            DAY_START, DAY_END, meeting_length_min=60, step_min=30, max_results=100, timezone_name=TZ
        )

        # 09:00 .. 17:00 JST starts
        assert len(slots) == 17
        assert slots[0].start_at == utc(0)
        assert slots[-1].end_at == DAY_END

    def test_busy_time_is_excluded(self):
        busy = [Interval(utc(1), utc(2, 30))]

        slots = generate_available_slots(
            DAY_START, DAY_END, busy=busy, meeting_length_min=60, step_min=30, max_results=100, timezone_name=TZ
        )

        assert len(slots) == 13
        for slot in slots:
            assert slot.end_at <= utc(1) or slot.start_at >= utc(2, 30)

    def test_results_are_ordered_and_capped(self):
        slots = generate_available_slots(DAY_START, DAY_END, max_results=3, timezone_name=TZ)

        assert len(slots) == 3
        assert [s.start_at for s in slots] == sorted(s.start_at for s in slots)

    def test_slot_must_fit_entirely_in_window(self):
        # whole day in JST
        slots = generate_available_slots(
            datetime(2025, 1, 19, 15, 0),
            datetime(2025, 1, 20, 15, 0),
            meeting_length_min=60,
            max_results=100,
            day_time_window=TIME_WINDOW_PRESETS["evening"],
            timezone_name=TZ,
        )

        labels = [s.label for s in slots]
        assert labels[0] == "1/20(Mon) 17:00-18:00"
        assert labels[-1] == "1/20(Mon) 20:00-21:00"

    def test_weekday_filter(self):
        # Mon 2025-01-20 → Mon 2025-01-27 JST
        slots = generate_available_slots(
            datetime(2025, 1, 19, 15, 0),
            datetime(2025, 1, 26, 15, 0),
            max_results=100,
            day_time_window=TIME_WINDOW_PRESETS["morning"],
            days=["sat"],
            timezone_name=TZ,
        )

        assert slots
        assert all(s.label.startswith("1/25(Sat)") for s in slots)

    def test_max_per_day(self):
        slots = generate_available_slots(
            datetime(2025, 1, 19, 15, 0),
            datetime(2025, 1, 21, 15, 0),
            max_results=100,
            day_time_window=TIME_WINDOW_PRESETS["any"],
            timezone_name=TZ,
            max_per_day=2,
        )

        assert [s.label.split(" ")[0] for s in slots] == ["1/20(Mon)", "1/20(Mon)", "1/21(Tue)", "1/21(Tue)"]

    def test_start_is_aligned_to_grid(self):
        slots = generate_available_slots(utc(0, 10), DAY_END, step_min=30, max_results=1, timezone_name=TZ)

        assert slots[0].start_at == utc(0, 30)

    def test_empty_or_inverted_range(self):
        assert generate_available_slots(DAY_END, DAY_START, timezone_name=TZ) == []
        assert generate_available_slots(DAY_START, DAY_START + timedelta(minutes=30), timezone_name=TZ) == []


def test_format_slot_label():
    assert format_slot_label(datetime(2025, 1, 24, 5, 0), datetime(2025, 1, 24, 6, 0), TZ) == "1/24(Fri) 14:00-15:00"


class TestResolveRange:
    def test_next_week_starts_monday_local_midnight(self):
        # Wednesday 2025-01-22 12:00 JST
        now = datetime(2025, 1, 22, 3, 0)

        time_min, time_max = resolve_range("next_week", now, TZ)

        assert time_min == datetime(2025, 1, 26, 15, 0)
        assert time_max == datetime(2025, 2, 2, 15, 0)

    def test_this_week_starts_now(self):
        now = datetime(2025, 1, 22, 3, 0)

        time_min, time_max = resolve_range("this_week", now, TZ)

        assert time_min == now
        assert time_max == datetime(2025, 1, 26, 15, 0)

    def test_any_is_two_weeks(self):
        now = datetime(2025, 1, 22, 3, 0)

        assert resolve_range("any", now, TZ) == (now, now + timedelta(days=14))
