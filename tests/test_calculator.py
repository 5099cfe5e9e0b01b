"""Tests for the pure slot calculator."""

from datetime import date
from types import SimpleNamespace

import pytest

from carwash.services.slots.calculator import compute_slots, find_slot
from carwash.services.slots.config import (
    BookingConfig,
    intervals_overlap,
    minutes_to_time_str,
    time_str_to_minutes,
)

DAY = date(2030, 1, 10)


def hours(open_time="08:00", close_time="18:00", is_open=1, break_start=None, break_end=None):
    return SimpleNamespace(
        open_time=open_time,
        close_time=close_time,
        is_open=is_open,
        break_start=break_start,
        break_end=break_end,
    )


def service(duration=30, capacity=1):
    return SimpleNamespace(duration_minutes=duration, capacity=capacity)


def booking(start_time, duration=30, status="PENDING"):
    return SimpleNamespace(start_time=start_time, duration_minutes=duration, status=status)


class TestOpenDay:

    def test_full_day_of_half_hour_slots(self):
        slots = compute_slots(service(), DAY, hours())

        assert len(slots) == 20
        assert slots[0].time == "08:00"
        assert slots[-1].time == "17:30"
        assert all(s.available for s in slots)
        assert all(s.capacity_remaining == 1 for s in slots)

    def test_slots_are_ordered_and_on_the_grid(self):
        slots = compute_slots(service(), DAY, hours(), step_minutes=15)
        times = [s.time for s in slots]

        assert times == sorted(times)
        assert all(time_str_to_minutes(t) % 15 == 0 for t in times)

    def test_service_may_not_run_past_closing(self):
        slots = compute_slots(service(duration=90), DAY, hours())

        assert slots[-1].time == "16:30"

    def test_service_longer_than_the_day_has_no_slots(self):
        assert compute_slots(service(duration=120), DAY, hours("08:00", "09:00")) == []


class TestClosedDays:

    def test_holiday_has_no_slots(self):
        holiday = SimpleNamespace(date=DAY, name="New Year")
        assert compute_slots(service(), DAY, hours(), holiday=holiday) == []

    def test_closed_weekday_has_no_slots(self):
        assert compute_slots(service(), DAY, hours(is_open=0)) == []

    def test_missing_business_hours_means_closed(self):
        assert compute_slots(service(), DAY, None) == []


class TestBreaks:

    def test_slots_overlapping_the_break_are_skipped(self):
        slots = compute_slots(service(duration=60), DAY, hours(break_start="12:00", break_end="13:00"))
        times = [s.time for s in slots]

        assert "11:00" in times
        assert "11:30" not in times
        assert "12:00" not in times
        assert "12:30" not in times
        assert "13:00" in times

    def test_slot_ending_exactly_at_break_start_is_offered(self):
        slots = compute_slots(service(), DAY, hours(break_start="12:00", break_end="13:00"))

        assert find_slot(slots, "11:30") is not None


class TestCapacity:

    def test_booked_slot_is_unavailable_at_capacity_one(self):
        slots = compute_slots(service(), DAY, hours(), bookings=[booking("10:00")])

        assert find_slot(slots, "10:00").available is False
        assert find_slot(slots, "10:00").capacity_remaining == 0
        # Half-open intervals: back-to-back slots do not collide
        assert find_slot(slots, "09:30").available is True
        assert find_slot(slots, "10:30").available is True

    def test_long_booking_blocks_every_overlapping_start(self):
        slots = compute_slots(service(duration=60), DAY, hours(), bookings=[booking("10:00", duration=60)])

        assert find_slot(slots, "09:30").available is False
        assert find_slot(slots, "10:00").available is False
        assert find_slot(slots, "10:30").available is False
        assert find_slot(slots, "11:00").available is True

    def test_capacity_counts_overlapping_bookings(self):
        svc = service(duration=60, capacity=2)

        one = compute_slots(svc, DAY, hours(), bookings=[booking("10:00", 60)])
        two = compute_slots(svc, DAY, hours(), bookings=[booking("10:00", 60), booking("10:30", 60)])

        assert find_slot(one, "10:00").available is True
        assert find_slot(one, "10:00").capacity_remaining == 1
        assert find_slot(two, "10:00").available is False
        assert find_slot(two, "10:30").available is False

    def test_zero_capacity_service_offers_nothing_bookable(self):
        slots = compute_slots(service(capacity=0), DAY, hours())

        assert len(slots) == 20
        assert not any(s.available for s in slots)
        assert all(s.capacity_remaining == 0 for s in slots)

    @pytest.mark.parametrize("status", ["CANCELLED", "NO_SHOW"])
    def test_inactive_bookings_free_their_slot(self, status):
        slots = compute_slots(service(), DAY, hours(), bookings=[booking("10:00", status=status)])

        assert find_slot(slots, "10:00").available is True

    def test_same_inputs_give_same_output(self):
        args = (service(), DAY, hours(break_start="12:00", break_end="12:30"))
        kwargs = {"bookings": [booking("09:00")]}

        assert compute_slots(*args, **kwargs) == compute_slots(*args, **kwargs)


class TestClockHelpers:

    def test_minutes_conversion(self):
        assert time_str_to_minutes("08:30") == 510
        assert minutes_to_time_str(510) == "08:30"
        assert minutes_to_time_str(0) == "00:00"

    def test_overlap_is_half_open(self):
        assert intervals_overlap((600, 630), (615, 645))
        assert not intervals_overlap((600, 630), (630, 660))

    def test_slot_step_is_validated(self):
        with pytest.raises(ValueError):
            BookingConfig(slot_step_minutes=20)
