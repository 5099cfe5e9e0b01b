# carwash/services/slots/calculator.py
"""
Slot calculation for one service on one day.

Produces the ordered list of TimeSlot entries:
  (time "HH:MM", available, capacity_remaining)

Contains:
✓ business hours of the weekday (open/close, break window)
✓ holidays (no slots at all)
✓ active bookings of the service (capacity counting)

Pure function of its inputs: no database, no clock, no cache.
Identical inputs always give identical output, which is what makes
caching the result safe.
"""

from datetime import date
from typing import Iterable, Optional

from ...models.tables import INACTIVE_STATUSES
from ...schemas.slots import TimeSlot
from .config import intervals_overlap, minutes_to_time_str, slot_interval, time_str_to_minutes

DEFAULT_STEP_MINUTES = 30


def compute_slots(
    service,
    target_date: date,
    business_hours,
    holiday=None,
    bookings: Iterable = (),
    step_minutes: int = DEFAULT_STEP_MINUTES,
) -> list[TimeSlot]:
    """
    Calculate the bookable slots of a service on target_date.

    Args:
        service: object with duration_minutes and capacity
        target_date: the day being calculated
        business_hours: object with open_time, close_time, is_open,
                        break_start, break_end (or None = closed)
        holiday: holiday record for the day, or None
        bookings: bookings of this service on this day (any status)
        step_minutes: candidate start time step

    Returns:
        Slots ordered by time. Empty list = nothing offered that day.
    """
    if holiday is not None:
        return []
    if business_hours is None or not business_hours.is_open:
        return []

    open_min = time_str_to_minutes(business_hours.open_time)
    close_min = time_str_to_minutes(business_hours.close_time)
    break_window = _break_window(business_hours)

    duration = service.duration_minutes
    capacity = service.capacity
    occupied = _active_intervals(bookings)

    slots: list[TimeSlot] = []
    t = open_min
    while t < close_min:
        candidate = (t, t + duration)

        # Service would run past closing time
        if candidate[1] > close_min:
            break

        if break_window and intervals_overlap(candidate, break_window):
            t += step_minutes
            continue

        booked = sum(1 for interval in occupied if intervals_overlap(candidate, interval))
        slots.append(TimeSlot(
            time=minutes_to_time_str(t),
            available=booked < capacity,
            capacity_remaining=max(capacity - booked, 0),
        ))

        t += step_minutes

    return slots


def find_slot(slots: list[TimeSlot], start_time: str) -> Optional[TimeSlot]:
    """Return the slot starting at start_time, if it is offered."""
    for slot in slots:
        if slot.time == start_time:
            return slot
    return None


# ── Helpers ──────────────────────────────────────────────────────────────


def _break_window(business_hours) -> Optional[tuple[int, int]]:
    """Break window in minutes, or None when the day has no break."""
    if not business_hours.break_start or not business_hours.break_end:
        return None
    return (
        time_str_to_minutes(business_hours.break_start),
        time_str_to_minutes(business_hours.break_end),
    )


def _active_intervals(bookings: Iterable) -> list[tuple[int, int]]:
    """[start, end) intervals of bookings that still occupy capacity."""
    intervals = []
    for booking in bookings:
        if _status_value(booking.status) in INACTIVE_STATUSES:
            continue
        intervals.append(slot_interval(booking.start_time, booking.duration_minutes))
    return intervals


def _status_value(status) -> str:
    return status.value if hasattr(status, "value") else status
