"""Slot availability computation.

Slots are whole hours inside each active weekly schedule entry for the
requested weekday, minus the hours already held by non-cancelled bookings.
A blocked date has no slots at all.
"""
from datetime import date
from typing import Callable, List, Optional

from consultation_booking.bookings import BookingStore
from consultation_booking.domain import Slot
from consultation_booking.logging_config import get_logger
from consultation_booking.schedule import ScheduleStore

logger = get_logger(__name__)


class AvailabilityEngine:
    """Compute bookable slots for a calendar date."""

    def __init__(
        self,
        schedule_store: ScheduleStore,
        booking_store: BookingStore,
        clock: Optional[Callable[[], date]] = None,
    ):
        """
        Args:
            schedule_store: Source of schedule entries and blocked dates
            booking_store: Source of occupied times
            clock: Optional callable returning today's date; when given,
                dates before today have no slots
        """
        self.schedule_store = schedule_store
        self.booking_store = booking_store
        self.clock = clock

    def compute_available_slots(self, target_date: date) -> List[Slot]:
        """
        Get available slots for a date.

        Order follows the schedule entries (by start time), then ascending
        hour. Two consultants working the same hour each produce a slot.

        Args:
            target_date: Calendar date to inspect

        Returns:
            Free slots, possibly empty
        """
        if self.clock is not None and target_date < self.clock():
            return []

        if self.schedule_store.is_date_blocked(target_date):
            logger.debug("date_blocked_no_slots", date=str(target_date))
            return []

        entries = self.schedule_store.entries_for_day_of_week(target_date.isoweekday())
        if not entries:
            return []

        occupied = set(self.booking_store.occupied_times(target_date))

        slots = []
        for entry in entries:
            for hour in range(entry.start_time.hour, entry.end_time.hour):
                time = f"{hour:02d}:00"
                if time in occupied:
                    continue
                slots.append(Slot(time=time, consultant=entry.consultant_name))

        return slots

    def available_times(self, target_date: date) -> List[str]:
        """Distinct free times for a date, in slot order."""
        seen = []
        for slot in self.compute_available_slots(target_date):
            if slot.time not in seen:
                seen.append(slot.time)
        return seen
