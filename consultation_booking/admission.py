"""Booking admission: validate, sanitize, then claim the slot atomically.

Concurrency model:
- A per-(date, time) lock serializes admissions for the same slot inside
  this process, so of two racing requests exactly one inserts
- The store's partial unique index rejects anything the lock cannot see
  (another process, a revived cancellation)
"""
import asyncio
import threading
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple

from consultation_booking import config
from consultation_booking.bookings import BookingStore
from consultation_booking.domain import (
    Booking,
    BookingCategory,
    BookingRequest,
    Messenger,
)
from consultation_booking.errors import ValidationError
from consultation_booking.input_sanitizer import InputSanitizer
from consultation_booking.logging_config import get_logger
from consultation_booking.notifications.dispatcher import NotificationDispatcher, NotificationResult

logger = get_logger(__name__)

# (attribute, name the client sent it under)
REQUIRED_FIELDS = [
    ("date", "date"),
    ("time", "time"),
    ("full_name", "fullName"),
    ("email", "email"),
    ("phone", "phone"),
    ("category", "category"),
]

CLIENT_FIELD_NAMES = {
    "full_name": "fullName",
    "messenger_handle": "messengerHandle",
}

ESCAPED_FIELDS = ("full_name", "questions", "messenger_handle")


class SlotLocks:
    """Lazily created lock per slot; entries are dropped when unused."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._users: Dict[Tuple[str, str], int] = defaultdict(int)

    @contextmanager
    def hold(self, date: str, time: str) -> Iterator[None]:
        key = (date, time)
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] += 1

        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


@dataclass
class AdmissionOutcome:
    booking: Booking
    notifications: NotificationResult


class BookingAdmissionService:
    """Turns a raw booking request into a persisted booking."""

    def __init__(
        self,
        booking_store: BookingStore,
        dispatcher: Optional[NotificationDispatcher] = None,
        notification_wait: float = config.NOTIFICATION_WAIT_SECONDS,
    ):
        self.booking_store = booking_store
        self.dispatcher = dispatcher
        self.notification_wait = notification_wait
        self.slot_locks = SlotLocks()

    def validate(self, request: BookingRequest) -> Dict[str, Any]:
        """
        Check a request and produce store-ready fields.

        Returns:
            Dict with ``date`` parsed to ``datetime.date`` and free text escaped

        Raises:
            ValidationError: Naming the first offending field
        """
        for attribute, client_name in REQUIRED_FIELDS:
            if not getattr(request, attribute):
                raise ValidationError(f"Missing required field: {client_name}", field=client_name)

        booking_date = InputSanitizer.parse_date(request.date)
        if booking_date is None:
            raise ValidationError("Invalid date, expected YYYY-MM-DD", field="date")

        if not InputSanitizer.validate_time(request.time):
            raise ValidationError("Invalid time, expected HH:MM", field="time")

        if not InputSanitizer.validate_email(request.email):
            raise ValidationError("Invalid email address", field="email")

        if not InputSanitizer.validate_phone(request.phone):
            raise ValidationError("Invalid phone number", field="phone")

        try:
            category = BookingCategory(request.category)
        except ValueError:
            raise ValidationError("Category must be 'applicant' or 'parent'", field="category")

        try:
            messenger = Messenger(request.messenger or Messenger.NONE.value)
        except ValueError:
            raise ValidationError(
                "Messenger must be one of: none, telegram, whatsapp, viber", field="messenger"
            )

        if messenger != Messenger.NONE and not request.messenger_handle:
            raise ValidationError(
                "Messenger handle is required for the chosen messenger", field="messengerHandle"
            )

        data = {
            "date": booking_date,
            "time": request.time,
            "full_name": request.full_name,
            "email": request.email,
            "phone": request.phone,
            "category": category.value,
            "messenger": messenger.value,
            "messenger_handle": request.messenger_handle if messenger != Messenger.NONE else "",
            "questions": request.questions or "",
        }

        for field, value in data.items():
            if isinstance(value, str) and InputSanitizer.exceeds_max_length(field, value):
                client_name = CLIENT_FIELD_NAMES.get(field, field)
                raise ValidationError(f"Field too long: {client_name}", field=client_name)

        for field in ESCAPED_FIELDS:
            data[field] = InputSanitizer.escape_markup(data[field])

        return data

    def admit(self, request: BookingRequest) -> Booking:
        """
        Validate and insert a booking.

        Raises:
            ValidationError: Bad input
            SlotTakenError: The slot already has a non-cancelled booking
        """
        data = self.validate(request)

        with self.slot_locks.hold(request.date, request.time):
            return self.booking_store.create_booking(data)

    async def admit_and_notify(self, request: BookingRequest) -> AdmissionOutcome:
        """
        Admit in a worker thread, then notify with a bounded wait.

        Notification problems only show up as False flags.
        """
        booking = await asyncio.to_thread(self.admit, request)

        if self.dispatcher is None:
            return AdmissionOutcome(booking=booking, notifications=NotificationResult())

        notifications = await self.dispatcher.notify_within(booking, self.notification_wait)
        return AdmissionOutcome(booking=booking, notifications=notifications)
