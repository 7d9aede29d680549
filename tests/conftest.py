"""Shared test fixtures."""
import time
from datetime import time as time_of_day

import pytest

from consultation_booking.bookings import BookingStore
from consultation_booking.database import Database
from consultation_booking.domain import BookingRequest
from consultation_booking.schedule import ScheduleStore


class FakeNotifier:
    """Notification channel double; records what it was asked to send."""

    def __init__(self, channel: str, configured: bool = True, error: Exception = None, delay: float = 0):
        self.channel = channel
        self.configured = configured
        self.error = error
        self.delay = delay
        self.sent = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def send(self, booking) -> bool:
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        self.sent.append(booking)
        return True


@pytest.fixture
def fake_notifier():
    return FakeNotifier


@pytest.fixture
def database(tmp_path):
    """File-backed SQLite database so worker threads share state."""
    db = Database(f"sqlite:///{tmp_path / 'bookings.db'}")
    db.init()
    yield db
    db.close()


@pytest.fixture
def booking_store(database):
    return BookingStore(database)


@pytest.fixture
def schedule_store(database):
    return ScheduleStore(database)


@pytest.fixture
def tuesday_schedule(schedule_store):
    """One consultant working Tuesdays 09:00-11:00."""
    consultant = schedule_store.add_consultant("Anna")
    schedule_store.add_schedule_entry(2, time_of_day(9, 0), time_of_day(11, 0), consultant_id=consultant.id)
    return consultant


@pytest.fixture
def booking_payload():
    """Valid public form payload (client field names)."""
    def _create(**overrides):
        payload = {
            "date": "2025-06-10",
            "time": "10:00",
            "fullName": "Ivan Petrov",
            "email": "ivan@example.com",
            "phone": "+7 900 123-45-67",
            "category": "applicant",
            "messenger": "none",
        }
        payload.update(overrides)
        return payload
    return _create


@pytest.fixture
def booking_request(booking_payload):
    def _create(**overrides):
        return BookingRequest.model_validate(booking_payload(**overrides))
    return _create
