"""Tests for iCalendar export."""
from datetime import date, datetime, UTC

import pytest

from consultation_booking.domain import Booking
from consultation_booking.ics import booking_to_ics, bookings_to_ics, escape_text

STAMP = datetime(2025, 6, 1, 8, 30, tzinfo=UTC)


def _booking(**overrides):
    fields = dict(
        id=3,
        date=date(2025, 6, 10),
        time="14:00",
        full_name="Anna &amp; Co",
        email="anna@example.com",
        phone="1234567",
        category="parent",
        questions="",
        status="confirmed",
        created_at=datetime(2025, 6, 1),
        updated_at=datetime(2025, 6, 1),
    )
    fields.update(overrides)
    return Booking(**fields)


def test_single_booking_calendar():
    ics = booking_to_ics(_booking(), now=STAMP)
    lines = ics.split("\r\n")

    assert lines[0] == "BEGIN:VCALENDAR"
    assert "UID:booking-3@consultation.local" in lines
    assert "DTSTAMP:20250601T083000Z" in lines
    assert "DTSTART:20250610T140000" in lines
    assert "DTEND:20250610T150000" in lines
    assert "SUMMARY:Consultation - Anna & Co" in lines
    assert "STATUS:CONFIRMED" in lines
    assert ics.endswith("END:VCALENDAR\r\n")


def test_description_lists_category_and_contacts():
    ics = booking_to_ics(_booking(questions="Dorms, fees; deadlines"), now=STAMP)

    description = next(line for line in ics.split("\r\n") if line.startswith("DESCRIPTION:"))
    assert description.startswith("DESCRIPTION:Parent\\nEmail: anna@example.com")
    assert r"Dorms\, fees\; deadlines" in description


def test_end_crosses_midnight():
    ics = booking_to_ics(_booking(time="23:00"), now=STAMP)

    assert "DTEND:20250611T000000" in ics


@pytest.mark.parametrize("status, expected", [
    ("pending", "TENTATIVE"),
    ("confirmed", "CONFIRMED"),
    ("cancelled", "CANCELLED"),
])
def test_status_mapping(status, expected):
    assert f"STATUS:{expected}" in booking_to_ics(_booking(status=status), now=STAMP)


def test_multiple_bookings_share_one_calendar():
    ics = bookings_to_ics([_booking(id=1), _booking(id=2, time="15:00")], now=STAMP)

    assert ics.count("BEGIN:VCALENDAR") == 1
    assert ics.count("BEGIN:VEVENT") == 2
    assert "UID:booking-2@consultation.local" in ics


def test_empty_export_is_valid_calendar():
    ics = bookings_to_ics([], now=STAMP)

    assert "BEGIN:VEVENT" not in ics
    assert ics.startswith("BEGIN:VCALENDAR")


def test_escape_text():
    assert escape_text("a,b;c\\d\ne") == r"a\,b\;c\\d\ne"
