"""iCalendar export of bookings.

Bookings are exported as floating local times (no TZID), one hour long.
"""
import html
from datetime import datetime, timedelta, UTC
from typing import Iterable, List, Optional

from consultation_booking import config
from consultation_booking.domain import Booking, BookingStatus

ICS_DATETIME_FORMAT = "%Y%m%dT%H%M%S"

STATUS_MAP = {
    BookingStatus.PENDING: "TENTATIVE",
    BookingStatus.CONFIRMED: "CONFIRMED",
    BookingStatus.CANCELLED: "CANCELLED",
}


def escape_text(value: str) -> str:
    """Escape a TEXT property value (RFC 5545 section 3.3.11)."""
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def _event_lines(booking: Booking, stamp: datetime) -> List[str]:
    hour, minute = (int(part) for part in booking.time.split(":"))
    start = datetime(booking.date.year, booking.date.month, booking.date.day, hour, minute)
    end = start + timedelta(minutes=config.CONSULTATION_DURATION_MINUTES)

    # Stored text is markup-escaped; calendars want the original characters
    name = html.unescape(booking.full_name)
    category = config.CATEGORY_LABELS.get(booking.category.value, booking.category.value)
    description = f"{category}\nEmail: {booking.email}\nPhone: {booking.phone}"
    if booking.questions:
        description += f"\nQuestions: {html.unescape(booking.questions)}"

    return [
        "BEGIN:VEVENT",
        f"UID:booking-{booking.id}@{config.ICS_UID_DOMAIN}",
        f"DTSTAMP:{stamp.strftime(ICS_DATETIME_FORMAT)}Z",
        f"DTSTART:{start.strftime(ICS_DATETIME_FORMAT)}",
        f"DTEND:{end.strftime(ICS_DATETIME_FORMAT)}",
        f"SUMMARY:{escape_text(f'Consultation - {name}')}",
        f"DESCRIPTION:{escape_text(description)}",
        f"STATUS:{STATUS_MAP[booking.status]}",
        "END:VEVENT",
    ]


def bookings_to_ics(bookings: Iterable[Booking], now: Optional[datetime] = None) -> str:
    """
    Render bookings as one VCALENDAR document.

    Args:
        bookings: Bookings to export
        now: DTSTAMP to use; defaults to the current UTC time

    Returns:
        CRLF-separated calendar text
    """
    stamp = (now or datetime.now(UTC)).astimezone(UTC)
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{config.ICS_PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
    ]
    for booking in bookings:
        lines.extend(_event_lines(booking, stamp))
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines) + "\r\n"


def booking_to_ics(booking: Booking, now: Optional[datetime] = None) -> str:
    """Render one booking as a calendar file."""
    return bookings_to_ics([booking], now=now)
