"""Admin panel view model.

Turns bookings into display rows and headline numbers so the admin page only
has to render data.
"""
from dataclasses import asdict, dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional

from consultation_booking import config
from consultation_booking.domain import Booking, BookingCategory, Messenger, display_date

QUESTIONS_PREVIEW_LENGTH = 50


@dataclass
class BookingRow:
    id: int
    name: str
    email: str
    phone: str
    messenger: Optional[str]
    date: str
    time: str
    category: str
    questions_preview: str
    status: str

    def as_dict(self) -> Dict:
        return asdict(self)


def _questions_preview(questions: str) -> str:
    if not questions:
        return ""
    if len(questions) <= QUESTIONS_PREVIEW_LENGTH:
        return questions
    return questions[:QUESTIONS_PREVIEW_LENGTH] + "..."


def build_booking_rows(bookings: Iterable[Booking]) -> List[BookingRow]:
    """One display row per booking, in the given order."""
    rows = []
    for booking in bookings:
        messenger = None
        if booking.messenger != Messenger.NONE and booking.messenger_handle:
            label = config.MESSENGER_LABELS[booking.messenger.value]
            messenger = f"{label}: {booking.messenger_handle}"

        rows.append(BookingRow(
            id=booking.id,
            name=booking.full_name,
            email=booking.email,
            phone=booking.phone,
            messenger=messenger,
            date=display_date(booking.date),
            time=booking.time,
            category=config.CATEGORY_LABELS.get(booking.category.value, booking.category.value),
            questions_preview=_questions_preview(booking.questions),
            status=booking.status.value,
        ))
    return rows


def booking_stats(bookings: Iterable[Booking], today: date) -> Dict[str, int]:
    """Totals shown above the bookings table. Upcoming includes today."""
    bookings = list(bookings)
    return {
        "total": len(bookings),
        "upcoming": sum(1 for b in bookings if b.date >= today),
        "applicants": sum(1 for b in bookings if b.category == BookingCategory.APPLICANT),
    }
