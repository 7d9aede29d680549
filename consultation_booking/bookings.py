"""Booking store: the single source of truth for occupied slots."""
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from consultation_booking.api.database_models import Booking as BookingRow
from consultation_booking.database import Database
from consultation_booking.domain import Booking, BookingStatus
from consultation_booking.errors import SlotTakenError
from consultation_booking.logging_config import get_logger

logger = get_logger(__name__)


class BookingStore:
    """
    CRUD over bookings.

    ``create_booking`` re-checks occupancy and inserts inside one unit of
    work; the partial unique index on (date, time) rejects anything that
    slips past the check, and both paths surface as SlotTakenError.
    """

    def __init__(self, database: Database):
        self.db = database

    @staticmethod
    def _active_slot_filter(booking_date: date, time: str):
        return (
            BookingRow.date == booking_date,
            BookingRow.time == time,
            BookingRow.status != BookingStatus.CANCELLED.value,
        )

    def create_booking(self, data: Dict[str, Any]) -> Booking:
        """
        Insert a booking with status=pending if its slot is free.

        Args:
            data: Validated, sanitized booking fields (date as ``datetime.date``)

        Returns:
            Persisted booking with id and timestamps

        Raises:
            SlotTakenError: If a non-cancelled booking holds (date, time)
        """
        booking_date = data["date"]
        time = data["time"]

        try:
            with self.db.session() as db:
                occupied = db.query(BookingRow.id).filter(
                    *self._active_slot_filter(booking_date, time)
                ).first()
                if occupied:
                    raise SlotTakenError(booking_date.isoformat(), time)

                row = BookingRow(
                    date=booking_date,
                    time=time,
                    full_name=data["full_name"],
                    email=data["email"],
                    phone=data["phone"],
                    category=data["category"],
                    messenger=data.get("messenger") or "none",
                    messenger_handle=data.get("messenger_handle") or "",
                    questions=data.get("questions") or "",
                    status=BookingStatus.PENDING.value,
                )
                db.add(row)
                db.flush()
                booking = Booking.model_validate(row)
        except IntegrityError:
            logger.info("slot_conflict_on_insert", date=str(booking_date), time=time)
            raise SlotTakenError(booking_date.isoformat(), time)

        logger.info("booking_created", booking_id=booking.id, date=str(booking.date), time=booking.time)
        return booking

    def list_bookings(self, search: Optional[str] = None) -> List[Booking]:
        """
        Get all bookings, newest first.

        Args:
            search: Optional filter; matches name or email case-insensitively,
                or a phone substring

        Returns:
            List of bookings
        """
        with self.db.session() as db:
            query = db.query(BookingRow)
            if search:
                term = search.strip()
                query = query.filter(or_(
                    BookingRow.full_name.icontains(term, autoescape=True),
                    BookingRow.email.icontains(term, autoescape=True),
                    BookingRow.phone.contains(term, autoescape=True),
                ))
            rows = query.order_by(BookingRow.created_at.desc(), BookingRow.id.desc()).all()
            return [Booking.model_validate(row) for row in rows]

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        """Get booking by ID, or None."""
        with self.db.session() as db:
            row = db.get(BookingRow, booking_id)
            return Booking.model_validate(row) if row else None

    def delete_booking(self, booking_id: int) -> Optional[Booking]:
        """
        Hard-delete a booking.

        Returns:
            The deleted booking, or None if it did not exist
        """
        with self.db.session() as db:
            row = db.get(BookingRow, booking_id)
            if not row:
                return None
            deleted = Booking.model_validate(row)
            db.delete(row)

        logger.info("booking_deleted", booking_id=booking_id)
        return deleted

    def update_status(self, booking_id: int, status: BookingStatus) -> Optional[Booking]:
        """
        Change a booking's status.

        Returns:
            Updated booking, or None if it did not exist

        Raises:
            SlotTakenError: If a cancelled booking is revived into a slot
                that another booking now holds
        """
        slot = None
        try:
            with self.db.session() as db:
                row = db.get(BookingRow, booking_id)
                if not row:
                    return None
                slot = (row.date.isoformat(), row.time)
                row.status = status.value
                db.flush()
                updated = Booking.model_validate(row)
        except IntegrityError:
            raise SlotTakenError(*slot)

        logger.info("booking_status_updated", booking_id=booking_id, status=status.value)
        return updated

    def occupied_times(self, booking_date: date) -> List[str]:
        """Times on ``booking_date`` claimed by non-cancelled bookings."""
        with self.db.session() as db:
            rows = db.query(BookingRow.time).filter(
                BookingRow.date == booking_date,
                BookingRow.status != BookingStatus.CANCELLED.value,
            ).order_by(BookingRow.time).all()
            return [row.time for row in rows]

    def is_time_slot_occupied(self, booking_date: date, time: str) -> bool:
        """Check if a non-cancelled booking holds (date, time)."""
        with self.db.session() as db:
            return db.query(BookingRow.id).filter(
                *self._active_slot_filter(booking_date, time)
            ).first() is not None
