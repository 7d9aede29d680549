"""Schedule store: weekly work windows, blocked dates and booking settings."""
from datetime import date, time
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from consultation_booking.api.database_models import (
    BlockedDate as BlockedDateRow,
    BookingSetting,
    Consultant as ConsultantRow,
    WorkSchedule,
)
from consultation_booking.database import Database
from consultation_booking.domain import BlockedDate, Consultant, ScheduleEntry
from consultation_booking.errors import ValidationError
from consultation_booking.logging_config import get_logger

logger = get_logger(__name__)


def _entry_from_row(row: WorkSchedule) -> ScheduleEntry:
    return ScheduleEntry(
        id=row.id,
        day_of_week=row.day_of_week,
        start_time=row.start_time,
        end_time=row.end_time,
        consultant_id=row.consultant_id,
        consultant_name=row.consultant.name if row.consultant else None,
        is_active=row.is_active,
    )


def _blocked_from_row(row: BlockedDateRow) -> BlockedDate:
    return BlockedDate(
        id=row.id,
        date=row.date,
        reason=row.reason,
        consultant_id=row.consultant_id,
        consultant_name=row.consultant.name if row.consultant else None,
        created_at=row.created_at,
    )


class ScheduleStore:
    """
    Reads and writes the schedule side of availability.

    Blocked dates are date-global: a block suppresses every consultant's
    schedule for that date, even when the block names a consultant.
    """

    def __init__(self, database: Database):
        self.db = database

    # -- consultants and weekly schedule ----------------------------------

    def add_consultant(self, name: str) -> Consultant:
        with self.db.session() as db:
            row = ConsultantRow(name=name)
            db.add(row)
            db.flush()
            return Consultant.model_validate(row)

    def add_schedule_entry(
        self,
        day_of_week: int,
        start_time: time,
        end_time: time,
        consultant_id: Optional[int] = None,
        is_active: bool = True,
    ) -> ScheduleEntry:
        """
        Add a recurring weekly window.

        Args:
            day_of_week: 1=Monday .. 7=Sunday
            start_time: Window start
            end_time: Window end (exclusive)

        Raises:
            ValueError: If the weekday is out of range or the window is empty
        """
        if not 1 <= day_of_week <= 7:
            raise ValueError(f"day_of_week must be 1..7, got {day_of_week}")
        if end_time <= start_time:
            raise ValueError("end_time must be after start_time")

        with self.db.session() as db:
            row = WorkSchedule(
                day_of_week=day_of_week,
                start_time=start_time,
                end_time=end_time,
                consultant_id=consultant_id,
                is_active=is_active,
            )
            db.add(row)
            db.flush()
            db.refresh(row)
            return _entry_from_row(row)

    def entries_for_day_of_week(self, day_of_week: int) -> List[ScheduleEntry]:
        """Active schedule entries for a weekday (1=Monday), by start time."""
        with self.db.session() as db:
            rows = db.query(WorkSchedule).filter(
                WorkSchedule.day_of_week == day_of_week,
                WorkSchedule.is_active == True,
            ).order_by(WorkSchedule.start_time, WorkSchedule.id).all()
            return [_entry_from_row(row) for row in rows]

    def all_schedules(self) -> List[ScheduleEntry]:
        """All active schedule entries, by weekday then start time."""
        with self.db.session() as db:
            rows = db.query(WorkSchedule).filter(
                WorkSchedule.is_active == True
            ).order_by(WorkSchedule.day_of_week, WorkSchedule.start_time, WorkSchedule.id).all()
            return [_entry_from_row(row) for row in rows]

    # -- blocked dates ------------------------------------------------------

    def is_date_blocked(self, blocked_date: date) -> bool:
        with self.db.session() as db:
            return db.query(BlockedDateRow.id).filter(
                BlockedDateRow.date == blocked_date
            ).first() is not None

    def all_blocked_dates(self) -> List[BlockedDate]:
        with self.db.session() as db:
            rows = db.query(BlockedDateRow).order_by(BlockedDateRow.date).all()
            return [_blocked_from_row(row) for row in rows]

    def add_blocked_date(
        self,
        blocked_date: date,
        reason: Optional[str] = None,
        consultant_id: Optional[int] = None,
    ) -> BlockedDate:
        """
        Block a date. Blocking an already blocked date returns the existing
        block unchanged, also when concurrent calls race for the same date.

        Raises:
            ValidationError: If ``consultant_id`` names no consultant
        """
        created = False
        try:
            with self.db.session() as db:
                if consultant_id is not None and db.get(ConsultantRow, consultant_id) is None:
                    raise ValidationError("Unknown consultant", field="consultantId")

                row = db.query(BlockedDateRow).filter(BlockedDateRow.date == blocked_date).first()
                if row is None:
                    row = BlockedDateRow(date=blocked_date, reason=reason, consultant_id=consultant_id)
                    db.add(row)
                    db.flush()
                    db.refresh(row)
                    created = True
                blocked = _blocked_from_row(row)
        except IntegrityError:
            # Another request blocked the same date between our select and insert
            blocked = self._blocked_on(blocked_date)
            if blocked is None:
                raise
            logger.info("date_block_race_resolved", date=str(blocked_date))
            return blocked

        if created:
            logger.info("date_blocked", date=str(blocked_date), reason=reason)
        return blocked

    def _blocked_on(self, blocked_date: date) -> Optional[BlockedDate]:
        with self.db.session() as db:
            row = db.query(BlockedDateRow).filter(BlockedDateRow.date == blocked_date).first()
            return _blocked_from_row(row) if row else None

    def remove_blocked_date(self, blocked_date_id: int) -> Optional[BlockedDate]:
        """
        Unblock a date.

        Returns:
            The removed block, or None if the id is unknown
        """
        with self.db.session() as db:
            row = db.get(BlockedDateRow, blocked_date_id)
            if row is None:
                return None
            removed = _blocked_from_row(row)
            db.delete(row)

        logger.info("date_unblocked", date=str(removed.date))
        return removed

    # -- settings -----------------------------------------------------------

    def get_settings(self) -> Dict[str, str]:
        with self.db.session() as db:
            return {row.key: row.value for row in db.query(BookingSetting).all()}

    def update_setting(self, key: str, value: str) -> Dict[str, str]:
        """Insert or overwrite one setting; returns the stored pair."""
        with self.db.session() as db:
            row = db.get(BookingSetting, key)
            if row is None:
                row = BookingSetting(key=key, value=value)
                db.add(row)
            else:
                row.value = value
        return {"key": key, "value": value}
