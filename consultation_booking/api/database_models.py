"""SQLAlchemy database models for the booking service."""
from datetime import datetime, UTC

import bcrypt
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Time,
    text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

ACTIVE_BOOKING_CLAUSE = text("status != 'cancelled'")


def utc_now():
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class Booking(Base):
    """Consultation booking.

    The partial unique index is the store-level guarantee that a (date, time)
    pair holds at most one booking that is not cancelled.
    """
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, index=True)
    time = Column(String(5), nullable=False)  # "HH:MM"
    full_name = Column(String(1600), nullable=False)  # escaped text, up to 6x the raw 255
    email = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=False)
    category = Column(String(20), nullable=False)
    messenger = Column(String(20), nullable=False, default="none")
    messenger_handle = Column(String(600), nullable=False, default="")
    questions = Column(Text, nullable=False, default="")
    status = Column(String(20), nullable=False, default="pending", index=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    __table_args__ = (
        Index(
            "uq_bookings_active_slot",
            "date",
            "time",
            unique=True,
            sqlite_where=ACTIVE_BOOKING_CLAUSE,
            postgresql_where=ACTIVE_BOOKING_CLAUSE,
        ),
    )

    def __repr__(self):
        return f"<Booking(id={self.id}, date={self.date}, time={self.time}, status={self.status})>"


class Consultant(Base):
    """Person whose weekly schedule produces bookable slots."""
    __tablename__ = "consultants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)

    def __repr__(self):
        return f"<Consultant(id={self.id}, name={self.name})>"


class WorkSchedule(Base):
    """Recurring weekly availability window (1=Monday..7=Sunday)."""
    __tablename__ = "work_schedule"

    id = Column(Integer, primary_key=True, autoincrement=True)
    consultant_id = Column(Integer, ForeignKey("consultants.id"), nullable=True)
    day_of_week = Column(Integer, nullable=False, index=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    consultant = relationship("Consultant", lazy="joined")

    def __repr__(self):
        return f"<WorkSchedule(day={self.day_of_week}, {self.start_time}-{self.end_time})>"


class BlockedDate(Base):
    """A calendar date with all availability suppressed."""
    __tablename__ = "blocked_dates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, unique=True, index=True)
    reason = Column(String(500), nullable=True)
    consultant_id = Column(Integer, ForeignKey("consultants.id"), nullable=True)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    consultant = relationship("Consultant", lazy="joined")

    def __repr__(self):
        return f"<BlockedDate(date={self.date})>"


class BookingSetting(Base):
    """Flat key/value booking configuration."""
    __tablename__ = "booking_settings"

    key = Column(String(100), primary_key=True)
    value = Column(String(500), nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)


class AdminUser(Base):
    """Admin account with bcrypt password hash."""
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash password using bcrypt."""
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=10)).decode()

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        """Verify password against hash."""
        return bcrypt.checkpw(password.encode(), password_hash.encode())

    def __repr__(self):
        return f"<AdminUser(id={self.id}, email={self.email})>"


class AdminSession(Base):
    """Server-side admin session; the cookie carries only ``session_id``."""
    __tablename__ = "admin_sessions"

    session_id = Column(String(64), primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("admin_users.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)
    last_activity = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)

    def __repr__(self):
        return f"<AdminSession(user_id={self.user_id})>"
