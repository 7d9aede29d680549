"""Domain models for bookings, schedules and slots.

Pattern: Separate database persistence from domain models. The stores convert
ORM rows (api/database_models.py) into these pydantic models so nothing above
the store layer touches a live SQLAlchemy session.
"""
from datetime import date, datetime, time
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BookingCategory(str, Enum):
    """Who the consultation is for."""
    APPLICANT = "applicant"
    PARENT = "parent"


class Messenger(str, Enum):
    """Preferred contact channel besides email."""
    NONE = "none"
    TELEGRAM = "telegram"
    WHATSAPP = "whatsapp"
    VIBER = "viber"


class BookingStatus(str, Enum):
    """Booking lifecycle. Only CANCELLED releases the slot."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class Booking(BaseModel):
    """A persisted booking."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    date: date
    time: str
    full_name: str
    email: str
    phone: str
    category: BookingCategory
    messenger: Messenger = Messenger.NONE
    messenger_handle: str = ""
    questions: str = ""
    status: BookingStatus = BookingStatus.PENDING
    created_at: datetime
    updated_at: datetime


class BookingRequest(BaseModel):
    """
    Raw booking request as submitted by the public form.

    Every field is optional here on purpose: presence and format checks are
    done by the admission service so the client gets field-specific 400s.
    """
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    date: Optional[str] = None
    time: Optional[str] = None
    full_name: Optional[str] = Field(None, alias="fullName")
    email: Optional[str] = None
    phone: Optional[str] = None
    category: Optional[str] = None
    messenger: Optional[str] = None
    messenger_handle: Optional[str] = Field(None, alias="messengerHandle")
    questions: Optional[str] = None


class ScheduleEntry(BaseModel):
    """Recurring weekly availability window."""
    id: int
    day_of_week: int = Field(..., ge=1, le=7)
    start_time: time
    end_time: time
    consultant_id: Optional[int] = None
    consultant_name: Optional[str] = None
    is_active: bool = True


class BlockedDate(BaseModel):
    """Date with all availability suppressed."""
    id: int
    date: date
    reason: Optional[str] = None
    consultant_id: Optional[int] = None
    consultant_name: Optional[str] = None
    created_at: datetime


class Consultant(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class Slot(BaseModel):
    """One bookable consultant-hour."""
    time: str
    consultant: Optional[str] = None
    available: bool = True


class AdminUser(BaseModel):
    """Admin account without credentials."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    created_at: Optional[datetime] = None


def display_date(value: date) -> str:
    """Format a date the way bookings are shown to people: DD.MM.YYYY."""
    return value.strftime("%d.%m.%Y")
