"""Pydantic models for API request/response validation."""
from datetime import date as Date
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from consultation_booking.domain import AdminUser, BlockedDate, Booking, ScheduleEntry, Slot


class ErrorResponse(BaseModel):
    """Error response schema."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Detailed error information")
    code: Optional[str] = Field(None, description="Error code")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "Time slot already occupied",
                "detail": "2025-06-10 10:00 is already booked, please choose another slot",
                "code": "SLOT_TAKEN"
            }
        }
    )


class BookingSummary(BaseModel):
    id: int
    date: Date
    time: str


class NotificationFlags(BaseModel):
    telegram: bool = False
    email: bool = False


class BookingCreatedResponse(BaseModel):
    """Response schema for POST /api/bookings."""
    success: bool = True
    booking: BookingSummary
    notifications: NotificationFlags


class OccupiedTimesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: Date
    occupied_times: List[str] = Field(..., alias="occupiedTimes")


class AvailableSlotsResponse(BaseModel):
    date: Date
    slots: List[Slot]


class BookingListResponse(BaseModel):
    bookings: List[Booking]
    total: int


class DeletedRef(BaseModel):
    id: int


class BookingDeletedResponse(BaseModel):
    success: bool = True
    deleted: DeletedRef


class StatusUpdateRequest(BaseModel):
    """Body of PUT /api/bookings/{id}/status. Checked by the handler for a 400."""
    status: Optional[str] = Field(None, examples=["confirmed"])


class BookingUpdatedResponse(BaseModel):
    success: bool = True
    booking: Booking


class BookingOverviewResponse(BaseModel):
    rows: List[Dict]
    stats: Dict[str, int]


class LoginRequest(BaseModel):
    """Request schema for POST /api/auth/login."""
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=200)


class LoginResponse(BaseModel):
    success: bool = True
    user: AdminUser


class AuthCheckResponse(BaseModel):
    authenticated: bool
    user: Optional[Dict] = None


class BlockedDateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    date: str = Field(..., examples=["2025-12-31"])
    reason: Optional[str] = Field(None, max_length=500)
    consultant_id: Optional[int] = Field(None, alias="consultantId")


class BlockedDateListResponse(BaseModel):
    blocked_dates: List[BlockedDate] = Field(..., alias="blockedDates")

    model_config = ConfigDict(populate_by_name=True)


class BlockedDateResponse(BaseModel):
    success: bool = True
    blocked_date: BlockedDate = Field(..., alias="blockedDate")

    model_config = ConfigDict(populate_by_name=True)


class ScheduleListResponse(BaseModel):
    schedules: List[ScheduleEntry]


class SettingsResponse(BaseModel):
    settings: Dict[str, str]


class SettingUpdateRequest(BaseModel):
    value: str = Field(..., max_length=500)


class HealthResponse(BaseModel):
    status: str
    service: str
    database: str
