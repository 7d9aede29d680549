"""Error taxonomy shared by the stores, services and the HTTP layer.

Each error carries the HTTP status it maps to and a stable error code, so the
API exception handler can render any of them without a lookup table.
"""
from typing import Optional


class BookingServiceError(Exception):
    """Base class for all domain errors."""
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(BookingServiceError):
    """Malformed or missing input; the client can correct and resend."""
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, detail=field)
        self.field = field


class ConflictError(BookingServiceError):
    """The requested change collides with existing state."""
    status_code = 409
    code = "CONFLICT"


class SlotTakenError(ConflictError):
    """Raised when a non-cancelled booking already holds (date, time)."""
    code = "SLOT_TAKEN"

    def __init__(self, date: str, time: str):
        super().__init__(
            "Time slot already occupied",
            detail=f"{date} {time} is already booked, please choose another slot",
        )
        self.date = date
        self.time = time


class AuthError(BookingServiceError):
    """No valid admin session."""
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class NotFoundError(BookingServiceError):
    """Unknown identifier."""
    status_code = 404
    code = "NOT_FOUND"


class NotificationError(BookingServiceError):
    """A notification channel failed to deliver.

    Never propagated past the dispatcher.
    """
    code = "NOTIFICATION_FAILED"

    def __init__(self, channel: str, message: str):
        super().__init__(f"{channel}: {message}")
        self.channel = channel


class StoreError(BookingServiceError):
    """Persistence-layer failure. Clients only see a generic message."""
    code = "STORE_ERROR"
