"""API package initialization."""
from consultation_booking.api.models import BookingCreatedResponse, ErrorResponse

__all__ = ["BookingCreatedResponse", "ErrorResponse"]
