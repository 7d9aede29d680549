"""Best-effort booking notifications (email and Telegram)."""
from consultation_booking.notifications.dispatcher import NotificationDispatcher, NotificationResult
from consultation_booking.notifications.email import EmailNotifier
from consultation_booking.notifications.telegram import TelegramNotifier

__all__ = [
    "EmailNotifier",
    "NotificationDispatcher",
    "NotificationResult",
    "TelegramNotifier",
]
