"""Telegram chat notification for new bookings."""
import html
from typing import Optional

import requests

from consultation_booking import config
from consultation_booking.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from consultation_booking.domain import Booking, Messenger, display_date
from consultation_booking.errors import NotificationError
from consultation_booking.http_client import create_http_session, post_json_with_protection
from consultation_booking.logging_config import get_logger

logger = get_logger(__name__)


def format_telegram_message(booking: Booking) -> str:
    """
    Render a booking as a Telegram HTML message.

    Name, handle and questions arrive already escaped from admission; the
    remaining free-form field (phone) is escaped here.
    """
    category = config.CATEGORY_LABELS.get(booking.category.value, booking.category.value)

    lines = [
        "<b>New consultation booking</b>",
        "",
        f"<b>Name:</b> {booking.full_name}",
        f"<b>Email:</b> {booking.email}",
        f"<b>Phone:</b> {html.escape(booking.phone)}",
        f"<b>Date:</b> {display_date(booking.date)}",
        f"<b>Time:</b> {booking.time}",
        f"<b>Category:</b> {category}",
    ]

    if booking.messenger != Messenger.NONE and booking.messenger_handle:
        label = config.MESSENGER_LABELS[booking.messenger.value]
        lines.append(f"<b>{label}:</b> {booking.messenger_handle}")

    if booking.questions and booking.questions.strip():
        lines.extend(["", "<b>Questions:</b>", booking.questions])

    return "\n".join(lines)


class TelegramNotifier:
    """Posts booking messages to one chat through the Bot API."""

    channel = "telegram"

    def __init__(
        self,
        bot_token: Optional[str] = None,
        chat_id: Optional[str] = None,
        session: Optional[requests.Session] = None,
        breaker: Optional[CircuitBreaker] = None,
        api_url: str = config.TELEGRAM_API_URL,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.session = session or create_http_session()
        self.breaker = breaker or CircuitBreaker("telegram")
        self.api_url = api_url

    @property
    def is_configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    def send(self, booking: Booking) -> bool:
        """
        Send the booking message.

        Returns:
            True once Telegram accepted the message

        Raises:
            NotificationError: On transport failure, open circuit, or a
                response with ``ok: false``
        """
        payload = {
            "chat_id": self.chat_id,
            "text": format_telegram_message(booking),
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        url = f"{self.api_url}/bot{self.bot_token}/sendMessage"

        try:
            response = post_json_with_protection(self.session, self.breaker, url, payload)
            data = response.json()
        except CircuitBreakerOpen as e:
            raise NotificationError(self.channel, str(e)) from e
        except (requests.exceptions.RequestException, ValueError) as e:
            raise NotificationError(self.channel, f"request failed: {e}") from e

        if not data.get("ok"):
            raise NotificationError(self.channel, f"API error: {data.get('description', data)}")

        logger.info("telegram_notification_sent", booking_id=booking.id)
        return True
