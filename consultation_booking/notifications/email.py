"""Email notifications through the Resend API.

Each booking produces two emails: a confirmation to the client and a
summary to the admin inbox.
"""
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


def build_client_email(booking: Booking, sender: str = config.EMAIL_FROM_CLIENT) -> dict:
    body = (
        f"<p>Hello, <strong>{booking.full_name}</strong>!</p>"
        "<p>Your consultation booking has been received.</p>"
        f"<p><b>Date:</b> {display_date(booking.date)}<br>"
        f"<b>Time:</b> {booking.time}<br>"
        f"<b>Email:</b> {booking.email}<br>"
        f"<b>Phone:</b> {html.escape(booking.phone)}</p>"
        "<p>We will contact you to confirm the meeting. "
        "If you have questions, reply to this email.</p>"
        "<p>Kind regards,<br><strong>Admissions Office</strong></p>"
    )
    return {
        "from": sender,
        "to": [booking.email],
        "subject": "Consultation booking confirmation",
        "html": body,
    }


def build_admin_email(booking: Booking, admin_email: str, sender: str = config.EMAIL_FROM_SYSTEM) -> dict:
    formatted_date = display_date(booking.date)
    category = config.CATEGORY_LABELS.get(booking.category.value, booking.category.value)

    rows = [
        ("Name", booking.full_name),
        ("Email", booking.email),
        ("Phone", html.escape(booking.phone)),
        ("Date", formatted_date),
        ("Time", booking.time),
        ("Category", category),
    ]
    if booking.messenger != Messenger.NONE and booking.messenger_handle:
        rows.append((config.MESSENGER_LABELS[booking.messenger.value], booking.messenger_handle))

    body = "<p><strong>New consultation booking:</strong></p>"
    body += "".join(f"<p><b>{label}:</b> {value}</p>" for label, value in rows)
    if booking.questions:
        body += "<p><b>Questions:</b><br>" + booking.questions.replace("\n", "<br>") + "</p>"
    body += "<p>Review the booking in the admin panel to confirm it.</p>"

    return {
        "from": sender,
        "to": [admin_email],
        "subject": f"New booking: {booking.full_name} ({formatted_date} {booking.time})",
        "html": body,
    }


class EmailNotifier:
    """Sends the client confirmation and the admin notice via Resend."""

    channel = "email"

    def __init__(
        self,
        api_key: Optional[str] = None,
        admin_email: Optional[str] = None,
        session: Optional[requests.Session] = None,
        breaker: Optional[CircuitBreaker] = None,
        api_url: str = config.RESEND_API_URL,
    ):
        self.api_key = api_key
        self.admin_email = admin_email
        self.session = session or create_http_session()
        self.breaker = breaker or CircuitBreaker("resend")
        self.api_url = api_url

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.admin_email)

    def send(self, booking: Booking) -> bool:
        """
        Send both emails. Either failing fails the channel.

        Raises:
            NotificationError: If Resend rejects a message or is unreachable
        """
        for email in (build_client_email(booking), build_admin_email(booking, self.admin_email)):
            self._send_one(email)

        logger.info("email_notifications_sent", booking_id=booking.id)
        return True

    def _send_one(self, email: dict) -> None:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            response = post_json_with_protection(
                self.session, self.breaker, self.api_url, email, headers=headers
            )
        except CircuitBreakerOpen as e:
            raise NotificationError(self.channel, str(e)) from e
        except requests.exceptions.RequestException as e:
            raise NotificationError(self.channel, f"Resend API error: {e}") from e

        logger.debug("email_sent", subject=email["subject"], status=response.status_code)
