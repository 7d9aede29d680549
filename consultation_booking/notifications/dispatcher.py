"""Fan-out of booking notifications.

Channels run concurrently in worker threads and are joined with "settle all"
semantics: one channel failing never cancels the other, and nothing a channel
does can fail the booking that triggered it.
"""
import asyncio
from dataclasses import dataclass
from typing import Optional, Set

from consultation_booking import config
from consultation_booking.domain import Booking
from consultation_booking.logging_config import get_logger
from consultation_booking.notifications.email import EmailNotifier
from consultation_booking.notifications.telegram import TelegramNotifier

logger = get_logger(__name__)


@dataclass
class NotificationResult:
    """Per-channel delivery flags."""
    email_sent: bool = False
    chat_sent: bool = False

    def as_response(self) -> dict:
        return {"telegram": self.chat_sent, "email": self.email_sent}


class NotificationDispatcher:
    """Sends every configured notification for a new booking."""

    def __init__(
        self,
        email: Optional[EmailNotifier] = None,
        telegram: Optional[TelegramNotifier] = None,
    ):
        self.email = email
        self.telegram = telegram
        self._pending: Set[asyncio.Task] = set()

        for name, notifier in (("email", email), ("telegram", telegram)):
            if notifier is None or not notifier.is_configured:
                logger.warning("notification_channel_disabled", channel=name)

    @classmethod
    def from_config(cls) -> "NotificationDispatcher":
        return cls(
            email=EmailNotifier(api_key=config.RESEND_API_KEY, admin_email=config.ADMIN_EMAIL),
            telegram=TelegramNotifier(bot_token=config.TELEGRAM_BOT_TOKEN, chat_id=config.TELEGRAM_CHAT_ID),
        )

    async def _deliver(self, notifier, booking: Booking) -> bool:
        if notifier is None or not notifier.is_configured:
            logger.debug("notification_channel_skipped", channel=getattr(notifier, "channel", None))
            return False
        return await asyncio.to_thread(notifier.send, booking)

    async def notify(self, booking: Booking) -> NotificationResult:
        """
        Deliver on all channels and wait for every one to settle.

        Never raises. A failed or unconfigured channel reports False.
        """
        email_outcome, chat_outcome = await asyncio.gather(
            self._deliver(self.email, booking),
            self._deliver(self.telegram, booking),
            return_exceptions=True,
        )

        result = NotificationResult()
        for channel, outcome in (("email", email_outcome), ("telegram", chat_outcome)):
            if isinstance(outcome, BaseException):
                logger.error(
                    "notification_failed",
                    channel=channel,
                    booking_id=booking.id,
                    error=str(outcome),
                )
                continue
            if channel == "email":
                result.email_sent = bool(outcome)
            else:
                result.chat_sent = bool(outcome)

        logger.info(
            "notifications_settled",
            booking_id=booking.id,
            email=result.email_sent,
            telegram=result.chat_sent,
        )
        return result

    async def notify_within(self, booking: Booking, timeout: float) -> NotificationResult:
        """
        Like ``notify`` but waits at most ``timeout`` seconds.

        On timeout, delivery keeps running in the background and the caller
        gets all-False flags.
        """
        task = asyncio.create_task(self.notify(booking))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("notification_wait_timeout", booking_id=booking.id, timeout=timeout)
            return NotificationResult()

    async def drain(self) -> None:
        """Wait for background deliveries, used on shutdown."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
