"""FastAPI dependency injection functions.

Pattern: every long-lived object (engine, stores, services, limiters) lives in
one ServiceContainer built at app creation and stored on ``app.state``, so
tests can build an app around their own database and fake notifiers.
"""
from dataclasses import dataclass
from datetime import date
from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from consultation_booking import config
from consultation_booking.admission import BookingAdmissionService
from consultation_booking.auth import AdminUserManager
from consultation_booking.availability import AvailabilityEngine
from consultation_booking.bookings import BookingStore
from consultation_booking.database import Database
from consultation_booking.notifications.dispatcher import NotificationDispatcher
from consultation_booking.rate_limiter import RateLimiter, RateLimitExceeded
from consultation_booking.schedule import ScheduleStore
from consultation_booking.session_manager import AdminSessionManager, SessionContext


@dataclass
class ServiceContainer:
    database: Database
    booking_store: BookingStore
    schedule_store: ScheduleStore
    availability: AvailabilityEngine
    dispatcher: NotificationDispatcher
    admission: BookingAdmissionService
    admin_users: AdminUserManager
    sessions: AdminSessionManager
    rate_limiter: RateLimiter
    login_limiter: RateLimiter


def build_container(
    database_url: str = config.DATABASE_URL,
    dispatcher: Optional[NotificationDispatcher] = None,
    hide_past_dates: bool = config.HIDE_PAST_DATES,
    notification_wait: float = config.NOTIFICATION_WAIT_SECONDS,
) -> ServiceContainer:
    """
    Wire every service against one database.

    Args:
        database_url: SQLAlchemy URL
        dispatcher: Notification dispatcher; defaults to one built from config
        hide_past_dates: Give the availability engine a clock so past dates
            have no slots
        notification_wait: Seconds a booking response waits for notifications
    """
    database = Database(database_url)
    booking_store = BookingStore(database)
    schedule_store = ScheduleStore(database)
    dispatcher = dispatcher or NotificationDispatcher.from_config()

    return ServiceContainer(
        database=database,
        booking_store=booking_store,
        schedule_store=schedule_store,
        availability=AvailabilityEngine(
            schedule_store,
            booking_store,
            clock=date.today if hide_past_dates else None,
        ),
        dispatcher=dispatcher,
        admission=BookingAdmissionService(booking_store, dispatcher, notification_wait),
        admin_users=AdminUserManager(database),
        sessions=AdminSessionManager(database),
        rate_limiter=RateLimiter(
            config.RATE_LIMIT["requests"],
            config.RATE_LIMIT["window_seconds"],
            message=config.RATE_LIMIT_MESSAGE,
        ),
        login_limiter=RateLimiter(
            config.LOGIN_RATE_LIMIT["requests"],
            config.LOGIN_RATE_LIMIT["window_seconds"],
            message=config.LOGIN_RATE_LIMIT_MESSAGE,
        ),
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def check_rate_limit(request: Request, container: ServiceContainer = Depends(get_container)) -> None:
    """
    FastAPI dependency for the general per-IP rate limit.

    Raises:
        HTTPException 429: If rate limit exceeded
    """
    try:
        container.rate_limiter.check_rate_limit(client_ip(request))
    except RateLimitExceeded as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=e.message,
            headers={"Retry-After": str(e.retry_after)},
        )


def require_auth(request: Request, container: ServiceContainer = Depends(get_container)) -> SessionContext:
    """
    FastAPI dependency for admin-only routes.

    Returns:
        Session of the logged-in admin

    Raises:
        SessionNotFoundError: No valid session cookie
    """
    token = request.cookies.get(config.SESSION_COOKIE_NAME)
    return container.sessions.get_session(token)
