"""FastAPI server for the consultation booking service.

Features:
- Public booking form endpoints (admit, occupied times, available slots)
- Admin API behind a server-side session cookie
- Per-IP rate limiting, stricter for failed logins
- Domain errors rendered as ErrorResponse with their own status codes
- Structured logging with request IDs
- Background task for session cleanup
"""
import asyncio
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from consultation_booking import config
from consultation_booking.admin_view import booking_stats, build_booking_rows
from consultation_booking.api.dependencies import (
    ServiceContainer,
    build_container,
    check_rate_limit,
    client_ip,
    get_container,
    require_auth,
)
from consultation_booking.api.models import (
    AuthCheckResponse,
    AvailableSlotsResponse,
    BlockedDateListResponse,
    BlockedDateRequest,
    BlockedDateResponse,
    BookingCreatedResponse,
    BookingDeletedResponse,
    BookingListResponse,
    BookingOverviewResponse,
    BookingSummary,
    BookingUpdatedResponse,
    DeletedRef,
    ErrorResponse,
    HealthResponse,
    LoginRequest,
    LoginResponse,
    NotificationFlags,
    OccupiedTimesResponse,
    ScheduleListResponse,
    SettingsResponse,
    SettingUpdateRequest,
    StatusUpdateRequest,
)
from consultation_booking.domain import BookingRequest, BookingStatus
from consultation_booking.errors import (
    AuthError,
    BookingServiceError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from consultation_booking.ics import booking_to_ics, bookings_to_ics
from consultation_booking.input_sanitizer import InputSanitizer
from consultation_booking.logging_config import (
    RequestIDMiddleware,
    get_logger,
    setup_structured_logging,
)
from consultation_booking.rate_limiter import RateLimitExceeded
from consultation_booking.session_manager import SessionContext, SessionNotFoundError

logger = get_logger(__name__)

ICS_MEDIA_TYPE = "text/calendar; charset=utf-8"


async def cleanup_sessions_periodically(container: ServiceContainer, interval: float):
    """Background task to delete expired admin sessions."""
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(container.sessions.cleanup_expired_sessions)
        except StoreError as e:
            logger.error("session_cleanup_failed", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup: create tables and start cleanup. Shutdown: drain and dispose."""
    container: ServiceContainer = app.state.container
    setup_structured_logging(config.LOG_LEVEL)

    try:
        container.database.init()
    except Exception as e:
        logger.error("database_init_failed", error=str(e))
        raise

    cleanup_task = asyncio.create_task(
        cleanup_sessions_periodically(container, config.SESSION_CLEANUP_INTERVAL_SECONDS)
    )
    logger.info("server_started", port=config.PORT)

    yield

    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass

    await container.dispatcher.drain()
    container.database.close()
    logger.info("server_stopped")


def _parse_date_param(value: str) -> date:
    parsed = InputSanitizer.parse_date(value)
    if parsed is None:
        raise ValidationError("Invalid date, expected YYYY-MM-DD", field="date")
    return parsed


def _error_response(exc: BookingServiceError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.message, detail=exc.detail, code=exc.code).model_dump(exclude_none=True),
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error("store_error", path=request.url.path, error=exc.message, detail=exc.detail)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(error="Internal server error", code=exc.code).model_dump(exclude_none=True),
        )

    @app.exception_handler(BookingServiceError)
    async def booking_error_handler(request: Request, exc: BookingServiceError):
        if exc.status_code >= 500:
            logger.error("service_error", path=request.url.path, error=exc.message)
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle Pydantic validation errors as 400, naming the first bad field."""
        errors = exc.errors()
        logger.warning("request_validation_error", path=request.url.path, errors=str(errors))
        field = ".".join(str(part) for part in errors[0]["loc"][1:]) if errors else None
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponse(
                error="Validation Error",
                detail=field or str(errors),
                code="VALIDATION_ERROR",
            ).model_dump(exclude_none=True),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            return JSONResponse(status_code=404, content={"error": "Not found"})
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=str(exc.detail)).model_dump(exclude_none=True),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch-all handler for unexpected exceptions."""
        logger.error("unexpected_error", path=request.url.path, error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error="Internal server error",
                code="INTERNAL_ERROR",
            ).model_dump(exclude_none=True),
        )


def register_routes(app: FastAPI) -> None:
    # -- health -------------------------------------------------------------

    @app.get("/health", tags=["Health"], response_model=HealthResponse)
    def health_check(container: ServiceContainer = Depends(get_container)):
        """Health check endpoint for load balancers."""
        try:
            with container.database.session() as db:
                db.execute(text("SELECT 1"))
            database = "ok"
        except StoreError:
            database = "unavailable"
        return HealthResponse(
            status="healthy" if database == "ok" else "degraded",
            service="consultation-booking",
            database=database,
        )

    # -- public booking endpoints ------------------------------------------

    @app.post(
        "/api/bookings",
        tags=["Bookings"],
        status_code=status.HTTP_201_CREATED,
        response_model=BookingCreatedResponse,
    )
    async def create_booking(
        booking_request: BookingRequest,
        container: ServiceContainer = Depends(get_container),
    ):
        """
        Reserve a slot.

        Raises:
            400: Missing or malformed field
            409: Slot already taken
        """
        outcome = await container.admission.admit_and_notify(booking_request)
        booking = outcome.booking
        return BookingCreatedResponse(
            booking=BookingSummary(id=booking.id, date=booking.date, time=booking.time),
            notifications=NotificationFlags(**outcome.notifications.as_response()),
        )

    @app.get("/api/bookings/occupied/{booking_date}", tags=["Bookings"], response_model=OccupiedTimesResponse)
    def occupied_times(booking_date: str, container: ServiceContainer = Depends(get_container)):
        parsed = _parse_date_param(booking_date)
        return OccupiedTimesResponse(
            date=parsed,
            occupied_times=container.booking_store.occupied_times(parsed),
        )

    @app.get("/api/schedule/available/{slot_date}", tags=["Schedule"], response_model=AvailableSlotsResponse)
    def available_slots(slot_date: str, container: ServiceContainer = Depends(get_container)):
        parsed = _parse_date_param(slot_date)
        return AvailableSlotsResponse(
            date=parsed,
            slots=container.availability.compute_available_slots(parsed),
        )

    # -- auth ---------------------------------------------------------------

    @app.post("/api/auth/login", tags=["Auth"], response_model=LoginResponse)
    def login(
        credentials: LoginRequest,
        request: Request,
        response: Response,
        container: ServiceContainer = Depends(get_container),
    ):
        """
        Start an admin session.

        Only failed attempts count toward the login limit.
        """
        ip = client_ip(request)
        try:
            container.login_limiter.check_rate_limit(ip, record=False)
        except RateLimitExceeded as e:
            logger.warning("login_rate_limited", ip=ip)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=e.message,
                headers={"Retry-After": str(e.retry_after)},
            )

        if not InputSanitizer.validate_email(credentials.email.strip()):
            container.login_limiter.record(ip)
            raise ValidationError("Invalid email format", field="email")

        user = container.admin_users.verify_login(credentials.email, credentials.password)
        if user is None:
            container.login_limiter.record(ip)
            logger.warning("login_failed", ip=ip)
            raise AuthError("Invalid credentials")

        token = container.sessions.create_session(user)
        response.set_cookie(
            key=config.SESSION_COOKIE_NAME,
            value=token,
            max_age=config.SESSION_MAX_AGE_HOURS * 3600,
            httponly=True,
            secure=config.SESSION_COOKIE_SECURE,
            samesite="lax",
        )
        return LoginResponse(user=user)

    @app.post("/api/auth/logout", tags=["Auth"])
    def logout(request: Request, response: Response, container: ServiceContainer = Depends(get_container)):
        token = request.cookies.get(config.SESSION_COOKIE_NAME)
        if token:
            container.sessions.destroy_session(token)
        response.delete_cookie(config.SESSION_COOKIE_NAME)
        return {"success": True}

    @app.get("/api/auth/check", tags=["Auth"], response_model=AuthCheckResponse, response_model_exclude_none=True)
    def check_auth(request: Request, container: ServiceContainer = Depends(get_container)):
        try:
            session = container.sessions.get_session(request.cookies.get(config.SESSION_COOKIE_NAME))
        except SessionNotFoundError:
            return AuthCheckResponse(authenticated=False)
        return AuthCheckResponse(
            authenticated=True,
            user={"id": session.user_id, "email": session.email},
        )

    # -- admin: bookings ----------------------------------------------------
    # Fixed paths are registered before /{booking_id} so they are not
    # swallowed by the id route.

    @app.get("/api/bookings/export.ics", tags=["Admin"])
    def export_all_bookings(
        session: SessionContext = Depends(require_auth),
        container: ServiceContainer = Depends(get_container),
    ):
        bookings = container.booking_store.list_bookings()
        return Response(
            content=bookings_to_ics(bookings),
            media_type=ICS_MEDIA_TYPE,
            headers={"Content-Disposition": 'attachment; filename="all-bookings.ics"'},
        )

    @app.get("/api/bookings/overview", tags=["Admin"], response_model=BookingOverviewResponse)
    def bookings_overview(
        search: Optional[str] = None,
        session: SessionContext = Depends(require_auth),
        container: ServiceContainer = Depends(get_container),
    ):
        """Display rows and headline stats for the admin table."""
        bookings = container.booking_store.list_bookings(search=search)
        return BookingOverviewResponse(
            rows=[row.as_dict() for row in build_booking_rows(bookings)],
            stats=booking_stats(bookings, today=date.today()),
        )

    @app.get("/api/bookings", tags=["Admin"], response_model=BookingListResponse)
    def list_bookings(
        search: Optional[str] = None,
        session: SessionContext = Depends(require_auth),
        container: ServiceContainer = Depends(get_container),
    ):
        bookings = container.booking_store.list_bookings(search=search)
        return BookingListResponse(bookings=bookings, total=len(bookings))

    @app.get("/api/bookings/{booking_id}", tags=["Admin"])
    def get_booking(
        booking_id: int,
        session: SessionContext = Depends(require_auth),
        container: ServiceContainer = Depends(get_container),
    ):
        booking = container.booking_store.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    @app.get("/api/bookings/{booking_id}/ics", tags=["Admin"])
    def export_booking(
        booking_id: int,
        session: SessionContext = Depends(require_auth),
        container: ServiceContainer = Depends(get_container),
    ):
        booking = container.booking_store.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return Response(
            content=booking_to_ics(booking),
            media_type=ICS_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="booking-{booking_id}.ics"'},
        )

    @app.delete("/api/bookings/{booking_id}", tags=["Admin"], response_model=BookingDeletedResponse)
    def delete_booking(
        booking_id: int,
        session: SessionContext = Depends(require_auth),
        container: ServiceContainer = Depends(get_container),
    ):
        deleted = container.booking_store.delete_booking(booking_id)
        if deleted is None:
            raise NotFoundError("Booking not found")
        logger.info("admin_deleted_booking", booking_id=booking_id, admin=session.email)
        return BookingDeletedResponse(deleted=DeletedRef(id=deleted.id))

    @app.put("/api/bookings/{booking_id}/status", tags=["Admin"], response_model=BookingUpdatedResponse)
    def update_booking_status(
        booking_id: int,
        body: StatusUpdateRequest,
        session: SessionContext = Depends(require_auth),
        container: ServiceContainer = Depends(get_container),
    ):
        """
        Change a booking's status.

        Raises:
            400: Missing or unknown status
            404: Unknown booking
            409: Reviving a cancelled booking whose slot is taken
        """
        if not body.status:
            raise ValidationError("Status is required", field="status")
        try:
            new_status = BookingStatus(body.status)
        except ValueError:
            raise ValidationError(
                "Status must be one of: pending, confirmed, cancelled", field="status"
            )

        booking = container.booking_store.update_status(booking_id, new_status)
        if booking is None:
            raise NotFoundError("Booking not found")
        return BookingUpdatedResponse(booking=booking)

    # -- admin: schedule ----------------------------------------------------

    @app.get("/api/schedule/all", tags=["Schedule"], response_model=ScheduleListResponse)
    def all_schedules(
        session: SessionContext = Depends(require_auth),
        container: ServiceContainer = Depends(get_container),
    ):
        return ScheduleListResponse(schedules=container.schedule_store.all_schedules())

    @app.get("/api/schedule/blocked-dates", tags=["Schedule"], response_model=BlockedDateListResponse)
    def blocked_dates(
        session: SessionContext = Depends(require_auth),
        container: ServiceContainer = Depends(get_container),
    ):
        return BlockedDateListResponse(blocked_dates=container.schedule_store.all_blocked_dates())

    @app.post("/api/schedule/blocked-dates", tags=["Schedule"], response_model=BlockedDateResponse)
    def add_blocked_date(
        body: BlockedDateRequest,
        session: SessionContext = Depends(require_auth),
        container: ServiceContainer = Depends(get_container),
    ):
        blocked = container.schedule_store.add_blocked_date(
            _parse_date_param(body.date),
            reason=body.reason,
            consultant_id=body.consultant_id,
        )
        return BlockedDateResponse(blocked_date=blocked)

    @app.delete("/api/schedule/blocked-dates/{blocked_date_id}", tags=["Schedule"])
    def remove_blocked_date(
        blocked_date_id: int,
        session: SessionContext = Depends(require_auth),
        container: ServiceContainer = Depends(get_container),
    ):
        if container.schedule_store.remove_blocked_date(blocked_date_id) is None:
            raise NotFoundError("Blocked date not found")
        return {"success": True}

    @app.get("/api/schedule/settings", tags=["Schedule"], response_model=SettingsResponse)
    def get_settings(
        session: SessionContext = Depends(require_auth),
        container: ServiceContainer = Depends(get_container),
    ):
        return SettingsResponse(settings=container.schedule_store.get_settings())

    @app.put("/api/schedule/settings/{key}", tags=["Schedule"])
    def update_setting(
        key: str,
        body: SettingUpdateRequest,
        session: SessionContext = Depends(require_auth),
        container: ServiceContainer = Depends(get_container),
    ):
        return {"success": True, "setting": container.schedule_store.update_setting(key, body.value)}


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        container: Pre-built services; defaults to one wired from config
    """
    app = FastAPI(
        title="Consultation Booking API",
        description="Public consultation booking with an authenticated admin API",
        version="1.0.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        dependencies=[Depends(check_rate_limit)],
    )
    app.state.container = container or build_container()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.ALLOWED_ORIGINS,
        allow_credentials="*" not in config.ALLOWED_ORIGINS,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)
    register_routes(app)
    return app


app = create_app()
