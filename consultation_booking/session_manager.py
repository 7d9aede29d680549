"""Server-side admin sessions.

The browser only holds an opaque random token in an httpOnly cookie; who the
token belongs to and when it was last used live in ``admin_sessions``.
"""
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, UTC

from consultation_booking import config
from consultation_booking.api.database_models import AdminSession
from consultation_booking.database import Database
from consultation_booking.domain import AdminUser
from consultation_booking.errors import AuthError
from consultation_booking.logging_config import get_logger

logger = get_logger(__name__)


class SessionNotFoundError(AuthError):
    """Raised when a token is unknown or its session has expired."""
    pass


@dataclass(frozen=True)
class SessionContext:
    """Request-scoped view of the authenticated admin."""
    session_id: str
    user_id: int
    email: str


class AdminSessionManager:
    """
    Issues, resolves and expires admin sessions.

    A session expires ``max_age_hours`` after its last use; every successful
    lookup slides that window forward.
    """

    def __init__(self, database: Database, max_age_hours: int = config.SESSION_MAX_AGE_HOURS):
        self.db = database
        self.max_age_hours = max_age_hours

    def _cutoff(self) -> datetime:
        return datetime.now(UTC) - timedelta(hours=self.max_age_hours)

    def create_session(self, user: AdminUser) -> str:
        """
        Start a session for a verified admin.

        Returns:
            Token to place in the session cookie
        """
        session_id = secrets.token_urlsafe(32)
        now = datetime.now(UTC)

        with self.db.session() as db:
            db.add(AdminSession(
                session_id=session_id,
                user_id=user.id,
                email=user.email,
                created_at=now,
                last_activity=now,
            ))

        logger.info("admin_session_created", user_id=user.id)
        return session_id

    def get_session(self, session_id: str) -> SessionContext:
        """
        Resolve a token and refresh its activity timestamp.

        Raises:
            SessionNotFoundError: If the token is unknown or expired
        """
        if not session_id:
            raise SessionNotFoundError()

        with self.db.session() as db:
            session = db.query(AdminSession).filter(
                AdminSession.session_id == session_id,
                AdminSession.last_activity >= self._cutoff(),
            ).first()

            if not session:
                raise SessionNotFoundError()

            session.last_activity = datetime.now(UTC)
            return SessionContext(
                session_id=session.session_id,
                user_id=session.user_id,
                email=session.email,
            )

    def destroy_session(self, session_id: str) -> bool:
        """Log out. Returns False if there was nothing to destroy."""
        with self.db.session() as db:
            deleted = db.query(AdminSession).filter(
                AdminSession.session_id == session_id
            ).delete()
        return deleted > 0

    def cleanup_expired_sessions(self) -> int:
        """
        Delete sessions idle longer than ``max_age_hours``.

        Returns:
            Number of deleted sessions
        """
        with self.db.session() as db:
            deleted = db.query(AdminSession).filter(
                AdminSession.last_activity < self._cutoff()
            ).delete()

        if deleted:
            logger.info("expired_sessions_cleaned", count=deleted)
        return deleted

    def _update_last_activity(self, session_id: str, timestamp: datetime):
        """Helper for testing - manually update last_activity."""
        with self.db.session() as db:
            session = db.get(AdminSession, session_id)
            if session:
                session.last_activity = timestamp
