"""Admin account management."""
from typing import Optional

from sqlalchemy.exc import IntegrityError

from consultation_booking.api.database_models import AdminUser as AdminUserRow
from consultation_booking.database import Database
from consultation_booking.domain import AdminUser
from consultation_booking.errors import ConflictError
from consultation_booking.logging_config import get_logger

logger = get_logger(__name__)


class AdminExistsError(ConflictError):
    """Raised when creating an admin whose email is already registered."""
    code = "ADMIN_EXISTS"


class AdminUserManager:
    """
    Creates and verifies admin accounts.

    Pattern: bcrypt hashes only; plain passwords never leave this class.
    Emails are compared lower-cased.
    """

    MIN_PASSWORD_LENGTH = 8

    def __init__(self, database: Database):
        self.db = database

    @staticmethod
    def _normalize(email: str) -> str:
        return email.strip().lower()

    def create_admin_user(self, email: str, password: str) -> AdminUser:
        """
        Create an admin account.

        Raises:
            ValueError: If the password is too short
            AdminExistsError: If the email is taken
        """
        if len(password) < self.MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {self.MIN_PASSWORD_LENGTH} characters")

        email = self._normalize(email)
        try:
            with self.db.session() as db:
                row = AdminUserRow(email=email, password_hash=AdminUserRow.hash_password(password))
                db.add(row)
                db.flush()
                user = AdminUser.model_validate(row)
        except IntegrityError:
            raise AdminExistsError(f"Admin {email} already exists")

        logger.info("admin_user_created", user_id=user.id)
        return user

    def verify_login(self, email: str, password: str) -> Optional[AdminUser]:
        """
        Check credentials.

        Returns:
            The admin on success, None for unknown email or wrong password
        """
        with self.db.session() as db:
            row = db.query(AdminUserRow).filter(AdminUserRow.email == self._normalize(email)).first()
            if not row or not AdminUserRow.verify_password(password, row.password_hash):
                return None
            return AdminUser.model_validate(row)

    def get_admin_by_id(self, user_id: int) -> Optional[AdminUser]:
        with self.db.session() as db:
            row = db.get(AdminUserRow, user_id)
            return AdminUser.model_validate(row) if row else None

    def change_password(self, user_id: int, new_password: str) -> bool:
        """
        Replace an admin's password.

        Returns:
            False if the admin does not exist
        """
        if len(new_password) < self.MIN_PASSWORD_LENGTH:
            raise ValueError(f"Password must be at least {self.MIN_PASSWORD_LENGTH} characters")

        with self.db.session() as db:
            row = db.get(AdminUserRow, user_id)
            if not row:
                return False
            row.password_hash = AdminUserRow.hash_password(new_password)

        logger.info("admin_password_changed", user_id=user_id)
        return True
