"""Input validation and sanitation for public booking submissions."""
import re
from datetime import date, datetime
from typing import Optional


class InputSanitizer:
    """
    Validates booking fields and neutralizes markup in free text.

    Protections:
    - XSS: markup-significant characters are escaped, not stripped, so the
      admin sees exactly what the visitor typed
    - SQL Injection: handled by SQLAlchemy parameterized queries
    - Length limits: match the column sizes in api/database_models.py
    """

    EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
    DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
    TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):([0-5]\d)$')

    MIN_PHONE_DIGITS = 7

    MAX_LENGTHS = {
        "full_name": 255,
        "email": 255,
        "phone": 32,
        "messenger_handle": 100,
        "questions": 2000,
    }

    _ESCAPES = {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        '"': "&quot;",
        "'": "&#x27;",
        "/": "&#x2F;",
        "`": "&#x60;",
    }
    _ESCAPE_PATTERN = re.compile(r'[&<>"\'/`]')

    @staticmethod
    def escape_markup(value: Optional[str]) -> Optional[str]:
        """
        Escape HTML-significant characters.

        Args:
            value: Raw user text

        Returns:
            Text safe to embed in HTML, or the input unchanged if empty
        """
        if not value:
            return value
        return InputSanitizer._ESCAPE_PATTERN.sub(
            lambda match: InputSanitizer._ESCAPES[match.group()], value
        )

    @staticmethod
    def validate_email(email: str) -> bool:
        return bool(InputSanitizer.EMAIL_PATTERN.match(email))

    @staticmethod
    def parse_date(value: str) -> Optional[date]:
        """
        Parse a strict ``YYYY-MM-DD`` calendar date.

        Returns:
            The date, or None for a malformed or impossible date (2025-02-30)
        """
        if not value or not InputSanitizer.DATE_PATTERN.match(value):
            return None
        try:
            return datetime.strptime(value, "%Y-%m-%d").date()
        except ValueError:
            return None

    @staticmethod
    def validate_time(value: str) -> bool:
        """Check ``HH:MM`` with hours 00-23 and minutes 00-59."""
        return bool(value) and bool(InputSanitizer.TIME_PATTERN.match(value))

    @staticmethod
    def validate_phone(phone: str) -> bool:
        """A phone number needs at least seven digits; separators are free."""
        digits = sum(1 for char in phone if char.isdigit())
        return digits >= InputSanitizer.MIN_PHONE_DIGITS

    @staticmethod
    def exceeds_max_length(field: str, value: Optional[str]) -> bool:
        limit = InputSanitizer.MAX_LENGTHS.get(field)
        return bool(value) and limit is not None and len(value) > limit
