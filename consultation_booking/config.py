"""Configuration for the consultation booking service.

All business settings centralized here - override through environment
variables (or a .env file) without touching code.
"""
import os
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Persistence
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///consultation_booking.db")

# Server
PORT = int(os.getenv("PORT", "3001"))
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
    if origin.strip()
]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Admin sessions
SESSION_COOKIE_NAME = "booking_session"
SESSION_MAX_AGE_HOURS = 24
SESSION_COOKIE_SECURE = _env_flag("SESSION_COOKIE_SECURE")
SESSION_CLEANUP_INTERVAL_SECONDS = 3600

# Rate limiting (per client IP)
RATE_LIMIT = {
    "requests": int(os.getenv("RATE_LIMIT_REQUESTS", "100")),
    "window_seconds": 15 * 60,
}
LOGIN_RATE_LIMIT = {
    "requests": int(os.getenv("LOGIN_RATE_LIMIT_ATTEMPTS", "5")),
    "window_seconds": 15 * 60,
}
RATE_LIMIT_MESSAGE = "Too many requests, please try again later"
LOGIN_RATE_LIMIT_MESSAGE = "Too many login attempts. Try again in 15 minutes"

# Availability
HIDE_PAST_DATES = _env_flag("HIDE_PAST_DATES")

# Default working week used by scripts/seed_schedule.py
DEFAULT_CONSULTANT = os.getenv("DEFAULT_CONSULTANT", "Admissions Office")
DEFAULT_SCHEDULE = {
    "days": [1, 2, 3, 4, 5],  # Monday..Friday
    "start_time": "09:00",
    "end_time": "17:00",
}
DEFAULT_SETTINGS = {
    "slot_duration_minutes": "60",
}

# Notifications
NOTIFICATION_WAIT_SECONDS = float(os.getenv("NOTIFICATION_WAIT_SECONDS", "5"))
HTTP_TIMEOUT_SECONDS = 15

TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN")
TELEGRAM_CHAT_ID = os.getenv("TELEGRAM_CHAT_ID")
TELEGRAM_API_URL = "https://api.telegram.org"

RESEND_API_KEY = os.getenv("RESEND_API_KEY")
RESEND_API_URL = "https://api.resend.com/emails"
ADMIN_EMAIL = os.getenv("ADMIN_EMAIL")
EMAIL_FROM_CLIENT = os.getenv("EMAIL_FROM_CLIENT", "Admissions Office <onboarding@resend.dev>")
EMAIL_FROM_SYSTEM = os.getenv("EMAIL_FROM_SYSTEM", "Booking System <onboarding@resend.dev>")

# Display labels shared by notifications, ICS export and the admin view
CATEGORY_LABELS = {
    "applicant": "Applicant",
    "parent": "Parent",
}
MESSENGER_LABELS = {
    "telegram": "Telegram",
    "whatsapp": "WhatsApp",
    "viber": "Viber",
    "none": "Email",
}

# ICS export
ICS_PRODID = "-//Consultation Booking//EN"
ICS_UID_DOMAIN = "consultation.local"
CONSULTATION_DURATION_MINUTES = 60
