import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./rendezvous.db")

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Fernet key for Slack webhook URLs / Chatwork tokens
# (generate with: python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())")
# Derived from SECRET_KEY when unset
NOTIFICATION_ENCRYPTION_KEY = os.getenv("NOTIFICATION_ENCRYPTION_KEY")

# Frontend base URL for public links (/i/:token, /open/:token)
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Optional shared key for organizer/internal routes (X-Internal-Api-Key)
INTERNAL_API_KEY = os.getenv("INTERNAL_API_KEY")

# Scheduling
DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "Asia/Tokyo")
DEFAULT_WORKSPACE_ID = os.getenv("DEFAULT_WORKSPACE_ID", "ws-default")
# Re-proposals allowed before request-alternate escalates to an open-slots page
MAX_ADDITIONAL_PROPOSALS = int(os.getenv("MAX_ADDITIONAL_PROPOSALS", "2"))
REPROPOSAL_SLOT_COUNT = int(os.getenv("REPROPOSAL_SLOT_COUNT", "3"))
INVITE_TTL_DAYS = int(os.getenv("INVITE_TTL_DAYS", "7"))

# Open slots (public booking fallback)
OPEN_SLOTS_TTL_DAYS = int(os.getenv("OPEN_SLOTS_TTL_DAYS", "7"))
OPEN_SLOTS_WINDOW_DAYS = int(os.getenv("OPEN_SLOTS_WINDOW_DAYS", "14"))
OPEN_SLOTS_MAX_PER_DAY = int(os.getenv("OPEN_SLOTS_MAX_PER_DAY", "8"))
OPEN_SLOTS_MAX_TOTAL = int(os.getenv("OPEN_SLOTS_MAX_TOTAL", "40"))

# Rate limiting for public token endpoints
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

# Twilio SMS Configuration
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_FROM_NUMBER = os.getenv("TWILIO_FROM_NUMBER")
