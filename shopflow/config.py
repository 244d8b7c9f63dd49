import os
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./shopflow.db")

# Shop calendar - every "today" and day-boundary computation uses this zone,
# never the server's own locale
SHOP_TIMEZONE = os.getenv("SHOP_TIMEZONE", "America/New_York")

# End-of-day sweep fire time (wall clock in SHOP_TIMEZONE)
SWEEP_HOUR = int(os.getenv("SWEEP_HOUR", "18"))
SWEEP_MINUTE = int(os.getenv("SWEEP_MINUTE", "0"))


class ConflictPolicy(str, Enum):
    """What to do when a booking overlaps an existing appointment"""

    ADVISORY = "advisory"  # report the overlap, keep the write
    STRICT = "strict"  # reject the write


_raw_policy = os.getenv("CONFLICT_POLICY", ConflictPolicy.ADVISORY.value).strip().lower()
try:
    CONFLICT_POLICY = ConflictPolicy(_raw_policy)
except ValueError as e:
    raise ValueError(
        f"CONFLICT_POLICY must be one of {[p.value for p in ConflictPolicy]}, got {_raw_policy!r}"
    ) from e

# Response cache
CACHE_ENABLED = os.getenv("CACHE_ENABLED", "true").lower() == "true"
CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "600"))
WORK_ORDER_CACHE_TTL_SECONDS = 300
ACTION_NEEDED_CACHE_TTL_SECONDS = 180

# Resend Email Configuration
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "Shopflow Auto Repair <noreply@shopflow.local>")
SHOP_NAME = os.getenv("SHOP_NAME", "Shopflow Auto Repair")

# Twilio SMS Configuration - SMS is reported as not configured when these are missing
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN")
TWILIO_FROM_NUMBER = os.getenv("TWILIO_FROM_NUMBER")
