import os
from datetime import timedelta
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS")
if not ALLOWED_ORIGINS_RAW:
    raise ValueError("ALLOWED_ORIGINS must be set in the environment")

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in ALLOWED_ORIGINS_RAW.split(",")
]

# Lock wait / statement timeout for a single reservation transaction (PostgreSQL only)
TRANSACTION_TIMEOUT_SECONDS = int(os.getenv("TRANSACTION_TIMEOUT_SECONDS", "10"))

# Run the abandoned-reservation sweep before every new reservation
SWEEP_BEFORE_CREATE = os.getenv("SWEEP_BEFORE_CREATE", "true").lower() == "true"

# Payment gateway (Razorpay)
GATEWAY_BASE_URL = os.getenv("GATEWAY_BASE_URL", "https://api.razorpay.com/v1/")
GATEWAY_KEY_ID = os.getenv("GATEWAY_KEY_ID", "")
GATEWAY_KEY_SECRET = os.getenv("GATEWAY_KEY_SECRET", "")
GATEWAY_WEBHOOK_SECRET = os.getenv("GATEWAY_WEBHOOK_SECRET", "")
GATEWAY_TIMEOUT_SECONDS = int(os.getenv("GATEWAY_TIMEOUT_SECONDS", "10"))

CURRENCY = os.getenv("CURRENCY", "INR")
MERCHANT_NAME = os.getenv("MERCHANT_NAME", "Sojourn")

# Percent of the booking total kept by the marketplace when a property has no rate set
DEFAULT_COMMISSION_RATE = Decimal(os.getenv("DEFAULT_COMMISSION_RATE", "16"))

# Reservation lifecycle policy
PENDING_GRACE_PERIOD = timedelta(minutes=30)
DRAFT_RETENTION = timedelta(hours=24)
VENDOR_PENDING_VISIBILITY = timedelta(minutes=10)

WEBHOOK_DEDUPE_TTL_SECONDS = int(os.getenv("WEBHOOK_DEDUPE_TTL_SECONDS", "300"))
