import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./homeserve.db")

# Firebase Configuration
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

# Razorpay Configuration
RAZORPAY_KEY_ID = os.getenv("RAZORPAY_KEY_ID")
RAZORPAY_KEY_SECRET = os.getenv("RAZORPAY_KEY_SECRET")
# Webhook secret configured in the Razorpay dashboard; falls back to the key secret
RAZORPAY_WEBHOOK_SECRET = os.getenv("RAZORPAY_WEBHOOK_SECRET") or RAZORPAY_KEY_SECRET
# Only disable for local development against the Razorpay test dashboard
PAYMENT_WEBHOOK_VERIFY = os.getenv("PAYMENT_WEBHOOK_VERIFY", "true").lower() == "true"
CURRENCY = os.getenv("CURRENCY", "INR")

# Order lifecycle
DEFAULT_THRESHOLD_HOURS = float(os.getenv("DEFAULT_THRESHOLD_HOURS", "2"))
PARTNER_WAIT_INTERVAL_SECONDS = int(os.getenv("PARTNER_WAIT_INTERVAL_SECONDS", "5"))
PARTNER_WAIT_TIMEOUT_SECONDS = int(os.getenv("PARTNER_WAIT_TIMEOUT_SECONDS", "300"))

# Booking window
SERVICE_HOURS_START = int(os.getenv("SERVICE_HOURS_START", "8"))
SERVICE_HOURS_END = int(os.getenv("SERVICE_HOURS_END", "20"))
MAX_BOOKING_DAYS_AHEAD = int(os.getenv("MAX_BOOKING_DAYS_AHEAD", "30"))

# Referral program
REFERRAL_CONFIG_KEY = "referral"
DEFAULT_REFERRAL_BONUS = float(os.getenv("DEFAULT_REFERRAL_BONUS", "50"))
REFERRAL_BONUS_MIN = 0
REFERRAL_BONUS_MAX = 1000

# Rate limiting (Redis backed)
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

# Customer web app; default CORS origin
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
