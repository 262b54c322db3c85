import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./booking_engine.db")

# Weekend detection and "today" are evaluated in this timezone
LOCAL_TIMEZONE = os.getenv("LOCAL_TIMEZONE", "Africa/Windhoek")

# Booking lifecycle
ACCEPTANCE_WINDOW_HOURS = int(os.getenv("ACCEPTANCE_WINDOW_HOURS", "24"))

# Recurring schedules
RECURRING_HORIZON_MONTHS = int(os.getenv("RECURRING_HORIZON_MONTHS", "3"))
RECURRING_MAX_OCCURRENCES = int(os.getenv("RECURRING_MAX_OCCURRENCES", "12"))

# Pricing defaults - seed values for the platform_settings table
DEFAULT_WEEKEND_MARKUP_PERCENTAGE = float(os.getenv("DEFAULT_WEEKEND_MARKUP_PERCENTAGE", "20"))
DEFAULT_WEEKEND_BONUS_AMOUNT = float(os.getenv("DEFAULT_WEEKEND_BONUS_AMOUNT", "50"))
DEFAULT_STANDARD_COMMISSION_RATE = float(os.getenv("DEFAULT_STANDARD_COMMISSION_RATE", "0.15"))
DEFAULT_EMERGENCY_COMMISSION_RATE = float(os.getenv("DEFAULT_EMERGENCY_COMMISSION_RATE", "0.20"))
DEFAULT_SUBSCRIPTION_FEE = float(os.getenv("DEFAULT_SUBSCRIPTION_FEE", "50"))

# Namibian contractor tax rates
INCOME_TAX_RATE = float(os.getenv("INCOME_TAX_RATE", "0.18"))
WITHHOLDING_TAX_RATE = float(os.getenv("WITHHOLDING_TAX_RATE", "0.10"))

# Compare-and-set retries for entitlement consumption
ENTITLEMENT_MAX_RETRIES = int(os.getenv("ENTITLEMENT_MAX_RETRIES", "3"))

# Notification hand-off to the surrounding product (email/SMS/push delivery lives there)
NOTIFICATION_WEBHOOK_URL = os.getenv("NOTIFICATION_WEBHOOK_URL")
NOTIFICATION_BATCH_SIZE = int(os.getenv("NOTIFICATION_BATCH_SIZE", "100"))

# Connection pool (ignored for SQLite)
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "30"))
DB_POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))

# Statements slower than the threshold (seconds) are logged as warnings
DB_LOG_SLOW_QUERIES = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
DB_SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))
