import os

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DRY_RUN = os.getenv("DRY_RUN", "false").lower() == "true"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

# Empty DB_SCHEMA disables schema qualification (used by the SQLite test suite)
SCHEMA = os.getenv("DB_SCHEMA", "marketplace") or None

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
]

LISTING_EXPIRY_DAYS = int(os.getenv("LISTING_EXPIRY_DAYS", "90"))
ARCHIVAL_MAX_WORKERS = int(os.getenv("ARCHIVAL_MAX_WORKERS", "4"))

OBJECT_STORE_TIMEOUT_SECONDS = float(os.getenv("OBJECT_STORE_TIMEOUT_SECONDS", "10"))
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")

NOTIFY_WEBHOOK_URL = os.getenv("NOTIFY_WEBHOOK_URL")
PUSHGATEWAY_URL = os.getenv("PUSHGATEWAY_URL")

DEFAULT_AUTO_DELETE_DAYS = 30


def get_auto_delete_days() -> int:
    """
    Return the sold-listing auto-delete window in days.

    Read at call time so long-running processes and tests pick up changes to
    SOLD_LISTING_AUTO_DELETE_DAYS. Missing, non-numeric or non-positive values
    fall back to the 30 day default instead of raising.

    Returns:
        int: Number of days a sold listing stays live before archival
    """
    raw = os.getenv("SOLD_LISTING_AUTO_DELETE_DAYS")
    if raw is None or not raw.strip():
        return DEFAULT_AUTO_DELETE_DAYS
    try:
        days = int(raw.strip())
    except ValueError:
        return DEFAULT_AUTO_DELETE_DAYS
    return days if days > 0 else DEFAULT_AUTO_DELETE_DAYS
