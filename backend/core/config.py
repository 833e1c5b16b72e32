import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./booking.db")

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:3000"])

# Optimistic concurrency budget for reserve/release.
SLOT_MAX_ATTEMPTS = int(os.getenv("SLOT_MAX_ATTEMPTS", "3"))
SLOT_RETRY_MIN_MS = int(os.getenv("SLOT_RETRY_MIN_MS", "50"))
SLOT_RETRY_MAX_MS = int(os.getenv("SLOT_RETRY_MAX_MS", "150"))

BOOKING_REFERENCE_PREFIX = os.getenv("BOOKING_REFERENCE_PREFIX", "GV")
AUTO_ASSIGN_OFFICER = _get_bool(os.getenv("AUTO_ASSIGN_OFFICER"), default=True)

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and DATABASE_URL.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must point at Postgres in production.")
    if SLOT_MAX_ATTEMPTS < 1:
        raise RuntimeError("SLOT_MAX_ATTEMPTS must be at least 1.")
    if SLOT_RETRY_MIN_MS < 0 or SLOT_RETRY_MIN_MS > SLOT_RETRY_MAX_MS:
        raise RuntimeError("SLOT_RETRY_MIN_MS must be between 0 and SLOT_RETRY_MAX_MS.")
