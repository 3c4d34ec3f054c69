"""Environment-driven settings for the rental core."""

import os

from dotenv import load_dotenv

# Load environment variables from .env (for local development)
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Settings:
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./rental.db")
    SQL_ECHO: bool = _env_bool("SQL_ECHO", False)
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Upper bound for a single store round-trip, in seconds.
    STORE_TIMEOUT_SECONDS: float = float(os.getenv("STORE_TIMEOUT_SECONDS", "10"))

    # Per-car booking lease (serializes reservation writers for one car).
    BOOKING_LEASE_TTL_SECONDS: int = int(os.getenv("BOOKING_LEASE_TTL_SECONDS", "120"))
    BOOKING_LEASE_RETRIES: int = int(os.getenv("BOOKING_LEASE_RETRIES", "5"))
    BOOKING_LEASE_BACKOFF_SECONDS: float = float(
        os.getenv("BOOKING_LEASE_BACKOFF_SECONDS", "0.05")
    )

    SCHEDULER_ENABLED: bool = _env_bool("SCHEDULER_ENABLED", True)
    INTEGRITY_SWEEP_HOUR: int = int(os.getenv("INTEGRITY_SWEEP_HOUR", "3"))


settings = Settings()
