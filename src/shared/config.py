"""Runtime settings for the checkout service.

Settings are read once from the environment and passed explicitly to the
components that need them. Nothing in the service reads ``os.environ``
after startup.
"""

import os
from dataclasses import dataclass

MIN_RESERVATION_TTL_MINUTES = 1
MAX_RESERVATION_TTL_MINUTES = 60


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///storefront.db"
    reservation_ttl_minutes: int = 15
    reservation_retention_days: int = 7
    sweep_interval_seconds: float = 60.0
    sweep_batch_size: int = 500
    payment_timeout_seconds: float = 10.0
    catalog_timeout_seconds: float = 2.0
    order_number_attempts: int = 5
    payment_workers: int = 8
    payment_adapter: str = "fake"

    def __post_init__(self) -> None:
        if not MIN_RESERVATION_TTL_MINUTES <= self.reservation_ttl_minutes <= MAX_RESERVATION_TTL_MINUTES:
            raise ValueError(
                f"reservation_ttl_minutes must be between {MIN_RESERVATION_TTL_MINUTES} "
                f"and {MAX_RESERVATION_TTL_MINUTES}, got {self.reservation_ttl_minutes}"
            )
        if self.reservation_retention_days < 1:
            raise ValueError("reservation_retention_days must be at least 1")
        if self.sweep_batch_size < 1:
            raise ValueError("sweep_batch_size must be at least 1")
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be positive")
        if self.payment_timeout_seconds <= 0 or self.catalog_timeout_seconds <= 0:
            raise ValueError("timeouts must be positive")
        if self.order_number_attempts < 1:
            raise ValueError("order_number_attempts must be at least 1")
        if self.payment_workers < 1:
            raise ValueError("payment_workers must be at least 1")
        if self.payment_adapter not in ("fake",):
            raise ValueError(f"Unknown payment adapter: {self.payment_adapter}")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to defaults."""
        defaults = cls()
        return cls(
            database_url=os.getenv("DATABASE_URL", defaults.database_url),
            reservation_ttl_minutes=_env_int("RESERVATION_TTL_MINUTES", defaults.reservation_ttl_minutes),
            reservation_retention_days=_env_int("RESERVATION_RETENTION_DAYS", defaults.reservation_retention_days),
            sweep_interval_seconds=_env_float("SWEEP_INTERVAL_SECONDS", defaults.sweep_interval_seconds),
            sweep_batch_size=_env_int("SWEEP_BATCH_SIZE", defaults.sweep_batch_size),
            payment_timeout_seconds=_env_float("PAYMENT_TIMEOUT_SECONDS", defaults.payment_timeout_seconds),
            catalog_timeout_seconds=_env_float("CATALOG_TIMEOUT_SECONDS", defaults.catalog_timeout_seconds),
            order_number_attempts=_env_int("ORDER_NUMBER_ATTEMPTS", defaults.order_number_attempts),
            payment_workers=_env_int("PAYMENT_WORKERS", defaults.payment_workers),
            payment_adapter=os.getenv("PAYMENT_ADAPTER", defaults.payment_adapter).lower(),
        )
