"""Runtime tunables for the stock ledger.

Values come from environment variables so the same build can run with
different retry, expiry and batch settings per deployment. Protean's own
infrastructure settings (databases, brokers, event store) live in
``domain.toml`` next to the domain module.
"""

import os
from dataclasses import dataclass


def _int_env(name: str, default: int) -> int:
    value = os.environ.get(name)
    return int(value) if value not in (None, "") else default


def _float_env(name: str, default: float) -> float:
    value = os.environ.get(name)
    return float(value) if value not in (None, "") else default


@dataclass(frozen=True)
class LedgerSettings:
    """Tunables for compare-and-swap retries, reservations and bulk work."""

    cas_max_attempts: int = 5
    cas_backoff_seconds: float = 0.01
    reservation_ttl_minutes: int = 15
    bulk_item_timeout_seconds: float = 10.0
    bulk_max_workers: int = 4
    default_min_stock_level: int = 5
    default_reorder_point: int = 10
    default_reorder_quantity: int = 50
    default_max_stock_level: int = 1000

    @classmethod
    def from_env(cls) -> "LedgerSettings":
        return cls(
            cas_max_attempts=max(_int_env("INVENTORY_CAS_MAX_ATTEMPTS", 5), 1),
            cas_backoff_seconds=_float_env("INVENTORY_CAS_BACKOFF_SECONDS", 0.01),
            reservation_ttl_minutes=_int_env("INVENTORY_RESERVATION_TTL_MINUTES", 15),
            bulk_item_timeout_seconds=_float_env("INVENTORY_BULK_ITEM_TIMEOUT_SECONDS", 10.0),
            bulk_max_workers=max(_int_env("INVENTORY_BULK_MAX_WORKERS", 4), 1),
            default_min_stock_level=_int_env("INVENTORY_DEFAULT_MIN_STOCK_LEVEL", 5),
            default_reorder_point=_int_env("INVENTORY_DEFAULT_REORDER_POINT", 10),
            default_reorder_quantity=_int_env("INVENTORY_DEFAULT_REORDER_QUANTITY", 50),
            default_max_stock_level=_int_env("INVENTORY_DEFAULT_MAX_STOCK_LEVEL", 1000),
        )


def get_settings() -> LedgerSettings:
    """Read settings fresh from the environment on every call."""
    return LedgerSettings.from_env()
