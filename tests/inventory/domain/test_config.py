"""Tests for runtime settings and the UTC helpers."""

from datetime import UTC, datetime, timedelta, timezone

from inventory.config import LedgerSettings, get_settings
from inventory.utils.clock import as_utc


class TestLedgerSettings:
    def test_defaults(self, monkeypatch):
        for name in ("INVENTORY_CAS_MAX_ATTEMPTS", "INVENTORY_RESERVATION_TTL_MINUTES"):
            monkeypatch.delenv(name, raising=False)
        settings = get_settings()
        assert settings.cas_max_attempts == 5
        assert settings.reservation_ttl_minutes == 15

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("INVENTORY_CAS_MAX_ATTEMPTS", "9")
        monkeypatch.setenv("INVENTORY_CAS_BACKOFF_SECONDS", "0.5")
        monkeypatch.setenv("INVENTORY_RESERVATION_TTL_MINUTES", "30")
        monkeypatch.setenv("INVENTORY_BULK_ITEM_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("INVENTORY_DEFAULT_REORDER_POINT", "25")

        settings = LedgerSettings.from_env()
        assert settings.cas_max_attempts == 9
        assert settings.cas_backoff_seconds == 0.5
        assert settings.reservation_ttl_minutes == 30
        assert settings.bulk_item_timeout_seconds == 2.5
        assert settings.default_reorder_point == 25

    def test_attempts_and_workers_are_at_least_one(self, monkeypatch):
        monkeypatch.setenv("INVENTORY_CAS_MAX_ATTEMPTS", "0")
        monkeypatch.setenv("INVENTORY_BULK_MAX_WORKERS", "0")
        settings = LedgerSettings.from_env()
        assert settings.cas_max_attempts == 1
        assert settings.bulk_max_workers == 1

    def test_empty_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("INVENTORY_DEFAULT_MIN_STOCK_LEVEL", "")
        assert LedgerSettings.from_env().default_min_stock_level == 5


class TestAsUtc:
    def test_none(self):
        assert as_utc(None) is None

    def test_naive_treated_as_utc(self):
        value = datetime(2024, 1, 1, 12, 0)
        assert as_utc(value) == datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def test_aware_converted(self):
        value = datetime(2024, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        assert as_utc(value) == datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
        assert as_utc(value).tzinfo == UTC
