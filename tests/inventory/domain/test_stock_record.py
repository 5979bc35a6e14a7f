"""Tests for the StockRecord aggregate: composite stock levels and CAS writes."""

from datetime import UTC, datetime, timedelta

import pytest
from inventory.errors import (
    ConcurrentModification,
    InsufficientReservedQuantity,
    InsufficientStock,
    NegativeStockRejected,
)
from inventory.ledger.events import (
    StockHoldPlaced,
    StockHoldReleased,
    StockInitialized,
    StockLevelChanged,
    StockThresholdsUpdated,
)
from inventory.ledger.stock_record import StockRecord, StockStatus
from protean.exceptions import ValidationError


def _make_record(**overrides):
    defaults = {
        "product_id": "prod-001",
        "sku": "TSHIRT-BLK-M",
        "initial_quantity": 20,
        "min_stock_level": 5,
        "reorder_point": 10,
        "reorder_quantity": 50,
    }
    defaults.update(overrides)
    return StockRecord.create(**defaults)


class TestStockRecordCreation:
    def test_initial_levels(self):
        record = _make_record(initial_quantity=20)
        assert record.physical_stock == 20
        assert record.reserved_stock == 0
        assert record.available_stock == 20
        assert record.version == 0
        assert record.stock_status == StockStatus.IN_STOCK.value

    def test_status_derived_from_initial_quantity(self):
        assert _make_record(initial_quantity=0).stock_status == StockStatus.OUT_OF_STOCK.value
        assert _make_record(initial_quantity=4).stock_status == StockStatus.CRITICAL.value
        assert _make_record(initial_quantity=8).stock_status == StockStatus.LOW_STOCK.value

    def test_raises_initialized_event(self):
        record = _make_record()
        events = [e for e in record._events if isinstance(e, StockInitialized)]
        assert len(events) == 1
        assert events[0].initial_quantity == 20
        assert events[0].sku == "TSHIRT-BLK-M"

    def test_negative_initial_quantity_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _make_record(initial_quantity=-1)
        assert "initial_quantity" in exc.value.messages

    def test_snapshot(self):
        record = _make_record(initial_quantity=7)
        assert record.snapshot() == {
            "physical_stock": 7,
            "reserved_stock": 0,
            "available_stock": 7,
            "version": 0,
        }


class TestApplyDelta:
    def test_reserve_moves_reserved_and_available_together(self):
        record = _make_record(initial_quantity=20)
        previous = record.apply_delta(0, 8, expected_version=0, operation_type="reservation")

        assert previous["available_stock"] == 20
        assert record.physical_stock == 20
        assert record.reserved_stock == 8
        assert record.available_stock == 12
        assert record.version == 1

    def test_fulfilment_leaves_available_unchanged(self):
        record = _make_record(initial_quantity=20)
        record.apply_delta(0, 8, expected_version=0, operation_type="reservation")
        record.apply_delta(-8, -8, expected_version=1, operation_type="fulfillment")

        assert record.physical_stock == 12
        assert record.reserved_stock == 0
        assert record.available_stock == 12
        assert record.version == 2

    def test_status_is_reclassified(self):
        record = _make_record(initial_quantity=20)
        record.apply_delta(-12, 0, expected_version=0, operation_type="inventory_adjustment")
        assert record.stock_status == StockStatus.LOW_STOCK.value

    def test_raises_stock_level_changed(self):
        record = _make_record(initial_quantity=20)
        record.apply_delta(0, 3, expected_version=0, operation_type="reservation")
        event = next(e for e in record._events if isinstance(e, StockLevelChanged))
        assert event.operation_type == "reservation"
        assert event.reserved_delta == 3
        assert event.available_stock == 17
        assert event.record_version == 1

    def test_stale_version_rejected(self):
        record = _make_record()
        record.apply_delta(0, 1, expected_version=0, operation_type="reservation")
        with pytest.raises(ConcurrentModification) as exc:
            record.apply_delta(0, 1, expected_version=0, operation_type="reservation")
        assert exc.value.details["expected_version"] == 0
        assert exc.value.details["actual_version"] == 1
        assert record.reserved_stock == 1

    def test_no_expected_version_skips_the_check(self):
        record = _make_record()
        record.apply_delta(0, 1, expected_version=None, operation_type="reservation")
        assert record.version == 1

    def test_physical_cannot_go_negative(self):
        record = _make_record(initial_quantity=5)
        with pytest.raises(NegativeStockRejected):
            record.apply_delta(-6, 0, expected_version=0, operation_type="inventory_adjustment")
        assert record.physical_stock == 5
        assert record.version == 0

    def test_cannot_release_more_than_reserved(self):
        record = _make_record(initial_quantity=10)
        record.apply_delta(0, 2, expected_version=0, operation_type="reservation")
        with pytest.raises(InsufficientReservedQuantity) as exc:
            record.apply_delta(0, -3, expected_version=1, operation_type="reservation_cancelled")
        assert exc.value.shortfall == 1

    def test_cannot_overcommit(self):
        record = _make_record(initial_quantity=10)
        with pytest.raises(InsufficientStock) as exc:
            record.apply_delta(0, 11, expected_version=0, operation_type="reservation")
        assert exc.value.shortfall == 1
        assert record.reserved_stock == 0

    def test_adjustment_cannot_drop_physical_below_reserved(self):
        record = _make_record(initial_quantity=10)
        record.apply_delta(0, 8, expected_version=0, operation_type="reservation")
        with pytest.raises(InsufficientStock):
            record.apply_delta(-5, 0, expected_version=1, operation_type="inventory_adjustment")
        assert record.physical_stock == 10


class TestStockRecordInvariants:
    def test_available_must_match_physical_less_reserved(self):
        record = _make_record(initial_quantity=10)
        with pytest.raises(ValidationError):
            record.available_stock = 3

    def test_reserved_cannot_exceed_physical(self):
        record = _make_record(initial_quantity=10)
        with pytest.raises(ValidationError):
            record.reserved_stock = 11


class TestStockHolds:
    def test_place_hold(self):
        record = _make_record()
        record.place_hold("Quality check", placed_by="qa-001")
        assert record.is_on_hold()
        assert record.version == 1
        assert any(isinstance(e, StockHoldPlaced) for e in record._events)

    def test_hold_requires_reason(self):
        record = _make_record()
        with pytest.raises(ValidationError):
            record.place_hold("", placed_by="qa-001")

    def test_hold_with_expiry(self):
        record = _make_record()
        until = datetime.now(UTC) + timedelta(hours=1)
        record.place_hold("Recall", placed_by="qa-001", hold_until=until)
        assert record.is_on_hold()
        assert not record.is_on_hold(as_of=until + timedelta(seconds=1))

    def test_release_hold(self):
        record = _make_record()
        record.place_hold("Quality check", placed_by="qa-001")
        record.release_hold(released_by="qa-001", expected_version=1)
        assert not record.is_on_hold()
        assert record.version == 2
        assert any(isinstance(e, StockHoldReleased) for e in record._events)

    def test_release_without_hold_rejected(self):
        record = _make_record()
        with pytest.raises(ValidationError):
            record.release_hold(released_by="qa-001")

    def test_hold_checks_version(self):
        record = _make_record()
        with pytest.raises(ConcurrentModification):
            record.place_hold("Quality check", placed_by="qa-001", expected_version=3)


class TestUpdateThresholds:
    def test_raising_reorder_point_reclassifies(self):
        record = _make_record(initial_quantity=20)
        record.update_thresholds(updated_by="buyer-001", reorder_point=25)

        assert record.reorder_point == 25
        assert record.stock_status == StockStatus.LOW_STOCK.value
        assert record.version == 1
        assert (record.physical_stock, record.reserved_stock, record.available_stock) == (20, 0, 20)

    def test_unsupplied_thresholds_are_kept(self):
        record = _make_record()
        record.update_thresholds(updated_by="buyer-001", reorder_quantity=80)
        assert (record.min_stock_level, record.reorder_point, record.reorder_quantity) == (5, 10, 80)

    def test_raises_thresholds_updated(self):
        record = _make_record(initial_quantity=8)
        record.update_thresholds(updated_by="buyer-001", min_stock_level=8, reason="Supplier lead time")

        event = next(e for e in record._events if isinstance(e, StockThresholdsUpdated))
        assert event.min_stock_level == 8
        assert event.stock_status == StockStatus.CRITICAL.value
        assert event.record_version == 1
        assert event.updated_by == "buyer-001"
        assert event.reason == "Supplier lead time"

    def test_at_least_one_threshold_required(self):
        record = _make_record()
        with pytest.raises(ValidationError) as exc_info:
            record.update_thresholds(updated_by="buyer-001")
        assert "thresholds" in exc_info.value.messages

    def test_negative_threshold_rejected(self):
        record = _make_record()
        with pytest.raises(ValidationError) as exc_info:
            record.update_thresholds(updated_by="buyer-001", reorder_point=-1)
        assert "reorder_point" in exc_info.value.messages
        assert record.version == 0

    def test_stale_version_rejected(self):
        record = _make_record()
        with pytest.raises(ConcurrentModification):
            record.update_thresholds(updated_by="buyer-001", reorder_point=12, expected_version=2)
        assert record.reorder_point == 10


class TestAlertTracking:
    def test_track_alert_leaves_version_alone(self):
        record = _make_record()
        record.track_alert("alert-001")
        assert record.active_alert_id == "alert-001"
        assert record.version == 0

        record.track_alert(None)
        assert record.active_alert_id is None
