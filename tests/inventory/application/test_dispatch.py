"""Application tests for command dispatch and its replay of version conflicts."""

import pytest
from inventory.config import LedgerSettings
from inventory.dispatch import dispatch
from inventory.domain import inventory
from inventory.errors import ConcurrentModification, InsufficientStock
from inventory.ledger.initialization import InitializeStock
from inventory.ledger.ledger import StockLedger
from inventory.reservation.reserving import ReserveStock
from protean import UnitOfWork
from protean.exceptions import ExpectedVersionError

SETTINGS = LedgerSettings(cas_max_attempts=3, cas_backoff_seconds=0)


def _reserve_command(order_id="ord-001", quantity=2):
    return ReserveStock(product_id="prod-001", order_id=order_id, quantity=quantity, reserved_by="checkout")


@pytest.fixture
def stock():
    dispatch(InitializeStock(product_id="prod-001", sku="TSHIRT-BLK-M", initial_quantity=10, initialized_by="admin"))


@pytest.fixture
def process_calls(monkeypatch):
    """Record every processed command; ``failures`` queues exceptions to raise first."""
    original = inventory.process
    calls = []
    failures = []

    def process(command, asynchronous=True):
        calls.append(type(command).__name__)
        if failures:
            raise failures.pop(0)
        return original(command, asynchronous=asynchronous)

    monkeypatch.setattr(inventory, "process", process)
    return calls, failures


class TestDispatch:
    def test_returns_handler_result(self, stock):
        receipt = dispatch(_reserve_command(), settings=SETTINGS)
        assert receipt["quantity"] == 2
        assert receipt["available_after"] == 8

    def test_commit_conflict_is_replayed(self, stock, process_calls):
        calls, failures = process_calls
        failures.append(ExpectedVersionError("Wrong expected version: 0"))

        receipt = dispatch(_reserve_command(), settings=SETTINGS)

        assert calls == ["ReserveStock", "ReserveStock"]
        assert receipt["available_after"] == 8
        record = StockLedger().read("prod-001")
        assert (record.reserved_stock, record.version) == (2, 1)

    def test_gives_up_after_configured_attempts(self, stock, process_calls):
        calls, failures = process_calls
        failures.extend(ExpectedVersionError("Wrong expected version") for _ in range(5))

        with pytest.raises(ConcurrentModification) as exc_info:
            dispatch(_reserve_command(), settings=SETTINGS)

        assert len(calls) == 3
        assert exc_info.value.details["product_id"] == "prod-001"
        assert StockLedger().read("prod-001").reserved_stock == 0

    def test_stale_client_version_is_not_replayed(self, stock, process_calls):
        calls, failures = process_calls
        failures.append(ConcurrentModification("prod-001", 0, 1))

        with pytest.raises(ConcurrentModification):
            dispatch(_reserve_command(), settings=SETTINGS)
        assert len(calls) == 1

    def test_business_refusal_is_not_replayed(self, stock, process_calls):
        calls, _ = process_calls

        with pytest.raises(InsufficientStock):
            dispatch(_reserve_command(quantity=11), settings=SETTINGS)
        assert len(calls) == 1

    def test_runs_once_inside_an_open_unit_of_work(self, stock, process_calls):
        calls, failures = process_calls
        failures.append(ExpectedVersionError("Wrong expected version"))

        with pytest.raises(ExpectedVersionError):
            with UnitOfWork():
                dispatch(_reserve_command(), settings=SETTINGS)
        assert len(calls) == 1
