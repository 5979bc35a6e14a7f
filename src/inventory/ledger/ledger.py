"""StockLedger: the single write path for stock quantities.

Every stock-affecting operation (reservations, fulfilment, returns,
approved adjustments, holds) goes through ``apply_delta``:

    1. read the record and the version the caller based its decision on
    2. compute the new composite state, rejecting anything that would break
       available = physical - reserved or drive a quantity below zero
    3. write it only if the version is still the one that was read
    4. raise StockLevelChanged, which the audit trail projects once the
       write has committed

There is no in-process lock. Writers that lose the race get
ConcurrentModification and recompute through ``run_with_retry``; commands
that lose it at commit time are replayed by ``inventory.dispatch``.
"""

import random
import time
from dataclasses import dataclass

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.utils.globals import current_domain

from inventory.config import get_settings
from inventory.errors import AlreadyProcessed, ConcurrentModification, StockRecordNotFound
from inventory.ledger.stock_record import StockRecord
from inventory.utils.db import storage_guard

logger = structlog.get_logger(__name__)


def conflict_backoff(settings, attempt):
    """Seconds to wait before retry number ``attempt`` after a version conflict."""
    if not settings.cas_backoff_seconds:
        return 0
    return settings.cas_backoff_seconds * attempt * random.uniform(0.5, 1.5)


@dataclass(frozen=True)
class LedgerResult:
    """Outcome of one successful compare-and-swap write."""

    product_id: str
    previous: dict
    current: dict

    @property
    def version(self):
        return self.current["version"]

    @property
    def available_after(self):
        return self.current["available_stock"]


class StockLedger:
    def __init__(self, settings=None):
        self.settings = settings or get_settings()

    @staticmethod
    def _repository():
        return current_domain.repository_for(StockRecord)

    def read(self, product_id):
        with storage_guard():
            try:
                return self._repository().get(str(product_id))
            except ObjectNotFoundError:
                raise StockRecordNotFound(product_id) from None

    def exists(self, product_id):
        try:
            self.read(product_id)
        except StockRecordNotFound:
            return False
        return True

    def _save(self, record, expected_version):
        with storage_guard():
            try:
                self._repository().add(record)
            except ExpectedVersionError as exc:
                raise ConcurrentModification(record.product_id, expected_version) from exc

    # -------------------------------------------------------------------
    # Record creation
    # -------------------------------------------------------------------
    def initialize(
        self,
        product_id,
        sku,
        actor,
        initial_quantity=0,
        min_stock_level=None,
        reorder_point=None,
        reorder_quantity=None,
        max_stock_level=None,
    ):
        if self.exists(product_id):
            raise AlreadyProcessed(
                f"Stock record for product {product_id} already exists",
                product_id=str(product_id),
            )

        settings = self.settings
        record = StockRecord.create(
            product_id=product_id,
            sku=sku,
            initial_quantity=initial_quantity,
            min_stock_level=settings.default_min_stock_level if min_stock_level is None else min_stock_level,
            reorder_point=settings.default_reorder_point if reorder_point is None else reorder_point,
            reorder_quantity=settings.default_reorder_quantity if reorder_quantity is None else reorder_quantity,
            max_stock_level=settings.default_max_stock_level if max_stock_level is None else max_stock_level,
            initialized_by=actor,
        )
        self._save(record, expected_version=None)
        logger.info(
            "Stock record initialized",
            product_id=str(product_id),
            sku=sku,
            initial_quantity=initial_quantity,
        )
        return record

    # -------------------------------------------------------------------
    # Compare-and-swap write
    # -------------------------------------------------------------------
    def apply_delta(
        self,
        product_id,
        physical_delta,
        reserved_delta,
        expected_version,
        *,
        operation_type,
        actor,
        quantity_affected=None,
        order_id=None,
        adjustment_id=None,
        reason=None,
        notes=None,
    ):
        record = self.read(product_id)
        previous = record.apply_delta(
            physical_delta=physical_delta,
            reserved_delta=reserved_delta,
            expected_version=expected_version,
            operation_type=operation_type,
            actor=actor,
            quantity_affected=quantity_affected,
            order_id=order_id,
            adjustment_id=adjustment_id,
            reason=reason,
            notes=notes,
        )
        self._save(record, expected_version)

        result = LedgerResult(product_id=str(product_id), previous=previous, current=record.snapshot())
        logger.info(
            "Stock level changed",
            product_id=str(product_id),
            operation_type=operation_type,
            physical_delta=physical_delta,
            reserved_delta=reserved_delta,
            available_stock=result.available_after,
            version=result.version,
        )
        return result

    # -------------------------------------------------------------------
    # Holds
    # -------------------------------------------------------------------
    def place_hold(self, product_id, reason, actor, hold_until=None, expected_version=None):
        record = self.read(product_id)
        record.place_hold(reason, placed_by=actor, hold_until=hold_until, expected_version=expected_version)
        self._save(record, expected_version)
        logger.info("Stock hold placed", product_id=str(product_id), reason=reason)
        return record

    def release_hold(self, product_id, actor, expected_version=None):
        record = self.read(product_id)
        record.release_hold(released_by=actor, expected_version=expected_version)
        self._save(record, expected_version)
        logger.info("Stock hold released", product_id=str(product_id))
        return record

    # -------------------------------------------------------------------
    # Thresholds and alert tracking
    # -------------------------------------------------------------------
    def update_thresholds(self, product_id, actor, expected_version=None, reason=None, **thresholds):
        record = self.read(product_id)
        previous_status = record.stock_status
        record.update_thresholds(actor, expected_version=expected_version, reason=reason, **thresholds)
        self._save(record, expected_version)
        logger.info(
            "Stock thresholds updated",
            product_id=str(product_id),
            previous_status=previous_status,
            stock_status=record.stock_status,
            **{name: value for name, value in thresholds.items() if value is not None},
        )
        return record

    def track_alert(self, product_id, alert_id):
        """Record which reorder alert is active for the product.

        The write goes through the record's optimistic version, so two
        evaluations that both try to open (or close) an alert for the same
        product cannot both commit.
        """
        record = self.read(product_id)
        record.track_alert(alert_id)
        self._save(record, expected_version=None)
        return record

    # -------------------------------------------------------------------
    # Retry policy
    # -------------------------------------------------------------------
    def run_with_retry(self, operation, *, product_id):
        """Call ``operation()`` until it stops losing version races.

        ``operation`` must re-read the record on every call. Backoff grows
        linearly with the attempt number, jittered; after the configured
        number of attempts the last ConcurrentModification propagates.

        Inside a unit of work every read sees the transaction's own snapshot,
        so a competing commit only shows up when the transaction commits. That
        conflict is retried by ``inventory.dispatch.dispatch``, not here.
        """
        max_attempts = self.settings.cas_max_attempts
        for attempt in range(1, max_attempts + 1):
            try:
                return operation()
            except ConcurrentModification as exc:
                if attempt >= max_attempts:
                    logger.error(
                        "Giving up after repeated version conflicts",
                        product_id=str(product_id),
                        attempts=attempt,
                    )
                    raise
                logger.warning(
                    "Version conflict, retrying",
                    product_id=str(product_id),
                    attempt=attempt,
                    expected_version=exc.details.get("expected_version"),
                    actual_version=exc.details.get("actual_version"),
                )
                time.sleep(conflict_backoff(self.settings, attempt))
        raise AssertionError("unreachable")  # pragma: no cover
