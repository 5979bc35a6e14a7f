"""StockRecord aggregate: the canonical per-product stock ledger.

Stock Level Model:
    physical:  Units on the shelf
    reserved:  Units promised to orders that have not been fulfilled
    available: physical - reserved (what can still be promised)

The three quantities form one composite value. They only ever change
together, through ``apply_delta``, which also bumps ``version``. Callers
pass the version they read; a mismatch means someone else wrote first and
the caller must recompute from fresh state.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String

from inventory.domain import inventory
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
from inventory.utils.clock import as_utc


# ---------------------------------------------------------------------------
# Stock classification
# ---------------------------------------------------------------------------
class StockStatus(Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    CRITICAL = "critical"
    OUT_OF_STOCK = "out_of_stock"


_SEVERITY = {
    StockStatus.IN_STOCK: 0,
    StockStatus.LOW_STOCK: 1,
    StockStatus.CRITICAL: 2,
    StockStatus.OUT_OF_STOCK: 3,
}


def classify_stock(available, min_stock_level, reorder_point):
    """Classify available stock against absolute thresholds.

    This is the only classification rule in the service: the derived
    ``stock_status``, reorder alerts and the consistency report all use it.
    ``out_of_stock`` wins over everything, then ``critical``, then
    ``low_stock``.
    """
    if available <= 0:
        return StockStatus.OUT_OF_STOCK
    if available <= (min_stock_level or 0):
        return StockStatus.CRITICAL
    if available <= (reorder_point or 0):
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def severity(status):
    return _SEVERITY[StockStatus(status)]


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@inventory.aggregate
class StockRecord:
    """Stock quantities, thresholds and version for one product."""

    product_id = Identifier(identifier=True, required=True)
    sku = String(required=True, max_length=50)
    physical_stock = Integer(default=0)
    reserved_stock = Integer(default=0)
    available_stock = Integer(default=0)
    min_stock_level = Integer(default=5, min_value=0)
    reorder_point = Integer(default=10, min_value=0)
    reorder_quantity = Integer(default=50, min_value=0)
    max_stock_level = Integer(default=1000, min_value=0)  # Informational only
    stock_status = String(choices=StockStatus, default=StockStatus.IN_STOCK.value)
    version = Integer(default=0)
    stock_hold_reason = String(max_length=255)
    stock_hold_until = DateTime()
    active_alert_id = Identifier()
    last_stock_update = DateTime()
    created_at = DateTime()

    @invariant.post
    def available_is_physical_less_reserved(self):
        if self.available_stock != self.physical_stock - self.reserved_stock:
            raise ValidationError({"available_stock": ["Available stock must equal physical minus reserved stock"]})

    @invariant.post
    def quantities_are_never_negative(self):
        if min(self.physical_stock, self.reserved_stock, self.available_stock) < 0:
            raise ValidationError({"physical_stock": ["Stock quantities cannot be negative"]})

    @invariant.post
    def reserved_never_exceeds_physical(self):
        if self.reserved_stock > self.physical_stock:
            raise ValidationError({"reserved_stock": ["Reserved stock cannot exceed physical stock"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        product_id,
        sku,
        initial_quantity=0,
        min_stock_level=5,
        reorder_point=10,
        reorder_quantity=50,
        max_stock_level=1000,
        initialized_by="system",
    ):
        if initial_quantity < 0:
            raise ValidationError({"initial_quantity": ["Initial quantity cannot be negative"]})

        now = datetime.now(UTC)
        record = cls(
            product_id=str(product_id),
            sku=sku,
            physical_stock=initial_quantity,
            reserved_stock=0,
            available_stock=initial_quantity,
            min_stock_level=min_stock_level,
            reorder_point=reorder_point,
            reorder_quantity=reorder_quantity,
            max_stock_level=max_stock_level,
            stock_status=classify_stock(initial_quantity, min_stock_level, reorder_point).value,
            version=0,
            last_stock_update=now,
            created_at=now,
        )
        record.raise_(
            StockInitialized(
                product_id=str(product_id),
                sku=sku,
                initial_quantity=initial_quantity,
                min_stock_level=min_stock_level,
                reorder_point=reorder_point,
                reorder_quantity=reorder_quantity,
                max_stock_level=max_stock_level,
                initialized_by=str(initialized_by),
                initialized_at=now,
            )
        )
        return record

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def snapshot(self):
        return {
            "physical_stock": self.physical_stock,
            "reserved_stock": self.reserved_stock,
            "available_stock": self.available_stock,
            "version": self.version,
        }

    def classification(self):
        return classify_stock(self.available_stock, self.min_stock_level, self.reorder_point)

    def is_on_hold(self, as_of=None):
        if not self.stock_hold_reason:
            return False
        if self.stock_hold_until is None:
            return True
        as_of = as_of or datetime.now(UTC)
        return as_utc(self.stock_hold_until) > as_utc(as_of)

    def _check_version(self, expected_version):
        if expected_version is not None and expected_version != self.version:
            raise ConcurrentModification(self.product_id, expected_version, self.version)

    # -------------------------------------------------------------------
    # Compare-and-swap mutation
    # -------------------------------------------------------------------
    def apply_delta(
        self,
        physical_delta,
        reserved_delta,
        expected_version,
        operation_type,
        actor="system",
        quantity_affected=None,
        order_id=None,
        adjustment_id=None,
        reason=None,
        notes=None,
    ):
        """Move physical and reserved stock together and return the prior snapshot."""
        self._check_version(expected_version)

        new_physical = self.physical_stock + physical_delta
        new_reserved = self.reserved_stock + reserved_delta

        if new_physical < 0:
            raise NegativeStockRejected(self.product_id, self.physical_stock, physical_delta)
        if new_reserved < 0:
            raise InsufficientReservedQuantity(self.product_id, -reserved_delta, self.reserved_stock)
        if new_reserved > new_physical:
            raise InsufficientStock(self.product_id, reserved_delta - physical_delta, self.available_stock)

        previous = self.snapshot()
        now = datetime.now(UTC)
        new_available = new_physical - new_reserved

        with atomic_change(self):
            self.physical_stock = new_physical
            self.reserved_stock = new_reserved
            self.available_stock = new_available
            self.stock_status = classify_stock(new_available, self.min_stock_level, self.reorder_point).value
            self.version = self.version + 1
            self.last_stock_update = now

        if quantity_affected is None:
            quantity_affected = physical_delta if physical_delta else reserved_delta
        self.raise_(
            StockLevelChanged(
                product_id=str(self.product_id),
                operation_type=operation_type,
                physical_delta=physical_delta,
                reserved_delta=reserved_delta,
                physical_stock=new_physical,
                reserved_stock=new_reserved,
                available_stock=new_available,
                stock_status=self.stock_status,
                record_version=self.version,
                quantity_affected=quantity_affected,
                actor=str(actor),
                order_id=str(order_id) if order_id else None,
                adjustment_id=str(adjustment_id) if adjustment_id else None,
                reason=reason,
                notes=notes,
                changed_at=now,
            )
        )
        return previous

    # -------------------------------------------------------------------
    # Thresholds
    # -------------------------------------------------------------------
    def update_thresholds(
        self,
        updated_by,
        min_stock_level=None,
        reorder_point=None,
        reorder_quantity=None,
        max_stock_level=None,
        expected_version=None,
        reason=None,
    ):
        """Replace any of the four thresholds and re-derive ``stock_status``."""
        changes = {
            "min_stock_level": min_stock_level,
            "reorder_point": reorder_point,
            "reorder_quantity": reorder_quantity,
            "max_stock_level": max_stock_level,
        }
        changes = {name: value for name, value in changes.items() if value is not None}
        if not changes:
            raise ValidationError({"thresholds": ["At least one threshold must be supplied"]})
        negative = {name: ["Threshold cannot be negative"] for name, value in changes.items() if value < 0}
        if negative:
            raise ValidationError(negative)
        self._check_version(expected_version)

        now = datetime.now(UTC)
        with atomic_change(self):
            for name, value in changes.items():
                setattr(self, name, value)
            self.stock_status = self.classification().value
            self.version = self.version + 1
            self.last_stock_update = now

        self.raise_(
            StockThresholdsUpdated(
                product_id=str(self.product_id),
                min_stock_level=self.min_stock_level,
                reorder_point=self.reorder_point,
                reorder_quantity=self.reorder_quantity,
                max_stock_level=self.max_stock_level,
                stock_status=self.stock_status,
                physical_stock=self.physical_stock,
                reserved_stock=self.reserved_stock,
                available_stock=self.available_stock,
                record_version=self.version,
                updated_by=str(updated_by),
                reason=reason,
                updated_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Alert tracking
    # -------------------------------------------------------------------
    def track_alert(self, alert_id):
        """Point at the product's active reorder alert, or clear it with ``None``.

        Leaves ``version`` alone: this is bookkeeping, not a stock change.
        """
        self.active_alert_id = str(alert_id) if alert_id else None

    # -------------------------------------------------------------------
    # Holds
    # -------------------------------------------------------------------
    def place_hold(self, reason, placed_by, hold_until=None, expected_version=None):
        if not reason:
            raise ValidationError({"reason": ["Reason is required to place a stock hold"]})
        self._check_version(expected_version)

        now = datetime.now(UTC)
        self.stock_hold_reason = reason
        self.stock_hold_until = hold_until
        self.version = self.version + 1
        self.last_stock_update = now
        self.raise_(
            StockHoldPlaced(
                product_id=str(self.product_id),
                reason=reason,
                hold_until=hold_until,
                physical_stock=self.physical_stock,
                reserved_stock=self.reserved_stock,
                available_stock=self.available_stock,
                record_version=self.version,
                placed_by=str(placed_by),
                placed_at=now,
            )
        )

    def release_hold(self, released_by, expected_version=None):
        if not self.stock_hold_reason:
            raise ValidationError({"stock_hold_reason": ["Product has no stock hold to release"]})
        self._check_version(expected_version)

        now = datetime.now(UTC)
        reason = self.stock_hold_reason
        self.stock_hold_reason = None
        self.stock_hold_until = None
        self.version = self.version + 1
        self.last_stock_update = now
        self.raise_(
            StockHoldReleased(
                product_id=str(self.product_id),
                reason=reason,
                physical_stock=self.physical_stock,
                reserved_stock=self.reserved_stock,
                available_stock=self.available_stock,
                record_version=self.version,
                released_by=str(released_by),
                released_at=now,
            )
        )

