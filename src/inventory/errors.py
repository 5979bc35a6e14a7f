"""Business-rule errors raised by the stock ledger.

Malformed input is reported with Protean's ``ValidationError`` before any
stock is touched. Everything here describes a well-formed request that the
current state of the ledger refuses. Each error carries a machine-readable
``code`` and a ``details`` dict so callers (and the HTTP layer) can act on
it without parsing messages.
"""


class InventoryError(Exception):
    code = "inventory_error"

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        return {"error": self.code, "message": self.message, "details": self.details}


# ---------------------------------------------------------------------------
# Missing records
# ---------------------------------------------------------------------------
class NotFound(InventoryError):
    code = "not_found"


class StockRecordNotFound(NotFound):
    code = "stock_record_not_found"

    def __init__(self, product_id):
        super().__init__(f"No stock record for product {product_id}", product_id=str(product_id))


class ReservationNotFound(NotFound):
    code = "reservation_not_found"

    def __init__(self, product_id, order_id):
        super().__init__(
            f"No active reservation for product {product_id} and order {order_id}",
            product_id=str(product_id),
            order_id=str(order_id),
        )


class AdjustmentNotFound(NotFound):
    code = "adjustment_not_found"

    def __init__(self, adjustment_id):
        super().__init__(f"Adjustment {adjustment_id} not found", adjustment_id=str(adjustment_id))


class AlertNotFound(NotFound):
    code = "alert_not_found"

    def __init__(self, alert_id):
        super().__init__(f"Alert {alert_id} not found", alert_id=str(alert_id))


# ---------------------------------------------------------------------------
# Stock rules
# ---------------------------------------------------------------------------
class InsufficientStock(InventoryError):
    code = "insufficient_stock"

    def __init__(self, product_id, requested, available):
        super().__init__(
            f"Insufficient stock for product {product_id}: {available} available, {requested} requested",
            product_id=str(product_id),
            requested=requested,
            available=available,
            shortfall=requested - available,
        )
        self.shortfall = requested - available


class InsufficientReservedQuantity(InventoryError):
    code = "insufficient_reserved_quantity"

    def __init__(self, product_id, requested, reserved):
        super().__init__(
            f"Cannot release {requested} units of product {product_id}: only {reserved} reserved",
            product_id=str(product_id),
            requested=requested,
            reserved=reserved,
            shortfall=requested - reserved,
        )
        self.shortfall = requested - reserved


class NegativeStockRejected(InventoryError):
    code = "negative_stock_rejected"

    def __init__(self, product_id, current_physical, delta):
        super().__init__(
            f"Change of {delta} would leave product {product_id} with {current_physical + delta} physical units",
            product_id=str(product_id),
            current_physical_stock=current_physical,
            quantity_adjusted=delta,
            resulting_physical_stock=current_physical + delta,
        )


class ReturnExceedsFulfilled(InventoryError):
    code = "return_exceeds_fulfilled"

    def __init__(self, product_id, order_id, requested, returnable):
        super().__init__(
            f"Cannot return {requested} units of product {product_id} for order {order_id}: "
            f"only {returnable} shipped and not yet returned",
            product_id=str(product_id),
            order_id=str(order_id),
            requested=requested,
            returnable=returnable,
        )


class StockOnHold(InventoryError):
    code = "stock_on_hold"

    def __init__(self, product_id, reason):
        super().__init__(f"Product {product_id} is on hold: {reason}", product_id=str(product_id), reason=reason)


# ---------------------------------------------------------------------------
# Lifecycle rules
# ---------------------------------------------------------------------------
class AlreadyProcessed(InventoryError):
    code = "already_processed"


class AlreadyDecided(AlreadyProcessed):
    code = "already_decided"

    def __init__(self, adjustment_id, status):
        super().__init__(
            f"Adjustment {adjustment_id} has already been {status}",
            adjustment_id=str(adjustment_id),
            status=status,
        )


class DuplicateReservation(AlreadyProcessed):
    code = "duplicate_reservation"

    def __init__(self, product_id, order_id, reservation_id):
        super().__init__(
            f"Order {order_id} already holds an active reservation on product {product_id}",
            product_id=str(product_id),
            order_id=str(order_id),
            reservation_id=str(reservation_id),
        )


class AlertStillTriggered(InventoryError):
    code = "alert_still_triggered"

    def __init__(self, alert_id, classification, available):
        super().__init__(
            f"Alert {alert_id} cannot be resolved: stock is still {classification} ({available} available)",
            alert_id=str(alert_id),
            classification=classification,
            available_stock=available,
        )


# ---------------------------------------------------------------------------
# Concurrency, identity and infrastructure
# ---------------------------------------------------------------------------
class ConcurrentModification(InventoryError):
    code = "concurrent_modification"

    def __init__(self, product_id, expected_version, actual_version=None):
        super().__init__(
            f"Stock record for product {product_id} changed concurrently "
            f"(expected version {expected_version}, found {actual_version})",
            product_id=str(product_id),
            expected_version=expected_version,
            actual_version=actual_version,
        )


class Unauthorized(InventoryError):
    code = "unauthorized"

    def __init__(self, message="An authenticated actor is required"):
        super().__init__(message)


class DependencyUnavailable(InventoryError):
    code = "dependency_unavailable"

    def __init__(self, dependency, reason):
        super().__init__(f"{dependency} is unavailable: {reason}", dependency=dependency, reason=str(reason))
