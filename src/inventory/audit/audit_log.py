"""Audit trail: append-only record of every stock-affecting write.

Each entry carries the before/after snapshot of all three stock quantities
and the ledger version on both sides, so any record's history can be
replayed from its entries. Entries are only ever added.

Entries are projected from StockRecord events, which are handled after the
stock write has committed, and each entry is committed on its own. A failure
while writing one therefore never undoes or blocks the stock change it
describes: it is logged at ERROR with the product and version, so the gap
can be rebuilt from the event store. The entry id is the event id, so a
redelivered event rewrites the same entry instead of adding a second one.
"""

import uuid
from enum import Enum

import structlog
from protean.core.projector import on
from protean.fields import DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from inventory.domain import inventory
from inventory.ledger.events import (
    StockHoldPlaced,
    StockHoldReleased,
    StockInitialized,
    StockLevelChanged,
    StockThresholdsUpdated,
)
from inventory.ledger.stock_record import StockRecord
from inventory.utils.clock import utcnow

logger = structlog.get_logger(__name__)


class OperationType(Enum):
    INITIAL_STOCK = "initial_stock"
    RESERVATION = "reservation"
    FULFILLMENT = "fulfillment"
    RESERVATION_CANCELLED = "reservation_cancelled"
    RESERVATION_EXPIRED = "reservation_expired"
    RETURN_PROCESSING = "return_processing"
    INVENTORY_ADJUSTMENT = "inventory_adjustment"
    STOCK_HOLD_PLACED = "stock_hold_placed"
    STOCK_HOLD_RELEASED = "stock_hold_released"
    THRESHOLDS_UPDATED = "thresholds_updated"


@inventory.projection
class AuditLogEntry:
    entry_id = Identifier(identifier=True, required=True)
    product_id = Identifier(required=True)
    operation_type = String(required=True, choices=OperationType)
    quantity_affected = Integer(default=0)
    physical_stock_before = Integer(default=0)
    physical_stock_after = Integer(default=0)
    reserved_stock_before = Integer(default=0)
    reserved_stock_after = Integer(default=0)
    available_stock_before = Integer(default=0)
    available_stock_after = Integer(default=0)
    version_before = Integer(default=0)
    version_after = Integer(default=0)
    order_id = Identifier()
    adjustment_id = Identifier()
    actor = String(required=True, max_length=255)
    reason = String(max_length=255)
    notes = Text()
    created_at = DateTime(required=True)


class AuditTrail:
    """Appends AuditLogEntry records for ledger writes."""

    def record(
        self,
        product_id,
        operation_type,
        before,
        after,
        actor,
        quantity_affected=0,
        order_id=None,
        adjustment_id=None,
        reason=None,
        notes=None,
        entry_id=None,
    ):
        """Append one entry and return it, or ``None`` if the write failed."""
        operation_type = OperationType(operation_type).value
        try:
            entry = AuditLogEntry(
                entry_id=str(entry_id or uuid.uuid4()),
                product_id=str(product_id),
                operation_type=operation_type,
                quantity_affected=quantity_affected,
                physical_stock_before=before["physical_stock"],
                physical_stock_after=after["physical_stock"],
                reserved_stock_before=before["reserved_stock"],
                reserved_stock_after=after["reserved_stock"],
                available_stock_before=before["available_stock"],
                available_stock_after=after["available_stock"],
                version_before=before["version"],
                version_after=after["version"],
                order_id=str(order_id) if order_id else None,
                adjustment_id=str(adjustment_id) if adjustment_id else None,
                actor=str(actor),
                reason=reason,
                notes=notes,
                created_at=utcnow(),
            )
            # Own connection and commit, so a failing write surfaces here and not
            # in the surrounding handler's transaction.
            current_domain.repository_for(AuditLogEntry)._dao.outside_uow().save(entry)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "Audit entry could not be written",
                product_id=str(product_id),
                operation_type=operation_type,
                order_id=order_id,
                adjustment_id=adjustment_id,
                version_after=after.get("version"),
                error=str(exc),
            )
            return None

        logger.debug(
            "Audit entry written",
            entry_id=entry.entry_id,
            product_id=str(product_id),
            operation_type=operation_type,
        )
        return entry

    def history(self, product_id):
        """Entries for one product, oldest first."""
        return (
            current_domain.repository_for(AuditLogEntry)
            ._dao.query.filter(product_id=str(product_id))
            .order_by("version_after")
            .all()
            .items
        )


def _event_id(event):
    metadata = getattr(event, "_metadata", None)
    headers = getattr(metadata, "headers", None)
    return getattr(headers, "id", None)


def _levels(physical, reserved, version):
    return {
        "physical_stock": physical,
        "reserved_stock": reserved,
        "available_stock": physical - reserved,
        "version": version,
    }


@inventory.projector(projector_for=AuditLogEntry, aggregates=[StockRecord])
class AuditTrailProjector:
    @on(StockInitialized)
    def on_stock_initialized(self, event):
        AuditTrail().record(
            product_id=event.product_id,
            operation_type=OperationType.INITIAL_STOCK.value,
            before=_levels(0, 0, 0),
            after=_levels(event.initial_quantity, 0, 0),
            actor=event.initialized_by,
            quantity_affected=event.initial_quantity,
            reason="Stock record initialized",
            entry_id=_event_id(event),
        )

    @on(StockLevelChanged)
    def on_stock_level_changed(self, event):
        AuditTrail().record(
            product_id=event.product_id,
            operation_type=event.operation_type,
            before=_levels(
                event.physical_stock - event.physical_delta,
                event.reserved_stock - event.reserved_delta,
                event.record_version - 1,
            ),
            after=_levels(event.physical_stock, event.reserved_stock, event.record_version),
            actor=event.actor,
            quantity_affected=event.quantity_affected or 0,
            order_id=event.order_id,
            adjustment_id=event.adjustment_id,
            reason=event.reason,
            notes=event.notes,
            entry_id=_event_id(event),
        )

    @on(StockHoldPlaced)
    def on_stock_hold_placed(self, event):
        self._record_unchanged_levels(event, OperationType.STOCK_HOLD_PLACED, event.placed_by, event.reason)

    @on(StockHoldReleased)
    def on_stock_hold_released(self, event):
        self._record_unchanged_levels(event, OperationType.STOCK_HOLD_RELEASED, event.released_by, event.reason)

    @on(StockThresholdsUpdated)
    def on_stock_thresholds_updated(self, event):
        notes = (
            f"min_stock_level={event.min_stock_level} reorder_point={event.reorder_point} "
            f"reorder_quantity={event.reorder_quantity} max_stock_level={event.max_stock_level}"
        )
        self._record_unchanged_levels(
            event, OperationType.THRESHOLDS_UPDATED, event.updated_by, event.reason, notes=notes
        )

    @staticmethod
    def _record_unchanged_levels(event, operation_type, actor, reason, notes=None):
        AuditTrail().record(
            product_id=event.product_id,
            operation_type=operation_type.value,
            before=_levels(event.physical_stock, event.reserved_stock, event.record_version - 1),
            after=_levels(event.physical_stock, event.reserved_stock, event.record_version),
            actor=actor,
            reason=reason,
            notes=notes,
            entry_id=_event_id(event),
        )
