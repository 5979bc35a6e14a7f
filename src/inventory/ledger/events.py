"""Domain events for the StockRecord aggregate.

Every event carries the resulting stock quantities and record version along
with who made the change, so the audit trail projector can rebuild the
before/after snapshot without reading the record again.
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from inventory.domain import inventory


@inventory.event(part_of="StockRecord")
class StockInitialized:
    """A stock record was opened for a product."""

    __version__ = 1

    product_id = Identifier(required=True)
    sku = String(required=True)
    initial_quantity = Integer(required=True)
    min_stock_level = Integer(required=True)
    reorder_point = Integer(required=True)
    reorder_quantity = Integer(required=True)
    max_stock_level = Integer(required=True)
    initialized_by = String(required=True)
    initialized_at = DateTime(required=True)


@inventory.event(part_of="StockRecord")
class StockLevelChanged:
    """Physical and/or reserved stock moved as one versioned write."""

    __version__ = 1

    product_id = Identifier(required=True)
    operation_type = String(required=True)
    physical_delta = Integer(required=True)
    reserved_delta = Integer(required=True)
    physical_stock = Integer(required=True)
    reserved_stock = Integer(required=True)
    available_stock = Integer(required=True)
    stock_status = String(required=True)
    record_version = Integer(required=True)
    quantity_affected = Integer(default=0)
    actor = String(required=True)
    order_id = Identifier()
    adjustment_id = Identifier()
    reason = String()
    notes = Text()
    changed_at = DateTime(required=True)


@inventory.event(part_of="StockRecord")
class StockHoldPlaced:
    """New reservations are blocked for the product until the hold is released."""

    __version__ = 1

    product_id = Identifier(required=True)
    reason = String(required=True)
    hold_until = DateTime()
    physical_stock = Integer(required=True)
    reserved_stock = Integer(required=True)
    available_stock = Integer(required=True)
    record_version = Integer(required=True)
    placed_by = String(required=True)
    placed_at = DateTime(required=True)


@inventory.event(part_of="StockRecord")
class StockHoldReleased:
    __version__ = 1

    product_id = Identifier(required=True)
    reason = String()
    physical_stock = Integer(required=True)
    reserved_stock = Integer(required=True)
    available_stock = Integer(required=True)
    record_version = Integer(required=True)
    released_by = String(required=True)
    released_at = DateTime(required=True)


@inventory.event(part_of="StockRecord")
class StockThresholdsUpdated:
    """Reorder thresholds changed; quantities are unchanged."""

    __version__ = 1

    product_id = Identifier(required=True)
    min_stock_level = Integer(required=True)
    reorder_point = Integer(required=True)
    reorder_quantity = Integer(required=True)
    max_stock_level = Integer(required=True)
    stock_status = String(required=True)
    physical_stock = Integer(required=True)
    reserved_stock = Integer(required=True)
    available_stock = Integer(required=True)
    record_version = Integer(required=True)
    updated_by = String(required=True)
    reason = String()
    updated_at = DateTime(required=True)
