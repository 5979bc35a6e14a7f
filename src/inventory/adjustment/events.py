"""Domain events for the InventoryAdjustment aggregate."""

from protean.fields import DateTime, Identifier, Integer, String, Text

from inventory.domain import inventory


@inventory.event(part_of="InventoryAdjustment")
class AdjustmentSubmitted:
    __version__ = 1

    adjustment_id = Identifier(required=True)
    product_id = Identifier(required=True)
    adjustment_type = String(required=True)
    reason_code = String(required=True)
    quantity_adjusted = Integer(required=True)
    previous_physical_stock = Integer(required=True)
    new_physical_stock = Integer(required=True)
    requested_by = String(required=True)
    submitted_at = DateTime(required=True)


@inventory.event(part_of="InventoryAdjustment")
class AdjustmentApproved:
    """The adjustment was applied to the ledger with the snapshot it was applied against."""

    __version__ = 1

    adjustment_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity_adjusted = Integer(required=True)
    previous_physical_stock = Integer(required=True)
    new_physical_stock = Integer(required=True)
    approved_by = String(required=True)
    approved_at = DateTime(required=True)


@inventory.event(part_of="InventoryAdjustment")
class AdjustmentRejected:
    __version__ = 1

    adjustment_id = Identifier(required=True)
    product_id = Identifier(required=True)
    rejected_by = String(required=True)
    notes = Text()
    rejected_at = DateTime(required=True)
