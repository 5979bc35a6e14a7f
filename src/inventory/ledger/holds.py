"""Stock holds: block new reservations on a product.

A hold is placed when a product is discontinued or pulled for quality
checks. Existing reservations can still be fulfilled or cancelled.
"""

from protean import handle
from protean.fields import DateTime, Identifier, Integer, String

from inventory.domain import inventory
from inventory.ledger.ledger import StockLedger
from inventory.ledger.stock_record import StockRecord


@inventory.command(part_of="StockRecord")
class PlaceStockHold:
    product_id = Identifier(required=True)
    reason = String(required=True, max_length=255)
    hold_until = DateTime()  # Optional; open-ended when missing
    expected_version = Integer()
    placed_by = String(required=True, max_length=255)


@inventory.command(part_of="StockRecord")
class ReleaseStockHold:
    product_id = Identifier(required=True)
    expected_version = Integer()
    released_by = String(required=True, max_length=255)


@inventory.command_handler(part_of=StockRecord)
class StockHoldHandler:
    @handle(PlaceStockHold)
    def place_stock_hold(self, command):
        record = StockLedger().place_hold(
            product_id=command.product_id,
            reason=command.reason,
            actor=command.placed_by,
            hold_until=command.hold_until,
            expected_version=command.expected_version,
        )
        return record.version

    @handle(ReleaseStockHold)
    def release_stock_hold(self, command):
        record = StockLedger().release_hold(
            product_id=command.product_id,
            actor=command.released_by,
            expected_version=command.expected_version,
        )
        return record.version
