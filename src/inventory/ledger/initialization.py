"""Stock initialization: command and handler."""

from protean import handle
from protean.fields import Identifier, Integer, String

from inventory.domain import inventory
from inventory.ledger.ledger import StockLedger
from inventory.ledger.stock_record import StockRecord


@inventory.command(part_of="StockRecord")
class InitializeStock:
    """Open the stock record for a product. Thresholds fall back to configured defaults."""

    product_id = Identifier(required=True)
    sku = String(required=True, max_length=50)
    initial_quantity = Integer(default=0, min_value=0)
    min_stock_level = Integer(min_value=0)
    reorder_point = Integer(min_value=0)
    reorder_quantity = Integer(min_value=0)
    max_stock_level = Integer(min_value=0)
    initialized_by = String(required=True, max_length=255)


@inventory.command_handler(part_of=StockRecord)
class InitializeStockHandler:
    @handle(InitializeStock)
    def initialize_stock(self, command):
        record = StockLedger().initialize(
            product_id=command.product_id,
            sku=command.sku,
            actor=command.initialized_by,
            initial_quantity=command.initial_quantity or 0,
            min_stock_level=command.min_stock_level,
            reorder_point=command.reorder_point,
            reorder_quantity=command.reorder_quantity,
            max_stock_level=command.max_stock_level,
        )
        return str(record.product_id)
