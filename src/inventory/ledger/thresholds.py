"""Reorder threshold maintenance: command and handler.

Changing a threshold can move a product in or out of its reorder band
without any stock moving, so the product is re-evaluated in the same
transaction.
"""

from protean import handle
from protean.fields import Identifier, Integer, String

from inventory.alerts.engine import ReorderAlertEngine
from inventory.domain import inventory
from inventory.ledger.ledger import StockLedger
from inventory.ledger.stock_record import StockRecord


@inventory.command(part_of="StockRecord")
class UpdateStockThresholds:
    """Replace any of the four thresholds. Missing values are left as they are."""

    product_id = Identifier(required=True)
    min_stock_level = Integer(min_value=0)
    reorder_point = Integer(min_value=0)
    reorder_quantity = Integer(min_value=0)
    max_stock_level = Integer(min_value=0)
    reason = String(max_length=255)
    expected_version = Integer()
    updated_by = String(required=True, max_length=255)


@inventory.command_handler(part_of=StockRecord)
class StockThresholdsHandler:
    @handle(UpdateStockThresholds)
    def update_stock_thresholds(self, command):
        ledger = StockLedger()
        record = ledger.update_thresholds(
            command.product_id,
            actor=command.updated_by,
            expected_version=command.expected_version,
            reason=command.reason,
            min_stock_level=command.min_stock_level,
            reorder_point=command.reorder_point,
            reorder_quantity=command.reorder_quantity,
            max_stock_level=command.max_stock_level,
        )
        evaluation = ReorderAlertEngine(ledger).evaluate(command.product_id, actor=command.updated_by)
        return {"version": record.version, "stock_status": record.stock_status, "alert_action": evaluation.action}
