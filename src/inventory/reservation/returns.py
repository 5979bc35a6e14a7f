"""Customer returns: command and handler."""

from protean import handle
from protean.fields import Identifier, Integer, String

from inventory.domain import inventory
from inventory.reservation.manager import ReservationManager
from inventory.reservation.reservation import StockReservation


@inventory.command(part_of="StockReservation")
class ReturnStock:
    """Put units from a fulfilled order back into physical stock."""

    product_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    reason = String(max_length=255)  # Defaults to "Customer return"
    processed_by = String(required=True, max_length=255)


@inventory.command_handler(part_of=StockReservation)
class ReturnStockHandler:
    @handle(ReturnStock)
    def return_stock(self, command):
        result = ReservationManager().return_stock(
            product_id=command.product_id,
            order_id=command.order_id,
            quantity=command.quantity,
            actor=command.processed_by,
            reason=command.reason,
        )
        return result.current
