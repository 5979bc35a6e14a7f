"""Stock reservation: commands and handler."""

from dataclasses import asdict

from protean import handle
from protean.fields import DateTime, Identifier, Integer, String

from inventory.domain import inventory
from inventory.reservation.manager import ReservationManager
from inventory.reservation.reservation import StockReservation


@inventory.command(part_of="StockReservation")
class ReserveStock:
    """Hold stock for an order."""

    product_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    expires_at = DateTime()  # Optional; defaults to the configured TTL
    reserved_by = String(required=True, max_length=255)


@inventory.command(part_of="StockReservation")
class FulfillOrderStock:
    """Ship reserved stock. Omitting quantity ships everything still reserved."""

    product_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer()
    fulfilled_by = String(required=True, max_length=255)


@inventory.command(part_of="StockReservation")
class CancelReservation:
    product_id = Identifier(required=True)
    order_id = Identifier(required=True)
    reason = String(default="cancelled", max_length=255)
    cancelled_by = String(required=True, max_length=255)


@inventory.command_handler(part_of=StockReservation)
class ReservationHandler:
    @handle(ReserveStock)
    def reserve_stock(self, command):
        receipt = ReservationManager().reserve(
            product_id=command.product_id,
            order_id=command.order_id,
            quantity=command.quantity,
            actor=command.reserved_by,
            expires_at=command.expires_at,
        )
        return asdict(receipt)

    @handle(FulfillOrderStock)
    def fulfill_order_stock(self, command):
        receipt = ReservationManager().fulfill(
            product_id=command.product_id,
            order_id=command.order_id,
            actor=command.fulfilled_by,
            quantity=command.quantity,
        )
        return asdict(receipt)

    @handle(CancelReservation)
    def cancel_reservation(self, command):
        receipt = ReservationManager().cancel(
            product_id=command.product_id,
            order_id=command.order_id,
            actor=command.cancelled_by,
            reason=command.reason or "cancelled",
        )
        return asdict(receipt)
