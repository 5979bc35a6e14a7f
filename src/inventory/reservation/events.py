"""Domain events for the StockReservation aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from inventory.domain import inventory


@inventory.event(part_of="StockReservation")
class StockReserved:
    __version__ = 1

    reservation_id = Identifier(required=True)
    product_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    reserved_by = String(required=True)
    reserved_at = DateTime(required=True)
    expires_at = DateTime(required=True)


@inventory.event(part_of="StockReservation")
class ReservationFulfilled:
    """Reserved units left the building. ``remaining`` > 0 means a partial fulfilment."""

    __version__ = 1

    reservation_id = Identifier(required=True)
    product_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    remaining = Integer(required=True)
    fulfilled_at = DateTime(required=True)


@inventory.event(part_of="StockReservation")
class ReservationCancelled:
    __version__ = 1

    reservation_id = Identifier(required=True)
    product_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    reason = String(required=True)
    cancelled_at = DateTime(required=True)


@inventory.event(part_of="StockReservation")
class ReservationExpired:
    __version__ = 1

    reservation_id = Identifier(required=True)
    product_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    expired_at = DateTime(required=True)


@inventory.event(part_of="StockReservation")
class ReservationReturned:
    """Shipped units for the order came back and were restocked."""

    __version__ = 1

    reservation_id = Identifier(required=True)
    product_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    returned_total = Integer(required=True)
    returned_at = DateTime(required=True)
