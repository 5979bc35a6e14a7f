"""Inbound cross-domain event handler: reservations follow the order lifecycle.

Order subsystems that publish events instead of calling the reservation
API directly get the same behaviour: OrderCancelled releases every active
reservation held for the order and OrderReturned puts the returned units
back on the shelf.

Each line item is decided on its own. A refused item (a return larger than
what was shipped, a reservation already released) is logged and skipped;
the refusal is raised before anything is written, so the rest of the event
still commits.
"""

import json

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain
from protean.utils.mixins import handle
from shared.events.ordering import OrderCancelled, OrderReturned

from inventory.domain import inventory
from inventory.errors import InventoryError
from inventory.reservation.manager import ReservationManager
from inventory.reservation.reservation import ReservationStatus, StockReservation

logger = structlog.get_logger(__name__)

ORDERING_ACTOR = "ordering"

# Register external events so Protean can deserialize them
inventory.register_external_event(OrderCancelled, "Ordering.OrderCancelled.v1")
inventory.register_external_event(OrderReturned, "Ordering.OrderReturned.v1")


@inventory.event_handler(part_of=StockReservation, stream_category="ordering::order")
class OrderingReservationEventHandler:
    @handle(OrderCancelled)
    def on_order_cancelled(self, event: OrderCancelled) -> None:
        reservations = (
            current_domain.repository_for(StockReservation)
            ._dao.query.filter(order_id=str(event.order_id), status=ReservationStatus.ACTIVE.value)
            .all()
            .items
        )
        if not reservations:
            logger.info("No active reservations for cancelled order", order_id=str(event.order_id))
            return

        manager = ReservationManager()
        for reservation in reservations:
            try:
                manager.cancel(
                    product_id=str(reservation.product_id),
                    order_id=str(event.order_id),
                    actor=event.cancelled_by or ORDERING_ACTOR,
                    reason=f"order_cancelled: {event.reason}",
                )
            except (InventoryError, ValidationError) as exc:
                logger.warning(
                    "Could not release reservation for cancelled order",
                    reservation_id=str(reservation.id),
                    product_id=str(reservation.product_id),
                    order_id=str(event.order_id),
                    error=str(exc),
                )
                continue
            logger.info(
                "Released reservation for cancelled order",
                reservation_id=str(reservation.id),
                product_id=str(reservation.product_id),
                order_id=str(event.order_id),
            )

    @handle(OrderReturned)
    def on_order_returned(self, event: OrderReturned) -> None:
        items = []
        if event.items:
            items = json.loads(event.items) if isinstance(event.items, str) else event.items

        if not items:
            logger.info("No item details in return event; nothing to restock", order_id=str(event.order_id))
            return

        manager = ReservationManager()
        for item in items:
            product_id = item.get("product_id")
            if not product_id:
                logger.warning("Returned item without product id", order_id=str(event.order_id), item=item)
                continue

            quantity = item.get("quantity", 1)
            try:
                manager.return_stock(
                    product_id=str(product_id),
                    order_id=str(event.order_id),
                    quantity=quantity,
                    actor=ORDERING_ACTOR,
                    reason=item.get("reason"),
                )
            except (InventoryError, ValidationError) as exc:
                logger.warning(
                    "Returned item refused",
                    product_id=str(product_id),
                    quantity=quantity,
                    order_id=str(event.order_id),
                    error=str(exc),
                )
                continue
            logger.info(
                "Restocked returned item",
                product_id=str(product_id),
                quantity=quantity,
                order_id=str(event.order_id),
            )
