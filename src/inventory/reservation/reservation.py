"""StockReservation aggregate: units held for one order on one product.

Reservations transition through: Active → Fulfilled, Active → Cancelled, or
Active → Expired. All three outcomes are terminal. A partial fulfilment
keeps the reservation Active with the remaining quantity.

Returns are recorded against shipped units whatever the status: no more
than ``quantity_fulfilled`` can ever come back for one reservation.
"""

from datetime import timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String

from inventory.domain import inventory
from inventory.errors import AlreadyProcessed, InsufficientReservedQuantity, ReturnExceedsFulfilled
from inventory.reservation.events import (
    ReservationCancelled,
    ReservationExpired,
    ReservationFulfilled,
    ReservationReturned,
    StockReserved,
)
from inventory.utils.clock import as_utc, utcnow


class ReservationStatus(Enum):
    ACTIVE = "active"
    FULFILLED = "fulfilled"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


_VALID_TRANSITIONS = {
    ReservationStatus.ACTIVE: {
        ReservationStatus.ACTIVE,  # Partial fulfilment
        ReservationStatus.FULFILLED,
        ReservationStatus.CANCELLED,
        ReservationStatus.EXPIRED,
    },
    ReservationStatus.FULFILLED: set(),
    ReservationStatus.CANCELLED: set(),
    ReservationStatus.EXPIRED: set(),
}


@inventory.aggregate
class StockReservation:
    product_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity_reserved = Integer(required=True, min_value=0)
    quantity_fulfilled = Integer(default=0, min_value=0)
    quantity_returned = Integer(default=0, min_value=0)
    status = String(choices=ReservationStatus, default=ReservationStatus.ACTIVE.value)
    reserved_by = String(max_length=255)
    reserved_at = DateTime(required=True)
    expires_at = DateTime(required=True)
    fulfilled_at = DateTime()
    cancelled_at = DateTime()
    cancellation_reason = String(max_length=255)

    @classmethod
    def place(cls, product_id, order_id, quantity, reserved_by, expires_at=None, ttl_minutes=15):
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        now = utcnow()
        expires_at = expires_at or now + timedelta(minutes=ttl_minutes)
        reservation = cls(
            product_id=str(product_id),
            order_id=str(order_id),
            quantity_reserved=quantity,
            reserved_by=reserved_by,
            reserved_at=now,
            expires_at=expires_at,
        )
        reservation.raise_(
            StockReserved(
                reservation_id=str(reservation.id),
                product_id=str(product_id),
                order_id=str(order_id),
                quantity=quantity,
                reserved_by=reserved_by,
                reserved_at=now,
                expires_at=expires_at,
            )
        )
        return reservation

    def _assert_can_transition(self, target_status):
        current = ReservationStatus(self.status)
        if target_status not in _VALID_TRANSITIONS[current]:
            raise AlreadyProcessed(
                f"Reservation {self.id} is {current.value} and cannot become {target_status.value}",
                reservation_id=str(self.id),
                status=current.value,
            )

    def is_expired(self, as_of=None):
        return as_utc(self.expires_at) <= as_utc(as_of or utcnow())

    def fulfill(self, quantity):
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if quantity > self.quantity_reserved:
            raise InsufficientReservedQuantity(self.product_id, quantity, self.quantity_reserved)

        remaining = self.quantity_reserved - quantity
        target = ReservationStatus.FULFILLED if remaining == 0 else ReservationStatus.ACTIVE
        self._assert_can_transition(target)

        now = utcnow()
        self.quantity_reserved = remaining
        self.quantity_fulfilled = (self.quantity_fulfilled or 0) + quantity
        self.status = target.value
        self.fulfilled_at = now
        self.raise_(
            ReservationFulfilled(
                reservation_id=str(self.id),
                product_id=str(self.product_id),
                order_id=str(self.order_id),
                quantity=quantity,
                remaining=remaining,
                fulfilled_at=now,
            )
        )

    def cancel(self, reason):
        self._assert_can_transition(ReservationStatus.CANCELLED)
        now = utcnow()
        released = self.quantity_reserved
        self.status = ReservationStatus.CANCELLED.value
        self.cancelled_at = now
        self.cancellation_reason = reason
        self.raise_(
            ReservationCancelled(
                reservation_id=str(self.id),
                product_id=str(self.product_id),
                order_id=str(self.order_id),
                quantity=released,
                reason=reason,
                cancelled_at=now,
            )
        )

    def expire(self):
        self._assert_can_transition(ReservationStatus.EXPIRED)
        now = utcnow()
        self.status = ReservationStatus.EXPIRED.value
        self.cancelled_at = now
        self.cancellation_reason = "expired"
        self.raise_(
            ReservationExpired(
                reservation_id=str(self.id),
                product_id=str(self.product_id),
                order_id=str(self.order_id),
                quantity=self.quantity_reserved,
                expired_at=now,
            )
        )

    @property
    def returnable_quantity(self):
        return (self.quantity_fulfilled or 0) - (self.quantity_returned or 0)

    def record_return(self, quantity):
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if quantity > self.returnable_quantity:
            raise ReturnExceedsFulfilled(self.product_id, self.order_id, quantity, self.returnable_quantity)

        self.quantity_returned = (self.quantity_returned or 0) + quantity
        self.raise_(
            ReservationReturned(
                reservation_id=str(self.id),
                product_id=str(self.product_id),
                order_id=str(self.order_id),
                quantity=quantity,
                returned_total=self.quantity_returned,
                returned_at=utcnow(),
            )
        )
