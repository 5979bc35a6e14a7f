"""ReservationManager: order-driven stock movements.

    reserve:  reserved += qty                      (available drops)
    fulfill:  physical -= qty and reserved -= qty  (available unchanged)
    cancel:   reserved -= remaining qty            (available restored)
    expire:   as cancel, for reservations past their expiry
    return:   physical += qty                      (at most what was shipped)

Each movement is a compare-and-swap write on the StockLedger wrapped in the
ledger's retry loop, so losing a version race re-reads and re-decides
instead of surfacing to the caller. Inside a command the race shows up at
commit instead, and ``inventory.dispatch`` replays the command.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from inventory.alerts.engine import ReorderAlertEngine
from inventory.config import get_settings
from inventory.errors import (
    DuplicateReservation,
    InsufficientReservedQuantity,
    InsufficientStock,
    InventoryError,
    ReservationNotFound,
    ReturnExceedsFulfilled,
    StockOnHold,
)
from inventory.ledger.ledger import StockLedger
from inventory.reservation.reservation import ReservationStatus, StockReservation
from inventory.utils.clock import as_utc, utcnow
from inventory.utils.db import fetch_all

logger = structlog.get_logger(__name__)

DEFAULT_RETURN_REASON = "Customer return"


@dataclass(frozen=True)
class ReservationReceipt:
    reservation_id: str
    product_id: str
    order_id: str
    quantity: int
    available_after: int
    expires_at: datetime | None = None
    status: str = ReservationStatus.ACTIVE.value


def _require_positive(quantity):
    if quantity is None or quantity <= 0:
        raise ValidationError({"quantity": ["Quantity must be positive"]})


class ReservationManager:
    def __init__(self, ledger=None, alert_engine=None, settings=None):
        self.settings = settings or get_settings()
        self.ledger = ledger or StockLedger(self.settings)
        self.alerts = alert_engine or ReorderAlertEngine(self.ledger)

    @staticmethod
    def _repository():
        return current_domain.repository_for(StockReservation)

    def active_reservation(self, product_id, order_id):
        matches = (
            self._repository()
            ._dao.query.filter(
                product_id=str(product_id),
                order_id=str(order_id),
                status=ReservationStatus.ACTIVE.value,
            )
            .all()
            .items
        )
        return matches[0] if matches else None

    def _require_active(self, product_id, order_id):
        reservation = self.active_reservation(product_id, order_id)
        if reservation is None:
            raise ReservationNotFound(product_id, order_id)
        return reservation

    # -------------------------------------------------------------------
    # Reserve
    # -------------------------------------------------------------------
    def reserve(self, product_id, order_id, quantity, actor, expires_at=None):
        _require_positive(quantity)

        def attempt():
            record = self.ledger.read(product_id)
            if record.is_on_hold():
                raise StockOnHold(product_id, record.stock_hold_reason)

            existing = self.active_reservation(product_id, order_id)
            if existing is not None:
                raise DuplicateReservation(product_id, order_id, existing.id)

            if record.available_stock < quantity:
                raise InsufficientStock(product_id, quantity, record.available_stock)

            return self.ledger.apply_delta(
                product_id,
                physical_delta=0,
                reserved_delta=quantity,
                expected_version=record.version,
                operation_type="reservation",
                actor=actor,
                quantity_affected=quantity,
                order_id=order_id,
            )

        result = self.ledger.run_with_retry(attempt, product_id=product_id)

        reservation = StockReservation.place(
            product_id=product_id,
            order_id=order_id,
            quantity=quantity,
            reserved_by=actor,
            expires_at=expires_at,
            ttl_minutes=self.settings.reservation_ttl_minutes,
        )
        self._repository().add(reservation)

        logger.info(
            "Stock reserved",
            product_id=str(product_id),
            order_id=str(order_id),
            reservation_id=str(reservation.id),
            quantity=quantity,
            available_after=result.available_after,
        )
        return ReservationReceipt(
            reservation_id=str(reservation.id),
            product_id=str(product_id),
            order_id=str(order_id),
            quantity=quantity,
            available_after=result.available_after,
            expires_at=reservation.expires_at,
        )

    # -------------------------------------------------------------------
    # Fulfil
    # -------------------------------------------------------------------
    def fulfill(self, product_id, order_id, actor, quantity=None):
        """Ship reserved units. ``quantity`` defaults to everything still reserved."""
        reservation = self._require_active(product_id, order_id)
        quantity = reservation.quantity_reserved if quantity is None else quantity
        _require_positive(quantity)
        if quantity > reservation.quantity_reserved:
            raise InsufficientReservedQuantity(product_id, quantity, reservation.quantity_reserved)

        def attempt():
            record = self.ledger.read(product_id)
            return self.ledger.apply_delta(
                product_id,
                physical_delta=-quantity,
                reserved_delta=-quantity,
                expected_version=record.version,
                operation_type="fulfillment",
                actor=actor,
                quantity_affected=quantity,
                order_id=order_id,
            )

        result = self.ledger.run_with_retry(attempt, product_id=product_id)

        reservation.fulfill(quantity)
        self._repository().add(reservation)
        logger.info(
            "Reservation fulfilled",
            product_id=str(product_id),
            order_id=str(order_id),
            quantity=quantity,
            remaining=reservation.quantity_reserved,
        )

        self.alerts.evaluate(product_id, actor=actor)

        return ReservationReceipt(
            reservation_id=str(reservation.id),
            product_id=str(product_id),
            order_id=str(order_id),
            quantity=quantity,
            available_after=result.available_after,
            status=reservation.status,
        )

    # -------------------------------------------------------------------
    # Cancel / expire
    # -------------------------------------------------------------------
    def _release(self, reservation, actor, operation_type, reason):
        quantity = reservation.quantity_reserved

        def attempt():
            record = self.ledger.read(reservation.product_id)
            return self.ledger.apply_delta(
                reservation.product_id,
                physical_delta=0,
                reserved_delta=-quantity,
                expected_version=record.version,
                operation_type=operation_type,
                actor=actor,
                quantity_affected=quantity,
                order_id=reservation.order_id,
                reason=reason,
            )

        return self.ledger.run_with_retry(attempt, product_id=reservation.product_id)

    def cancel(self, product_id, order_id, actor, reason="cancelled"):
        reservation = self._require_active(product_id, order_id)
        result = self._release(reservation, actor, "reservation_cancelled", reason)

        reservation.cancel(reason)
        self._repository().add(reservation)
        logger.info(
            "Reservation cancelled",
            product_id=str(product_id),
            order_id=str(order_id),
            quantity=result.previous["reserved_stock"] - result.current["reserved_stock"],
            reason=reason,
        )
        return ReservationReceipt(
            reservation_id=str(reservation.id),
            product_id=str(product_id),
            order_id=str(order_id),
            quantity=result.previous["reserved_stock"] - result.current["reserved_stock"],
            available_after=result.available_after,
            status=reservation.status,
        )

    def expire_stale(self, as_of=None, actor="system"):
        """Expire every active reservation whose expiry has passed.

        A failure on one reservation is logged and the sweep moves on.
        """
        as_of = as_utc(as_of) if as_of else utcnow()
        active = fetch_all(
            self._repository()._dao.query.filter(status=ReservationStatus.ACTIVE.value).order_by("expires_at")
        )
        stale = [reservation for reservation in active if reservation.is_expired(as_of)]
        if not stale:
            logger.info("No stale reservations found", as_of=as_of.isoformat())
            return 0

        expired_count = 0
        for reservation in stale:
            try:
                self._release(reservation, actor, "reservation_expired", "Reservation expired")
                reservation.expire()
                self._repository().add(reservation)
            except (InventoryError, ValidationError) as exc:
                logger.warning(
                    "Failed to expire reservation",
                    reservation_id=str(reservation.id),
                    product_id=str(reservation.product_id),
                    error=str(exc),
                )
                continue
            expired_count += 1
            logger.info(
                "Expired stale reservation",
                reservation_id=str(reservation.id),
                order_id=str(reservation.order_id),
                expires_at=str(reservation.expires_at),
            )

        logger.info("Stale reservation cleanup complete", expired_count=expired_count)
        return expired_count

    # -------------------------------------------------------------------
    # Returns
    # -------------------------------------------------------------------
    def shipped_reservations(self, product_id, order_id):
        """Reservations for the order that still have shipped units to take back, oldest first."""
        reservations = (
            self._repository()
            ._dao.query.filter(product_id=str(product_id), order_id=str(order_id))
            .order_by("reserved_at")
            .all()
            .items
        )
        return [reservation for reservation in reservations if reservation.returnable_quantity > 0]

    def return_stock(self, product_id, order_id, quantity, actor, reason=None):
        """Put returned units back on the shelf.

        Only units shipped for the order and not already returned can come
        back. The return is booked against the order's reservations oldest
        first; their status does not change.
        """
        _require_positive(quantity)
        reason = reason or DEFAULT_RETURN_REASON

        shipped = self.shipped_reservations(product_id, order_id)
        returnable = sum(reservation.returnable_quantity for reservation in shipped)
        if quantity > returnable:
            raise ReturnExceedsFulfilled(product_id, order_id, quantity, returnable)

        def attempt():
            record = self.ledger.read(product_id)
            return self.ledger.apply_delta(
                product_id,
                physical_delta=quantity,
                reserved_delta=0,
                expected_version=record.version,
                operation_type="return_processing",
                actor=actor,
                quantity_affected=quantity,
                order_id=order_id,
                reason=reason,
            )

        result = self.ledger.run_with_retry(attempt, product_id=product_id)

        outstanding = quantity
        for reservation in shipped:
            booked = min(outstanding, reservation.returnable_quantity)
            reservation.record_return(booked)
            self._repository().add(reservation)
            outstanding -= booked
            if not outstanding:
                break

        logger.info(
            "Returned stock restocked",
            product_id=str(product_id),
            order_id=str(order_id),
            quantity=quantity,
            returnable_before=returnable,
            reason=reason,
        )

        self.alerts.evaluate(product_id, actor=actor)
        return result
