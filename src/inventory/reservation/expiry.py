"""Reservation expiry: command and handler for releasing stale reservations.

Designed to be triggered periodically by an external scheduler (cron, K8s
CronJob) via the maintenance API endpoint.
"""

from protean import handle
from protean.fields import DateTime, String

from inventory.domain import inventory
from inventory.reservation.manager import ReservationManager
from inventory.reservation.reservation import StockReservation


@inventory.command(part_of="StockReservation")
class ExpireStaleReservations:
    """Release reservations whose expiry time has passed."""

    as_of = DateTime()  # Optional: defaults to now
    requested_by = String(default="scheduler", max_length=255)


@inventory.command_handler(part_of=StockReservation)
class ExpireStaleReservationsHandler:
    @handle(ExpireStaleReservations)
    def expire_stale_reservations(self, command):
        return ReservationManager().expire_stale(
            as_of=command.as_of,
            actor=command.requested_by or "scheduler",
        )
