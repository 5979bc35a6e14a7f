"""ReorderAlert aggregate: a signal that a product needs restocking.

Lifecycle: Open → Acknowledged → Resolved | Dismissed. Open alerts can be
resolved or dismissed directly. Resolved and Dismissed are terminal; a
later evaluation that still finds the product below threshold opens a new
alert instead of reviving the old one.
"""

from enum import Enum

from protean.fields import DateTime, Identifier, Integer, String, Text

from inventory.alerts.events import (
    ReorderAlertAcknowledged,
    ReorderAlertDismissed,
    ReorderAlertEscalated,
    ReorderAlertRaised,
    ReorderAlertResolved,
)
from inventory.domain import inventory
from inventory.errors import AlreadyProcessed
from inventory.utils.clock import utcnow


class AlertType(Enum):
    LOW_STOCK = "low_stock"
    CRITICAL = "critical"
    OUT_OF_STOCK = "out_of_stock"


class AlertStatus(Enum):
    OPEN = "open"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


ACTIVE_STATUSES = (AlertStatus.OPEN.value, AlertStatus.ACKNOWLEDGED.value)

_VALID_TRANSITIONS = {
    AlertStatus.OPEN: {AlertStatus.ACKNOWLEDGED, AlertStatus.RESOLVED, AlertStatus.DISMISSED},
    AlertStatus.ACKNOWLEDGED: {
        AlertStatus.OPEN,  # Escalation reopens
        AlertStatus.RESOLVED,
        AlertStatus.DISMISSED,
    },
    AlertStatus.RESOLVED: set(),
    AlertStatus.DISMISSED: set(),
}


@inventory.aggregate
class ReorderAlert:
    product_id = Identifier(required=True)
    alert_type = String(required=True, choices=AlertType)
    alert_status = String(choices=AlertStatus, default=AlertStatus.OPEN.value)
    current_stock = Integer(default=0)
    reorder_point = Integer(default=0)
    suggested_reorder_quantity = Integer(default=0)
    triggered_by = String(max_length=255)
    triggered_at = DateTime()
    escalated_at = DateTime()
    acknowledged_by = String(max_length=255)
    acknowledged_at = DateTime()
    resolved_by = String(max_length=255)
    resolved_at = DateTime()
    notes = Text()

    @classmethod
    def raise_for(
        cls, product_id, alert_type, current_stock, reorder_point, suggested_reorder_quantity, triggered_by=None
    ):
        now = utcnow()
        alert = cls(
            product_id=str(product_id),
            alert_type=alert_type,
            alert_status=AlertStatus.OPEN.value,
            current_stock=current_stock,
            reorder_point=reorder_point,
            suggested_reorder_quantity=suggested_reorder_quantity,
            triggered_by=triggered_by,
            triggered_at=now,
        )
        alert.raise_(
            ReorderAlertRaised(
                alert_id=str(alert.id),
                product_id=str(product_id),
                alert_type=alert_type,
                current_stock=current_stock,
                reorder_point=reorder_point,
                suggested_reorder_quantity=suggested_reorder_quantity,
                triggered_by=triggered_by,
                triggered_at=now,
            )
        )
        return alert

    @property
    def is_active(self):
        return self.alert_status in ACTIVE_STATUSES

    def assert_can_transition(self, target_status):
        current = AlertStatus(self.alert_status)
        if target_status not in _VALID_TRANSITIONS[current]:
            raise AlreadyProcessed(
                f"Alert {self.id} is {current.value} and cannot become {target_status.value}",
                alert_id=str(self.id),
                status=current.value,
            )

    def escalate(self, alert_type, current_stock, suggested_reorder_quantity):
        previous_type = self.alert_type
        if self.alert_status != AlertStatus.OPEN.value:
            self.assert_can_transition(AlertStatus.OPEN)

        now = utcnow()
        self.alert_type = alert_type
        self.alert_status = AlertStatus.OPEN.value
        self.current_stock = current_stock
        self.suggested_reorder_quantity = suggested_reorder_quantity
        self.escalated_at = now
        self.raise_(
            ReorderAlertEscalated(
                alert_id=str(self.id),
                product_id=str(self.product_id),
                previous_alert_type=previous_type,
                alert_type=alert_type,
                current_stock=current_stock,
                suggested_reorder_quantity=suggested_reorder_quantity,
                escalated_at=now,
            )
        )

    def acknowledge(self, acknowledged_by, notes=None):
        self.assert_can_transition(AlertStatus.ACKNOWLEDGED)
        now = utcnow()
        self.alert_status = AlertStatus.ACKNOWLEDGED.value
        self.acknowledged_by = acknowledged_by
        self.acknowledged_at = now
        if notes:
            self.notes = notes
        self.raise_(
            ReorderAlertAcknowledged(
                alert_id=str(self.id),
                product_id=str(self.product_id),
                acknowledged_by=acknowledged_by,
                acknowledged_at=now,
            )
        )

    def resolve(self, resolved_by, notes=None):
        self.assert_can_transition(AlertStatus.RESOLVED)
        now = utcnow()
        self.alert_status = AlertStatus.RESOLVED.value
        self.resolved_by = resolved_by
        self.resolved_at = now
        if notes:
            self.notes = notes
        self.raise_(
            ReorderAlertResolved(
                alert_id=str(self.id),
                product_id=str(self.product_id),
                resolved_by=resolved_by,
                notes=notes,
                resolved_at=now,
            )
        )

    def dismiss(self, dismissed_by, notes=None):
        self.assert_can_transition(AlertStatus.DISMISSED)
        now = utcnow()
        self.alert_status = AlertStatus.DISMISSED.value
        self.resolved_by = dismissed_by
        self.resolved_at = now
        if notes:
            self.notes = notes
        self.raise_(
            ReorderAlertDismissed(
                alert_id=str(self.id),
                product_id=str(self.product_id),
                dismissed_by=dismissed_by,
                notes=notes,
                dismissed_at=now,
            )
        )
