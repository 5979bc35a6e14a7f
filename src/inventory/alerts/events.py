"""Domain events for the ReorderAlert aggregate.

Notification delivery subscribes to Raised and Escalated; the remaining
events close the loop for dashboards.
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from inventory.domain import inventory


@inventory.event(part_of="ReorderAlert")
class ReorderAlertRaised:
    __version__ = 1

    alert_id = Identifier(required=True)
    product_id = Identifier(required=True)
    alert_type = String(required=True)
    current_stock = Integer(required=True)
    reorder_point = Integer(required=True)
    suggested_reorder_quantity = Integer(required=True)
    triggered_by = String()
    triggered_at = DateTime(required=True)


@inventory.event(part_of="ReorderAlert")
class ReorderAlertEscalated:
    """An active alert moved to a more severe classification and was reopened."""

    __version__ = 1

    alert_id = Identifier(required=True)
    product_id = Identifier(required=True)
    previous_alert_type = String(required=True)
    alert_type = String(required=True)
    current_stock = Integer(required=True)
    suggested_reorder_quantity = Integer(required=True)
    escalated_at = DateTime(required=True)


@inventory.event(part_of="ReorderAlert")
class ReorderAlertAcknowledged:
    __version__ = 1

    alert_id = Identifier(required=True)
    product_id = Identifier(required=True)
    acknowledged_by = String(required=True)
    acknowledged_at = DateTime(required=True)


@inventory.event(part_of="ReorderAlert")
class ReorderAlertResolved:
    __version__ = 1

    alert_id = Identifier(required=True)
    product_id = Identifier(required=True)
    resolved_by = String(required=True)
    notes = Text()
    resolved_at = DateTime(required=True)


@inventory.event(part_of="ReorderAlert")
class ReorderAlertDismissed:
    __version__ = 1

    alert_id = Identifier(required=True)
    product_id = Identifier(required=True)
    dismissed_by = String(required=True)
    notes = Text()
    dismissed_at = DateTime(required=True)
