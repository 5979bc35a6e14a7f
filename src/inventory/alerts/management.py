"""Reorder alert management: commands and handler."""

from dataclasses import asdict

from protean import handle
from protean.fields import Identifier, String, Text

from inventory.alerts.alert import ReorderAlert
from inventory.alerts.engine import ReorderAlertEngine
from inventory.domain import inventory


@inventory.command(part_of="ReorderAlert")
class TriggerReorderCheck:
    """Re-evaluate one product against its reorder thresholds."""

    product_id = Identifier(required=True)
    requested_by = String(default="system", max_length=255)


@inventory.command(part_of="ReorderAlert")
class ScanReorderLevels:
    """Re-evaluate every product. Triggered by an external scheduler."""

    requested_by = String(default="scheduler", max_length=255)


@inventory.command(part_of="ReorderAlert")
class AcknowledgeAlert:
    alert_id = Identifier(required=True)
    acknowledged_by = String(required=True, max_length=255)
    notes = Text()


@inventory.command(part_of="ReorderAlert")
class ResolveAlert:
    alert_id = Identifier(required=True)
    resolved_by = String(required=True, max_length=255)
    notes = Text()


@inventory.command(part_of="ReorderAlert")
class DismissAlert:
    alert_id = Identifier(required=True)
    dismissed_by = String(required=True, max_length=255)
    notes = Text()


@inventory.command_handler(part_of=ReorderAlert)
class ReorderAlertHandler:
    @handle(TriggerReorderCheck)
    def trigger_reorder_check(self, command):
        return asdict(ReorderAlertEngine().evaluate(command.product_id, actor=command.requested_by))

    @handle(ScanReorderLevels)
    def scan_reorder_levels(self, command):
        return ReorderAlertEngine().scan(actor=command.requested_by)

    @handle(AcknowledgeAlert)
    def acknowledge_alert(self, command):
        alert = ReorderAlertEngine().acknowledge(command.alert_id, command.acknowledged_by, notes=command.notes)
        return alert.alert_status

    @handle(ResolveAlert)
    def resolve_alert(self, command):
        alert = ReorderAlertEngine().resolve(command.alert_id, command.resolved_by, notes=command.notes)
        return alert.alert_status

    @handle(DismissAlert)
    def dismiss_alert(self, command):
        alert = ReorderAlertEngine().dismiss(command.alert_id, command.dismissed_by, notes=command.notes)
        return alert.alert_status
