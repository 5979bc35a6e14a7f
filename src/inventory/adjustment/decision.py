"""Adjustment approval: command and handler."""

from protean import handle
from protean.fields import Identifier, String, Text

from inventory.adjustment.adjustment import InventoryAdjustment
from inventory.adjustment.workflow import AdjustmentWorkflow
from inventory.domain import inventory


@inventory.command(part_of="InventoryAdjustment")
class DecideAdjustment:
    """Approve or reject a pending adjustment. Approval applies it to the ledger."""

    adjustment_id = Identifier(required=True)
    decision = String(required=True, max_length=20)  # "approved" | "rejected"
    decided_by = String(required=True, max_length=255)
    notes = Text()


@inventory.command_handler(part_of=InventoryAdjustment)
class DecideAdjustmentHandler:
    @handle(DecideAdjustment)
    def decide_adjustment(self, command):
        adjustment = AdjustmentWorkflow().decide(
            adjustment_id=command.adjustment_id,
            decision=command.decision,
            approver=command.decided_by,
            notes=command.notes,
        )
        return adjustment.approval_status
