"""Adjustment submission: command and handler."""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String, Text

from inventory.adjustment.adjustment import InventoryAdjustment
from inventory.adjustment.workflow import AdjustmentWorkflow
from inventory.domain import inventory


@inventory.command(part_of="InventoryAdjustment")
class SubmitAdjustment:
    """Propose a signed correction to a product's physical stock."""

    product_id = Identifier(required=True)
    adjustment_type = String(required=True, max_length=50)
    reason_code = String(required=True, max_length=100)
    quantity_adjusted = Integer(required=True)
    description = Text(required=True)
    supporting_documents = Text()  # JSON list of URLs
    witness_user_id = Identifier()
    notes = Text()
    requested_by = String(required=True, max_length=255)


@inventory.command_handler(part_of=InventoryAdjustment)
class SubmitAdjustmentHandler:
    @handle(SubmitAdjustment)
    def submit_adjustment(self, command):
        documents = []
        if command.supporting_documents:
            try:
                documents = json.loads(command.supporting_documents)
            except ValueError:
                raise ValidationError({"supporting_documents": ["Must be a JSON list of URLs"]}) from None
            if not isinstance(documents, list):
                raise ValidationError({"supporting_documents": ["Must be a JSON list of URLs"]})

        adjustment = AdjustmentWorkflow().submit(
            product_id=command.product_id,
            adjustment_type=command.adjustment_type,
            reason_code=command.reason_code,
            quantity_adjusted=command.quantity_adjusted,
            description=command.description,
            requested_by=command.requested_by,
            supporting_documents=documents,
            witness_user_id=command.witness_user_id,
            notes=command.notes,
        )
        return str(adjustment.id)
