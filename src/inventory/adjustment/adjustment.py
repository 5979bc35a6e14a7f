"""InventoryAdjustment aggregate: a manual stock correction awaiting approval.

Adjustments record *intent*. Submitting one never touches the ledger; only
approval applies the signed quantity to physical stock. Pending → Approved
or Pending → Rejected happens exactly once.
"""

import json
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text

from inventory.adjustment.events import AdjustmentApproved, AdjustmentRejected, AdjustmentSubmitted
from inventory.domain import inventory
from inventory.errors import AlreadyDecided, NegativeStockRejected
from inventory.utils.clock import utcnow


class AdjustmentType(Enum):
    PHYSICAL_COUNT = "physical_count"
    DAMAGE_WRITEOFF = "damage_writeoff"
    THEFT_LOSS = "theft_loss"
    COUNTING_ERROR = "counting_error"
    MANUAL_CORRECTION = "manual_correction"
    SUPPLIER_RETURN = "supplier_return"
    QUALITY_CONTROL_REJECT = "quality_control_reject"


class ApprovalStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


_VALID_TRANSITIONS = {
    ApprovalStatus.PENDING: {ApprovalStatus.APPROVED, ApprovalStatus.REJECTED},
    ApprovalStatus.APPROVED: set(),
    ApprovalStatus.REJECTED: set(),
}


@inventory.aggregate
class InventoryAdjustment:
    product_id = Identifier(required=True)
    adjustment_type = String(required=True, choices=AdjustmentType)
    reason_code = String(required=True, max_length=100)
    quantity_adjusted = Integer(required=True)
    previous_physical_stock = Integer(required=True)
    new_physical_stock = Integer(required=True)
    approval_status = String(choices=ApprovalStatus, default=ApprovalStatus.PENDING.value)
    description = Text(required=True)
    requested_by = String(required=True, max_length=255)
    approved_by = String(max_length=255)
    witness_user_id = Identifier()
    supporting_documents = Text()  # JSON list of URLs
    notes = Text()
    created_at = DateTime()
    approved_at = DateTime()

    @classmethod
    def submit(
        cls,
        product_id,
        adjustment_type,
        reason_code,
        quantity_adjusted,
        previous_physical_stock,
        description,
        requested_by,
        witness_user_id=None,
        supporting_documents=None,
        notes=None,
    ):
        errors = {}
        if adjustment_type not in {t.value for t in AdjustmentType}:
            errors["adjustment_type"] = [f"Unknown adjustment type: {adjustment_type}"]
        if not quantity_adjusted:
            errors["quantity_adjusted"] = ["Adjustment quantity cannot be zero"]
        if not reason_code or not reason_code.strip():
            errors["reason_code"] = ["Reason code is required"]
        if not description or not description.strip():
            errors["description"] = ["Description is required"]
        if errors:
            raise ValidationError(errors)

        new_physical_stock = previous_physical_stock + quantity_adjusted
        if new_physical_stock < 0:
            raise NegativeStockRejected(product_id, previous_physical_stock, quantity_adjusted)

        now = utcnow()
        adjustment = cls(
            product_id=str(product_id),
            adjustment_type=adjustment_type,
            reason_code=reason_code.strip(),
            quantity_adjusted=quantity_adjusted,
            previous_physical_stock=previous_physical_stock,
            new_physical_stock=new_physical_stock,
            description=description.strip(),
            requested_by=requested_by,
            witness_user_id=witness_user_id,
            supporting_documents=json.dumps(list(supporting_documents or [])),
            notes=notes,
            created_at=now,
        )
        adjustment.raise_(
            AdjustmentSubmitted(
                adjustment_id=str(adjustment.id),
                product_id=str(product_id),
                adjustment_type=adjustment_type,
                reason_code=adjustment.reason_code,
                quantity_adjusted=quantity_adjusted,
                previous_physical_stock=previous_physical_stock,
                new_physical_stock=new_physical_stock,
                requested_by=requested_by,
                submitted_at=now,
            )
        )
        return adjustment

    @property
    def documents(self):
        return json.loads(self.supporting_documents) if self.supporting_documents else []

    def assert_can_transition(self, target_status):
        current = ApprovalStatus(self.approval_status)
        if target_status not in _VALID_TRANSITIONS[current]:
            raise AlreadyDecided(self.id, current.value)

    def approve(self, approved_by, previous_physical_stock, new_physical_stock, notes=None):
        """Record approval against the snapshot the delta was actually applied to."""
        self.assert_can_transition(ApprovalStatus.APPROVED)
        now = utcnow()
        self.approval_status = ApprovalStatus.APPROVED.value
        self.approved_by = approved_by
        self.approved_at = now
        self.previous_physical_stock = previous_physical_stock
        self.new_physical_stock = new_physical_stock
        if notes:
            self.notes = notes
        self.raise_(
            AdjustmentApproved(
                adjustment_id=str(self.id),
                product_id=str(self.product_id),
                quantity_adjusted=self.quantity_adjusted,
                previous_physical_stock=previous_physical_stock,
                new_physical_stock=new_physical_stock,
                approved_by=approved_by,
                approved_at=now,
            )
        )

    def reject(self, rejected_by, notes=None):
        self.assert_can_transition(ApprovalStatus.REJECTED)
        now = utcnow()
        self.approval_status = ApprovalStatus.REJECTED.value
        self.approved_by = rejected_by
        self.approved_at = now
        if notes:
            self.notes = notes
        self.raise_(
            AdjustmentRejected(
                adjustment_id=str(self.id),
                product_id=str(self.product_id),
                rejected_by=rejected_by,
                notes=notes,
                rejected_at=now,
            )
        )
