"""AdjustmentWorkflow: submit, decide and bulk-submit manual corrections.

Approval re-reads the ledger and applies the signed quantity to the
*current* physical stock through the compare-and-swap path, so a count
submitted an hour ago still moves stock by exactly the delta the requester
asked for. The adjustment's previous/new snapshot is refreshed to what was
actually applied. If stock moved so far that the delta would now go
negative (or below reserved stock) approval is refused and the adjustment
stays pending.
"""

import json

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from inventory.adjustment.adjustment import ApprovalStatus, InventoryAdjustment
from inventory.alerts.engine import ReorderAlertEngine
from inventory.config import get_settings
from inventory.dispatch import dispatch
from inventory.domain import inventory
from inventory.errors import AdjustmentNotFound
from inventory.ledger.ledger import StockLedger
from inventory.utils.batch import run_batch
from inventory.utils.db import storage_guard

logger = structlog.get_logger(__name__)

BULK_ITEM_FIELDS = (
    "product_id",
    "adjustment_type",
    "reason_code",
    "quantity_adjusted",
    "description",
    "supporting_documents",
    "witness_user_id",
    "notes",
)


class AdjustmentWorkflow:
    def __init__(self, ledger=None, alert_engine=None, settings=None):
        self.settings = settings or get_settings()
        self.ledger = ledger or StockLedger(self.settings)
        self.alerts = alert_engine or ReorderAlertEngine(self.ledger)

    @staticmethod
    def _repository():
        return current_domain.repository_for(InventoryAdjustment)

    def get(self, adjustment_id):
        with storage_guard():
            try:
                return self._repository().get(str(adjustment_id))
            except ObjectNotFoundError:
                raise AdjustmentNotFound(adjustment_id) from None

    # -------------------------------------------------------------------
    # Submit
    # -------------------------------------------------------------------
    def submit(
        self,
        product_id,
        adjustment_type,
        reason_code,
        quantity_adjusted,
        description,
        requested_by,
        supporting_documents=None,
        witness_user_id=None,
        notes=None,
    ):
        record = self.ledger.read(product_id)
        adjustment = InventoryAdjustment.submit(
            product_id=product_id,
            adjustment_type=adjustment_type,
            reason_code=reason_code,
            quantity_adjusted=quantity_adjusted,
            previous_physical_stock=record.physical_stock,
            description=description,
            requested_by=requested_by,
            witness_user_id=witness_user_id,
            supporting_documents=supporting_documents,
            notes=notes,
        )
        self._repository().add(adjustment)
        logger.info(
            "Adjustment submitted",
            adjustment_id=str(adjustment.id),
            product_id=str(product_id),
            adjustment_type=adjustment_type,
            quantity_adjusted=quantity_adjusted,
            requested_by=requested_by,
        )
        return adjustment

    # -------------------------------------------------------------------
    # Decide
    # -------------------------------------------------------------------
    def decide(self, adjustment_id, decision, approver, notes=None):
        try:
            decision = ApprovalStatus(decision)
        except ValueError:
            decision = None
        if decision not in (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED):
            raise ValidationError({"decision": ["Decision must be 'approved' or 'rejected'"]})

        adjustment = self.get(adjustment_id)
        adjustment.assert_can_transition(decision)

        if decision == ApprovalStatus.REJECTED:
            adjustment.reject(approver, notes=notes)
            self._repository().add(adjustment)
            logger.info("Adjustment rejected", adjustment_id=str(adjustment_id), approver=approver)
            return adjustment

        product_id = adjustment.product_id

        def attempt():
            record = self.ledger.read(product_id)
            return self.ledger.apply_delta(
                product_id,
                physical_delta=adjustment.quantity_adjusted,
                reserved_delta=0,
                expected_version=record.version,
                operation_type="inventory_adjustment",
                actor=approver,
                adjustment_id=adjustment.id,
                reason=adjustment.reason_code,
                notes=adjustment.description,
            )

        result = self.ledger.run_with_retry(attempt, product_id=product_id)

        adjustment.approve(
            approver,
            previous_physical_stock=result.previous["physical_stock"],
            new_physical_stock=result.current["physical_stock"],
            notes=notes,
        )
        self._repository().add(adjustment)
        logger.info(
            "Adjustment approved",
            adjustment_id=str(adjustment_id),
            product_id=str(product_id),
            approver=approver,
            physical_stock=result.current["physical_stock"],
        )

        self.alerts.evaluate(product_id, actor=approver)
        return adjustment

    # -------------------------------------------------------------------
    # Bulk submit
    # -------------------------------------------------------------------
    def submit_bulk(self, items, requested_by):
        """Submit each item independently; return succeeded/failed lists."""
        from inventory.adjustment.submission import SubmitAdjustment

        def submit_one(item):
            fields = {name: item.get(name) for name in BULK_ITEM_FIELDS if item.get(name) is not None}
            if isinstance(fields.get("supporting_documents"), list):
                fields["supporting_documents"] = json.dumps(fields["supporting_documents"])
            return dispatch(SubmitAdjustment(**fields, requested_by=requested_by))

        result = run_batch(
            inventory,
            list(items),
            submit_one,
            timeout=self.settings.bulk_item_timeout_seconds,
            max_workers=self.settings.bulk_max_workers,
            key=lambda item: {"product_id": item.get("product_id")},
        )
        return result.to_dict()
