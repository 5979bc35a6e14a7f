"""Tests for the InventoryAdjustment aggregate: submission rules and decisions."""

import pytest
from inventory.adjustment.adjustment import ApprovalStatus, InventoryAdjustment
from inventory.adjustment.events import AdjustmentApproved, AdjustmentRejected, AdjustmentSubmitted
from inventory.errors import AlreadyDecided, NegativeStockRejected
from protean.exceptions import ValidationError


def _submit(**overrides):
    defaults = {
        "product_id": "prod-001",
        "adjustment_type": "physical_count",
        "reason_code": "CYCLE-COUNT",
        "quantity_adjusted": -3,
        "previous_physical_stock": 20,
        "description": "Quarterly cycle count found three units missing",
        "requested_by": "clerk-001",
    }
    defaults.update(overrides)
    return InventoryAdjustment.submit(**defaults)


class TestSubmitAdjustment:
    def test_pending_with_projected_stock(self):
        adjustment = _submit()
        assert adjustment.approval_status == ApprovalStatus.PENDING.value
        assert adjustment.previous_physical_stock == 20
        assert adjustment.new_physical_stock == 17

    def test_raises_submitted_event(self):
        adjustment = _submit()
        event = next(e for e in adjustment._events if isinstance(e, AdjustmentSubmitted))
        assert event.quantity_adjusted == -3
        assert event.new_physical_stock == 17

    def test_supporting_documents_round_trip(self):
        adjustment = _submit(supporting_documents=["https://docs.example.com/count-42.pdf"])
        assert adjustment.documents == ["https://docs.example.com/count-42.pdf"]

    def test_no_documents(self):
        assert _submit().documents == []

    def test_zero_quantity_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _submit(quantity_adjusted=0)
        assert "quantity_adjusted" in exc.value.messages

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _submit(adjustment_type="magic")
        assert "adjustment_type" in exc.value.messages

    def test_reason_and_description_required(self):
        with pytest.raises(ValidationError) as exc:
            _submit(reason_code=" ", description="")
        assert "reason_code" in exc.value.messages
        assert "description" in exc.value.messages

    def test_validation_reported_before_negative_stock(self):
        with pytest.raises(ValidationError):
            _submit(adjustment_type="magic", quantity_adjusted=-1000, previous_physical_stock=5)

    def test_negative_result_rejected(self):
        with pytest.raises(NegativeStockRejected) as exc:
            _submit(quantity_adjusted=-1000, previous_physical_stock=5)
        assert exc.value.details["current_physical_stock"] == 5
        assert exc.value.details["resulting_physical_stock"] == -995


class TestDecideAdjustment:
    def test_approve(self):
        adjustment = _submit()
        adjustment.approve("manager-001", previous_physical_stock=18, new_physical_stock=15, notes="ok")
        assert adjustment.approval_status == ApprovalStatus.APPROVED.value
        assert adjustment.approved_by == "manager-001"
        assert adjustment.previous_physical_stock == 18
        assert adjustment.new_physical_stock == 15
        assert any(isinstance(e, AdjustmentApproved) for e in adjustment._events)

    def test_reject(self):
        adjustment = _submit()
        adjustment.reject("manager-001", notes="Recount first")
        assert adjustment.approval_status == ApprovalStatus.REJECTED.value
        assert adjustment.notes == "Recount first"
        assert any(isinstance(e, AdjustmentRejected) for e in adjustment._events)

    def test_cannot_decide_twice(self):
        adjustment = _submit()
        adjustment.approve("manager-001", previous_physical_stock=20, new_physical_stock=17)
        with pytest.raises(AlreadyDecided) as exc:
            adjustment.approve("manager-002", previous_physical_stock=17, new_physical_stock=14)
        assert exc.value.details["status"] == "approved"
        with pytest.raises(AlreadyDecided):
            adjustment.reject("manager-002")
