"""Integration tests for Inventory API endpoints via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from inventory.api import (
    adjustment_router,
    alert_router,
    inventory_maintenance_router,
    inventory_router,
    register_inventory_error_handlers,
    report_router,
    reservation_router,
)
from inventory.ledger.ledger import StockLedger
from inventory.reconciliation.catalog_product import CatalogProduct
from protean import current_domain

ACTOR = {"X-Actor-Id": "user-001"}


@pytest.fixture()
def client():
    app = FastAPI()
    for router in (
        inventory_router,
        reservation_router,
        adjustment_router,
        alert_router,
        report_router,
        inventory_maintenance_router,
    ):
        app.include_router(router)
    register_inventory_error_handlers(app)
    return TestClient(app, headers=ACTOR)


def _initialize_stock(client, **overrides):
    """Helper: POST /inventory and return the product_id."""
    defaults = {
        "product_id": "prod-001",
        "sku": "TSHIRT-BLK-M",
        "initial_quantity": 20,
        "min_stock_level": 5,
        "reorder_point": 10,
    }
    defaults.update(overrides)
    response = client.post("/inventory", json=defaults)
    assert response.status_code == 201
    return response.json()["product_id"]


def _reserve(client, order_id="ord-001", quantity=5, product_id="prod-001"):
    return client.post(
        "/reservations",
        json={"product_id": product_id, "order_id": order_id, "quantity": quantity},
    )


class TestIdentity:
    def test_mutation_without_actor_is_unauthorized(self, client):
        response = client.post(
            "/inventory",
            json={"product_id": "prod-001", "sku": "SKU"},
            headers={"X-Actor-Id": ""},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    def test_actor_recorded_on_audit_trail(self, client):
        _initialize_stock(client)
        response = client.get("/inventory/audit", params={"product_id": "prod-001"})
        assert response.json()["items"][0]["actor"] == "user-001"


class TestStockRecordEndpoints:
    def test_initialize_and_read(self, client):
        assert _initialize_stock(client) == "prod-001"

        response = client.get("/inventory/prod-001")
        assert response.status_code == 200
        data = response.json()
        assert data["physical_stock"] == 20
        assert data["available_stock"] == 20
        assert data["stock_status"] == "in_stock"
        assert data["version"] == 0

    def test_duplicate_initialize_conflicts(self, client):
        _initialize_stock(client)
        response = client.post("/inventory", json={"product_id": "prod-001", "sku": "TSHIRT-BLK-M"})
        assert response.status_code == 409
        assert response.json()["error"] == "already_processed"

    def test_unknown_product_is_404(self, client):
        response = client.get("/inventory/prod-missing")
        assert response.status_code == 404
        assert response.json()["error"] == "stock_record_not_found"

    def test_hold_and_release(self, client):
        _initialize_stock(client)
        response = client.put("/inventory/prod-001/hold", json={"reason": "Recall"})
        assert response.status_code == 200
        assert response.json()["version"] == 1

        assert _reserve(client).status_code == 409

        response = client.put("/inventory/prod-001/hold/release", json={"expected_version": 1})
        assert response.status_code == 200
        assert _reserve(client).status_code == 201

    def test_stale_version_conflicts(self, client):
        _initialize_stock(client)
        response = client.put("/inventory/prod-001/hold", json={"reason": "Recall", "expected_version": 4})
        assert response.status_code == 409
        assert response.json()["error"] == "concurrent_modification"

    def test_update_thresholds(self, client):
        _initialize_stock(client)
        response = client.put(
            "/inventory/prod-001/thresholds",
            json={"reorder_point": 25, "reason": "Seasonal demand", "expected_version": 0},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["reorder_point"] == 25
        assert data["min_stock_level"] == 5
        assert data["stock_status"] == "low_stock"
        assert data["version"] == 1

        alerts = client.get("/alerts", params={"product_id": "prod-001"}).json()
        assert alerts["total"] == 1
        assert alerts["items"][0]["triggered_by"] == "user-001"

    def test_negative_threshold_rejected_by_schema(self, client):
        _initialize_stock(client)
        response = client.put("/inventory/prod-001/thresholds", json={"min_stock_level": -1})
        assert response.status_code == 422

    def test_thresholds_stale_version_conflicts(self, client):
        _initialize_stock(client)
        response = client.put("/inventory/prod-001/thresholds", json={"reorder_point": 12, "expected_version": 3})
        assert response.status_code == 409
        assert response.json()["error"] == "concurrent_modification"


class TestReservationEndpoints:
    def test_reserve(self, client):
        _initialize_stock(client)
        response = _reserve(client, quantity=8)
        assert response.status_code == 201
        data = response.json()
        assert data["available_after"] == 12
        assert data["status"] == "active"

    def test_insufficient_stock(self, client):
        _initialize_stock(client, initial_quantity=3)
        response = _reserve(client, quantity=5)
        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "insufficient_stock"
        assert body["details"]["shortfall"] == 2

    def test_invalid_quantity_rejected_by_schema(self, client):
        _initialize_stock(client)
        assert _reserve(client, quantity=0).status_code == 422

    def test_fulfil_and_cancel(self, client):
        _initialize_stock(client)
        _reserve(client, order_id="ord-001", quantity=5)
        _reserve(client, order_id="ord-002", quantity=3)

        response = client.put("/reservations/prod-001/ord-001/fulfill", json={"quantity": 2})
        assert response.status_code == 200
        assert response.json()["status"] == "active"

        response = client.put("/reservations/prod-001/ord-002/cancel")
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        record = StockLedger().read("prod-001")
        assert (record.physical_stock, record.reserved_stock, record.available_stock) == (18, 3, 15)

    def test_overfulfil_conflicts(self, client):
        _initialize_stock(client)
        _reserve(client, quantity=2)
        response = client.put("/reservations/prod-001/ord-001/fulfill", json={"quantity": 5})
        assert response.status_code == 409
        assert response.json()["error"] == "insufficient_reserved_quantity"

    def test_cancel_unknown_reservation_is_404(self, client):
        _initialize_stock(client)
        response = client.put("/reservations/prod-001/ord-404/cancel")
        assert response.status_code == 404
        assert response.json()["error"] == "reservation_not_found"

    def test_return(self, client):
        _initialize_stock(client)
        _reserve(client, quantity=5)
        client.put("/reservations/prod-001/ord-001/fulfill", json={})
        response = client.post(
            "/reservations/returns",
            json={"product_id": "prod-001", "order_id": "ord-001", "quantity": 2},
        )
        assert response.status_code == 200
        assert response.json()["physical_stock"] == 17

    def test_return_beyond_shipment_conflicts(self, client):
        _initialize_stock(client)
        _reserve(client, quantity=5)
        response = client.post(
            "/reservations/returns",
            json={"product_id": "prod-001", "order_id": "ord-001", "quantity": 2},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "return_exceeds_fulfilled"
        assert response.json()["details"]["returnable"] == 0

    def test_list_with_pagination(self, client):
        _initialize_stock(client)
        for n in range(3):
            _reserve(client, order_id=f"ord-{n}", quantity=1)

        response = client.get("/reservations", params={"limit": 2, "page": 1})
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert len(data["items"]) == 2
        assert data["has_more"] is True

    def test_invalid_listing_arguments(self, client):
        response = client.get("/reservations", params={"sort": "nonsense"})
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        assert "sort" in response.json()["details"]


class TestAdjustmentEndpoints:
    def _submit(self, client, quantity=-3, **overrides):
        payload = {
            "product_id": "prod-001",
            "adjustment_type": "physical_count",
            "reason_code": "COUNT",
            "quantity_adjusted": quantity,
            "description": "Cycle count",
        }
        payload.update(overrides)
        return client.post("/adjustments", json=payload)

    def test_submit_and_approve(self, client):
        _initialize_stock(client)
        response = self._submit(client, supporting_documents=["https://docs.example.com/count.pdf"])
        assert response.status_code == 201
        adjustment_id = response.json()["adjustment_id"]

        response = client.put(
            f"/adjustments/{adjustment_id}/decision",
            json={"decision": "approved"},
            headers={"X-Actor-Id": "manager-001"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "approved"
        assert StockLedger().read("prod-001").physical_stock == 17

        response = client.put(f"/adjustments/{adjustment_id}/decision", json={"decision": "rejected"})
        assert response.status_code == 409
        assert response.json()["error"] == "already_decided"

    def test_negative_result_conflicts(self, client):
        _initialize_stock(client, initial_quantity=2)
        response = self._submit(client, quantity=-5)
        assert response.status_code == 409
        assert response.json()["details"]["resulting_physical_stock"] == -3

    def test_unknown_type_is_400(self, client):
        _initialize_stock(client)
        response = self._submit(client, adjustment_type="vanished")
        assert response.status_code == 400

    def test_bulk(self, client, monkeypatch):
        monkeypatch.setenv("INVENTORY_BULK_MAX_WORKERS", "1")
        _initialize_stock(client)
        response = client.post(
            "/adjustments/bulk",
            json={
                "items": [
                    {
                        "product_id": "prod-001",
                        "adjustment_type": "damage_writeoff",
                        "reason_code": "DMG",
                        "quantity_adjusted": -1,
                        "description": "Torn",
                    },
                    {
                        "product_id": "prod-missing",
                        "adjustment_type": "damage_writeoff",
                        "reason_code": "DMG",
                        "quantity_adjusted": -1,
                        "description": "Torn",
                    },
                ]
            },
        )
        assert response.status_code == 200
        data = response.json()
        assert len(data["succeeded"]) == 1
        assert data["failed"][0]["error"] == "stock_record_not_found"

    def test_list_by_status(self, client):
        _initialize_stock(client)
        self._submit(client)
        response = client.get("/adjustments", params={"status": "pending"})
        assert response.json()["total"] == 1


class TestAlertEndpoints:
    def test_check_and_acknowledge(self, client):
        _initialize_stock(client, initial_quantity=4)
        response = client.post("/alerts/check/prod-001")
        assert response.status_code == 200
        evaluation = response.json()
        assert evaluation["action"] == "opened"
        assert evaluation["classification"] == "critical"
        assert evaluation["requested_by"] == "user-001"

        response = client.put(f"/alerts/{evaluation['alert_id']}/acknowledge", json={"notes": "PO-77"})
        assert response.status_code == 200
        assert response.json()["status"] == "acknowledged"

        response = client.get("/alerts", params={"actor": "user-001"})
        assert response.json()["total"] == 1
        assert response.json()["items"][0]["triggered_by"] == "user-001"

    def test_resolve_while_triggered_conflicts(self, client):
        _initialize_stock(client, initial_quantity=4)
        alert_id = client.post("/alerts/check/prod-001").json()["alert_id"]
        response = client.put(f"/alerts/{alert_id}/resolve")
        assert response.status_code == 409
        assert response.json()["error"] == "alert_still_triggered"

    def test_unknown_alert_is_404(self, client):
        response = client.put("/alerts/alert-404/dismiss")
        assert response.status_code == 404


class TestReportAndMaintenanceEndpoints:
    def test_consistency_report(self, client):
        _initialize_stock(client)
        current_domain.repository_for(CatalogProduct).add(
            CatalogProduct(product_id="prod-001", sku="TSHIRT-BLK-M", stock_quantity=25, cost_price=3.0, price=9.0)
        )

        response = client.get("/reports/consistency")
        assert response.status_code == 200
        data = response.json()
        assert data["mismatch_count"] == 1
        assert data["mismatches"][0]["difference"] == -5
        assert data["inventory_value_at_cost"] == 60.0

    def test_expire_reservations(self, client):
        _initialize_stock(client)
        client.post(
            "/reservations",
            json={
                "product_id": "prod-001",
                "order_id": "ord-001",
                "quantity": 2,
                "expires_at": "2020-01-01T00:00:00Z",
            },
        )
        response = client.post("/maintenance/expire-reservations")
        assert response.status_code == 200
        assert response.json()["expired"] == 1
        assert StockLedger().read("prod-001").available_stock == 20

    def test_scan_reorder_levels(self, client):
        _initialize_stock(client, product_id="prod-001", initial_quantity=0)
        _initialize_stock(client, product_id="prod-002", initial_quantity=50)
        response = client.post("/maintenance/scan-reorder-levels")
        assert response.status_code == 200
        assert response.json()["opened"] == 1
        assert response.json()["evaluated"] == 2
