"""FastAPI routes for the Inventory domain.

Thin adapters that translate HTTP requests into domain commands. Every
mutating route requires the caller's identity in the ``X-Actor-Id`` header;
the actor is recorded on the audit trail.
"""

import json
from datetime import datetime

from fastapi import APIRouter, Depends, Header

from inventory import queries
from inventory.adjustment.decision import DecideAdjustment
from inventory.adjustment.submission import SubmitAdjustment
from inventory.adjustment.workflow import AdjustmentWorkflow
from inventory.alerts.management import (
    AcknowledgeAlert,
    DismissAlert,
    ResolveAlert,
    ScanReorderLevels,
    TriggerReorderCheck,
)
from inventory.api.schemas import (
    AdjustmentIdResponse,
    AlertActionRequest,
    BulkAdjustmentRequest,
    BulkResultResponse,
    CancelReservationRequest,
    DecideAdjustmentRequest,
    EvaluationResponse,
    ExpiredCountResponse,
    ExpireReservationsRequest,
    FulfillReservationRequest,
    InitializeStockRequest,
    PageResponse,
    PlaceHoldRequest,
    ProductIdResponse,
    ReleaseHoldRequest,
    ReservationReceiptResponse,
    ReserveStockRequest,
    ReturnStockRequest,
    ScanSummaryResponse,
    StatusResponse,
    StockLevelResponse,
    StockRecordResponse,
    SubmitAdjustmentRequest,
    UpdateThresholdsRequest,
    VersionResponse,
)
from inventory.dispatch import dispatch
from inventory.errors import Unauthorized
from inventory.ledger.holds import PlaceStockHold, ReleaseStockHold
from inventory.ledger.initialization import InitializeStock
from inventory.ledger.ledger import StockLedger
from inventory.ledger.thresholds import UpdateStockThresholds
from inventory.reconciliation.reconciler import ConsistencyReconciler
from inventory.reservation.expiry import ExpireStaleReservations
from inventory.reservation.reserving import CancelReservation, FulfillOrderStock, ReserveStock
from inventory.reservation.returns import ReturnStock


def require_actor(x_actor_id: str = Header(default="")) -> str:
    """Authenticated actor id, supplied by the identity gateway."""
    actor = x_actor_id.strip()
    if not actor:
        raise Unauthorized()
    return actor


def _page(page: queries.Page) -> PageResponse:
    return PageResponse(**page.to_dict())


# ---------------------------------------------------------------------------
# Inventory Router
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


@inventory_router.post("", status_code=201, response_model=ProductIdResponse)
async def initialize_stock(body: InitializeStockRequest, actor: str = Depends(require_actor)) -> ProductIdResponse:
    command = InitializeStock(
        product_id=body.product_id,
        sku=body.sku,
        initial_quantity=body.initial_quantity,
        min_stock_level=body.min_stock_level,
        reorder_point=body.reorder_point,
        reorder_quantity=body.reorder_quantity,
        max_stock_level=body.max_stock_level,
        initialized_by=actor,
    )
    result = dispatch(command)
    return ProductIdResponse(product_id=result)


@inventory_router.get("/audit", response_model=PageResponse)
async def list_audit_entries(
    product_id: str | None = None,
    type: str | None = None,
    actor: str | None = None,
    order_id: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    sort: str | None = None,
    direction: str = "desc",
    page: int = 1,
    limit: int = queries.DEFAULT_LIMIT,
) -> PageResponse:
    return _page(
        queries.list_audit_entries(
            product_id=product_id,
            type=type,
            actor=actor,
            order_id=order_id,
            date_from=date_from,
            date_to=date_to,
            sort=sort,
            direction=direction,
            page=page,
            limit=limit,
        )
    )


@inventory_router.get("/{product_id}", response_model=StockRecordResponse)
async def get_stock_record(product_id: str) -> StockRecordResponse:
    record = StockLedger().read(product_id)
    return StockRecordResponse(**{**record.to_dict(), "product_id": str(record.product_id)})


@inventory_router.put("/{product_id}/hold", response_model=VersionResponse)
async def place_stock_hold(
    product_id: str, body: PlaceHoldRequest, actor: str = Depends(require_actor)
) -> VersionResponse:
    command = PlaceStockHold(
        product_id=product_id,
        reason=body.reason,
        hold_until=body.hold_until,
        expected_version=body.expected_version,
        placed_by=actor,
    )
    version = dispatch(command)
    return VersionResponse(version=version)


@inventory_router.put("/{product_id}/hold/release", response_model=VersionResponse)
async def release_stock_hold(
    product_id: str, body: ReleaseHoldRequest, actor: str = Depends(require_actor)
) -> VersionResponse:
    command = ReleaseStockHold(
        product_id=product_id,
        expected_version=body.expected_version,
        released_by=actor,
    )
    version = dispatch(command)
    return VersionResponse(version=version)


@inventory_router.put("/{product_id}/thresholds", response_model=StockRecordResponse)
async def update_stock_thresholds(
    product_id: str, body: UpdateThresholdsRequest, actor: str = Depends(require_actor)
) -> StockRecordResponse:
    command = UpdateStockThresholds(
        product_id=product_id,
        min_stock_level=body.min_stock_level,
        reorder_point=body.reorder_point,
        reorder_quantity=body.reorder_quantity,
        max_stock_level=body.max_stock_level,
        reason=body.reason,
        expected_version=body.expected_version,
        updated_by=actor,
    )
    dispatch(command)
    record = StockLedger().read(product_id)
    return StockRecordResponse(**{**record.to_dict(), "product_id": str(record.product_id)})


# ---------------------------------------------------------------------------
# Reservation Router
# ---------------------------------------------------------------------------
reservation_router = APIRouter(prefix="/reservations", tags=["reservations"])


@reservation_router.post("", status_code=201, response_model=ReservationReceiptResponse)
async def reserve_stock(body: ReserveStockRequest, actor: str = Depends(require_actor)) -> ReservationReceiptResponse:
    command = ReserveStock(
        product_id=body.product_id,
        order_id=body.order_id,
        quantity=body.quantity,
        expires_at=body.expires_at,
        reserved_by=actor,
    )
    receipt = dispatch(command)
    return ReservationReceiptResponse(**receipt)


@reservation_router.get("", response_model=PageResponse)
async def list_reservations(
    product_id: str | None = None,
    status: str | None = None,
    actor: str | None = None,
    order_id: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    sort: str | None = None,
    direction: str = "desc",
    page: int = 1,
    limit: int = queries.DEFAULT_LIMIT,
) -> PageResponse:
    return _page(
        queries.list_reservations(
            product_id=product_id,
            status=status,
            actor=actor,
            order_id=order_id,
            date_from=date_from,
            date_to=date_to,
            sort=sort,
            direction=direction,
            page=page,
            limit=limit,
        )
    )


@reservation_router.post("/returns", response_model=StockLevelResponse)
async def return_stock(body: ReturnStockRequest, actor: str = Depends(require_actor)) -> StockLevelResponse:
    command = ReturnStock(
        product_id=body.product_id,
        order_id=body.order_id,
        quantity=body.quantity,
        reason=body.reason,
        processed_by=actor,
    )
    levels = dispatch(command)
    return StockLevelResponse(**levels)


@reservation_router.put("/{product_id}/{order_id}/fulfill", response_model=ReservationReceiptResponse)
async def fulfill_order_stock(
    product_id: str,
    order_id: str,
    body: FulfillReservationRequest | None = None,
    actor: str = Depends(require_actor),
) -> ReservationReceiptResponse:
    command = FulfillOrderStock(
        product_id=product_id,
        order_id=order_id,
        quantity=body.quantity if body else None,
        fulfilled_by=actor,
    )
    receipt = dispatch(command)
    return ReservationReceiptResponse(**receipt)


@reservation_router.put("/{product_id}/{order_id}/cancel", response_model=ReservationReceiptResponse)
async def cancel_reservation(
    product_id: str,
    order_id: str,
    body: CancelReservationRequest | None = None,
    actor: str = Depends(require_actor),
) -> ReservationReceiptResponse:
    command = CancelReservation(
        product_id=product_id,
        order_id=order_id,
        reason=body.reason if body else "cancelled",
        cancelled_by=actor,
    )
    receipt = dispatch(command)
    return ReservationReceiptResponse(**receipt)


# ---------------------------------------------------------------------------
# Adjustment Router
# ---------------------------------------------------------------------------
adjustment_router = APIRouter(prefix="/adjustments", tags=["adjustments"])


@adjustment_router.post("", status_code=201, response_model=AdjustmentIdResponse)
async def submit_adjustment(
    body: SubmitAdjustmentRequest, actor: str = Depends(require_actor)
) -> AdjustmentIdResponse:
    command = SubmitAdjustment(
        product_id=body.product_id,
        adjustment_type=body.adjustment_type,
        reason_code=body.reason_code,
        quantity_adjusted=body.quantity_adjusted,
        description=body.description,
        supporting_documents=json.dumps(body.supporting_documents) if body.supporting_documents else None,
        witness_user_id=body.witness_user_id,
        notes=body.notes,
        requested_by=actor,
    )
    adjustment_id = dispatch(command)
    return AdjustmentIdResponse(adjustment_id=adjustment_id)


@adjustment_router.post("/bulk", response_model=BulkResultResponse)
async def submit_adjustments_bulk(
    body: BulkAdjustmentRequest, actor: str = Depends(require_actor)
) -> BulkResultResponse:
    """Submit many adjustments; each item succeeds or fails on its own."""
    result = AdjustmentWorkflow().submit_bulk([item.model_dump() for item in body.items], requested_by=actor)
    return BulkResultResponse(**result)


@adjustment_router.get("", response_model=PageResponse)
async def list_adjustments(
    product_id: str | None = None,
    status: str | None = None,
    type: str | None = None,
    actor: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    sort: str | None = None,
    direction: str = "desc",
    page: int = 1,
    limit: int = queries.DEFAULT_LIMIT,
) -> PageResponse:
    return _page(
        queries.list_adjustments(
            product_id=product_id,
            status=status,
            type=type,
            actor=actor,
            date_from=date_from,
            date_to=date_to,
            sort=sort,
            direction=direction,
            page=page,
            limit=limit,
        )
    )


@adjustment_router.put("/{adjustment_id}/decision", response_model=StatusResponse)
async def decide_adjustment(
    adjustment_id: str, body: DecideAdjustmentRequest, actor: str = Depends(require_actor)
) -> StatusResponse:
    command = DecideAdjustment(
        adjustment_id=adjustment_id,
        decision=body.decision,
        decided_by=actor,
        notes=body.notes,
    )
    approval_status = dispatch(command)
    return StatusResponse(status=approval_status)


# ---------------------------------------------------------------------------
# Alert Router
# ---------------------------------------------------------------------------
alert_router = APIRouter(prefix="/alerts", tags=["alerts"])


@alert_router.get("", response_model=PageResponse)
async def list_alerts(
    product_id: str | None = None,
    status: str | None = None,
    type: str | None = None,
    actor: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    sort: str | None = None,
    direction: str = "desc",
    page: int = 1,
    limit: int = queries.DEFAULT_LIMIT,
) -> PageResponse:
    return _page(
        queries.list_alerts(
            product_id=product_id,
            status=status,
            type=type,
            actor=actor,
            date_from=date_from,
            date_to=date_to,
            sort=sort,
            direction=direction,
            page=page,
            limit=limit,
        )
    )


@alert_router.post("/check/{product_id}", response_model=EvaluationResponse)
async def trigger_reorder_check(product_id: str, actor: str = Depends(require_actor)) -> EvaluationResponse:
    evaluation = dispatch(TriggerReorderCheck(product_id=product_id, requested_by=actor))
    return EvaluationResponse(**evaluation)


@alert_router.put("/{alert_id}/acknowledge", response_model=StatusResponse)
async def acknowledge_alert(
    alert_id: str, body: AlertActionRequest | None = None, actor: str = Depends(require_actor)
) -> StatusResponse:
    command = AcknowledgeAlert(alert_id=alert_id, acknowledged_by=actor, notes=body.notes if body else None)
    return StatusResponse(status=dispatch(command))


@alert_router.put("/{alert_id}/resolve", response_model=StatusResponse)
async def resolve_alert(
    alert_id: str, body: AlertActionRequest | None = None, actor: str = Depends(require_actor)
) -> StatusResponse:
    command = ResolveAlert(alert_id=alert_id, resolved_by=actor, notes=body.notes if body else None)
    return StatusResponse(status=dispatch(command))


@alert_router.put("/{alert_id}/dismiss", response_model=StatusResponse)
async def dismiss_alert(
    alert_id: str, body: AlertActionRequest | None = None, actor: str = Depends(require_actor)
) -> StatusResponse:
    command = DismissAlert(alert_id=alert_id, dismissed_by=actor, notes=body.notes if body else None)
    return StatusResponse(status=dispatch(command))


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------
report_router = APIRouter(prefix="/reports", tags=["reports"])


@report_router.get("/consistency")
async def consistency_report() -> dict:
    """Drift between the catalog's stock fields and the ledger, plus stock valuation."""
    return ConsistencyReconciler().report().to_dict()


# ---------------------------------------------------------------------------
# Maintenance: periodic background job endpoints
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.post("/expire-reservations", response_model=ExpiredCountResponse)
async def expire_reservations(
    body: ExpireReservationsRequest | None = None, actor: str = Depends(require_actor)
) -> ExpiredCountResponse:
    """Release reservations past their expiry.

    Designed to be called periodically by an external scheduler. Idempotent:
    reservations already released are skipped.
    """
    command = ExpireStaleReservations(as_of=body.as_of if body else None, requested_by=actor)
    expired = dispatch(command)
    return ExpiredCountResponse(expired=expired)


@maintenance_router.post("/scan-reorder-levels", response_model=ScanSummaryResponse)
async def scan_reorder_levels(actor: str = Depends(require_actor)) -> ScanSummaryResponse:
    summary = dispatch(ScanReorderLevels(requested_by=actor))
    return ScanSummaryResponse(**summary)
