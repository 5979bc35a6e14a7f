"""Pydantic request/response schemas for the Inventory API.

These are external contracts (anti-corruption layer), kept separate from
internal Protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Stock Record Schemas
# ---------------------------------------------------------------------------
class InitializeStockRequest(BaseModel):
    product_id: str
    sku: str
    initial_quantity: int = Field(ge=0, default=0)
    min_stock_level: int | None = Field(default=None, ge=0)
    reorder_point: int | None = Field(default=None, ge=0)
    reorder_quantity: int | None = Field(default=None, ge=0)
    max_stock_level: int | None = Field(default=None, ge=0)


class PlaceHoldRequest(BaseModel):
    reason: str
    hold_until: datetime | None = None
    expected_version: int | None = Field(default=None, ge=0)


class ReleaseHoldRequest(BaseModel):
    expected_version: int | None = Field(default=None, ge=0)


class UpdateThresholdsRequest(BaseModel):
    min_stock_level: int | None = Field(default=None, ge=0)
    reorder_point: int | None = Field(default=None, ge=0)
    reorder_quantity: int | None = Field(default=None, ge=0)
    max_stock_level: int | None = Field(default=None, ge=0)
    reason: str | None = None
    expected_version: int | None = Field(default=None, ge=0)


class StockRecordResponse(BaseModel):
    product_id: str
    sku: str | None = None
    physical_stock: int
    reserved_stock: int
    available_stock: int
    min_stock_level: int | None = None
    reorder_point: int | None = None
    reorder_quantity: int | None = None
    max_stock_level: int | None = None
    stock_status: str
    version: int
    stock_hold_reason: str | None = None
    stock_hold_until: datetime | None = None
    last_stock_update: datetime | None = None


class StockLevelResponse(BaseModel):
    physical_stock: int
    reserved_stock: int
    available_stock: int
    version: int


# ---------------------------------------------------------------------------
# Reservation Schemas
# ---------------------------------------------------------------------------
class ReserveStockRequest(BaseModel):
    product_id: str
    order_id: str
    quantity: int = Field(ge=1)
    expires_at: datetime | None = None


class FulfillReservationRequest(BaseModel):
    quantity: int | None = Field(default=None, ge=1)


class CancelReservationRequest(BaseModel):
    reason: str = "cancelled"


class ReturnStockRequest(BaseModel):
    product_id: str
    order_id: str
    quantity: int = Field(ge=1)
    reason: str | None = None


class ReservationReceiptResponse(BaseModel):
    reservation_id: str
    product_id: str
    order_id: str
    quantity: int
    available_after: int
    expires_at: datetime | None = None
    status: str


class ExpireReservationsRequest(BaseModel):
    as_of: datetime | None = None


class ExpiredCountResponse(BaseModel):
    expired: int


# ---------------------------------------------------------------------------
# Adjustment Schemas
# ---------------------------------------------------------------------------
class SubmitAdjustmentRequest(BaseModel):
    product_id: str
    adjustment_type: str
    reason_code: str
    quantity_adjusted: int
    description: str
    supporting_documents: list[str] = []
    witness_user_id: str | None = None
    notes: str | None = None


class BulkAdjustmentRequest(BaseModel):
    items: list[SubmitAdjustmentRequest] = Field(min_length=1)


class DecideAdjustmentRequest(BaseModel):
    decision: str  # "approved" | "rejected"
    notes: str | None = None


class AdjustmentIdResponse(BaseModel):
    adjustment_id: str


class BulkResultResponse(BaseModel):
    succeeded: list[dict]
    failed: list[dict]


# ---------------------------------------------------------------------------
# Alert Schemas
# ---------------------------------------------------------------------------
class AlertActionRequest(BaseModel):
    notes: str | None = None


class EvaluationResponse(BaseModel):
    product_id: str
    classification: str
    action: str
    alert_id: str | None = None
    requested_by: str | None = None


class ScanSummaryResponse(BaseModel):
    evaluated: int
    opened: int
    escalated: int
    resolved: int
    failed: int


# ---------------------------------------------------------------------------
# Shared Response Schemas
# ---------------------------------------------------------------------------
class ProductIdResponse(BaseModel):
    product_id: str


class VersionResponse(BaseModel):
    version: int


class StatusResponse(BaseModel):
    status: str = "ok"


class PageResponse(BaseModel):
    items: list[dict]
    total: int
    page: int
    limit: int
    has_more: bool
