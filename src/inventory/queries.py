"""Paginated, filterable read queries over the inventory stores.

Every listing takes the same arguments: ``product_id``, a ``date_from`` /
``date_to`` window on the store's primary timestamp, ``status``, ``type``,
``actor`` and ``order_id`` filters where the store has such a field, a
whitelisted ``sort`` field with ``direction``, and a 1-based ``page`` with
``limit`` between 1 and 500.
"""

from dataclasses import dataclass
from enum import Enum

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from inventory.adjustment.adjustment import AdjustmentType, ApprovalStatus, InventoryAdjustment
from inventory.alerts.alert import AlertStatus, AlertType, ReorderAlert
from inventory.audit.audit_log import AuditLogEntry, OperationType
from inventory.reservation.reservation import ReservationStatus, StockReservation
from inventory.utils.clock import as_utc
from inventory.utils.db import storage_guard

MAX_LIMIT = 500
DEFAULT_LIMIT = 50


@dataclass(frozen=True)
class Page:
    items: list
    total: int
    page: int
    limit: int

    @property
    def has_more(self) -> bool:
        return self.page * self.limit < self.total

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "has_more": self.has_more,
        }


@dataclass(frozen=True)
class QuerySource:
    """How one store maps onto the common filter arguments."""

    element: type
    timestamp_field: str
    sortable: tuple[str, ...]
    status_field: str | None = None
    statuses: type[Enum] | None = None
    type_field: str | None = None
    types: type[Enum] | None = None
    actor_field: str | None = None
    has_order_id: bool = False


ADJUSTMENTS = QuerySource(
    element=InventoryAdjustment,
    timestamp_field="created_at",
    sortable=("created_at", "approved_at", "quantity_adjusted", "approval_status", "product_id"),
    status_field="approval_status",
    statuses=ApprovalStatus,
    type_field="adjustment_type",
    types=AdjustmentType,
    actor_field="requested_by",
)

ALERTS = QuerySource(
    element=ReorderAlert,
    timestamp_field="triggered_at",
    sortable=("triggered_at", "escalated_at", "resolved_at", "current_stock", "alert_status", "product_id"),
    status_field="alert_status",
    statuses=AlertStatus,
    type_field="alert_type",
    types=AlertType,
    actor_field="acknowledged_by",
)

RESERVATIONS = QuerySource(
    element=StockReservation,
    timestamp_field="reserved_at",
    sortable=("reserved_at", "expires_at", "quantity_reserved", "status", "product_id"),
    status_field="status",
    statuses=ReservationStatus,
    actor_field="reserved_by",
    has_order_id=True,
)

AUDIT_ENTRIES = QuerySource(
    element=AuditLogEntry,
    timestamp_field="created_at",
    sortable=("created_at", "version_after", "quantity_affected", "operation_type", "product_id"),
    type_field="operation_type",
    types=OperationType,
    actor_field="actor",
    has_order_id=True,
)


def _check_choice(errors, name, value, field_name, choices):
    if value is None:
        return
    if field_name is None:
        errors[name] = [f"Filter '{name}' is not supported here"]
    elif value not in {c.value for c in choices}:
        errors[name] = [f"Unknown {name} '{value}'"]


def _filters(source: QuerySource, *, product_id, status, type, actor, order_id, date_from, date_to):
    errors = {}
    _check_choice(errors, "status", status, source.status_field, source.statuses)
    _check_choice(errors, "type", type, source.type_field, source.types)
    if actor is not None and source.actor_field is None:
        errors["actor"] = ["Filter 'actor' is not supported here"]
    if order_id is not None and not source.has_order_id:
        errors["order_id"] = ["Filter 'order_id' is not supported here"]

    date_from, date_to = as_utc(date_from), as_utc(date_to)
    if date_from and date_to and date_from > date_to:
        errors["date_from"] = ["Must not be after date_to"]
    if errors:
        raise ValidationError(errors)

    filters = {}
    if product_id:
        filters["product_id"] = str(product_id)
    if status is not None:
        filters[source.status_field] = status
    if type is not None:
        filters[source.type_field] = type
    if actor is not None:
        filters[source.actor_field] = actor
    if order_id is not None:
        filters["order_id"] = str(order_id)
    if date_from:
        filters[f"{source.timestamp_field}__gte"] = date_from
    if date_to:
        filters[f"{source.timestamp_field}__lte"] = date_to
    return filters


def run_query(
    source: QuerySource,
    *,
    product_id=None,
    status=None,
    type=None,
    actor=None,
    order_id=None,
    date_from=None,
    date_to=None,
    sort=None,
    direction="desc",
    page=1,
    limit=DEFAULT_LIMIT,
) -> Page:
    errors = {}
    sort = sort or source.timestamp_field
    if sort not in source.sortable:
        errors["sort"] = [f"Must be one of: {', '.join(source.sortable)}"]
    if direction not in ("asc", "desc"):
        errors["direction"] = ["Must be 'asc' or 'desc'"]
    if not isinstance(page, int) or page < 1:
        errors["page"] = ["Must be a positive integer"]
    if not isinstance(limit, int) or not 1 <= limit <= MAX_LIMIT:
        errors["limit"] = [f"Must be between 1 and {MAX_LIMIT}"]
    if errors:
        raise ValidationError(errors)

    filters = _filters(
        source,
        product_id=product_id,
        status=status,
        type=type,
        actor=actor,
        order_id=order_id,
        date_from=date_from,
        date_to=date_to,
    )

    with storage_guard():
        query = current_domain.repository_for(source.element)._dao.query
        if filters:
            query = query.filter(**filters)
        ordering = sort if direction == "asc" else f"-{sort}"
        result = query.order_by(ordering).offset((page - 1) * limit).limit(limit).all()

    return Page(items=list(result.items), total=result.total, page=page, limit=limit)


def list_adjustments(**kwargs) -> Page:
    return run_query(ADJUSTMENTS, **kwargs)


def list_alerts(**kwargs) -> Page:
    return run_query(ALERTS, **kwargs)


def list_reservations(**kwargs) -> Page:
    return run_query(RESERVATIONS, **kwargs)


def list_audit_entries(**kwargs) -> Page:
    return run_query(AUDIT_ENTRIES, **kwargs)
