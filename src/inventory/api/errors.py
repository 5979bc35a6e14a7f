"""HTTP mapping for inventory errors.

Every refusal leaves the API as ``{"error": code, "message": ..., "details": ...}``.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from protean.integrations.fastapi import register_exception_handlers

from inventory.errors import (
    AlertStillTriggered,
    AlreadyProcessed,
    ConcurrentModification,
    DependencyUnavailable,
    InsufficientReservedQuantity,
    InsufficientStock,
    InventoryError,
    NegativeStockRejected,
    NotFound,
    ReturnExceedsFulfilled,
    StockOnHold,
    Unauthorized,
)

logger = structlog.get_logger(__name__)

STATUS_CODES = {
    NotFound: 404,
    InsufficientStock: 409,
    InsufficientReservedQuantity: 409,
    NegativeStockRejected: 409,
    StockOnHold: 409,
    ReturnExceedsFulfilled: 409,
    AlertStillTriggered: 409,
    AlreadyProcessed: 409,
    ConcurrentModification: 409,
    Unauthorized: 401,
    DependencyUnavailable: 503,
}


def status_code_for(exc: InventoryError) -> int:
    for error_class in type(exc).__mro__:
        if error_class in STATUS_CODES:
            return STATUS_CODES[error_class]
    return 400


async def inventory_error_handler(request: Request, exc: InventoryError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.code, details=exc.details)
    else:
        logger.info("Request refused", path=request.url.path, error=exc.code, status_code=status_code)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "validation_error", "message": "Invalid request", "details": exc.messages},
    )


async def object_not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"error": "not_found", "message": str(exc), "details": {}},
    )


async def version_conflict_handler(request: Request, exc: ExpectedVersionError) -> JSONResponse:
    logger.warning("Version conflict surfaced to client", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=409,
        content={"error": ConcurrentModification.code, "message": str(exc), "details": {}},
    )


def register_inventory_error_handlers(app: FastAPI) -> None:
    """Install Protean's default handlers, then the inventory-specific ones on top."""
    register_exception_handlers(app)
    app.add_exception_handler(InventoryError, inventory_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ObjectNotFoundError, object_not_found_handler)
    app.add_exception_handler(ExpectedVersionError, version_conflict_handler)
