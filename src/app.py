"""HTTP entrypoint for the stock ledger.

Commands are processed synchronously inside the request. PROTEAN_ENV picks
the domain.toml overlay: under "test" event handlers run inside the unit of
work, under "production" they are left to the Engine started by server.py.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from inventory.domain import inventory
from inventory.utils.logging import add_context, clear_context, configure_logging

configure_logging()
inventory.init()

from inventory.api import (  # noqa: E402
    adjustment_router,
    alert_router,
    inventory_maintenance_router,
    inventory_router,
    register_inventory_error_handlers,
    report_router,
    reservation_router,
)

ROUTERS = (
    inventory_router,
    reservation_router,
    adjustment_router,
    alert_router,
    report_router,
    inventory_maintenance_router,
)

# Requests outside these prefixes (health, docs) skip the domain context.
_DOMAIN_PREFIXES = tuple(router.prefix for router in ROUTERS)

app = FastAPI(
    title="Stock Ledger API",
    description="Inventory stock ledger, reservations, adjustment approvals and reorder alerts",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def inventory_context(request: Request, call_next):
    if not request.url.path.startswith(_DOMAIN_PREFIXES):
        return await call_next(request)

    add_context(
        method=request.method,
        path=request.url.path,
        actor=request.headers.get("x-actor-id") or None,
    )
    try:
        with inventory.domain_context():
            return await call_next(request)
    finally:
        clear_context()


for router in ROUTERS:
    app.include_router(router)
register_inventory_error_handlers(app)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok", "domain": inventory.name}
