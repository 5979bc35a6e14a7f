from inventory.api.errors import register_inventory_error_handlers
from inventory.api.routes import (
    adjustment_router,
    alert_router,
    inventory_router,
    reservation_router,
    report_router,
)
from inventory.api.routes import maintenance_router as inventory_maintenance_router

__all__ = [
    "adjustment_router",
    "alert_router",
    "inventory_router",
    "reservation_router",
    "report_router",
    "inventory_maintenance_router",
    "register_inventory_error_handlers",
]
