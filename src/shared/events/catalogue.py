"""Catalogue events the inventory context listens to.

The catalog keeps its own legacy stock figure. Inventory mirrors it into a
snapshot so the consistency report can compare the two. Stream type strings
are registered next to the handler.
"""

from protean.core.event import BaseEvent
from protean.fields import DateTime, Float, Identifier, Integer, String


class ProductCreated(BaseEvent):
    """Seeds the ledger from the legacy stock field."""

    __version__ = 1

    product_id = Identifier(required=True)
    sku = String(required=True)
    title = String(required=True)
    status = String(required=True)
    stock_quantity = Integer(default=0)  # Legacy catalog stock field
    cost_price = Float(default=0.0)
    price = Float(default=0.0)
    created_at = DateTime(required=True)


class ProductUpdated(BaseEvent):
    """Partial update: fields left as None are unchanged."""

    __version__ = 1

    product_id = Identifier(required=True)
    sku = String()
    title = String()
    status = String()
    stock_quantity = Integer()
    cost_price = Float()
    price = Float()
    updated_at = DateTime(required=True)


class ProductDiscontinued(BaseEvent):
    """No further reservations once received."""

    __version__ = 1

    product_id = Identifier(required=True)
    sku = String(required=True)
    discontinued_at = DateTime(required=True)
