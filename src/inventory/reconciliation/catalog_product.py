"""Catalog snapshot: the legacy catalog stock fields, as last published.

The catalog still carries its own ``stock_quantity`` per product. It is not
authoritative; the reconciler compares it against the ledger to detect
drift.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String

from inventory.domain import inventory


@inventory.projection
class CatalogProduct:
    product_id = Identifier(identifier=True, required=True)
    sku = String(max_length=50)
    title = String(max_length=255)
    status = String(max_length=50)
    stock_quantity = Integer(default=0)
    cost_price = Float(default=0.0)
    price = Float(default=0.0)
    updated_at = DateTime()
