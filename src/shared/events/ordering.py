"""Ordering events the inventory context listens to.

Only the fields inventory reads are declared. The ``__type__`` strings are
assigned where the handlers call ``register_external_event``, so messages
published by Ordering deserialize into these classes.
"""

from protean.core.event import BaseEvent
from protean.fields import DateTime, Identifier, String, Text


class OrderCancelled(BaseEvent):
    """Releases every active reservation held for the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True)
    cancelled_by = String(required=True)
    cancelled_at = DateTime(required=True)


class OrderReturned(BaseEvent):
    """Puts the listed quantities back on the shelf."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier()
    items = Text()  # JSON: [{"product_id": ..., "quantity": ..., "reason": ...}]
    returned_at = DateTime(required=True)
