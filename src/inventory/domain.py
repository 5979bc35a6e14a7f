"""Inventory bounded context: Stock Ledger, Reservations and Adjustments.

Keeps the authoritative per-product stock ledger (physical, reserved and
available quantities under optimistic versioning), order reservations,
approval-gated stock adjustments, reorder alerts, an audit trail of every
stock mutation, and a consistency report against the legacy catalog fields.
"""

import structlog
from protean.domain import Domain

inventory = Domain(name="inventory")

logger = structlog.get_logger(__name__)
