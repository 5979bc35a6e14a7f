"""Synchronous command dispatch with version-conflict replay.

Command handlers read and write inside one unit of work. A competing commit
on the same aggregate is only detected when that unit of work commits, as
Protean's ExpectedVersionError, after every check in the handler has already
passed against the stale snapshot. ``dispatch`` replays the whole command
against fresh state when that happens, so each attempt re-runs the
availability, hold and duplicate checks.

A ConcurrentModification raised by the handler itself means the caller's own
``expected_version`` is stale. Replaying cannot fix that, so it propagates.
"""

import time

import structlog
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain, current_uow

from inventory.config import get_settings
from inventory.errors import ConcurrentModification
from inventory.ledger.ledger import conflict_backoff

logger = structlog.get_logger(__name__)


def _subject(command):
    for field_name in ("product_id", "alert_id", "adjustment_id", "order_id"):
        value = getattr(command, field_name, None)
        if value:
            return str(value)
    return None


def dispatch(command, settings=None):
    """Process ``command`` synchronously and return the handler's result.

    Inside an enclosing unit of work the command runs once: the conflict can
    only surface when the outer transaction commits, and its owner decides
    whether to replay.
    """
    if current_uow and current_uow.in_progress:
        return current_domain.process(command, asynchronous=False)

    settings = settings or get_settings()
    command_name = type(command).__name__
    max_attempts = settings.cas_max_attempts
    for attempt in range(1, max_attempts + 1):
        try:
            return current_domain.process(command, asynchronous=False)
        except ExpectedVersionError as exc:
            if attempt >= max_attempts:
                logger.error(
                    "Command gave up after repeated version conflicts",
                    command=command_name,
                    subject=_subject(command),
                    attempts=attempt,
                )
                raise ConcurrentModification(_subject(command), None) from exc
            logger.warning(
                "Command lost a version race, replaying",
                command=command_name,
                subject=_subject(command),
                attempt=attempt,
            )
            time.sleep(conflict_backoff(settings, attempt))
    raise AssertionError("unreachable")  # pragma: no cover
