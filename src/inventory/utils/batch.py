"""Per-item isolation for bulk operations.

Each item runs on its own worker thread, inside its own domain context and
unit of work, so no two items share a transaction. An item gets ``timeout``
seconds from the moment it starts. Past that it is abandoned: it is
reported as a timeout, its worker slot goes to the next queued item, and
its unit of work is rolled back whenever the operation finally returns.

An item that has already begun committing when its deadline passes is left
to finish and reports its real outcome.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum

import structlog
from protean import UnitOfWork
from protean.exceptions import ExpectedVersionError, ValidationError

from inventory.errors import InventoryError

logger = structlog.get_logger(__name__)


@dataclass
class BatchResult:
    succeeded: list = field(default_factory=list)
    failed: list = field(default_factory=list)

    def to_dict(self):
        return {"succeeded": self.succeeded, "failed": self.failed}


def _describe(exc):
    if isinstance(exc, InventoryError):
        return exc.code, exc.message
    if isinstance(exc, ValidationError):
        return "validation_error", str(exc.messages)
    if isinstance(exc, ExpectedVersionError):
        return "concurrent_modification", str(exc)
    return "unexpected_error", str(exc)


class _Stage(Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMMITTING = "committing"
    DONE = "done"
    ABANDONED = "abandoned"


class _Abandoned(Exception):
    """Raised inside an abandoned item's unit of work so that it rolls back."""


class _Slot:
    def __init__(self, index, item):
        self.index = index
        self.item = item
        self.stage = _Stage.QUEUED
        self.started_at = None
        self.outcome = None
        self.error = None


class _Batch:
    def __init__(self, domain, items, operation, timeout, max_workers):
        self.domain = domain
        self.operation = operation
        self.timeout = timeout
        self.max_workers = max(1, max_workers)
        self.slots = [_Slot(index, item) for index, item in enumerate(items)]
        self.active = 0
        self.changed = threading.Condition()

    # Called on the worker thread
    def _begin_commit(self, slot):
        with self.changed:
            if slot.stage is not _Stage.RUNNING:
                return False
            slot.stage = _Stage.COMMITTING
            return True

    def _finish(self, slot, outcome=None, error=None):
        with self.changed:
            if slot.stage is _Stage.ABANDONED:
                if error is not None:
                    logger.info("Abandoned batch item failed", index=slot.index, error=str(error))
                return
            slot.stage = _Stage.DONE
            slot.outcome = outcome
            slot.error = error
            self.active -= 1
            self.changed.notify_all()

    def _work(self, slot):
        try:
            with self.domain.domain_context():
                with UnitOfWork():
                    outcome = self.operation(slot.item)
                    if not self._begin_commit(slot):
                        raise _Abandoned
        except _Abandoned:
            logger.info("Abandoned batch item rolled back", index=slot.index)
        except Exception as exc:  # noqa: BLE001
            self._finish(slot, error=exc)
        else:
            self._finish(slot, outcome=outcome)

    # Called on the caller's thread
    def _abandon_overdue(self, now):
        for slot in self.slots:
            if slot.stage is _Stage.RUNNING and now - slot.started_at >= self.timeout:
                slot.stage = _Stage.ABANDONED
                self.active -= 1
                logger.warning("Batch item timed out", index=slot.index, timeout=self.timeout)

    def _start(self, slot, now):
        slot.stage = _Stage.RUNNING
        slot.started_at = now
        self.active += 1
        threading.Thread(
            target=self._work,
            args=(slot,),
            name=f"inventory-batch-{slot.index}",
            daemon=True,
        ).start()

    def run(self):
        queued = deque(self.slots)
        with self.changed:
            while True:
                now = time.monotonic()
                self._abandon_overdue(now)
                while queued and self.active < self.max_workers:
                    self._start(queued.popleft(), now)
                if not queued and self.active == 0:
                    return

                deadlines = [slot.started_at + self.timeout for slot in self.slots if slot.stage is _Stage.RUNNING]
                self.changed.wait(timeout=max(0.0, min(deadlines) - now) if deadlines else None)


def run_batch(domain, items, operation, *, timeout, max_workers, key=None):
    """Run ``operation(item)`` for every item and collect per-item outcomes.

    ``key(item)`` names an item in the result (defaults to nothing beyond
    its index). Successful items report the operation's return value.
    Results keep the order of ``items``.
    """
    result = BatchResult()
    if not items:
        return result

    batch = _Batch(domain, list(items), operation, timeout, max_workers)
    batch.run()

    for slot in batch.slots:
        label = {"index": slot.index}
        if key is not None:
            label.update(key(slot.item))

        if slot.stage is _Stage.ABANDONED:
            result.failed.append(
                {**label, "error": "timeout", "reason": f"Abandoned after {timeout}s; changes rolled back"}
            )
        elif isinstance(slot.error, (InventoryError, ValidationError)):
            code, message = _describe(slot.error)
            logger.info("Batch item rejected", error=code, **label)
            result.failed.append({**label, "error": code, "reason": message})
        elif slot.error is not None:
            code, message = _describe(slot.error)
            logger.error("Batch item failed", exc_info=slot.error, **label)
            result.failed.append({**label, "error": code, "reason": message})
        else:
            result.succeeded.append({**label, "result": slot.outcome})

    logger.info(
        "Batch complete",
        total=len(batch.slots),
        succeeded=len(result.succeeded),
        failed=len(result.failed),
    )
    return result
