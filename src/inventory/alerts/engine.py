"""ReorderAlertEngine: decides when a product needs an alert.

Evaluation is idempotent: it compares the product's current
classification with its active (open or acknowledged) alert and only
writes when something changed.

    classification   active alert         outcome
    --------------   ------------------   -----------------------------
    in_stock         none                 nothing
    in_stock         any                  alert resolved by the system
    triggered        none                 new alert opened
    triggered        less severe          alert escalated and reopened
    triggered        same or more severe  unchanged
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from inventory.alerts.alert import ACTIVE_STATUSES, AlertStatus, ReorderAlert
from inventory.errors import AlertNotFound, AlertStillTriggered, InventoryError, StockRecordNotFound
from inventory.ledger.ledger import StockLedger
from inventory.ledger.stock_record import StockRecord, StockStatus, severity
from inventory.utils.db import fetch_all, storage_guard

logger = structlog.get_logger(__name__)

SYSTEM_ACTOR = "system"


@dataclass(frozen=True)
class Evaluation:
    product_id: str
    classification: str
    action: str  # opened | escalated | unchanged | resolved | none
    alert_id: str | None = None
    requested_by: str | None = None


def suggested_reorder_quantity(record):
    """Configured reorder quantity, else enough to refill to the max level."""
    if record.reorder_quantity:
        return record.reorder_quantity
    return max((record.max_stock_level or 0) - record.available_stock, 0)


class ReorderAlertEngine:
    def __init__(self, ledger=None):
        self.ledger = ledger or StockLedger()

    @staticmethod
    def _repository():
        return current_domain.repository_for(ReorderAlert)

    def get(self, alert_id):
        with storage_guard():
            try:
                return self._repository().get(str(alert_id))
            except ObjectNotFoundError:
                raise AlertNotFound(alert_id) from None

    def active_alert(self, product_id):
        alerts = (
            self._repository()
            ._dao.query.filter(product_id=str(product_id), alert_status__in=list(ACTIVE_STATUSES))
            .order_by("-triggered_at")
            .all()
            .items
        )
        return alerts[0] if alerts else None

    # -------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------
    def evaluate(self, product_id, actor=SYSTEM_ACTOR):
        """Bring the product's alert in line with its current classification.

        Opening and closing an alert also rewrites ``active_alert_id`` on the
        stock record. Two evaluations racing to open an alert for the same
        product therefore collide on the record's version at commit, and the
        replayed one finds the alert the winner opened.
        """
        record = self.ledger.read(product_id)
        classification = record.classification()
        alert = self.active_alert(product_id)
        repo = self._repository()

        if classification == StockStatus.IN_STOCK:
            if alert is None:
                if record.active_alert_id:
                    self.ledger.track_alert(product_id, None)
                return Evaluation(str(product_id), classification.value, "none", requested_by=actor)
            alert.resolve(SYSTEM_ACTOR, notes=f"Stock recovered to {record.available_stock} available")
            repo.add(alert)
            self.ledger.track_alert(product_id, None)
            logger.info(
                "Reorder alert auto-resolved",
                alert_id=str(alert.id),
                product_id=str(product_id),
                requested_by=actor,
            )
            return Evaluation(str(product_id), classification.value, "resolved", str(alert.id), actor)

        suggested = suggested_reorder_quantity(record)

        if alert is None:
            alert = ReorderAlert.raise_for(
                product_id=product_id,
                alert_type=classification.value,
                current_stock=record.available_stock,
                reorder_point=record.reorder_point,
                suggested_reorder_quantity=suggested,
                triggered_by=actor,
            )
            repo.add(alert)
            self.ledger.track_alert(product_id, alert.id)
            logger.info(
                "Reorder alert raised",
                alert_id=str(alert.id),
                product_id=str(product_id),
                alert_type=classification.value,
                available_stock=record.available_stock,
                requested_by=actor,
            )
            return Evaluation(str(product_id), classification.value, "opened", str(alert.id), actor)

        if severity(classification) > severity(alert.alert_type):
            previous_type = alert.alert_type
            alert.escalate(classification.value, record.available_stock, suggested)
            repo.add(alert)
            logger.info(
                "Reorder alert escalated",
                alert_id=str(alert.id),
                product_id=str(product_id),
                previous_alert_type=previous_type,
                alert_type=classification.value,
                requested_by=actor,
            )
            return Evaluation(str(product_id), classification.value, "escalated", str(alert.id), actor)

        return Evaluation(str(product_id), classification.value, "unchanged", str(alert.id), actor)

    def scan(self, actor=SYSTEM_ACTOR):
        """Evaluate every stock record; failures are logged per product."""
        records = fetch_all(current_domain.repository_for(StockRecord)._dao.query.order_by("product_id"))
        summary = {"evaluated": 0, "opened": 0, "escalated": 0, "resolved": 0, "failed": 0}
        for record in records:
            try:
                outcome = self.evaluate(record.product_id, actor=actor)
            except (InventoryError, ValidationError) as exc:
                summary["failed"] += 1
                logger.warning("Reorder evaluation failed", product_id=str(record.product_id), error=str(exc))
                continue
            summary["evaluated"] += 1
            if outcome.action in summary:
                summary[outcome.action] += 1
        logger.info("Reorder scan complete", requested_by=actor, **summary)
        return summary

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def _release_tracking(self, alert):
        try:
            record = self.ledger.read(alert.product_id)
        except StockRecordNotFound:
            return
        if record.active_alert_id == str(alert.id):
            self.ledger.track_alert(alert.product_id, None)

    def acknowledge(self, alert_id, actor, notes=None):
        alert = self.get(alert_id)
        alert.acknowledge(actor, notes=notes)
        self._repository().add(alert)
        logger.info("Reorder alert acknowledged", alert_id=str(alert_id), actor=actor)
        return alert

    def resolve(self, alert_id, actor, notes=None):
        alert = self.get(alert_id)
        alert.assert_can_transition(AlertStatus.RESOLVED)

        try:
            record = self.ledger.read(alert.product_id)
        except StockRecordNotFound:
            record = None
        if record is not None and record.classification() != StockStatus.IN_STOCK:
            raise AlertStillTriggered(alert_id, record.classification().value, record.available_stock)

        alert.resolve(actor, notes=notes)
        self._repository().add(alert)
        self._release_tracking(alert)
        logger.info("Reorder alert resolved", alert_id=str(alert_id), actor=actor)
        return alert

    def dismiss(self, alert_id, actor, notes=None):
        alert = self.get(alert_id)
        alert.dismiss(actor, notes=notes)
        self._repository().add(alert)
        self._release_tracking(alert)
        logger.info("Reorder alert dismissed", alert_id=str(alert_id), actor=actor)
        return alert
