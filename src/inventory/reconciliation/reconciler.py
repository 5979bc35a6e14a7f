"""Consistency reconciler: detects drift between the catalog and the ledger.

The catalog still publishes its own ``stock_quantity`` per product. The
ledger's ``physical_stock`` is authoritative; this report shows where the
two disagree, how stock is distributed across the canonical classifications,
and what the stock on hand is worth.

Read-only. If the stores cannot be read the report raises
``DependencyUnavailable``; an empty table and an unreachable one must never
look the same.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime

import structlog
from protean.utils.globals import current_domain

from inventory.ledger.stock_record import StockRecord, StockStatus
from inventory.reconciliation.catalog_product import CatalogProduct
from inventory.utils.clock import utcnow
from inventory.utils.db import fetch_all, storage_guard

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockMismatch:
    product_id: str
    sku: str | None
    catalog_stock_quantity: int
    ledger_physical_stock: int

    @property
    def difference(self) -> int:
        return self.ledger_physical_stock - self.catalog_stock_quantity

    def to_dict(self) -> dict:
        return {**asdict(self), "difference": self.difference}


@dataclass
class ConsistencyReport:
    generated_at: datetime
    total_catalog_products: int = 0
    total_stock_records: int = 0
    compared: int = 0
    matched: int = 0
    mismatches: list[StockMismatch] = field(default_factory=list)
    products_without_ledger: list[str] = field(default_factory=list)
    ledger_without_catalog: list[str] = field(default_factory=list)
    status_counts: dict[str, int] = field(default_factory=dict)
    inventory_value_at_cost: float = 0.0
    inventory_value_at_retail: float = 0.0

    @property
    def mismatch_count(self) -> int:
        return len(self.mismatches)

    @property
    def consistency_percentage(self) -> float:
        if not self.compared:
            return 100.0
        return round(self.matched / self.compared * 100, 2)

    @property
    def potential_profit(self) -> float:
        return round(self.inventory_value_at_retail - self.inventory_value_at_cost, 2)

    @property
    def markup_ratio(self) -> float | None:
        if not self.inventory_value_at_cost:
            return None
        return round(self.potential_profit / self.inventory_value_at_cost, 4)

    def to_dict(self) -> dict:
        return {
            "generated_at": self.generated_at.isoformat(),
            "total_catalog_products": self.total_catalog_products,
            "total_stock_records": self.total_stock_records,
            "compared": self.compared,
            "matched": self.matched,
            "mismatch_count": self.mismatch_count,
            "mismatches": [m.to_dict() for m in self.mismatches],
            "products_without_ledger": self.products_without_ledger,
            "ledger_without_catalog": self.ledger_without_catalog,
            "consistency_percentage": self.consistency_percentage,
            "status_counts": self.status_counts,
            "inventory_value_at_cost": self.inventory_value_at_cost,
            "inventory_value_at_retail": self.inventory_value_at_retail,
            "potential_profit": self.potential_profit,
            "markup_ratio": self.markup_ratio,
        }


class ConsistencyReconciler:
    def _load(self):
        with storage_guard():
            records = fetch_all(current_domain.repository_for(StockRecord)._dao.query.order_by("product_id"))
            catalog = fetch_all(current_domain.repository_for(CatalogProduct)._dao.query.order_by("product_id"))
        return records, catalog

    def report(self) -> ConsistencyReport:
        records, catalog = self._load()
        ledger = {str(r.product_id): r for r in records}
        products = {str(p.product_id): p for p in catalog}

        report = ConsistencyReport(
            generated_at=utcnow(),
            total_catalog_products=len(products),
            total_stock_records=len(ledger),
            status_counts={status.value: 0 for status in StockStatus},
        )

        for product_id, record in ledger.items():
            report.status_counts[record.classification().value] += 1
            if product_id not in products:
                report.ledger_without_catalog.append(product_id)

        cost_total = 0.0
        retail_total = 0.0
        for product_id, product in products.items():
            record = ledger.get(product_id)
            if record is None:
                report.products_without_ledger.append(product_id)
                continue

            report.compared += 1
            catalog_quantity = product.stock_quantity or 0
            if catalog_quantity == record.physical_stock:
                report.matched += 1
            else:
                report.mismatches.append(
                    StockMismatch(
                        product_id=product_id,
                        sku=record.sku or product.sku,
                        catalog_stock_quantity=catalog_quantity,
                        ledger_physical_stock=record.physical_stock,
                    )
                )

            cost_total += record.physical_stock * (product.cost_price or 0.0)
            retail_total += record.physical_stock * (product.price or 0.0)

        report.inventory_value_at_cost = round(cost_total, 2)
        report.inventory_value_at_retail = round(retail_total, 2)

        logger.info(
            "Consistency report generated",
            compared=report.compared,
            mismatches=report.mismatch_count,
            consistency_percentage=report.consistency_percentage,
        )
        return report
