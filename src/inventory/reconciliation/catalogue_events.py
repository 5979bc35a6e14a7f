"""Inbound cross-domain event handler: Inventory reacts to Catalogue events.

ProductCreated opens the stock record for the product (seeded from the
catalog's stock field) and stores the catalog snapshot. ProductUpdated
refreshes the snapshot. ProductDiscontinued places a stock hold so no new
reservations land on a product that is leaving the catalogue.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from protean.utils.mixins import handle
from shared.events.catalogue import ProductCreated, ProductDiscontinued, ProductUpdated

from inventory.dispatch import dispatch
from inventory.domain import inventory
from inventory.ledger.ledger import StockLedger
from inventory.ledger.stock_record import StockRecord
from inventory.reconciliation.catalog_product import CatalogProduct

logger = structlog.get_logger(__name__)

# Register external events so Protean can deserialize them
inventory.register_external_event(ProductCreated, "Catalogue.ProductCreated.v1")
inventory.register_external_event(ProductUpdated, "Catalogue.ProductUpdated.v1")
inventory.register_external_event(ProductDiscontinued, "Catalogue.ProductDiscontinued.v1")

CATALOGUE_ACTOR = "catalogue"

_SNAPSHOT_FIELDS = ("sku", "title", "status", "stock_quantity", "cost_price", "price")


def _get_snapshot(product_id):
    repo = current_domain.repository_for(CatalogProduct)
    try:
        return repo, repo.get(str(product_id))
    except ObjectNotFoundError:
        return repo, None


@inventory.event_handler(part_of=StockRecord, stream_category="catalogue::product")
class CatalogueStockEventHandler:
    @handle(ProductCreated)
    def on_product_created(self, event: ProductCreated) -> None:
        repo, snapshot = _get_snapshot(event.product_id)
        if snapshot is None:
            snapshot = CatalogProduct(product_id=str(event.product_id))
        for field_name in _SNAPSHOT_FIELDS:
            setattr(snapshot, field_name, getattr(event, field_name))
        snapshot.updated_at = event.created_at
        repo.add(snapshot)

        if StockLedger().exists(event.product_id):
            logger.info("Stock record already exists for product", product_id=str(event.product_id))
            return

        from inventory.ledger.initialization import InitializeStock

        dispatch(
            InitializeStock(
                product_id=event.product_id,
                sku=event.sku,
                initial_quantity=event.stock_quantity or 0,
                initialized_by=CATALOGUE_ACTOR,
            ),
        )
        logger.info(
            "Stock record opened for new product",
            product_id=str(event.product_id),
            sku=event.sku,
            initial_quantity=event.stock_quantity or 0,
        )

    @handle(ProductUpdated)
    def on_product_updated(self, event: ProductUpdated) -> None:
        repo, snapshot = _get_snapshot(event.product_id)
        if snapshot is None:
            snapshot = CatalogProduct(product_id=str(event.product_id))
        for field_name in _SNAPSHOT_FIELDS:
            value = getattr(event, field_name)
            if value is not None:
                setattr(snapshot, field_name, value)
        snapshot.updated_at = event.updated_at
        repo.add(snapshot)

    @handle(ProductDiscontinued)
    def on_product_discontinued(self, event: ProductDiscontinued) -> None:
        repo, snapshot = _get_snapshot(event.product_id)
        if snapshot is not None:
            snapshot.status = "discontinued"
            snapshot.updated_at = event.discontinued_at
            repo.add(snapshot)

        ledger = StockLedger()
        if not ledger.exists(event.product_id):
            logger.warning("Discontinued product has no stock record", product_id=str(event.product_id))
            return
        if ledger.read(event.product_id).is_on_hold():
            return

        from inventory.ledger.holds import PlaceStockHold

        dispatch(
            PlaceStockHold(
                product_id=event.product_id,
                reason="Product discontinued",
                placed_by=CATALOGUE_ACTOR,
            ),
        )
        logger.info("Stock hold placed for discontinued product", product_id=str(event.product_id))
