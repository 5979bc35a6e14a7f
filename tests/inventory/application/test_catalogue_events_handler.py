"""Application tests for CatalogueStockEventHandler, which follows the catalogue's product lifecycle.

Covers:
- on_product_created: opens a stock record seeded from the catalog stock field
- on_product_created: leaves an existing stock record alone
- on_product_updated: refreshes the catalog snapshot
- on_product_discontinued: places a stock hold
"""

from datetime import UTC, datetime

import pytest
from inventory.errors import StockOnHold
from inventory.ledger.initialization import InitializeStock
from inventory.ledger.ledger import StockLedger
from inventory.reconciliation.catalog_product import CatalogProduct
from inventory.reconciliation.catalogue_events import CatalogueStockEventHandler
from inventory.reservation.reserving import ReserveStock
from protean import current_domain
from shared.events.catalogue import ProductCreated, ProductDiscontinued, ProductUpdated


def _created(**overrides):
    defaults = {
        "product_id": "prod-cat-001",
        "sku": "NEW-PROD",
        "title": "New Product",
        "status": "active",
        "stock_quantity": 25,
        "cost_price": 4.0,
        "price": 10.0,
        "created_at": datetime.now(UTC),
    }
    defaults.update(overrides)
    return ProductCreated(**defaults)


def _snapshot(product_id="prod-cat-001"):
    return current_domain.repository_for(CatalogProduct).get(product_id)


class TestProductCreatedHandler:
    def test_opens_stock_record(self):
        CatalogueStockEventHandler().on_product_created(_created())

        record = StockLedger().read("prod-cat-001")
        assert record.sku == "NEW-PROD"
        assert record.physical_stock == 25
        assert record.available_stock == 25

    def test_stores_catalog_snapshot(self):
        CatalogueStockEventHandler().on_product_created(_created())

        snapshot = _snapshot()
        assert snapshot.title == "New Product"
        assert snapshot.stock_quantity == 25
        assert snapshot.cost_price == 4.0
        assert snapshot.price == 10.0

    def test_missing_stock_field_opens_empty_record(self):
        CatalogueStockEventHandler().on_product_created(_created(stock_quantity=None))
        assert StockLedger().read("prod-cat-001").physical_stock == 0

    def test_existing_stock_record_kept(self):
        current_domain.process(
            InitializeStock(product_id="prod-cat-001", sku="NEW-PROD", initial_quantity=7, initialized_by="admin"),
            asynchronous=False,
        )
        CatalogueStockEventHandler().on_product_created(_created())

        assert StockLedger().read("prod-cat-001").physical_stock == 7
        assert _snapshot().stock_quantity == 25


class TestProductUpdatedHandler:
    def test_updates_only_supplied_fields(self):
        handler = CatalogueStockEventHandler()
        handler.on_product_created(_created())
        handler.on_product_updated(
            ProductUpdated(product_id="prod-cat-001", stock_quantity=18, price=12.5, updated_at=datetime.now(UTC))
        )

        snapshot = _snapshot()
        assert snapshot.stock_quantity == 18
        assert snapshot.price == 12.5
        assert snapshot.title == "New Product"
        # The ledger is the source of truth; the catalog field is only a snapshot
        assert StockLedger().read("prod-cat-001").physical_stock == 25

    def test_update_before_create_stores_snapshot(self):
        CatalogueStockEventHandler().on_product_updated(
            ProductUpdated(product_id="prod-cat-002", sku="LATE", stock_quantity=3, updated_at=datetime.now(UTC))
        )
        assert _snapshot("prod-cat-002").sku == "LATE"


class TestProductDiscontinuedHandler:
    def test_places_hold(self):
        handler = CatalogueStockEventHandler()
        handler.on_product_created(_created())
        handler.on_product_discontinued(
            ProductDiscontinued(product_id="prod-cat-001", sku="NEW-PROD", discontinued_at=datetime.now(UTC))
        )

        record = StockLedger().read("prod-cat-001")
        assert record.is_on_hold()
        assert record.stock_hold_reason == "Product discontinued"
        assert _snapshot().status == "discontinued"

        with pytest.raises(StockOnHold):
            current_domain.process(
                ReserveStock(product_id="prod-cat-001", order_id="ord-001", quantity=1, reserved_by="checkout"),
                asynchronous=False,
            )

    def test_repeat_discontinuation_is_noop(self):
        handler = CatalogueStockEventHandler()
        handler.on_product_created(_created())
        event = ProductDiscontinued(product_id="prod-cat-001", sku="NEW-PROD", discontinued_at=datetime.now(UTC))
        handler.on_product_discontinued(event)
        version = StockLedger().read("prod-cat-001").version

        handler.on_product_discontinued(event)
        assert StockLedger().read("prod-cat-001").version == version

    def test_unknown_product_is_noop(self):
        CatalogueStockEventHandler().on_product_discontinued(
            ProductDiscontinued(product_id="prod-unknown", sku="GONE", discontinued_at=datetime.now(UTC))
        )
