import pytest
from inventory.config import LedgerSettings
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def inventory_fixture():
    from inventory.domain import inventory

    fixture = DomainFixture(inventory)
    fixture.setup()
    yield fixture
    fixture.teardown()


@pytest.fixture(autouse=True)
def inventory_context(inventory_fixture):
    with inventory_fixture.domain_context():
        yield


@pytest.fixture()
def settings():
    """Ledger settings with no retry backoff and a single bulk worker."""
    return LedgerSettings(cas_backoff_seconds=0, bulk_max_workers=1)
