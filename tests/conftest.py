import os
from pathlib import Path

import pytest

# Test directory -> marker applied to every test collected beneath it
_LAYER_MARKERS = {
    "domain": pytest.mark.domain,
    "application": pytest.mark.application,
    "integration": pytest.mark.integration,
}


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="PROTEAN_ENV overlay to load from domain.toml",
    )


def pytest_sessionstart(session):
    """Activate the inventory domain before collection.

    Pushing a domain context here lets test modules use `current_domain` at import time.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env

    from inventory.domain import inventory

    inventory.init()
    inventory.domain_context().push()


def pytest_collection_modifyitems(config, items):
    for item in items:
        layer = next((part for part in Path(item.fspath).parts if part in _LAYER_MARKERS), None)
        if layer is None:
            continue
        item.add_marker(_LAYER_MARKERS[layer])
        if layer == "integration" and item.get_closest_marker("fast") is None:
            item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session", autouse=True)
def inventory_schema():
    from inventory.domain import inventory
    from inventory.utils.db import drop_db, setup_db

    setup_db(inventory)
    yield
    drop_db(inventory)


@pytest.fixture(autouse=True)
def reset_stores():
    """Wipe every provider and the event store once each test finishes."""
    yield

    from protean import current_domain

    for provider in current_domain.providers.values():
        provider._data_reset()
    current_domain.event_store.store._data_reset()
