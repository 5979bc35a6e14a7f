from contextlib import contextmanager

import structlog
from protean.domain import Domain
from protean.exceptions import ConfigurationError
from sqlalchemy import create_engine
from sqlalchemy.exc import InterfaceError, OperationalError, ProgrammingError

from inventory.errors import DependencyUnavailable

logger = structlog.get_logger(__name__)

_RDBMS_PROVIDERS = ("sqlite", "postgresql")


def _register_tables(domain: Domain, provider) -> None:
    # Touching ``_dao`` makes Protean build the SQLAlchemy model for each
    # element so that ``create_all`` knows about its table.
    for registry in (
        domain.registry.aggregates,
        domain.registry.entities,
        domain.registry.projections,
    ):
        for _, record in registry.items():
            if record.cls.meta_.provider == provider.name:
                domain.repository_for(record.cls)._dao  # noqa: B018


def setup_db(domain: Domain):
    """Create tables for every element stored in a relational provider."""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in _RDBMS_PROVIDERS:
                engine = create_engine(provider.conn_info["database_uri"])
                _register_tables(domain, provider)
                provider._metadata.create_all(engine)
                logger.info("Database schema created", provider=provider.name)


def drop_db(domain: Domain):
    """Drop every table created by ``setup_db``."""
    with domain.domain_context():
        for _, provider in domain.providers.items():
            if provider.conn_info["provider"] in _RDBMS_PROVIDERS:
                engine = create_engine(provider.conn_info["database_uri"])
                _register_tables(domain, provider)
                provider._metadata.drop_all(engine)
                logger.info("Database schema dropped", provider=provider.name)


@contextmanager
def storage_guard(dependency="inventory database"):
    """Turn "store missing or unreachable" failures into DependencyUnavailable.

    Reports must never present an unprovisioned table as an empty one, so
    the error is raised instead of being swallowed into zero counts.
    """
    try:
        yield
    except (OperationalError, ProgrammingError, InterfaceError) as exc:
        logger.error("Storage unavailable", dependency=dependency, error=str(exc))
        raise DependencyUnavailable(dependency, getattr(exc, "orig", None) or exc) from exc
    except ConfigurationError as exc:
        logger.error("Storage not configured", dependency=dependency, error=str(exc))
        raise DependencyUnavailable(dependency, exc) from exc


def fetch_all(query, batch_size=500):
    """Drain a Protean queryset page by page.

    ``query`` should carry an ``order_by`` so that pages are stable.
    """
    items = []
    offset = 0
    while True:
        result = query.offset(offset).limit(batch_size).all()
        items.extend(result.items)
        offset += len(result.items)
        if not result.items or offset >= result.total:
            return items
