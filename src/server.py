"""Protean Engine runner for the inventory domain.

Starts Engine workers that process events asynchronously in production:
- OutboxProcessor: polls the outbox table, publishes events to Redis Streams
- StreamSubscriptions: reads Redis Streams, invokes event handlers
  (catalogue and ordering events that drive stock records and reservations)

Usage:
    python src/server.py
"""

import asyncio

from protean.server.engine import Engine


def _get_domain():
    from inventory.domain import inventory
    from inventory.utils.logging import configure_logging

    configure_logging()
    inventory.init()
    return inventory


async def run():
    engine = Engine(_get_domain())
    await engine.run()


def main():
    asyncio.run(run())


if __name__ == "__main__":
    main()
