"""Inventory management CLI.

Creates and drops the database schema, and runs the periodic maintenance
jobs from a scheduler that prefers a command line over the HTTP endpoints.

Usage:
    python src/manage.py setup-db              # Create all tables
    python src/manage.py drop-db               # Drop all tables
    python src/manage.py expire-reservations   # Release expired reservations
    python src/manage.py scan-reorder-levels   # Re-evaluate every product
    python src/manage.py consistency-report    # Print the catalog/ledger drift report
"""

import argparse
import json
import sys


def _init_domain():
    from inventory.domain import inventory

    print("Initializing inventory domain...")
    inventory.init()
    return inventory


def setup_database():
    """Create the inventory database schema."""
    from inventory.utils.db import setup_db

    domain = _init_domain()
    print("Creating inventory database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    """Drop the inventory database schema."""
    from inventory.utils.db import drop_db

    domain = _init_domain()
    print("Dropping inventory database schema...")
    drop_db(domain)
    print("Done.")


def expire_reservations(actor):
    from inventory.dispatch import dispatch
    from inventory.reservation.expiry import ExpireStaleReservations

    domain = _init_domain()
    with domain.domain_context():
        expired = dispatch(ExpireStaleReservations(requested_by=actor))
    print(f"Expired {expired} reservation(s).")


def scan_reorder_levels(actor):
    from inventory.alerts.management import ScanReorderLevels
    from inventory.dispatch import dispatch

    domain = _init_domain()
    with domain.domain_context():
        summary = dispatch(ScanReorderLevels(requested_by=actor))
    print(json.dumps(summary, indent=2))


def consistency_report():
    from inventory.reconciliation.reconciler import ConsistencyReconciler

    domain = _init_domain()
    with domain.domain_context():
        report = ConsistencyReconciler().report()
    print(json.dumps(report.to_dict(), indent=2))


def main():
    parser = argparse.ArgumentParser(description="Inventory management")
    parser.add_argument("--actor", default="scheduler", help="Actor recorded on the audit trail")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("expire-reservations", help="Release reservations past their expiry")
    subparsers.add_parser("scan-reorder-levels", help="Re-evaluate reorder alerts for every product")
    subparsers.add_parser("consistency-report", help="Compare catalog stock fields against the ledger")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "expire-reservations":
        expire_reservations(args.actor)
    elif args.command == "scan-reorder-levels":
        scan_reorder_levels(args.actor)
    elif args.command == "consistency-report":
        consistency_report()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
