"""Seed a demo organization with a few records per entity type.

Usage (from repository root):
    python scripts/seed_demo.py
    # or
    python -m scripts.seed_demo --organization-name "Riverside Club"
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from sqlalchemy import delete

# Make `entitydesk` imports work when the package is not installed.
PROJECT_DIR = Path(__file__).resolve().parents[1]
if str(PROJECT_DIR) not in sys.path:
    sys.path.insert(0, str(PROJECT_DIR))

from entitydesk.db.session import SessionLocal, engine
from entitydesk.models import Base, EntityDocument
from entitydesk.services.documents import create_document


DEFAULT_ORGANIZATION_NAME = "Demo Sports Club"


def build_demo_records() -> dict[str, list[dict[str, object]]]:
    """Return deterministic demo rows keyed by entity type."""

    return {
        "accounts": [
            {"name": "Ada Byron", "email": "ada@example.com", "role": "admin", "active": True},
            {"name": "Grace Hopper", "email": "grace@example.com", "role": "coach", "active": True},
            {"name": "Alan Turing", "email": "alan@example.com", "role": "member", "active": False},
        ],
        "courses": [
            {"name": "Beginner Swimming", "description": "Weekly lessons", "price": 120, "capacity": 12},
            {"name": "Advanced Tennis", "description": "Match play", "price": 240, "capacity": 8},
        ],
        "locations": [
            {"name": "North Pool", "address": "1 Lake Road", "city": "Springfield"},
            {"name": "Court Centre", "address": "22 Net Street", "city": "Springfield"},
        ],
        "tasks": [
            {"title": "Order new lane ropes", "description": "Two sets", "completed": False},
            {"title": "Renew court booking system", "description": "Annual licence", "completed": True},
        ],
        "payments": [
            {"payerName": "Grace Hopper", "amount": 120, "status": "paid", "dynamicFields": {"method": "card"}},
            {"payerName": "Alan Turing", "amount": 240, "status": "pending", "dynamicFields": {"method": "cash"}},
        ],
    }


def reset_documents(db) -> None:
    """Remove every stored document."""

    db.execute(delete(EntityDocument))
    db.commit()


def parse_args() -> argparse.Namespace:
    """Parse script CLI arguments."""

    parser = argparse.ArgumentParser(description="Seed a demo organization and its records.")
    parser.add_argument(
        "--organization-name",
        default=DEFAULT_ORGANIZATION_NAME,
        help=f"Name of the seeded organization (default: {DEFAULT_ORGANIZATION_NAME})",
    )
    parser.add_argument(
        "--no-reset",
        action="store_true",
        help="Keep existing documents instead of deleting them before seeding.",
    )
    return parser.parse_args()


def main() -> None:
    """Seed demo data and print a short summary."""

    args = parse_args()
    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        if not args.no_reset:
            reset_documents(db)

        organization = create_document(db, "organizations", {"name": args.organization_name, "email": "office@example.com"})
        organization_id = organization["_id"]
        counts: dict[str, int] = {}
        for entity_type, rows in build_demo_records().items():
            for row in rows:
                create_document(db, entity_type, row, organization_id=organization_id)
            counts[entity_type] = len(rows)

    print("Seed complete")
    print(f"organization_id={organization_id}")
    for entity_type, count in counts.items():
        print(f"{entity_type}_created={count}")
    print()
    print("Inspect:")
    print("  GET /organizations/current")
    print(f"  GET /accounts?organizationId={organization_id}")
    print(f"  GET /tasks?organizationId={organization_id}")


if __name__ == "__main__":
    main()
