#!/usr/bin/env python3
"""
Database seeding script for the settlement engine.

Reads generated JSON files from data/ (see generate_test_data.py), ingests
earnings and expenses through the services, then creates one settlement per
contract and week.

Usage:
    python -m scripts.seed_database
    # or
    python scripts/seed_database.py
"""

import json
import sys
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

# Add the project root to the path so we can import fleetpay modules
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from fleetpay.config import configure_logging
from fleetpay.database import SessionLocal, init_db
from fleetpay.errors import FleetPayError, NoEarningsInPeriod
from fleetpay.repositories.sql import SqlAlchemyStore
from fleetpay.schemas.earning import EarningCreate
from fleetpay.schemas.expense import ExpenseCreate
from fleetpay.schemas.settlement import SettlementCreate
from fleetpay.services import EarningLedger, ExpenseAggregator, SettlementEngine

DATA_DIR = project_root / "data"


def load_json_file(file_path: Path) -> list[dict]:
    """Load JSON data from a file."""
    if not file_path.exists():
        print(f"Warning: File not found: {file_path}")
        return []

    with open(file_path, "r") as f:
        data = json.load(f)

    return data if isinstance(data, list) else []


def print_errors(errors: list[str]) -> None:
    for err in errors[:5]:  # Show first 5 errors
        print(f"    - {err}")
    if len(errors) > 5:
        print(f"    - ... and {len(errors) - 5} more errors")


def seed_database():
    """Main function to seed the database with data from JSON files."""
    configure_logging("WARNING")
    print("=" * 60)
    print("Database Seeding Script")
    print("=" * 60)

    init_db()

    contracts = load_json_file(DATA_DIR / "contracts.json")
    earnings = [EarningCreate(**item) for item in load_json_file(DATA_DIR / "earnings.json")]
    expenses = [ExpenseCreate(**item) for item in load_json_file(DATA_DIR / "expenses.json")]

    if not earnings and not expenses:
        print("No data to seed. Run scripts/generate_test_data.py first.")
        return

    with SessionLocal() as session:
        store = SqlAlchemyStore(session)
        ledger = EarningLedger(store)
        engine = SettlementEngine(store, ledger)
        aggregator = ExpenseAggregator(store)

        print(f"\nIngesting {len(earnings)} earnings...")
        earning_count, earning_errors = ledger.ingest_many(earnings)
        print(f"  - Ingested: {earning_count}")
        if earning_errors:
            print(f"  - Errors: {len(earning_errors)}")
            print_errors(earning_errors)

        print(f"\nRecording {len(expenses)} expenses...")
        expense_errors = []
        for expense in expenses:
            try:
                aggregator.record(expense)
            except FleetPayError as e:
                expense_errors.append(str(e))
        print(f"  - Recorded: {len(expenses) - len(expense_errors)}")
        print_errors(expense_errors)

        print("\nCreating weekly settlements...")
        created = negative = 0
        for contract in contracts:
            weeks = sorted({e.week_start for e in earnings if e.contract_id == contract["contract_id"]})
            for week_start in weeks:
                try:
                    result = engine.create_settlement(SettlementCreate(
                        contract_id=contract["contract_id"],
                        company_id=contract["company_id"],
                        period_start=week_start,
                        period_end=week_start + timedelta(days=7),
                        weekly_rent=Decimal(contract["weekly_rent"]),
                        description=f"Week of {week_start.isoformat()} - {contract['driver_name']}",
                    ))
                except NoEarningsInPeriod:
                    continue
                created += 1
                negative += int(result.negative_payout)

    print()
    print("=" * 60)
    print("SEEDING SUMMARY")
    print("=" * 60)
    print(f"{'Earnings ingested':<24} {earning_count}")
    print(f"{'Expenses recorded':<24} {len(expenses) - len(expense_errors)}")
    print(f"{'Settlements created':<24} {created}")
    print(f"{'Negative payouts':<24} {negative}")


if __name__ == "__main__":
    seed_database()
