#!/usr/bin/env python3
"""
Fleet Settlement Engine - Test Data Generator

Generates realistic demo data for the settlement engine with intentional
edge cases:

- 8 weeks of platform earnings for a handful of driver contracts
- vehicle expenses across every expense category
- duplicate earnings, zero-gross days and 0% BTW records

Usage:
    python scripts/generate_test_data.py
"""

import json
import random
import sys
import uuid
from collections import Counter
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any

from faker import Faker

# Add the project root to the path so we can import fleetpay modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from fleetpay.utils.date_utils import week_bounds
from fleetpay.utils.money import to_money

fake = Faker(["nl_NL", "en_US"])
Faker.seed(42)
random.seed(42)

# Configuration
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = BASE_DIR / "data"

START_DATE = date(2025, 1, 6)  # a Monday
WEEKS = 8
CONTRACT_COUNT = 5

PLATFORMS = {
    "uber": {"weight": 5, "min_amount": 40, "max_amount": 320},
    "bolt": {"weight": 3, "min_amount": 30, "max_amount": 250},
    "snel_een_taxi": {"weight": 1, "min_amount": 20, "max_amount": 150},
    "sumup": {"weight": 1, "min_amount": 10, "max_amount": 90},
}

EXPENSE_TYPES = {
    "apk": (45, 120),
    "fuel": (40, 110),
    "insurance": (90, 260),
    "maintenance": (80, 450),
    "other": (5, 60),
    "repair": (120, 1500),
}

BTW_RATES = [Decimal("9"), Decimal("21")]


def money(value: float) -> Decimal:
    return to_money(str(value))


def generate_contracts(company_id: str) -> list[dict[str, Any]]:
    """Generate driver contracts with a car and a weekly rent."""
    contracts = []
    for _ in range(CONTRACT_COUNT):
        contracts.append({
            "contract_id": str(uuid.uuid4()),
            "company_id": company_id,
            "driver_name": fake.name(),
            "car_id": str(uuid.uuid4()),
            "car_name": f"{fake.license_plate()} {random.choice(['Toyota Prius', 'Kia Niro', 'Tesla Model 3', 'Skoda Octavia'])}",
            "weekly_rent": str(money(random.choice([250, 275, 300, 325]))),
        })
    return contracts


def generate_earnings(contracts: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Generate daily earnings per contract, with duplicates and edge cases mixed in."""
    earnings = []
    platforms = list(PLATFORMS)
    weights = [PLATFORMS[p]["weight"] for p in platforms]

    for contract in contracts:
        for week in range(WEEKS):
            week_start, week_end = week_bounds(START_DATE + timedelta(weeks=week))
            for offset in range(7):
                if random.random() < 0.2:
                    continue  # day off
                income_date = week_start + timedelta(days=offset)
                platform = random.choices(platforms, weights=weights)[0]
                config = PLATFORMS[platform]
                earnings.append({
                    "contract_id": contract["contract_id"],
                    "company_id": contract["company_id"],
                    "platform": platform,
                    "gross_income": str(money(random.uniform(config["min_amount"], config["max_amount"]))),
                    "btw_percentage": str(random.choice(BTW_RATES)),
                    "income_date": income_date.isoformat(),
                    "week_start": week_start.isoformat(),
                    "week_end": week_end.isoformat(),
                })

    # Edge cases
    zero_day = dict(random.choice(earnings), gross_income="0.00", platform="sumup")
    no_btw = dict(random.choice(earnings), btw_percentage="0", platform="snel_een_taxi")
    duplicates = [dict(e) for e in random.sample(earnings, 5)]
    earnings.extend([zero_day, no_btw, *duplicates])
    random.shuffle(earnings)
    return earnings


def generate_expenses(contracts: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Generate VAT-inclusive vehicle expenses across the same period."""
    expenses = []
    period_days = WEEKS * 7
    for contract in contracts:
        for _ in range(random.randint(6, 14)):
            expense_type = random.choice(list(EXPENSE_TYPES))
            low, high = EXPENSE_TYPES[expense_type]
            expenses.append({
                "date": (START_DATE + timedelta(days=random.randrange(period_days))).isoformat(),
                "car_id": contract["car_id"],
                "car_name": contract["car_name"],
                "company_id": contract["company_id"],
                "type": expense_type,
                "amount": str(money(random.uniform(low, high))),
                "vat_percent": "0" if expense_type == "insurance" else "21",
            })
    return expenses


def main():
    """Main function to generate all test data."""
    print("Fleet Settlement Engine - Test Data Generator")
    print("=" * 55)

    DATA_DIR.mkdir(parents=True, exist_ok=True)
    company_id = str(uuid.uuid4())

    print(f"\nGenerating {WEEKS} weeks of data starting {START_DATE}...")

    print("\n1. Generating contracts...")
    contracts = generate_contracts(company_id)
    print(f"   Generated {len(contracts)} contracts")

    print("\n2. Generating earnings...")
    earnings = generate_earnings(contracts)
    print(f"   Generated {len(earnings)} earnings")

    print("\n3. Generating expenses...")
    expenses = generate_expenses(contracts)
    print(f"   Generated {len(expenses)} expenses")

    print("\n4. Saving files...")
    for name, payload in (("contracts", contracts), ("earnings", earnings), ("expenses", expenses)):
        path = DATA_DIR / f"{name}.json"
        with open(path, "w") as f:
            json.dump(payload, f, indent=2)
        print(f"   Saved: {path}")

    print("\n" + "=" * 55)
    print("DATA GENERATION SUMMARY")
    print("=" * 55)
    print(f"\nEarnings by platform: {dict(Counter(e['platform'] for e in earnings))}")
    print(f"Expenses by type: {dict(Counter(e['type'] for e in expenses))}")
    print("\nTest data generation complete!")
    print(f"Files saved to: {DATA_DIR}")


if __name__ == "__main__":
    main()
