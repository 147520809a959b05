"""Shared test fixtures."""
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from fleetpay.database import Base
from fleetpay.models.enums import PlatformType
from fleetpay.repositories.memory import InMemoryStore
from fleetpay.repositories.sql import SqlAlchemyStore
from fleetpay.schemas.earning import EarningCreate
from fleetpay.schemas.settlement import SettlementCreate
from fleetpay.services import EarningLedger, ExpenseAggregator, ReportingService, SettlementEngine

COMPANY_ID = "company-1"
CONTRACT_ID = "contract-1"
FIXED_NOW = datetime(2025, 2, 1, 12, 0, tzinfo=timezone.utc)

# Week of Monday 2025-01-06
WEEK_START = date(2025, 1, 6)
WEEK_END = date(2025, 1, 12)


def make_earning(
    gross="100.00",
    btw="9",
    income_date=date(2025, 1, 7),
    week_start=WEEK_START,
    week_end=WEEK_END,
    platform=PlatformType.UBER,
    contract_id=CONTRACT_ID,
    company_id=COMPANY_ID,
) -> EarningCreate:
    return EarningCreate(
        contract_id=contract_id,
        company_id=company_id,
        platform=platform,
        gross_income=Decimal(gross),
        btw_percentage=Decimal(btw),
        income_date=income_date,
        week_start=week_start,
        week_end=week_end,
    )


def make_settlement_request(
    period_start=WEEK_START,
    period_end=date(2025, 1, 13),
    rent_deduction="20.00",
    extra_costs="5.00",
    weekly_rent=None,
    contract_id=CONTRACT_ID,
    description="Week 2",
) -> SettlementCreate:
    return SettlementCreate(
        contract_id=contract_id,
        company_id=COMPANY_ID,
        period_start=period_start,
        period_end=period_end,
        extra_costs=Decimal(extra_costs),
        rent_deduction=Decimal(rent_deduction) if rent_deduction is not None else None,
        weekly_rent=Decimal(weekly_rent) if weekly_rent is not None else None,
        description=description,
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def ledger(store):
    return EarningLedger(store)


@pytest.fixture
def engine(store, ledger):
    return SettlementEngine(store, ledger, clock=lambda: FIXED_NOW)


@pytest.fixture
def aggregator(store):
    return ExpenseAggregator(store)


@pytest.fixture
def reporting():
    return ReportingService()


@pytest.fixture
def sql_engine():
    # In-memory SQLite shared across connections via StaticPool
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_session(sql_engine):
    session_factory = sessionmaker(bind=sql_engine, autocommit=False, autoflush=False, expire_on_commit=False)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sql_store(sql_session):
    return SqlAlchemyStore(sql_session)
