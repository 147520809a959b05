"""SQLAlchemy store tests against in-memory SQLite."""
import pytest
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from fleetpay.database import Base
from fleetpay.errors import (
    AlreadySettled,
    DuplicateEarning,
    ImmutableAfterConfirmation,
    InvalidTransition,
    StorageFailure,
)
from fleetpay.models import Earning as EarningRow
from fleetpay.models import Settlement as SettlementRow
from fleetpay.models.enums import ExpenseType, SettlementStatus
from fleetpay.repositories.sql import SqlAlchemyStore
from fleetpay.schemas.expense import ExpenseCreate
from fleetpay.services import EarningLedger, ExpenseAggregator, SettlementEngine
from tests.conftest import COMPANY_ID, FIXED_NOW, make_earning, make_settlement_request


@pytest.fixture
def sql_ledger(sql_store):
    return EarningLedger(sql_store)


@pytest.fixture
def sql_settlements(sql_store, sql_ledger):
    return SettlementEngine(sql_store, sql_ledger, clock=lambda: FIXED_NOW)


@pytest.fixture
def two_earnings(sql_ledger):
    first = sql_ledger.ingest(make_earning(gross="100.00", income_date=date(2025, 1, 7)))
    second = sql_ledger.ingest(make_earning(gross="50.00", income_date=date(2025, 1, 9)))
    return first, second


class TestEarnings:
    def test_ingest_persists_split(self, sql_ledger, sql_session):
        record = sql_ledger.ingest(make_earning(gross="150.00", btw="9"))

        row = sql_session.get(EarningRow, record.id)
        assert row is not None
        assert row.btw_amount == Decimal("13.50")
        assert row.net_income == Decimal("136.50")
        assert row.settlement_id is None

    def test_fractional_btw_percentage_survives_reload(self, sql_ledger, sql_session):
        record = sql_ledger.ingest(make_earning(gross="100.00", btw="9.125"))
        sql_session.expire_all()

        reloaded = sql_ledger.get(record.id)

        assert reloaded.btw_percentage == Decimal("9.125")
        assert reloaded.btw_amount == Decimal("9.13")
        assert reloaded.net_income == Decimal("90.87")

    def test_duplicate_rejected_and_session_recovers(self, sql_ledger, sql_store):
        sql_ledger.ingest(make_earning())

        with pytest.raises(DuplicateEarning):
            sql_ledger.ingest(make_earning())

        sql_ledger.ingest(make_earning(income_date=date(2025, 1, 8)))
        assert len(sql_ledger.earnings_for_settlement("missing")) == 0
        assert len(list(sql_ledger.find_unsettled("contract-1", date(2025, 1, 6), date(2025, 1, 13)))) == 2

    def test_ingest_many_reports_duplicates(self, sql_ledger):
        ingested, errors = sql_ledger.ingest_many([
            make_earning(income_date=date(2025, 1, 7)),
            make_earning(income_date=date(2025, 1, 7)),
            make_earning(income_date=date(2025, 1, 8)),
        ])

        assert ingested == 2
        assert len(errors) == 1
        assert "already exists" in errors[0]

    def test_correct_unsettled(self, sql_ledger, two_earnings):
        first, _ = two_earnings

        corrected = sql_ledger.correct(first.id, gross_income=Decimal("120.00"))

        assert sql_ledger.get(first.id).gross_income == Decimal("120.00")
        assert corrected.btw_amount == Decimal("10.80")


class TestSettlements:
    def test_create_settlement_end_to_end(self, sql_settlements, sql_session, two_earnings):
        result = sql_settlements.create_settlement(make_settlement_request())
        settlement = result.settlement

        assert settlement.gross_amount == Decimal("150.00")
        assert settlement.net_payout == Decimal("125.00")
        assert settlement.btw_total == Decimal("13.50")
        assert sorted(settlement.earning_ids) == sorted(e.id for e in two_earnings)

        row = sql_session.get(SettlementRow, settlement.id)
        assert row.status == SettlementStatus.PENDING.value
        for earning in two_earnings:
            assert sql_session.get(EarningRow, earning.id).settlement_id == settlement.id

    def test_reassignment_rejected(self, sql_settlements, sql_ledger, two_earnings):
        settlement = sql_settlements.create_settlement(make_settlement_request()).settlement
        first, _ = two_earnings

        with pytest.raises(AlreadySettled) as exc_info:
            sql_ledger.mark_settled([first.id], "another-settlement")

        assert exc_info.value.earning_ids == [first.id]
        assert sql_ledger.get(first.id).settlement_id == settlement.id

    def test_failed_assignment_rolls_back_settlement(self, sql_settlements, sql_store, sql_ledger,
                                                     two_earnings, monkeypatch):
        def broken_assign(earning_ids, settlement_id):
            raise StorageFailure("disk full")

        monkeypatch.setattr(sql_store, "assign_earnings", broken_assign)

        with pytest.raises(StorageFailure):
            sql_settlements.create_settlement(make_settlement_request())

        assert sql_store.load_settlements(company_id=COMPANY_ID) == []
        assert all(not sql_ledger.get(e.id).is_settled for e in two_earnings)

    def test_confirm_and_dispute_persist(self, sql_settlements, sql_store, two_earnings):
        settlement = sql_settlements.create_settlement(make_settlement_request()).settlement

        sql_settlements.confirm(settlement.id, by_driver=True)
        stored = sql_store.get_settlement(settlement.id)
        assert stored.status == SettlementStatus.CONFIRMED_BY_DRIVER
        assert stored.confirmed_by_driver is True
        assert stored.confirmed_at is not None

        sql_settlements.dispute(settlement.id)
        reopened = sql_store.get_settlement(settlement.id)
        assert reopened.status == SettlementStatus.PENDING
        assert reopened.confirmed_at is None
        assert len(reopened.earnings) == 2

    def test_correction_flow(self, sql_settlements, sql_ledger, two_earnings):
        first, second = two_earnings
        settlement = sql_settlements.create_settlement(make_settlement_request()).settlement

        sql_settlements.remove_earnings(settlement.id, [second.id])
        sql_ledger.correct(second.id, gross_income=Decimal("70.00"))
        updated = sql_settlements.add_earnings(settlement.id, [second.id])

        assert updated.gross_amount == Decimal("170.00")
        assert updated.net_payout == Decimal("145.00")

    def test_list_by_status(self, sql_settlements, sql_ledger):
        sql_ledger.ingest(make_earning(income_date=date(2025, 1, 7)))
        sql_ledger.ingest(make_earning(
            income_date=date(2025, 1, 14), week_start=date(2025, 1, 13), week_end=date(2025, 1, 19),
        ))
        first = sql_settlements.create_settlement(make_settlement_request()).settlement
        sql_settlements.create_settlement(make_settlement_request(
            period_start=date(2025, 1, 13), period_end=date(2025, 1, 20),
        ))
        sql_settlements.confirm(first.id, by_driver=True)

        pending = sql_settlements.list_for_company(COMPANY_ID, SettlementStatus.PENDING)
        confirmed = sql_settlements.list_for_company(COMPANY_ID, SettlementStatus.CONFIRMED_BY_DRIVER)

        assert [s.period_start for s in pending] == [date(2025, 1, 13)]
        assert [s.id for s in confirmed] == [first.id]


class ConfirmDuringReadSqlStore(SqlAlchemyStore):
    """Lets a second session confirm the settlement right after this store reads it."""

    def __init__(self, db, other_engine):
        super().__init__(db)
        self.other_engine = other_engine
        self.armed = False

    def get_settlement(self, settlement_id):
        result = super().get_settlement(settlement_id)
        if self.armed:
            self.armed = False
            self.other_engine.confirm(settlement_id, by_driver=True)
        return result


class TestConditionalStatusWrites:
    def test_stale_write_is_rejected(self, sql_settlements, sql_store, two_earnings):
        settlement = sql_settlements.create_settlement(make_settlement_request()).settlement
        stale = sql_store.get_settlement(settlement.id)
        sql_settlements.confirm(settlement.id, by_driver=True)

        stale.description = "edited from an old copy"
        with pytest.raises(InvalidTransition):
            sql_store.save_settlement(stale, expected_status=SettlementStatus.PENDING)

        current = sql_store.get_settlement(settlement.id)
        assert current.status == SettlementStatus.CONFIRMED_BY_DRIVER
        assert current.description == "Week 2"

    def test_confirm_from_other_session_during_recompute(self, sql_engine, sql_session, two_earnings):
        other_session = Session(bind=sql_engine, expire_on_commit=False)
        try:
            other = SettlementEngine(SqlAlchemyStore(other_session), clock=lambda: FIXED_NOW)
            store = ConfirmDuringReadSqlStore(sql_session, other)
            engine = SettlementEngine(store, clock=lambda: FIXED_NOW)
            settlement = engine.create_settlement(make_settlement_request()).settlement

            store.armed = True
            with pytest.raises(ImmutableAfterConfirmation):
                engine.recompute(settlement.id)

            current = store.get_settlement(settlement.id)
            assert current.status == SettlementStatus.CONFIRMED_BY_DRIVER
            assert current.confirmed_at == FIXED_NOW
        finally:
            other_session.close()

    def test_second_confirm_fails(self, sql_settlements, two_earnings):
        settlement = sql_settlements.create_settlement(make_settlement_request()).settlement
        sql_settlements.confirm(settlement.id, by_driver=True)

        with pytest.raises(InvalidTransition):
            sql_settlements.confirm(settlement.id, by_driver=True)


class TestTimestamps:
    def test_reloaded_datetimes_are_utc(self, sql_settlements, sql_store, sql_ledger, sql_session,
                                        two_earnings):
        settlement = sql_settlements.create_settlement(make_settlement_request()).settlement
        sql_settlements.confirm(settlement.id, by_driver=True)
        sql_session.expire_all()

        reloaded = sql_store.get_settlement(settlement.id)
        earning = sql_ledger.get(two_earnings[0].id)

        assert reloaded.confirmed_at == FIXED_NOW
        assert reloaded.confirmed_at.tzinfo is not None
        assert reloaded.created_at == FIXED_NOW
        assert earning.created_at.tzinfo is not None


class TestExpenses:
    def test_summarize_through_sql(self, sql_store):
        aggregator = ExpenseAggregator(sql_store)
        for day, kind, amount in [
            (date(2025, 1, 10), ExpenseType.FUEL, "60.50"),
            (date(2025, 1, 20), ExpenseType.FUEL, "121.00"),
            (date(2025, 1, 31), ExpenseType.REPAIR, "242.00"),
            (date(2025, 2, 1), ExpenseType.REPAIR, "999.00"),
        ]:
            aggregator.record(ExpenseCreate(
                date=day, car_id="car-a", company_id=COMPANY_ID,
                type=kind, amount=Decimal(amount), vat_percent=Decimal("21"),
            ))

        summary = aggregator.summarize(COMPANY_ID, "car-a", date(2025, 1, 1), date(2025, 1, 31))

        assert summary.total_gross_amount == Decimal("423.50")
        assert summary.total_vat_amount == Decimal("73.50")
        assert summary.total_net_amount == Decimal("350.00")
        assert [item.type for item in summary.by_type] == [ExpenseType.FUEL, ExpenseType.REPAIR]


class TestStorageFailure:
    def test_missing_tables_surface_as_storage_failure(self, sql_engine, sql_store, sql_ledger):
        Base.metadata.drop_all(bind=sql_engine)

        with pytest.raises(StorageFailure):
            sql_store.load_settlements(company_id=COMPANY_ID)
        with pytest.raises(StorageFailure):
            sql_ledger.ingest(make_earning())


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
