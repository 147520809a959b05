import pytest
from datetime import date
from decimal import Decimal

from pydantic import ValidationError

from fleetpay.errors import (
    AlreadySettled,
    DuplicateEarning,
    EarningNotFound,
    InvalidAmount,
    InvalidPeriod,
)
from fleetpay.models.enums import PlatformType
from fleetpay.schemas.earning import EarningCreate
from tests.conftest import COMPANY_ID, CONTRACT_ID, make_earning


class TestIngest:
    def test_derives_btw_and_net(self, ledger):
        record = ledger.ingest(make_earning(gross="100.00", btw="9"))

        assert record.btw_amount == Decimal("9.00")
        assert record.net_income == Decimal("91.00")
        assert record.settlement_id is None
        assert not record.is_settled

    def test_default_btw_percentage(self, ledger):
        data = EarningCreate(
            contract_id=CONTRACT_ID,
            company_id=COMPANY_ID,
            platform=PlatformType.BOLT,
            gross_income=Decimal("100.00"),
            income_date=date(2025, 1, 7),
            week_start=date(2025, 1, 6),
            week_end=date(2025, 1, 12),
        )
        record = ledger.ingest(data)
        assert record.btw_percentage == Decimal("21")
        assert record.btw_amount == Decimal("21.00")

    def test_duplicate_rejected_once_stored(self, ledger, store):
        ledger.ingest(make_earning(gross="100.00"))

        with pytest.raises(DuplicateEarning):
            ledger.ingest(make_earning(gross="100"))

        assert len(list(ledger.find_unsettled(CONTRACT_ID, date(2025, 1, 1), date(2025, 2, 1)))) == 1

    def test_same_amount_other_platform_is_not_duplicate(self, ledger):
        ledger.ingest(make_earning(platform=PlatformType.UBER))
        ledger.ingest(make_earning(platform=PlatformType.BOLT))

        found = list(ledger.find_unsettled(CONTRACT_ID, date(2025, 1, 1), date(2025, 2, 1)))
        assert {e.platform for e in found} == {PlatformType.UBER, PlatformType.BOLT}

    def test_income_date_outside_week(self, ledger):
        with pytest.raises(InvalidPeriod):
            ledger.ingest(make_earning(income_date=date(2025, 1, 13)))

    def test_negative_gross(self, ledger):
        with pytest.raises(InvalidAmount):
            ledger.ingest(make_earning(gross="-10.00"))

    def test_btw_out_of_range(self, ledger):
        with pytest.raises(InvalidAmount):
            ledger.ingest(make_earning(btw="120"))

    def test_records_are_frozen(self, ledger):
        record = ledger.ingest(make_earning())
        with pytest.raises(ValidationError):
            record.settlement_id = "sneaky"

    def test_ingest_many_collects_errors(self, ledger):
        ingested, errors = ledger.ingest_many([
            make_earning(gross="10.00"),
            make_earning(gross="10.00"),
            make_earning(gross="-1.00"),
            make_earning(gross="20.00"),
        ])

        assert ingested == 2
        assert len(errors) == 2
        assert "already exists" in errors[0]

    def test_get_scoped_by_company(self, ledger):
        record = ledger.ingest(make_earning())

        assert ledger.get(record.id, company_id=COMPANY_ID) == record
        with pytest.raises(EarningNotFound):
            ledger.get(record.id, company_id="someone-else")


class TestFindUnsettled:
    def test_half_open_window_and_order(self, ledger):
        late = ledger.ingest(make_earning(gross="30.00", income_date=date(2025, 1, 12)))
        early = ledger.ingest(make_earning(gross="10.00", income_date=date(2025, 1, 6)))
        ledger.ingest(make_earning(
            gross="50.00", income_date=date(2025, 1, 13),
            week_start=date(2025, 1, 13), week_end=date(2025, 1, 19),
        ))

        found = list(ledger.find_unsettled(CONTRACT_ID, date(2025, 1, 6), date(2025, 1, 13)))

        assert [e.id for e in found] == [early.id, late.id]

    def test_other_contract_excluded(self, ledger):
        ledger.ingest(make_earning(contract_id="contract-2"))

        assert list(ledger.find_unsettled(CONTRACT_ID, date(2025, 1, 1), date(2025, 2, 1))) == []

    def test_view_is_restartable(self, ledger):
        ledger.ingest(make_earning(gross="10.00"))
        view = ledger.find_unsettled(CONTRACT_ID, date(2025, 1, 1), date(2025, 2, 1))

        first = list(view)
        second = list(view)
        assert first == second

        ledger.mark_settled([first[0].id], "settlement-1")
        assert list(view) == []


class TestMarkSettled:
    def test_assigns_all(self, ledger):
        a = ledger.ingest(make_earning(gross="10.00"))
        b = ledger.ingest(make_earning(gross="20.00"))

        updated = ledger.mark_settled([a.id, b.id], "settlement-1")

        assert {e.settlement_id for e in updated} == {"settlement-1"}
        assert ledger.get(a.id).settlement_id == "settlement-1"

    def test_all_or_nothing(self, ledger):
        a = ledger.ingest(make_earning(gross="10.00"))
        b = ledger.ingest(make_earning(gross="20.00"))
        ledger.mark_settled([b.id], "settlement-1")

        with pytest.raises(AlreadySettled) as exc_info:
            ledger.mark_settled([a.id, b.id], "settlement-2")

        assert exc_info.value.earning_ids == [b.id]
        assert ledger.get(a.id).settlement_id is None
        assert ledger.get(b.id).settlement_id == "settlement-1"

    def test_unknown_earning(self, ledger):
        with pytest.raises(EarningNotFound):
            ledger.mark_settled(["missing"], "settlement-1")

    def test_release_requires_matching_settlement(self, ledger):
        a = ledger.ingest(make_earning())
        ledger.mark_settled([a.id], "settlement-1")

        with pytest.raises(AlreadySettled):
            ledger.release([a.id], "settlement-2")

        ledger.release([a.id], "settlement-1")
        assert ledger.get(a.id).settlement_id is None


class TestCorrect:
    def test_correct_unsettled(self, ledger):
        record = ledger.ingest(make_earning(gross="100.00", btw="9"))

        corrected = ledger.correct(record.id, gross_income=Decimal("200.00"))

        assert corrected.id == record.id
        assert corrected.gross_income == Decimal("200.00")
        assert corrected.btw_amount == Decimal("18.00")
        assert corrected.net_income == Decimal("182.00")

    def test_settled_earning_is_immutable(self, ledger):
        record = ledger.ingest(make_earning())
        ledger.mark_settled([record.id], "settlement-1")

        with pytest.raises(AlreadySettled):
            ledger.correct(record.id, gross_income=Decimal("1.00"))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
