"""Earning ledger: ingestion, unsettled lookups and settlement linkage."""
import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Iterable, Iterator, Optional

from fleetpay.errors import (
    AlreadySettled,
    EarningNotFound,
    FleetPayError,
    InvalidPeriod,
)
from fleetpay.repositories.base import EarningQuery, Store
from fleetpay.schemas.earning import EarningCreate, EarningRecord
from fleetpay.utils.money import compute_btw, require_money

logger = logging.getLogger(__name__)


class UnsettledEarnings:
    """Lazy view over a contract's unsettled earnings in ``[start, end)``.

    Each iteration reloads from the store, so the view can be re-run after a
    failed attempt and always reflects current assignments.
    """

    def __init__(self, store: Store, contract_id: str, period_start: date, period_end: date,
                 company_id: Optional[str] = None):
        self._store = store
        self.query = EarningQuery(
            contract_id=contract_id,
            company_id=company_id,
            unsettled_only=True,
            date_from=period_start,
            date_to=period_end,
        )

    def __iter__(self) -> Iterator[EarningRecord]:
        yield from self._store.load_earnings(self.query)


class EarningLedger:
    def __init__(self, store: Store):
        self.store = store

    def _build_record(self, data: EarningCreate, earning_id: Optional[str] = None) -> EarningRecord:
        if not (data.week_start <= data.income_date <= data.week_end):
            raise InvalidPeriod(
                f"Income date {data.income_date} is outside its week "
                f"{data.week_start}..{data.week_end}"
            )
        btw_amount, net_income = compute_btw(data.gross_income, data.btw_percentage)
        values = data.model_dump()
        values["gross_income"] = require_money(data.gross_income, "gross income")
        return EarningRecord(
            id=earning_id or str(uuid.uuid4()),
            btw_amount=btw_amount,
            net_income=net_income,
            **values,
        )

    def ingest(self, data: EarningCreate) -> EarningRecord:
        """Validate, derive BTW and store an unsettled earning."""
        record = self._build_record(data)
        try:
            stored = self.store.add_earning(record)
        except FleetPayError as e:
            logger.warning("Rejected earning for contract %s: %s", data.contract_id, e)
            raise
        logger.info(
            "Ingested earning %s for contract %s (%s, gross %s)",
            stored.id, stored.contract_id, stored.platform.value, stored.gross_income,
        )
        return stored

    def ingest_many(self, earnings: Iterable[EarningCreate]) -> tuple[int, list[str]]:
        """Ingest multiple earnings. Returns (count_ingested, errors)."""
        ingested = 0
        errors = []

        for data in earnings:
            try:
                self.ingest(data)
                ingested += 1
            except FleetPayError as e:
                errors.append(
                    f"Error ingesting earning for contract {data.contract_id} "
                    f"on {data.income_date}: {e}"
                )

        return ingested, errors

    def get(self, earning_id: str, company_id: Optional[str] = None) -> EarningRecord:
        record = self.store.get_earning(earning_id)
        if record is None or (company_id is not None and record.company_id != company_id):
            raise EarningNotFound(earning_id)
        return record

    def find_unsettled(self, contract_id: str, period_start: date, period_end: date,
                       company_id: Optional[str] = None) -> UnsettledEarnings:
        return UnsettledEarnings(self.store, contract_id, period_start, period_end, company_id)

    def earnings_for_settlement(self, settlement_id: str) -> list[EarningRecord]:
        return self.store.load_earnings(EarningQuery(settlement_id=settlement_id))

    def mark_settled(self, earning_ids: Iterable[str], settlement_id: str) -> list[EarningRecord]:
        """Link all earnings to the settlement, or none of them."""
        ids = list(earning_ids)
        try:
            return self.store.assign_earnings(ids, settlement_id)
        except AlreadySettled as e:
            logger.warning(
                "Settlement %s lost earnings %s to another settlement",
                settlement_id, ", ".join(e.earning_ids),
            )
            raise

    def release(self, earning_ids: Iterable[str], settlement_id: str) -> list[EarningRecord]:
        """Unlink earnings from a settlement so they can be corrected or re-settled."""
        return self.store.release_earnings(list(earning_ids), settlement_id)

    def correct(self, earning_id: str, gross_income: Optional[Decimal] = None,
                btw_percentage: Optional[Decimal] = None) -> EarningRecord:
        """Correct an unsettled earning and re-derive its BTW split."""
        current = self.get(earning_id)
        if current.is_settled:
            raise AlreadySettled([earning_id], current.settlement_id)

        changes = {}
        if gross_income is not None:
            changes["gross_income"] = gross_income
        if btw_percentage is not None:
            changes["btw_percentage"] = btw_percentage
        data = EarningCreate(**{
            **current.model_dump(include=set(EarningCreate.model_fields)),
            **changes,
        })
        record = self._build_record(data, earning_id=current.id)
        record = record.model_copy(update={"created_at": current.created_at})
        updated = self.store.update_earning(record)
        logger.info("Corrected earning %s (gross %s)", updated.id, updated.gross_income)
        return updated
