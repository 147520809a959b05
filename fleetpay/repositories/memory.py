"""Thread-safe in-process store, used by tests and single-process tooling."""
import threading
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from fleetpay.errors import (
    AlreadySettled,
    DuplicateEarning,
    EarningNotFound,
    InvalidTransition,
    SettlementNotFound,
)
from fleetpay.models.enums import SettlementStatus
from fleetpay.repositories.base import EarningQuery, ExpenseQuery, earning_sort_key
from fleetpay.schemas.earning import EarningRecord
from fleetpay.schemas.expense import ExpenseRecord
from fleetpay.schemas.settlement import Settlement


class InMemoryStore:
    def __init__(self):
        self._lock = threading.RLock()
        self._earnings: dict[str, EarningRecord] = {}
        self._settlements: dict[str, Settlement] = {}
        self._expenses: dict[str, ExpenseRecord] = {}

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            earnings = dict(self._earnings)
            settlements = {k: v.model_copy(deep=True) for k, v in self._settlements.items()}
            expenses = dict(self._expenses)
            try:
                yield
            except BaseException:
                self._earnings = earnings
                self._settlements = settlements
                self._expenses = expenses
                raise

    # Earnings

    def _find_duplicate(self, record: EarningRecord) -> Optional[EarningRecord]:
        key = record.duplicate_key
        for existing in self._earnings.values():
            if existing.id != record.id and existing.duplicate_key == key:
                return existing
        return None

    def add_earning(self, record: EarningRecord) -> EarningRecord:
        with self._lock:
            if record.id in self._earnings or self._find_duplicate(record):
                raise DuplicateEarning(
                    record.contract_id, record.income_date, record.gross_income, record.platform.value
                )
            self._earnings[record.id] = record
            return record

    def get_earning(self, earning_id: str) -> Optional[EarningRecord]:
        with self._lock:
            return self._earnings.get(earning_id)

    def load_earnings(self, query: EarningQuery) -> list[EarningRecord]:
        with self._lock:
            matches = [r for r in self._earnings.values() if query.matches(r)]
        return sorted(matches, key=earning_sort_key)

    def update_earning(self, record: EarningRecord) -> EarningRecord:
        with self._lock:
            current = self._earnings.get(record.id)
            if current is None:
                raise EarningNotFound(record.id)
            if current.is_settled:
                raise AlreadySettled([record.id], current.settlement_id)
            if self._find_duplicate(record):
                raise DuplicateEarning(
                    record.contract_id, record.income_date, record.gross_income, record.platform.value
                )
            self._earnings[record.id] = record
            return record

    def _require_earnings(self, earning_ids: list[str]) -> list[EarningRecord]:
        records = []
        for earning_id in earning_ids:
            record = self._earnings.get(earning_id)
            if record is None:
                raise EarningNotFound(earning_id)
            records.append(record)
        return records

    def assign_earnings(self, earning_ids: Iterable[str], settlement_id: str) -> list[EarningRecord]:
        ids = list(dict.fromkeys(earning_ids))
        with self._lock:
            records = self._require_earnings(ids)
            taken = [r.id for r in records if r.settlement_id is not None]
            if taken:
                raise AlreadySettled(taken, settlement_id)
            updated = [r.model_copy(update={"settlement_id": settlement_id}) for r in records]
            for record in updated:
                self._earnings[record.id] = record
            return updated

    def release_earnings(self, earning_ids: Iterable[str], settlement_id: str) -> list[EarningRecord]:
        ids = list(dict.fromkeys(earning_ids))
        with self._lock:
            records = self._require_earnings(ids)
            foreign = [r.id for r in records if r.settlement_id != settlement_id]
            if foreign:
                raise AlreadySettled(foreign, settlement_id)
            updated = [r.model_copy(update={"settlement_id": None}) for r in records]
            for record in updated:
                self._earnings[record.id] = record
            return updated

    # Settlements

    def _hydrate(self, settlement: Settlement) -> Settlement:
        copy = settlement.model_copy(deep=True)
        copy.earnings = self.load_earnings(EarningQuery(settlement_id=settlement.id))
        return copy

    def add_settlement(self, settlement: Settlement) -> Settlement:
        with self._lock:
            self._settlements[settlement.id] = settlement.model_copy(deep=True, update={"earnings": []})
            return self._hydrate(self._settlements[settlement.id])

    def get_settlement(self, settlement_id: str) -> Optional[Settlement]:
        with self._lock:
            settlement = self._settlements.get(settlement_id)
            return self._hydrate(settlement) if settlement else None

    def save_settlement(self, settlement: Settlement,
                        expected_status: Optional[SettlementStatus] = None) -> Settlement:
        with self._lock:
            current = self._settlements.get(settlement.id)
            if current is None:
                raise SettlementNotFound(settlement.id)
            if expected_status is not None and current.status != expected_status:
                raise InvalidTransition(
                    settlement.id, current.status.value, "update",
                    f"status changed from {expected_status.value}",
                )
            self._settlements[settlement.id] = settlement.model_copy(deep=True, update={"earnings": []})
            return self._hydrate(self._settlements[settlement.id])

    def load_settlements(
        self, company_id: Optional[str] = None, status: Optional[SettlementStatus] = None
    ) -> list[Settlement]:
        with self._lock:
            rows = [
                s for s in self._settlements.values()
                if (company_id is None or s.company_id == company_id)
                and (status is None or s.status == status)
            ]
            rows.sort(key=lambda s: (s.period_start, s.created_at, s.id))
            return [self._hydrate(s) for s in rows]

    # Expenses

    def add_expense(self, record: ExpenseRecord) -> ExpenseRecord:
        with self._lock:
            self._expenses[record.id] = record
            return record

    def load_expenses(self, query: ExpenseQuery) -> list[ExpenseRecord]:
        with self._lock:
            matches = [r for r in self._expenses.values() if query.matches(r)]
        return sorted(matches, key=lambda r: (r.date, r.id))
