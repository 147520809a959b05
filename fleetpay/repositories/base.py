"""Persistence collaborator contract used by the settlement core."""
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Protocol

from fleetpay.models.enums import SettlementStatus
from fleetpay.schemas.earning import EarningRecord
from fleetpay.schemas.expense import ExpenseRecord
from fleetpay.schemas.settlement import Settlement


@dataclass(frozen=True)
class EarningQuery:
    """Filter for loading earnings. ``date_from``/``date_to`` form a half-open window."""

    contract_id: Optional[str] = None
    company_id: Optional[str] = None
    settlement_id: Optional[str] = None
    unsettled_only: bool = False
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    def matches(self, record: EarningRecord) -> bool:
        if self.contract_id is not None and record.contract_id != self.contract_id:
            return False
        if self.company_id is not None and record.company_id != self.company_id:
            return False
        if self.settlement_id is not None and record.settlement_id != self.settlement_id:
            return False
        if self.unsettled_only and record.settlement_id is not None:
            return False
        if self.date_from is not None and record.income_date < self.date_from:
            return False
        if self.date_to is not None and record.income_date >= self.date_to:
            return False
        return True


@dataclass(frozen=True)
class ExpenseQuery:
    """Filter for loading expenses. The date range is closed on both ends."""

    company_id: str
    car_id: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    def matches(self, record: ExpenseRecord) -> bool:
        if record.company_id != self.company_id:
            return False
        if self.car_id is not None and record.car_id != self.car_id:
            return False
        if self.date_from is not None and record.date < self.date_from:
            return False
        if self.date_to is not None and record.date > self.date_to:
            return False
        return True


def earning_sort_key(record: EarningRecord):
    return (record.income_date, record.created_at, record.id)


class Store(Protocol):
    """Synchronous read-set / write-set interface the core calls into.

    Implementations raise DuplicateEarning and AlreadySettled for write
    conflicts and wrap any other backend failure in StorageFailure.
    """

    def atomic(self) -> AbstractContextManager[None]:
        """All calls made inside the block succeed together or not at all."""
        ...

    def add_earning(self, record: EarningRecord) -> EarningRecord: ...

    def get_earning(self, earning_id: str) -> Optional[EarningRecord]: ...

    def load_earnings(self, query: EarningQuery) -> list[EarningRecord]:
        """Matching earnings ordered by income date."""
        ...

    def update_earning(self, record: EarningRecord) -> EarningRecord:
        """Replace an unsettled earning."""
        ...

    def assign_earnings(self, earning_ids: Iterable[str], settlement_id: str) -> list[EarningRecord]:
        """Compare-and-set: link every id to ``settlement_id`` only if all are unsettled."""
        ...

    def release_earnings(self, earning_ids: Iterable[str], settlement_id: str) -> list[EarningRecord]:
        """Inverse of assign_earnings, guarded on the current settlement id."""
        ...

    def add_settlement(self, settlement: Settlement) -> Settlement: ...

    def get_settlement(self, settlement_id: str) -> Optional[Settlement]: ...

    def save_settlement(self, settlement: Settlement,
                        expected_status: Optional[SettlementStatus] = None) -> Settlement:
        """Overwrite a settlement, only while its stored status is still ``expected_status``.

        Raises InvalidTransition when the status changed since it was read.
        """
        ...

    def load_settlements(
        self, company_id: Optional[str] = None, status: Optional[SettlementStatus] = None
    ) -> list[Settlement]: ...

    def add_expense(self, record: ExpenseRecord) -> ExpenseRecord: ...

    def load_expenses(self, query: ExpenseQuery) -> list[ExpenseRecord]: ...
