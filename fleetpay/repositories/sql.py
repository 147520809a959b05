"""SQLAlchemy-backed store."""
import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fleetpay.errors import (
    AlreadySettled,
    DuplicateEarning,
    EarningNotFound,
    FleetPayError,
    InvalidTransition,
    SettlementNotFound,
    StorageFailure,
)
from fleetpay.models import Earning as EarningRow
from fleetpay.models import Expense as ExpenseRow
from fleetpay.models import Settlement as SettlementRow
from fleetpay.models.enums import SettlementStatus
from fleetpay.repositories.base import EarningQuery, ExpenseQuery
from fleetpay.schemas.earning import EarningRecord
from fleetpay.schemas.expense import ExpenseRecord
from fleetpay.schemas.settlement import Settlement
from fleetpay.utils.date_utils import ensure_utc

logger = logging.getLogger(__name__)

_SETTLEMENT_COLUMNS = (
    "company_id", "contract_id", "period_start", "period_end", "extra_costs",
    "gross_amount", "rent_deduction", "net_payout", "description",
    "confirmed_by_driver", "confirmed_at", "created_at", "updated_at",
)


class SqlAlchemyStore:
    """Store over a SQLAlchemy session.

    Every public write commits on its own unless it runs inside ``atomic()``,
    in which case the outermost block commits or rolls back.
    """

    def __init__(self, db: Session):
        self.db = db
        self._depth = 0

    @contextmanager
    def atomic(self) -> Iterator[None]:
        self._depth += 1
        try:
            yield
        except FleetPayError:
            if self._depth == 1:
                self.db.rollback()
            raise
        except SQLAlchemyError as e:
            if self._depth == 1:
                self.db.rollback()
            logger.error("Storage failure: %s", e)
            raise StorageFailure(str(e)) from e
        except BaseException:
            if self._depth == 1:
                self.db.rollback()
            raise
        else:
            if self._depth == 1:
                try:
                    self.db.commit()
                except SQLAlchemyError as e:
                    self.db.rollback()
                    logger.error("Commit failed: %s", e)
                    raise StorageFailure(str(e)) from e
        finally:
            self._depth -= 1

    @contextmanager
    def _reading(self) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            logger.error("Storage failure while reading: %s", e)
            raise StorageFailure(str(e)) from e

    # Earnings

    def add_earning(self, record: EarningRecord) -> EarningRecord:
        try:
            with self.atomic():
                self.db.add(EarningRow(**self._earning_values(record)))
                self.db.flush()
        except StorageFailure as e:
            if isinstance(e.__cause__, IntegrityError):
                raise DuplicateEarning(
                    record.contract_id, record.income_date, record.gross_income, record.platform.value
                ) from e.__cause__
            raise
        return record

    def get_earning(self, earning_id: str) -> Optional[EarningRecord]:
        with self._reading():
            row = self.db.get(EarningRow, earning_id)
            return self._to_earning(row) if row else None

    def load_earnings(self, query: EarningQuery) -> list[EarningRecord]:
        stmt = select(EarningRow)
        if query.contract_id is not None:
            stmt = stmt.where(EarningRow.contract_id == query.contract_id)
        if query.company_id is not None:
            stmt = stmt.where(EarningRow.company_id == query.company_id)
        if query.settlement_id is not None:
            stmt = stmt.where(EarningRow.settlement_id == query.settlement_id)
        if query.unsettled_only:
            stmt = stmt.where(EarningRow.settlement_id.is_(None))
        if query.date_from is not None:
            stmt = stmt.where(EarningRow.income_date >= query.date_from)
        if query.date_to is not None:
            stmt = stmt.where(EarningRow.income_date < query.date_to)
        stmt = stmt.order_by(EarningRow.income_date, EarningRow.created_at, EarningRow.id)

        with self._reading():
            rows = self.db.execute(stmt).scalars().all()
            return [self._to_earning(row) for row in rows]

    def update_earning(self, record: EarningRecord) -> EarningRecord:
        try:
            with self.atomic():
                row = self.db.get(EarningRow, record.id)
                if row is None:
                    raise EarningNotFound(record.id)
                if row.settlement_id is not None:
                    raise AlreadySettled([record.id], row.settlement_id)
                for key, value in self._earning_values(record).items():
                    setattr(row, key, value)
                self.db.flush()
        except StorageFailure as e:
            if isinstance(e.__cause__, IntegrityError):
                raise DuplicateEarning(
                    record.contract_id, record.income_date, record.gross_income, record.platform.value
                ) from e.__cause__
            raise
        return record

    def _require_earnings(self, ids: list[str]) -> None:
        found = set(self.db.execute(select(EarningRow.id).where(EarningRow.id.in_(ids))).scalars())
        for earning_id in ids:
            if earning_id not in found:
                raise EarningNotFound(earning_id)

    def _conflicting(self, ids: list[str], settlement_id: str) -> list[str]:
        stmt = select(EarningRow.id).where(
            EarningRow.id.in_(ids),
            EarningRow.settlement_id.is_not(None),
            EarningRow.settlement_id != settlement_id,
        )
        return list(self.db.execute(stmt).scalars())

    def assign_earnings(self, earning_ids: Iterable[str], settlement_id: str) -> list[EarningRecord]:
        ids = list(dict.fromkeys(earning_ids))
        with self.atomic():
            self.db.flush()
            self._require_earnings(ids)
            # Single conditional UPDATE: the row count tells whether we won every row
            result = self.db.execute(
                update(EarningRow)
                .where(EarningRow.id.in_(ids), EarningRow.settlement_id.is_(None))
                .values(settlement_id=settlement_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != len(ids):
                taken = self._conflicting(ids, settlement_id) or ids
                raise AlreadySettled(taken, settlement_id)
            self.db.expire_all()
        return self.load_earnings(EarningQuery(settlement_id=settlement_id))

    def release_earnings(self, earning_ids: Iterable[str], settlement_id: str) -> list[EarningRecord]:
        ids = list(dict.fromkeys(earning_ids))
        with self.atomic():
            self.db.flush()
            self._require_earnings(ids)
            result = self.db.execute(
                update(EarningRow)
                .where(EarningRow.id.in_(ids), EarningRow.settlement_id == settlement_id)
                .values(settlement_id=None)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != len(ids):
                stmt = select(EarningRow.id).where(
                    EarningRow.id.in_(ids), EarningRow.settlement_id.is_not(None)
                )
                still_linked = set(self.db.execute(stmt).scalars())
                # rows we did release are unlinked now; the rest belonged elsewhere
                foreign = [i for i in ids if i in still_linked] or ids
                raise AlreadySettled(foreign, settlement_id)
            self.db.expire_all()
        with self._reading():
            rows = self.db.execute(select(EarningRow).where(EarningRow.id.in_(ids))).scalars().all()
            return [self._to_earning(row) for row in rows]

    @staticmethod
    def _to_earning(row: EarningRow) -> EarningRecord:
        record = EarningRecord.model_validate(row)
        return record.model_copy(update={"created_at": ensure_utc(record.created_at)})

    @staticmethod
    def _earning_values(record: EarningRecord) -> dict:
        values = record.model_dump()
        values["platform"] = record.platform.value
        return values

    # Settlements

    def _to_settlement(self, row: SettlementRow) -> Settlement:
        settlement = Settlement.model_validate(row)
        settlement.confirmed_at = ensure_utc(settlement.confirmed_at)
        settlement.created_at = ensure_utc(settlement.created_at)
        settlement.updated_at = ensure_utc(settlement.updated_at)
        settlement.earnings = self.load_earnings(EarningQuery(settlement_id=row.id))
        return settlement

    def add_settlement(self, settlement: Settlement) -> Settlement:
        with self.atomic():
            row = SettlementRow(id=settlement.id, status=settlement.status.value)
            for column in _SETTLEMENT_COLUMNS:
                setattr(row, column, getattr(settlement, column))
            self.db.add(row)
            self.db.flush()
        return self._to_settlement(row)

    def get_settlement(self, settlement_id: str) -> Optional[Settlement]:
        with self._reading():
            row = self.db.get(SettlementRow, settlement_id)
            return self._to_settlement(row) if row else None

    def save_settlement(self, settlement: Settlement,
                        expected_status: Optional[SettlementStatus] = None) -> Settlement:
        values = {column: getattr(settlement, column) for column in _SETTLEMENT_COLUMNS}
        values["status"] = settlement.status.value
        stmt = update(SettlementRow).where(SettlementRow.id == settlement.id)
        if expected_status is not None:
            # Conditional write: a concurrent status change makes the row count 0
            stmt = stmt.where(SettlementRow.status == expected_status.value)

        with self.atomic():
            self.db.flush()
            result = self.db.execute(
                stmt.values(**values).execution_options(synchronize_session=False)
            )
            self.db.expire_all()
            if result.rowcount != 1:
                row = self.db.get(SettlementRow, settlement.id)
                if row is None:
                    raise SettlementNotFound(settlement.id)
                raise InvalidTransition(
                    settlement.id, row.status, "update",
                    f"status changed from {expected_status.value}",
                )
        return self.get_settlement(settlement.id)

    def load_settlements(
        self, company_id: Optional[str] = None, status: Optional[SettlementStatus] = None
    ) -> list[Settlement]:
        stmt = select(SettlementRow)
        if company_id is not None:
            stmt = stmt.where(SettlementRow.company_id == company_id)
        if status is not None:
            stmt = stmt.where(SettlementRow.status == status.value)
        stmt = stmt.order_by(SettlementRow.period_start, SettlementRow.created_at, SettlementRow.id)
        with self._reading():
            rows = self.db.execute(stmt).scalars().all()
            return [self._to_settlement(row) for row in rows]

    # Expenses

    def add_expense(self, record: ExpenseRecord) -> ExpenseRecord:
        with self.atomic():
            values = record.model_dump()
            values["type"] = record.type.value
            self.db.add(ExpenseRow(**values))
            self.db.flush()
        return record

    def load_expenses(self, query: ExpenseQuery) -> list[ExpenseRecord]:
        stmt = select(ExpenseRow).where(ExpenseRow.company_id == query.company_id)
        if query.car_id is not None:
            stmt = stmt.where(ExpenseRow.car_id == query.car_id)
        if query.date_from is not None:
            stmt = stmt.where(ExpenseRow.date >= query.date_from)
        if query.date_to is not None:
            stmt = stmt.where(ExpenseRow.date <= query.date_to)
        stmt = stmt.order_by(ExpenseRow.date, ExpenseRow.id)
        with self._reading():
            rows = self.db.execute(stmt).scalars().all()
            return [ExpenseRecord.model_validate(row) for row in rows]
