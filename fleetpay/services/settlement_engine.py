"""Settlement engine: builds settlements from unsettled earnings and drives
the driver confirmation workflow.

Totals are always derived from the earnings currently linked to a settlement:

    gross_amount = sum(earning.gross_income)
    net_payout   = gross_amount - rent_deduction - extra_costs

A negative net payout is allowed (the driver owes money) and is reported on
the returned ``SettlementResult`` instead of being raised.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional

from fleetpay.errors import (
    ImmutableAfterConfirmation,
    InvalidAmount,
    InvalidPeriod,
    InvalidTransition,
    NoEarningsInPeriod,
    SettlementNotFound,
)
from fleetpay.models.enums import SettlementStatus
from fleetpay.repositories.base import Store
from fleetpay.schemas.earning import EarningRecord
from fleetpay.schemas.identity import Actor
from fleetpay.schemas.settlement import (
    Settlement,
    SettlementCreate,
    SettlementResult,
    SettlementTotals,
)
from fleetpay.services.ledger import EarningLedger
from fleetpay.utils.date_utils import distinct_weeks, in_half_open, utc_now
from fleetpay.utils.money import require_money, round_money, sum_money

logger = logging.getLogger(__name__)


def rent_for_weeks(earnings: Iterable[EarningRecord], weekly_rent: Decimal) -> Decimal:
    """Weekly rent times the number of distinct earning weeks."""
    weeks = distinct_weeks(e.week_start for e in earnings)
    return round_money(weekly_rent * weeks)


def is_negative_payout(settlement: Settlement) -> bool:
    return settlement.net_payout < 0


class SettlementEngine:
    def __init__(self, store: Store, ledger: Optional[EarningLedger] = None,
                 clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.ledger = ledger or EarningLedger(store)
        self.clock = clock

    # Queries

    def get(self, settlement_id: str, company_id: Optional[str] = None) -> Settlement:
        settlement = self.store.get_settlement(settlement_id)
        if settlement is None or (company_id is not None and settlement.company_id != company_id):
            raise SettlementNotFound(settlement_id)
        return settlement

    def list_for_company(self, company_id: str,
                         status: Optional[SettlementStatus] = None) -> list[Settlement]:
        return self.store.load_settlements(company_id=company_id, status=status)

    def totals(self, settlements: Iterable[Settlement]) -> SettlementTotals:
        """Sum amounts over ``settlements`` and collect those with a negative payout."""
        settlements = list(settlements)
        return SettlementTotals(
            settlement_count=len(settlements),
            gross_amount=sum_money(s.gross_amount for s in settlements),
            rent_deduction=sum_money(s.rent_deduction for s in settlements),
            extra_costs=sum_money(s.extra_costs for s in settlements),
            net_payout=sum_money(s.net_payout for s in settlements),
            negative_payout_ids=[s.id for s in settlements if is_negative_payout(s)],
        )

    # Creation

    def _rent_deduction(self, data: SettlementCreate, earnings: list[EarningRecord]) -> Decimal:
        if data.rent_deduction is not None and data.weekly_rent is not None:
            raise InvalidAmount("Provide either rent_deduction or weekly_rent, not both")
        if data.rent_deduction is not None:
            return require_money(data.rent_deduction, "rent deduction")
        if data.weekly_rent is not None:
            return rent_for_weeks(earnings, require_money(data.weekly_rent, "weekly rent"))
        return Decimal("0.00")

    def create_settlement(self, data: SettlementCreate) -> SettlementResult:
        """Settle every unsettled earning of the contract in ``[period_start, period_end)``."""
        if data.period_start >= data.period_end:
            raise InvalidPeriod(
                f"Period end {data.period_end} must be after start {data.period_start}"
            )
        extra_costs = require_money(data.extra_costs, "extra costs")

        earnings = list(self.ledger.find_unsettled(
            data.contract_id, data.period_start, data.period_end, company_id=data.company_id
        ))
        if not earnings:
            logger.warning(
                "No unsettled earnings for contract %s in %s..%s",
                data.contract_id, data.period_start, data.period_end,
            )
            raise NoEarningsInPeriod(data.contract_id, data.period_start, data.period_end)

        rent_deduction = self._rent_deduction(data, earnings)
        gross_amount = sum_money(e.gross_income for e in earnings)
        net_payout = gross_amount - rent_deduction - extra_costs

        now = self.clock()
        settlement = Settlement(
            company_id=data.company_id,
            contract_id=data.contract_id,
            period_start=data.period_start,
            period_end=data.period_end,
            extra_costs=extra_costs,
            gross_amount=gross_amount,
            rent_deduction=rent_deduction,
            net_payout=net_payout,
            description=data.description.strip(),
            created_at=now,
            updated_at=now,
        )

        with self.store.atomic():
            self.store.add_settlement(settlement)
            self.ledger.mark_settled([e.id for e in earnings], settlement.id)

        created = self.get(settlement.id)
        negative = is_negative_payout(created)
        if negative:
            logger.warning(
                "Settlement %s for contract %s has a negative payout of %s",
                created.id, created.contract_id, created.net_payout,
            )
        logger.info(
            "Created settlement %s for contract %s with %d earnings (gross %s, net %s)",
            created.id, created.contract_id, len(created.earnings),
            created.gross_amount, created.net_payout,
        )
        return SettlementResult(settlement=created, negative_payout=negative)

    # Confirmation workflow

    def _save(self, settlement: Settlement, expected: SettlementStatus, action: str) -> Settlement:
        """Write ``settlement`` only if its stored status is still ``expected``."""
        try:
            return self.store.save_settlement(settlement, expected_status=expected)
        except InvalidTransition as e:
            logger.warning(
                "Settlement %s moved to %s while running %s", settlement.id, e.current, action
            )
            raise InvalidTransition(
                settlement.id, e.current, action, "status changed concurrently"
            ) from e

    def confirm(self, settlement_id: str, by_driver: bool,
                actor: Optional[Actor] = None) -> Settlement:
        """Pending -> ConfirmedByDriver. Only the assigned driver may confirm."""
        with self.store.atomic():
            settlement = self.get(settlement_id, actor.company_id if actor else None)

            if settlement.status == SettlementStatus.CONFIRMED_BY_DRIVER:
                logger.warning("Settlement %s is already confirmed", settlement_id)
                raise InvalidTransition(settlement_id, settlement.status.value, "confirm")
            elif settlement.status == SettlementStatus.PENDING:
                if not by_driver or (actor is not None and not actor.is_confirming_driver):
                    logger.warning("Rejected confirmation of settlement %s by non-driver", settlement_id)
                    raise InvalidTransition(
                        settlement_id, settlement.status.value, "confirm",
                        "confirmation must come from the assigned driver",
                    )
            else:
                raise InvalidTransition(settlement_id, settlement.status.value, "confirm")

            now = self.clock()
            settlement.status = SettlementStatus.CONFIRMED_BY_DRIVER
            settlement.confirmed_by_driver = True
            settlement.confirmed_at = now
            settlement.updated_at = now
            saved = self._save(settlement, SettlementStatus.PENDING, "confirm")
        logger.info("Settlement %s confirmed by driver", settlement_id)
        return saved

    def dispute(self, settlement_id: str, company_id: Optional[str] = None) -> Settlement:
        """ConfirmedByDriver -> Pending, reopening the settlement for correction."""
        with self.store.atomic():
            settlement = self.get(settlement_id, company_id)

            if settlement.status == SettlementStatus.PENDING:
                logger.warning("Cannot dispute pending settlement %s", settlement_id)
                raise InvalidTransition(settlement_id, settlement.status.value, "dispute")
            elif settlement.status != SettlementStatus.CONFIRMED_BY_DRIVER:
                raise InvalidTransition(settlement_id, settlement.status.value, "dispute")

            settlement.status = SettlementStatus.PENDING
            settlement.confirmed_by_driver = False
            settlement.confirmed_at = None
            settlement.updated_at = self.clock()
            saved = self._save(settlement, SettlementStatus.CONFIRMED_BY_DRIVER, "dispute")
        logger.info("Settlement %s disputed and reopened", settlement_id)
        return saved

    # Corrections

    def _require_editable(self, settlement: Settlement) -> None:
        if settlement.is_confirmed:
            raise ImmutableAfterConfirmation(settlement.id)

    def recompute(self, settlement_id: str) -> Settlement:
        """Re-derive gross and net from the earnings currently linked."""
        with self.store.atomic():
            settlement = self.get(settlement_id)
            self._require_editable(settlement)

            earnings = self.ledger.earnings_for_settlement(settlement_id)
            settlement.earnings = earnings
            settlement.gross_amount = sum_money(e.gross_income for e in earnings)
            settlement.net_payout = (
                settlement.gross_amount - settlement.rent_deduction - settlement.extra_costs
            )
            settlement.updated_at = self.clock()
            try:
                saved = self._save(settlement, SettlementStatus.PENDING, "recompute")
            except InvalidTransition as e:
                # Confirmed between our read and write
                raise ImmutableAfterConfirmation(settlement_id) from e
        logger.info(
            "Recomputed settlement %s: gross %s, net %s",
            settlement_id, saved.gross_amount, saved.net_payout,
        )
        return saved

    def add_earnings(self, settlement_id: str, earning_ids: Iterable[str]) -> Settlement:
        """Link further earnings of the same contract and period to a pending settlement."""
        settlement = self.get(settlement_id)
        self._require_editable(settlement)

        ids = list(earning_ids)
        for earning_id in ids:
            earning = self.ledger.get(earning_id, company_id=settlement.company_id)
            if earning.contract_id != settlement.contract_id:
                raise InvalidTransition(
                    settlement_id, settlement.status.value, "add earnings",
                    f"earning {earning_id} belongs to contract {earning.contract_id}",
                )
            if not in_half_open(earning.income_date, settlement.period_start, settlement.period_end):
                raise InvalidPeriod(
                    f"Earning {earning_id} on {earning.income_date} is outside "
                    f"{settlement.period_start}..{settlement.period_end}"
                )

        with self.store.atomic():
            self.ledger.mark_settled(ids, settlement_id)
            return self.recompute(settlement_id)

    def remove_earnings(self, settlement_id: str, earning_ids: Iterable[str]) -> Settlement:
        """Unlink earnings from a pending settlement, returning them to the ledger."""
        settlement = self.get(settlement_id)
        self._require_editable(settlement)

        ids = set(earning_ids)
        if set(settlement.earning_ids) <= ids:
            raise NoEarningsInPeriod(
                settlement.contract_id, settlement.period_start, settlement.period_end
            )

        with self.store.atomic():
            self.ledger.release(ids, settlement_id)
            return self.recompute(settlement_id)
