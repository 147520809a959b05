"""Expense aggregation by category and quarter for owner reports."""
import logging
from collections import defaultdict
from datetime import date
from typing import Optional, Union

from fleetpay.errors import InvalidAmount, InvalidPeriod
from fleetpay.repositories.base import ExpenseQuery, Store
from fleetpay.schemas.expense import (
    ExpenseCreate,
    ExpenseRecord,
    ExpenseReportItem,
    ExpenseReportSummary,
    VatReportItem,
)
from fleetpay.utils.date_utils import quarter_of
from fleetpay.utils.money import compute_inclusive_vat, require_money, sum_money

logger = logging.getLogger(__name__)


class ExpenseAggregator:
    def __init__(self, store: Store):
        self.store = store

    def record(self, expense: Union[ExpenseCreate, ExpenseRecord]) -> ExpenseRecord:
        """Store an expense, enforcing gross = net + vat."""
        if isinstance(expense, ExpenseCreate):
            vat_amount, net_amount = compute_inclusive_vat(expense.amount, expense.vat_percent)
            expense = ExpenseRecord(
                date=expense.date,
                car_id=expense.car_id,
                car_name=expense.car_name,
                company_id=expense.company_id,
                type=expense.type,
                net_amount=net_amount,
                vat_amount=vat_amount,
                gross_amount=net_amount + vat_amount,
            )
        else:
            net_amount = require_money(expense.net_amount, "net amount")
            vat_amount = require_money(expense.vat_amount, "vat amount")
            gross_amount = require_money(expense.gross_amount, "gross amount")
            if net_amount + vat_amount != gross_amount:
                raise InvalidAmount(
                    f"Expense gross {gross_amount} does not equal net {net_amount} + vat {vat_amount}",
                    gross_amount,
                )
            expense = expense.model_copy(update={
                "net_amount": net_amount, "vat_amount": vat_amount, "gross_amount": gross_amount,
            })

        stored = self.store.add_expense(expense)
        logger.info(
            "Recorded %s expense %s for company %s (gross %s)",
            stored.type.value, stored.id, stored.company_id, stored.gross_amount,
        )
        return stored

    def summarize(self, company_id: str, car_id: Optional[str],
                  from_date: date, to_date: date) -> ExpenseReportSummary:
        """Totals and per-type breakdown over ``[from_date, to_date]``.

        ``car_id=None`` covers every vehicle of the company. An empty range
        yields zero totals and an empty breakdown.
        """
        if from_date > to_date:
            raise InvalidPeriod(f"Report start {from_date} is after end {to_date}")

        expenses = self.store.load_expenses(
            ExpenseQuery(company_id=company_id, car_id=car_id, date_from=from_date, date_to=to_date)
        )

        grouped: dict = defaultdict(list)
        for expense in expenses:
            grouped[expense.type].append(expense)

        by_type = [
            ExpenseReportItem(
                type=expense_type,
                total_net_amount=sum_money(e.net_amount for e in items),
                total_vat_amount=sum_money(e.vat_amount for e in items),
                total_gross_amount=sum_money(e.gross_amount for e in items),
            )
            for expense_type, items in sorted(grouped.items(), key=lambda kv: kv[0].value)
        ]

        car_name = None
        if car_id is not None:
            car_name = next((e.car_name for e in expenses if e.car_name), None)

        # Grand totals are summed over the groups so they always agree with the breakdown
        return ExpenseReportSummary(
            car_id=car_id,
            car_name=car_name,
            company_id=company_id,
            from_date=from_date,
            to_date=to_date,
            total_net_amount=sum_money(i.total_net_amount for i in by_type),
            total_vat_amount=sum_money(i.total_vat_amount for i in by_type),
            total_gross_amount=sum_money(i.total_gross_amount for i in by_type),
            by_type=by_type,
        )

    def vat_by_quarter(self, company_id: str, year: int,
                       car_id: Optional[str] = None) -> list[VatReportItem]:
        """VAT paid per car and quarter, for the quarterly VAT return."""
        expenses = self.store.load_expenses(
            ExpenseQuery(
                company_id=company_id,
                car_id=car_id,
                date_from=date(year, 1, 1),
                date_to=date(year, 12, 31),
            )
        )

        grouped: dict = defaultdict(list)
        names: dict = {}
        for expense in expenses:
            key = (expense.car_id or "", quarter_of(expense.date))
            grouped[key].append(expense.vat_amount)
            if expense.car_name:
                names.setdefault(expense.car_id, expense.car_name)

        return [
            VatReportItem(
                car_id=car or None,
                car_name=names.get(car or None),
                year=year,
                quarter=quarter,
                total_vat=sum_money(amounts),
            )
            for (car, quarter), amounts in sorted(grouped.items())
        ]
