"""Read-only shaping of settlements and expense summaries for dashboards and PDF export."""
from decimal import Decimal
from typing import Optional, Sequence

from fleetpay.config import EXPENSE_TYPE_LABELS, PLATFORM_LABELS, settings
from fleetpay.schemas.earning import EarningRecord
from fleetpay.schemas.expense import ExpenseReportSummary
from fleetpay.schemas.report import PagedResponse
from fleetpay.schemas.settlement import Settlement, SettlementTotals


def _money(value: Decimal) -> str:
    return str(value)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


class ReportingService:
    """Builds the view structures presentation layers consume. No business rules live here."""

    def earning_view(self, earning: EarningRecord) -> dict:
        return {
            "earningId": earning.id,
            "contractId": earning.contract_id,
            "companyId": earning.company_id,
            "settlementId": earning.settlement_id,
            "platform": earning.platform.value,
            "platformLabel": PLATFORM_LABELS[earning.platform.value],
            "grossIncome": _money(earning.gross_income),
            "btwPercentage": _money(earning.btw_percentage),
            "btwAmount": _money(earning.btw_amount),
            "netIncome": _money(earning.net_income),
            "incomeDate": _iso(earning.income_date),
            "weekStart": _iso(earning.week_start),
            "weekEnd": _iso(earning.week_end),
        }

    def settlement_view(self, settlement: Settlement) -> dict:
        return {
            "settlementId": settlement.id,
            "companyId": settlement.company_id,
            "contractId": settlement.contract_id,
            "periodStart": _iso(settlement.period_start),
            "periodEnd": _iso(settlement.period_end),
            "extraCosts": _money(settlement.extra_costs),
            "grossAmount": _money(settlement.gross_amount),
            "rentDeduction": _money(settlement.rent_deduction),
            "netPayout": _money(settlement.net_payout),
            "btwTotal": _money(settlement.btw_total),
            "netIncomeTotal": _money(settlement.net_income_total),
            "description": settlement.description,
            "status": settlement.status.value,
            "confirmedByDriver": settlement.confirmed_by_driver,
            "confirmedAt": _iso(settlement.confirmed_at),
            "earnings": [self.earning_view(e) for e in settlement.earnings],
        }

    def settlements_page(self, settlements: Sequence[Settlement], page_number: int = 1,
                         page_size: Optional[int] = None) -> PagedResponse[dict]:
        page_size = page_size or settings.DEFAULT_PAGE_SIZE
        page_number = max(page_number, 1)
        offset = (page_number - 1) * page_size
        window = settlements[offset:offset + page_size]
        return PagedResponse[dict](
            items=[self.settlement_view(s) for s in window],
            page_number=page_number,
            page_size=page_size,
            total_count=len(settlements),
        )

    def expense_report_view(self, summary: ExpenseReportSummary) -> dict:
        return {
            "carId": summary.car_id,
            "carName": summary.car_name,
            "companyId": summary.company_id,
            "fromDate": _iso(summary.from_date),
            "toDate": _iso(summary.to_date),
            "totalNetAmount": _money(summary.total_net_amount),
            "totalVatAmount": _money(summary.total_vat_amount),
            "totalGrossAmount": _money(summary.total_gross_amount),
            "grandTotal": _money(summary.grand_total),
            "byType": [
                {
                    "type": item.type.value,
                    "label": EXPENSE_TYPE_LABELS[item.type.value],
                    "totalNetAmount": _money(item.total_net_amount),
                    "totalVatAmount": _money(item.total_vat_amount),
                    "totalGrossAmount": _money(item.total_gross_amount),
                }
                for item in summary.by_type
            ],
        }

    def totals_view(self, totals: SettlementTotals) -> dict:
        return {
            "settlementCount": totals.settlement_count,
            "grossAmount": _money(totals.gross_amount),
            "rentDeduction": _money(totals.rent_deduction),
            "extraCosts": _money(totals.extra_costs),
            "netPayout": _money(totals.net_payout),
        }

    def payout_overview(self, settlements: Sequence[Settlement], totals: SettlementTotals,
                        expense_summary: Optional[ExpenseReportSummary] = None) -> dict:
        """Combined dashboard payload: settlements, the engine's totals and optionally expenses."""
        overview = {
            "settlements": [self.settlement_view(s) for s in settlements],
            "totals": self.totals_view(totals),
            "negativePayoutIds": list(totals.negative_payout_ids),
        }
        if expense_summary is not None:
            overview["expenses"] = self.expense_report_view(expense_summary)
        return overview
