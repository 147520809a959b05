from fleetpay.schemas.earning import (
    EarningCreate,
    EarningRecord,
)
from fleetpay.schemas.settlement import (
    SettlementCreate,
    Settlement,
    SettlementResult,
    SettlementTotals
)
from fleetpay.schemas.expense import (
    ExpenseCreate,
    ExpenseRecord,
    ExpenseReportItem,
    ExpenseReportSummary,
    VatReportItem
)
from fleetpay.schemas.report import PagedResponse
from fleetpay.schemas.identity import Actor

__all__ = [
    "EarningCreate", "EarningRecord",
    "SettlementCreate", "Settlement", "SettlementResult", "SettlementTotals",
    "ExpenseCreate", "ExpenseRecord", "ExpenseReportItem", "ExpenseReportSummary", "VatReportItem",
    "PagedResponse", "Actor",
]
