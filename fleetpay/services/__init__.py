from fleetpay.services.ledger import EarningLedger
from fleetpay.services.settlement_engine import SettlementEngine
from fleetpay.services.expense_aggregator import ExpenseAggregator
from fleetpay.services.reporting import ReportingService

__all__ = ["EarningLedger", "SettlementEngine", "ExpenseAggregator", "ReportingService"]
