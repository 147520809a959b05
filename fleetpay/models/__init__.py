from fleetpay.models.enums import PlatformType, SettlementStatus, ExpenseType
from fleetpay.models.earning import Earning
from fleetpay.models.settlement import Settlement
from fleetpay.models.expense import Expense

__all__ = ["PlatformType", "SettlementStatus", "ExpenseType", "Earning", "Settlement", "Expense"]
