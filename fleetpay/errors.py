"""Error kinds raised by the settlement core."""
from decimal import Decimal
from typing import Iterable, Optional


class FleetPayError(Exception):
    """Base class for every business-rule failure in fleetpay."""


class InvalidAmount(FleetPayError, ValueError):
    """A monetary input is malformed, negative or out of range."""

    def __init__(self, message: str, value: object = None):
        super().__init__(message)
        self.value = value


class InvalidPeriod(FleetPayError, ValueError):
    """Dates are out of order (week, settlement period or report range)."""


class DuplicateEarning(FleetPayError):
    def __init__(self, contract_id: str, income_date, gross_income: Decimal, platform: str):
        super().__init__(
            f"Earning for contract {contract_id} on {income_date} "
            f"({platform}, {gross_income}) already exists"
        )
        self.contract_id = contract_id
        self.income_date = income_date
        self.gross_income = gross_income
        self.platform = platform


class AlreadySettled(FleetPayError):
    """An earning is already linked to a settlement (or not to the expected one)."""

    def __init__(self, earning_ids: Iterable[str], settlement_id: Optional[str] = None):
        self.earning_ids = sorted(earning_ids)
        self.settlement_id = settlement_id
        super().__init__(
            f"Earnings already settled: {', '.join(self.earning_ids)}"
        )


class NoEarningsInPeriod(FleetPayError):
    def __init__(self, contract_id: str, period_start, period_end):
        super().__init__(
            f"No unsettled earnings for contract {contract_id} "
            f"between {period_start} and {period_end}"
        )
        self.contract_id = contract_id
        self.period_start = period_start
        self.period_end = period_end


class InvalidTransition(FleetPayError):
    def __init__(self, settlement_id: str, current: str, action: str, reason: str = ""):
        message = f"Cannot {action} settlement {settlement_id} in status {current}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.settlement_id = settlement_id
        self.current = current
        self.action = action


class ImmutableAfterConfirmation(FleetPayError):
    def __init__(self, settlement_id: str):
        super().__init__(f"Settlement {settlement_id} is confirmed and frozen")
        self.settlement_id = settlement_id


class NotFound(FleetPayError, LookupError):
    pass


class EarningNotFound(NotFound):
    def __init__(self, earning_id: str):
        super().__init__(f"Earning {earning_id} not found")
        self.earning_id = earning_id


class SettlementNotFound(NotFound):
    def __init__(self, settlement_id: str):
        super().__init__(f"Settlement {settlement_id} not found")
        self.settlement_id = settlement_id


class StorageFailure(FleetPayError):
    """The persistence collaborator failed; the cause is chained, not interpreted."""
