"""Fixed-point money arithmetic and BTW/VAT primitives."""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable

from fleetpay.config import settings
from fleetpay.errors import InvalidAmount

HUNDRED = Decimal("100")
# Matches the scale of the stored btw_percentage column
PERCENTAGE_QUANTUM = Decimal("0.0001")


def _quantum() -> Decimal:
    return Decimal(1).scaleb(-settings.MONEY_DECIMAL_PLACES)


def as_decimal(value, field: str = "amount") -> Decimal:
    """Coerce int/str/Decimal to Decimal. Floats are refused to avoid binary drift."""
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmount(f"{field} must be a decimal, int or string, got {type(value).__name__}", value)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidAmount(f"{field} is not a valid amount: {value!r}", value)
    if not result.is_finite():
        raise InvalidAmount(f"{field} must be finite", value)
    return result


def round_money(value: Decimal) -> Decimal:
    """Round half away from zero to the configured number of places."""
    return value.quantize(_quantum(), rounding=ROUND_HALF_UP)


def to_money(value, field: str = "amount") -> Decimal:
    return round_money(as_decimal(value, field))


def require_money(value, field: str = "amount", allow_negative: bool = False) -> Decimal:
    """Validate a monetary input and normalise it to the money quantum.

    Raises InvalidAmount when the value is negative (unless allowed) or carries
    more decimal places than the money quantum.
    """
    amount = as_decimal(value, field)
    if not allow_negative and amount < 0:
        raise InvalidAmount(f"{field} must be non-negative, got {amount}", value)
    rounded = round_money(amount)
    if rounded != amount:
        raise InvalidAmount(
            f"{field} has more than {settings.MONEY_DECIMAL_PLACES} decimal places: {amount}", value
        )
    return rounded


def require_percentage(value, field: str = "percentage") -> Decimal:
    percentage = as_decimal(value, field)
    if percentage < 0 or percentage > HUNDRED:
        raise InvalidAmount(f"{field} must be between 0 and 100, got {percentage}", value)
    if percentage.quantize(PERCENTAGE_QUANTUM, rounding=ROUND_HALF_UP) != percentage:
        raise InvalidAmount(f"{field} has more than 4 decimal places: {percentage}", value)
    return percentage


def compute_btw(gross, percentage) -> tuple[Decimal, Decimal]:
    """Split a gross income into (btw_amount, net_income).

    btw_amount = round(gross * percentage / 100, 2) and
    net_income = gross - btw_amount, so the two always add back to gross.
    """
    gross_amount = require_money(gross, "gross income")
    rate = require_percentage(percentage, "btw percentage")

    btw_amount = round_money(gross_amount * rate / HUNDRED)
    net_income = gross_amount - btw_amount
    return btw_amount, round_money(net_income)


def compute_inclusive_vat(amount, vat_percent) -> tuple[Decimal, Decimal]:
    """Extract the VAT contained in a VAT-inclusive amount: (vat_amount, net_amount)."""
    gross_amount = require_money(amount, "expense amount")
    rate = require_percentage(vat_percent, "vat percent")

    vat_amount = round_money(gross_amount * rate / (HUNDRED + rate))
    net_amount = gross_amount - vat_amount
    return vat_amount, round_money(net_amount)


def sum_money(values: Iterable[Decimal]) -> Decimal:
    """Exact decimal sum; an empty input sums to 0.00."""
    total = sum(values, Decimal("0"))
    return round_money(total)
