from fleetpay.utils.money import compute_btw, compute_inclusive_vat, sum_money, to_money
from fleetpay.utils.date_utils import week_bounds, quarter_of, ensure_utc

__all__ = [
    "compute_btw", "compute_inclusive_vat", "sum_money", "to_money",
    "week_bounds", "quarter_of", "ensure_utc",
]
