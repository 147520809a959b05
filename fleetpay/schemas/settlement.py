import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from fleetpay.models.enums import SettlementStatus
from fleetpay.schemas.earning import EarningRecord
from fleetpay.utils.date_utils import utc_now
from fleetpay.utils.money import sum_money

NEGATIVE_PAYOUT = "NegativePayout"


class SettlementCreate(BaseModel):
    contract_id: str = Field(..., description="Contract being settled")
    company_id: str = Field(..., description="Owning company")
    period_start: date = Field(..., description="Inclusive start of the period")
    period_end: date = Field(..., description="Exclusive end of the period")
    extra_costs: Decimal = Field(default=Decimal("0"), description="Additional costs charged to the driver")
    rent_deduction: Optional[Decimal] = Field(None, description="Explicit rent deduction")
    weekly_rent: Optional[Decimal] = Field(
        None, description="Weekly rent, multiplied by the number of distinct earning weeks"
    )
    description: str = Field(default="", max_length=500, description="Free text shown on the payout statement")


class Settlement(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    company_id: str
    contract_id: str
    period_start: date
    period_end: date
    extra_costs: Decimal = Decimal("0.00")
    gross_amount: Decimal = Decimal("0.00")
    rent_deduction: Decimal = Decimal("0.00")
    net_payout: Decimal = Decimal("0.00")
    description: str = ""
    status: SettlementStatus = SettlementStatus.PENDING
    confirmed_by_driver: bool = False
    confirmed_at: Optional[datetime] = None
    earnings: list[EarningRecord] = []
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def earning_ids(self) -> list[str]:
        return [e.id for e in self.earnings]

    @property
    def btw_total(self) -> Decimal:
        return sum_money(e.btw_amount for e in self.earnings)

    @property
    def net_income_total(self) -> Decimal:
        return sum_money(e.net_income for e in self.earnings)

    @property
    def is_confirmed(self) -> bool:
        return self.status == SettlementStatus.CONFIRMED_BY_DRIVER


class SettlementResult(BaseModel):
    """Outcome of creating a settlement; negative payouts are flagged, not rejected."""

    settlement: Settlement
    negative_payout: bool = False

    @property
    def flags(self) -> tuple[str, ...]:
        return (NEGATIVE_PAYOUT,) if self.negative_payout else ()


class SettlementTotals(BaseModel):
    """Sums over a set of settlements, as shown on the payout overview."""

    settlement_count: int = 0
    gross_amount: Decimal = Decimal("0.00")
    rent_deduction: Decimal = Decimal("0.00")
    extra_costs: Decimal = Decimal("0.00")
    net_payout: Decimal = Decimal("0.00")
    negative_payout_ids: list[str] = []
