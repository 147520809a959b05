import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from fleetpay.config import settings
from fleetpay.models.enums import PlatformType
from fleetpay.utils.date_utils import utc_now


class EarningBase(BaseModel):
    contract_id: str = Field(..., description="Contract the driver earned under")
    company_id: str = Field(..., description="Owning company")
    platform: PlatformType = Field(..., description="Platform the payment came from")
    gross_income: Decimal = Field(..., description="Gross income including BTW")
    btw_percentage: Decimal = Field(
        default_factory=lambda: settings.DEFAULT_BTW_PERCENTAGE,
        description="BTW percentage applied to the gross income",
    )
    income_date: date = Field(..., description="Date the income was earned")
    week_start: date = Field(..., description="First day of the earning week")
    week_end: date = Field(..., description="Last day of the earning week")


class EarningCreate(EarningBase):
    pass


class EarningRecord(EarningBase):
    """A stored earning. Frozen: changes produce a new copy through the ledger."""

    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    btw_amount: Decimal
    net_income: Decimal
    settlement_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_settled(self) -> bool:
        return self.settlement_id is not None

    @property
    def duplicate_key(self) -> tuple:
        return (self.contract_id, self.income_date, self.gross_income, self.platform)
