import uuid
from datetime import date as date_type
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from fleetpay.config import settings
from fleetpay.models.enums import ExpenseType


class ExpenseCreate(BaseModel):
    """An expense as entered by the owner: a VAT-inclusive amount and a rate."""

    date: date_type = Field(..., description="Expense date")
    car_id: Optional[str] = Field(None, description="Vehicle the expense belongs to")
    car_name: Optional[str] = Field(None, description="Display name of the vehicle")
    company_id: str = Field(..., description="Owning company")
    type: ExpenseType = Field(..., description="Expense category")
    amount: Decimal = Field(..., description="Total paid, VAT included")
    vat_percent: Decimal = Field(default_factory=lambda: settings.DEFAULT_VAT_PERCENT)


class ExpenseRecord(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    date: date_type
    car_id: Optional[str] = None
    car_name: Optional[str] = None
    company_id: str
    type: ExpenseType
    net_amount: Decimal
    vat_amount: Decimal
    gross_amount: Decimal


class ExpenseReportItem(BaseModel):
    type: ExpenseType
    total_net_amount: Decimal = Decimal("0.00")
    total_vat_amount: Decimal = Decimal("0.00")
    total_gross_amount: Decimal = Decimal("0.00")


class ExpenseReportSummary(BaseModel):
    car_id: Optional[str] = None
    car_name: Optional[str] = None
    company_id: str
    from_date: date_type
    to_date: date_type
    total_net_amount: Decimal = Decimal("0.00")
    total_vat_amount: Decimal = Decimal("0.00")
    total_gross_amount: Decimal = Decimal("0.00")
    by_type: list[ExpenseReportItem] = []

    @property
    def grand_total(self) -> Decimal:
        return self.total_gross_amount


class VatReportItem(BaseModel):
    car_id: Optional[str] = None
    car_name: Optional[str] = None
    year: int
    quarter: int = Field(..., ge=1, le=4)
    total_vat: Decimal
