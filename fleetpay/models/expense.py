import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Numeric, Date
from sqlalchemy.orm import Mapped, mapped_column

from fleetpay.database import Base


class Expense(Base):
    __tablename__ = "expenses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id: Mapped[str] = mapped_column(String(36), index=True)
    car_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)
    car_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    type: Mapped[str] = mapped_column(String(20))  # apk | fuel | insurance | maintenance | other | repair
    date: Mapped[date] = mapped_column(Date, index=True)
    net_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    vat_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    gross_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2))
