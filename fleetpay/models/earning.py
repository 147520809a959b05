import uuid
from datetime import datetime, date
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, DateTime, Numeric, Date, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from fleetpay.database import Base


class Earning(Base):
    __tablename__ = "earnings"
    __table_args__ = (
        UniqueConstraint(
            "contract_id", "income_date", "gross_income", "platform",
            name="uq_earnings_contract_date_gross_platform",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    contract_id: Mapped[str] = mapped_column(String(36), index=True)
    company_id: Mapped[str] = mapped_column(String(36), index=True)
    platform: Mapped[str] = mapped_column(String(20))  # uber | bolt | snel_een_taxi | sumup
    gross_income: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    btw_percentage: Mapped[Decimal] = mapped_column(Numeric(7, 4))
    btw_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    net_income: Mapped[Decimal] = mapped_column(Numeric(18, 2))
    income_date: Mapped[date] = mapped_column(Date, index=True)
    week_start: Mapped[date] = mapped_column(Date)
    week_end: Mapped[date] = mapped_column(Date)
    settlement_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("settlements.id"),
        nullable=True,
        index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )
