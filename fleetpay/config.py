import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from decimal import Decimal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    DATABASE_URL: str = Field(
        default="sqlite:///./fleetpay.db",
        description="Database connection URL"
    )

    # Tax configuration
    DEFAULT_BTW_PERCENTAGE: Decimal = Field(default=Decimal("21"), ge=0, le=100)
    DEFAULT_VAT_PERCENT: Decimal = Field(default=Decimal("21"), ge=0, le=100)
    MONEY_DECIMAL_PLACES: int = Field(default=2, ge=0, le=6)

    # Reporting configuration
    DEFAULT_PAGE_SIZE: int = Field(default=20, ge=1, le=500)

    LOG_LEVEL: str = Field(default="INFO", description="Root log level for scripts")


settings = Settings()


# Display labels used by reporting views
PLATFORM_LABELS = {
    "uber": "Uber",
    "bolt": "Bolt",
    "snel_een_taxi": "SnelEenTaxi",
    "sumup": "SumUp",
}

EXPENSE_TYPE_LABELS = {
    "apk": "APK",
    "fuel": "Fuel",
    "insurance": "Insurance",
    "maintenance": "Maintenance",
    "other": "Other",
    "repair": "Repair",
}


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for command line entry points."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
