from enum import Enum


class PlatformType(str, Enum):
    """Platforms drivers earn income through."""

    UBER = "uber"
    BOLT = "bolt"
    SNEL_EEN_TAXI = "snel_een_taxi"
    SUMUP = "sumup"


class SettlementStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED_BY_DRIVER = "confirmed_by_driver"


class ExpenseType(str, Enum):
    """Vehicle expense categories, declared in report order."""

    APK = "apk"
    FUEL = "fuel"
    INSURANCE = "insurance"
    MAINTENANCE = "maintenance"
    OTHER = "other"
    REPAIR = "repair"
