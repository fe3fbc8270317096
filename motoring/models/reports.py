"""
Reporting Models

An aggregation is a pure function of (RecordSnapshot, AggregationRequest).
Both inputs are immutable so a request can key a cache.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from motoring.models.records import (
    Amount,
    DailyOdometerReading,
    FuelStop,
    Motorcycle,
    Order,
    SparePart,
    SubPeriod,
)


ALL_SELECTOR = "all"


def _all_is_none(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in ("", ALL_SELECTOR):
        return None
    return value


class AggregationRequest(BaseModel):
    """
    Filters for one dashboard aggregation.

    None (or "all") means no filter: every motorcycle, every month,
    the whole month. With no month selected, working days are counted
    for the month containing `today`.
    """

    model_config = ConfigDict(frozen=True)

    motorcycle_id: Optional[str] = None
    month: Optional[str] = Field(default=None, pattern=r"^\d{4}-\d{2}$")
    sub_period: Optional[SubPeriod] = None
    today: date = Field(default_factory=date.today)

    @field_validator("motorcycle_id", "month", "sub_period", mode="before")
    @classmethod
    def normalise_all(cls, v: Any) -> Any:
        return _all_is_none(v)

    @classmethod
    def default(cls, today: Optional[date] = None) -> "AggregationRequest":
        """Current month, current sub-period, every motorcycle."""
        today = today or date.today()
        return cls(
            month=f"{today.year:04d}-{today.month:02d}",
            sub_period=SubPeriod.FIRST_HALF if today.day <= 15 else SubPeriod.SECOND_HALF,
            today=today,
        )

    @property
    def period_selector(self) -> str:
        return self.sub_period.value if self.sub_period else ALL_SELECTOR


class RecordSnapshot(BaseModel):
    """One owner's records, loaded once and never mutated."""

    model_config = ConfigDict(frozen=True)

    orders: tuple[Order, ...] = ()
    spare_parts: tuple[SparePart, ...] = ()
    fuel_stops: tuple[FuelStop, ...] = ()
    odometer_readings: tuple[DailyOdometerReading, ...] = ()
    motorcycles: tuple[Motorcycle, ...] = ()


class MonthlyTrend(BaseModel):
    month_key: str
    label: str
    income: Amount = Decimal("0")
    expenses: Amount = Decimal("0")
    profit: Amount = Decimal("0")


class PeriodReport(BaseModel):
    """
    Dashboard figures for one AggregationRequest.

    Income ignores the motorcycle filter; expenses, distance and
    fuel price honour it.
    """

    request: AggregationRequest

    # Money
    total_income: Amount = Decimal("0")
    total_fuel_costs: Amount = Decimal("0")
    total_sparepart_costs: Amount = Decimal("0")
    total_expenses: Amount = Decimal("0")
    net_income: Amount = Decimal("0")

    # Activity
    total_orders: int = 0
    total_order_qty: Amount = Decimal("0")
    total_fuel_stops: int = 0
    total_distance_km: Amount = Decimal("0")
    average_fuel_price: Amount = Decimal("0")
    qty_by_label: dict[str, Amount] = Field(default_factory=dict)
    income_by_label: dict[str, Amount] = Field(default_factory=dict)

    # Calendar
    working_days: int = 0
    elapsed_working_days: int = 0

    # Series
    monthly_trends: list[MonthlyTrend] = Field(default_factory=list)
    net_income_per_month: dict[str, Amount] = Field(default_factory=dict)
    net_income_per_period: dict[str, Amount] = Field(default_factory=dict)


class ReminderStatus(str, Enum):
    DUE_SOON = "due_soon"
    OVERDUE = "overdue"


class ServiceReminder(BaseModel):
    """A spare part whose next service odometer is close or passed."""

    spare_part_id: Optional[str] = None
    part_name: str
    motorcycle_id: Optional[str] = None
    current_km: Amount
    next_service_km: Amount
    remaining_km: Amount
    status: ReminderStatus
