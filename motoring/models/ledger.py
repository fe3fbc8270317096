"""
Book-Closing Ledger Models

A closed period is an immutable summary of one owner's orders inside one
semi-monthly window. Closing never touches the orders themselves.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from motoring.models.records import (
    Amount,
    RecordBase,
    SubPeriod,
    coerce_calendar_date,
)


class ClosedPeriod(RecordBase):
    """
    A closed book entry (`bookHistory`).

    end_date is exclusive: the 16th for the first half, the first day
    of the next month for the second half.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
    )

    year_month: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}$",
        alias="period",
        validation_alias=AliasChoices("period", "year_month"),
    )
    sub_period: SubPeriod = Field(
        ...,
        alias="subPeriod",
        validation_alias=AliasChoices("subPeriod", "sub_period"),
    )
    start_date: date = Field(
        ...,
        alias="startDate",
        validation_alias=AliasChoices("startDate", "start_date"),
    )
    end_date: date = Field(
        ...,
        alias="endDate",
        validation_alias=AliasChoices("endDate", "end_date"),
    )
    total_orders: int = Field(
        default=0,
        ge=0,
        alias="totalOrders",
        validation_alias=AliasChoices("totalOrders", "total_orders"),
        description="Number of order records summarised"
    )
    qty_by_label: dict[str, Amount] = Field(
        default_factory=dict,
        alias="qtyByLabel",
        validation_alias=AliasChoices("qtyByLabel", "qty_by_label"),
    )
    nominal_by_label: dict[str, Amount] = Field(
        default_factory=dict,
        alias="nominalByLabel",
        validation_alias=AliasChoices("nominalByLabel", "nominal_by_label"),
    )
    total_qty: Amount = Field(
        default=Decimal("0"),
        alias="totalQty",
        validation_alias=AliasChoices("totalQty", "total_qty"),
    )
    total_nominal: Amount = Field(
        default=Decimal("0"),
        alias="totalNominal",
        validation_alias=AliasChoices("totalNominal", "total_nominal"),
    )

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def normalise_bounds(cls, v: Any) -> Optional[date]:
        return coerce_calendar_date(v)

    def contains(self, day: date) -> bool:
        return self.start_date <= day < self.end_date

    def matches(self, year_month: str, sub_period: SubPeriod) -> bool:
        return self.year_month == year_month and self.sub_period == SubPeriod(sub_period)


class CloseBookStatus(str, Enum):
    CLOSED = "closed"
    NOTHING_TO_CLOSE = "nothing_to_close"
    ALREADY_CLOSED = "already_closed"


class CloseBookResult(BaseModel):
    """
    Outcome of a close-book request.

    Only CLOSED carries a new ledger entry; the other statuses are
    informational and nothing was written.
    """

    status: CloseBookStatus
    message: str
    closed_period: Optional[ClosedPeriod] = None

    @property
    def was_closed(self) -> bool:
        return self.status == CloseBookStatus.CLOSED
