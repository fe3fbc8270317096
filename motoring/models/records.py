"""
Core Record Models for Motoring

These models define the schemas for every record a rider keeps:
orders (income), spare parts and fuel stops (expenses), daily odometer
readings and motorcycles.

They are designed to:
1. Read the stored document format as-is (camelCase / legacy field names)
2. Keep computed fields (totals) consistent on every construction
3. Be serializable for storage, backups and logging

DESIGN DECISION: Python attribute names describe the domain
(quantity, unit_rate); aliases carry the stored names (qty, tarif).
Models accept either, and dump with aliases when talking to storage.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)


# =============================================================================
# VALUE COERCION - shared by models and the date-resolution policy
# =============================================================================

_EPOCH = datetime(1970, 1, 1)


def _decimal_to_number(value: Decimal) -> float:
    """JSON numbers for amounts: integers stay integers."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


# Money and quantities are Decimals in Python and plain numbers in JSON
Amount = Annotated[Decimal, PlainSerializer(_decimal_to_number, when_used="json")]


def coerce_timestamp(value: Any) -> Optional[datetime]:
    """
    Normalise a stored timestamp to a naive UTC datetime.

    Accepts datetimes, ISO strings and the `{seconds, nanoseconds}`
    objects older exports contain.
    """
    if value is None or value == "":
        return None
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if seconds is None:
            raise ValueError(f"Unrecognised timestamp object: {value}")
        nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
        return _EPOCH + timedelta(seconds=float(seconds) + float(nanos) / 1e9)
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    raise ValueError(f"Unrecognised timestamp: {value!r}")


def coerce_calendar_date(value: Any) -> Optional[date]:
    """Normalise a stored calendar day (date, datetime, ISO string, timestamp)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime) or isinstance(value, dict):
        return coerce_timestamp(value).date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if len(text) > 10:
            # Full timestamps: the calendar day is the UTC one
            return coerce_timestamp(text).date()
        return date.fromisoformat(text)
    raise ValueError(f"Unrecognised date: {value!r}")


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# =============================================================================
# ENUMS
# =============================================================================

class RecordKind(str, Enum):
    """
    Record kinds kept in the store.

    Values are the collection names used by stored data and backups.
    """
    ORDER = "orders"
    SPARE_PART = "spareparts"
    FUEL_STOP = "fuelStops"
    ODOMETER_READING = "dailyKmHistory"
    MOTORCYCLE = "motorcycles"
    CLOSED_PERIOD = "bookHistory"


class OrderLabel(str, Enum):
    """Order tag used for separate sub-totals."""
    KLIK = "klik"
    PAKET = "paket"


class SubPeriod(str, Enum):
    """
    Semi-monthly accounting window.

    FIRST_HALF covers days 1-15, SECOND_HALF day 16 to the month's last day.
    """
    FIRST_HALF = "1-15"
    SECOND_HALF = "16-31"


# =============================================================================
# BASE MODELS
# =============================================================================

class RecordBase(BaseModel):
    """Fields every stored record carries."""

    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    id: Optional[str] = Field(
        default=None,
        description="Store-assigned identifier (None until inserted)"
    )
    owner_id: str = Field(
        ...,
        min_length=1,
        alias="userId",
        validation_alias=AliasChoices("userId", "owner_id"),
        description="Owning user"
    )
    created_at: Optional[datetime] = Field(
        default=None,
        alias="createdAt",
        validation_alias=AliasChoices("createdAt", "created_at"),
        description="Creation timestamp (naive UTC)"
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        alias="updatedAt",
        validation_alias=AliasChoices("updatedAt", "updated_at"),
    )

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def normalise_timestamps(cls, v: Any) -> Optional[datetime]:
        return coerce_timestamp(v)

    def to_store_dict(self) -> dict:
        """Dump with stored field names, JSON-compatible values."""
        return self.model_dump(mode="json", by_alias=True)


class DatedRecord(RecordBase):
    """
    A record tied to a calendar day.

    The explicit day may be missing on old data; reports then fall back
    to the creation timestamp (see reports.periods.resolve_record_date).
    """

    record_date: Optional[date] = Field(
        default=None,
        alias="date",
        validation_alias=AliasChoices("tanggal", "date", "record_date"),
        description="Calendar day of the record"
    )

    @field_validator("record_date", mode="before")
    @classmethod
    def normalise_record_date(cls, v: Any) -> Optional[date]:
        return coerce_calendar_date(v)


class MotorcycleBoundRecord(DatedRecord):
    """A dated record optionally attached to one motorcycle."""

    motorcycle_id: Optional[str] = Field(
        default=None,
        alias="motorcycleId",
        validation_alias=AliasChoices("motorcycleId", "motorcycle_id"),
    )

    @field_validator("motorcycle_id", mode="before")
    @classmethod
    def empty_motorcycle_is_none(cls, v: Any) -> Any:
        return _blank_to_none(v)


# =============================================================================
# RECORD MODELS
# =============================================================================

class Order(DatedRecord):
    """
    Delivery order income.

    total is always quantity x unit_rate; a stored total is ignored
    and recomputed on read.
    """

    record_date: Optional[date] = Field(
        default=None,
        alias="tanggal",
        validation_alias=AliasChoices("tanggal", "date", "record_date"),
        description="Day the orders were delivered"
    )
    quantity: Amount = Field(
        ...,
        gt=0,
        alias="qty",
        validation_alias=AliasChoices("qty", "quantity"),
    )
    unit_rate: Amount = Field(
        ...,
        ge=0,
        alias="tarif",
        validation_alias=AliasChoices("tarif", "unit_rate"),
    )
    total: Amount = Field(default=Decimal("0"))
    note: Optional[str] = Field(default=None, max_length=1000)
    label: OrderLabel = Field(
        default=OrderLabel.KLIK,
        alias="labelType",
        validation_alias=AliasChoices("labelType", "label"),
    )

    @field_validator("label", mode="before")
    @classmethod
    def default_label(cls, v: Any) -> Any:
        # Orders saved before labels existed count as klik
        return _blank_to_none(v) or OrderLabel.KLIK

    @model_validator(mode="after")
    def compute_total(self) -> "Order":
        self.total = self.quantity * self.unit_rate
        return self


class SparePart(MotorcycleBoundRecord):
    """Spare part purchase with its service interval."""

    name: str = Field(..., min_length=1, max_length=200)
    quantity: Amount = Field(..., gt=0)
    unit_price: Amount = Field(
        ...,
        ge=0,
        alias="price",
        validation_alias=AliasChoices("price", "unit_price"),
    )
    total: Amount = Field(default=Decimal("0"))
    current_km: Amount = Field(
        default=Decimal("0"),
        ge=0,
        alias="currentKm",
        validation_alias=AliasChoices("currentKm", "current_km"),
        description="Odometer when the part was fitted"
    )
    next_service_km: Amount = Field(
        default=Decimal("0"),
        ge=0,
        alias="nextKm",
        validation_alias=AliasChoices("nextKm", "next_service_km"),
        description="Odometer at which the part is due again"
    )
    note: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def validate_service_interval(self) -> "SparePart":
        """Validate odometer relationship and compute total."""
        if self.next_service_km < self.current_km:
            raise ValueError("Next service odometer cannot be below current odometer")
        self.total = self.quantity * self.unit_price
        return self


class FuelStop(MotorcycleBoundRecord):
    """
    Refuelling expense.

    total is what the rider paid; it is checked against
    liter_price x liters by the validator, not recomputed.
    """

    liter_price: Amount = Field(
        ...,
        gt=0,
        alias="price",
        validation_alias=AliasChoices("price", "liter_price"),
    )
    liters: Amount = Field(..., gt=0)
    total: Amount = Field(..., gt=0)
    location: Optional[str] = Field(default=None, max_length=200)

    @property
    def expected_total(self) -> Decimal:
        return self.liter_price * self.liters


class DailyOdometerReading(MotorcycleBoundRecord):
    """One odometer reading per motorcycle per day."""

    odometer_km: Amount = Field(
        ...,
        ge=0,
        alias="km",
        validation_alias=AliasChoices("km", "odometer_km"),
    )


class Motorcycle(RecordBase):
    """A motorcycle the rider uses."""

    name: str = Field(..., min_length=1, max_length=100)
    model: Optional[str] = Field(default=None, max_length=100)
    year: Optional[int] = Field(default=None, ge=1900, le=2100)

    @field_validator("model", "year", mode="before")
    @classmethod
    def blank_is_none(cls, v: Any) -> Any:
        return _blank_to_none(v)


class UserIdentity(BaseModel):
    """The authenticated caller, as reported by the auth provider."""

    id: str = Field(..., min_length=1)
    email: str = ""
