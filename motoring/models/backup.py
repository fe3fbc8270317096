"""
Backup Document Models

A backup is a single JSON document with one top-level array per record
kind plus a metadata block identifying the exporting user.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from motoring.models.records import RecordKind, coerce_timestamp


class ExportType(str, Enum):
    """What a backup contains."""
    FULL = "full"
    ORDERS = "orders"
    SPAREPARTS = "spareparts"
    FUEL = "fuel"
    MOTORCYCLES = "motorcycles"


# Record kinds written by export and honoured by import, per export type.
# Odometer history only travels with full backups.
EXPORT_KINDS: dict[ExportType, tuple[RecordKind, ...]] = {
    ExportType.FULL: (
        RecordKind.ORDER,
        RecordKind.SPARE_PART,
        RecordKind.FUEL_STOP,
        RecordKind.MOTORCYCLE,
        RecordKind.ODOMETER_READING,
    ),
    ExportType.ORDERS: (RecordKind.ORDER,),
    ExportType.SPAREPARTS: (RecordKind.SPARE_PART,),
    ExportType.FUEL: (RecordKind.FUEL_STOP,),
    ExportType.MOTORCYCLES: (RecordKind.MOTORCYCLE,),
}


class BackupMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        alias="createdAt",
        validation_alias=AliasChoices("createdAt", "created_at", "exportDate", "backupDate"),
    )
    user_id: str = Field(
        ...,
        min_length=1,
        alias="userId",
        validation_alias=AliasChoices("userId", "user_id"),
    )
    user_email: str = Field(
        default="",
        alias="userEmail",
        validation_alias=AliasChoices("userEmail", "user_email"),
    )
    export_type: ExportType = Field(
        default=ExportType.FULL,
        alias="exportType",
        validation_alias=AliasChoices("exportType", "export_type"),
    )

    @field_validator("created_at", mode="before")
    @classmethod
    def normalise_created_at(cls, v: Any) -> Optional[datetime]:
        return coerce_timestamp(v) or datetime.utcnow()

    @field_validator("user_email", mode="before")
    @classmethod
    def missing_email(cls, v: Any) -> Any:
        return v or ""


class BackupDocument(BaseModel):
    """
    The exported document.

    Record arrays hold stored-format dicts; they are validated record by
    record during import so one bad entry doesn't hide the others.
    """

    model_config = ConfigDict(populate_by_name=True)

    orders: list[dict[str, Any]] = Field(default_factory=list)
    spareparts: list[dict[str, Any]] = Field(default_factory=list)
    fuel_stops: list[dict[str, Any]] = Field(
        default_factory=list,
        alias="fuelStops",
        validation_alias=AliasChoices("fuelStops", "fuel_stops"),
    )
    motorcycles: list[dict[str, Any]] = Field(default_factory=list)
    daily_km_history: list[dict[str, Any]] = Field(
        default_factory=list,
        alias="dailyKmHistory",
        validation_alias=AliasChoices("dailyKmHistory", "daily_km_history"),
    )
    metadata: BackupMetadata

    def records_for(self, kind: RecordKind) -> list[dict[str, Any]]:
        return {
            RecordKind.ORDER: self.orders,
            RecordKind.SPARE_PART: self.spareparts,
            RecordKind.FUEL_STOP: self.fuel_stops,
            RecordKind.MOTORCYCLE: self.motorcycles,
            RecordKind.ODOMETER_READING: self.daily_km_history,
        }.get(kind, [])

    @property
    def record_count(self) -> int:
        return sum(len(self.records_for(kind)) for kind in EXPORT_KINDS[ExportType.FULL])

    def to_json(self) -> str:
        """Serialize with stored field names, 2-space indentation."""
        return json.dumps(self.model_dump(mode="json", by_alias=True), indent=2)


class BulkOperationResult(BaseModel):
    """
    Outcome of a multi-record write.

    Records are written one at a time; `aborted` means the loop stopped
    at the first failure and the succeeded records were left in place.
    """

    succeeded_ids: list[str] = Field(default_factory=list)
    failed_ids: list[str] = Field(default_factory=list)
    first_error: Optional[str] = None
    aborted: bool = False

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded_ids)

    @property
    def is_complete(self) -> bool:
        return not self.aborted and not self.failed_ids
