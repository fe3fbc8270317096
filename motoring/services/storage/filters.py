"""Filtering and partial-update helpers shared by the storage backends."""

from datetime import date, datetime
from typing import Any, Optional

from motoring.models.records import RecordBase
from motoring.models.registry import attribute_name
from motoring.reports.periods import resolve_record_date


def matches_filters(
    record: RecordBase,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    motorcycle_id: Optional[str] = None,
) -> bool:
    if motorcycle_id is not None and getattr(record, "motorcycle_id", None) != motorcycle_id:
        return False
    if date_from is None and date_to is None:
        return True
    day = resolve_record_date(record)
    if date_from is not None and day < date_from:
        return False
    if date_to is not None and day > date_to:
        return False
    return True


def newest_first(records: list[RecordBase]) -> list[RecordBase]:
    return sorted(records, key=lambda r: r.created_at or datetime.min, reverse=True)


def apply_changes(record: RecordBase, changes: dict[str, Any]) -> RecordBase:
    """
    Build the updated record.

    The result is re-validated, so computed totals and cross-field rules
    hold after every update.
    """
    model = type(record)
    data = record.model_dump()
    for key, value in changes.items():
        name = attribute_name(model, key)
        if name in ("id", "owner_id", "created_at"):
            raise ValueError(f"{name} cannot be changed")
        data[name] = value
    data["updated_at"] = datetime.utcnow()
    return model.model_validate(data)
