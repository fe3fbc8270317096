"""Maps each record kind to the model that reads and writes it."""

from typing import Union

from motoring.models.ledger import ClosedPeriod
from motoring.models.records import (
    DailyOdometerReading,
    FuelStop,
    Motorcycle,
    Order,
    RecordBase,
    RecordKind,
    SparePart,
)


RECORD_MODELS: dict[RecordKind, type[RecordBase]] = {
    RecordKind.ORDER: Order,
    RecordKind.SPARE_PART: SparePart,
    RecordKind.FUEL_STOP: FuelStop,
    RecordKind.ODOMETER_READING: DailyOdometerReading,
    RecordKind.MOTORCYCLE: Motorcycle,
    RecordKind.CLOSED_PERIOD: ClosedPeriod,
}


def model_for(kind: Union[RecordKind, str]) -> type[RecordBase]:
    """Look up the model for a kind (enum or collection name)."""
    return RECORD_MODELS[RecordKind(kind)]


def store_columns(kind: Union[RecordKind, str]) -> list[str]:
    """Stored field names for a kind, in model declaration order."""
    model = model_for(kind)
    return [field.alias or name for name, field in model.model_fields.items()]


def attribute_name(model: type[RecordBase], key: str) -> str:
    """Resolve an attribute name or stored alias to the attribute name."""
    for name, field in model.model_fields.items():
        if key == name or key == field.alias:
            return name
    raise ValueError(f"{model.__name__} has no field {key!r}")
