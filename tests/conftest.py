"""
Shared fixtures.

Async code is driven with asyncio.run; no external services are used.
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal

import pytest

from motoring.audit import AuditLogger
from motoring.config.settings import AppSettings
from motoring.models.records import (
    DailyOdometerReading,
    FuelStop,
    Motorcycle,
    Order,
    SparePart,
)
from motoring.services.storage import InMemoryAuditStorage, InMemoryRecordStore


OWNER = "rider-1"


def run(coro):
    return asyncio.run(coro)


def make_order(day, qty=1, rate=1000, label="klik", created=None, owner=OWNER):
    return Order(
        owner_id=owner,
        record_date=day,
        quantity=Decimal(str(qty)),
        unit_rate=Decimal(str(rate)),
        label=label,
        created_at=created or datetime(day.year, day.month, day.day, 12),
    )


def make_fuel(day, price=10000, liters=1, motorcycle="bike-1", created=None, owner=OWNER):
    price, liters = Decimal(str(price)), Decimal(str(liters))
    return FuelStop(
        owner_id=owner,
        record_date=day,
        motorcycle_id=motorcycle,
        liter_price=price,
        liters=liters,
        total=price * liters,
        created_at=created or datetime(day.year, day.month, day.day, 12),
    )


def make_part(day, price=50000, qty=1, motorcycle="bike-1", current_km=0, next_km=0,
              name="Oil", created=None, owner=OWNER):
    return SparePart(
        owner_id=owner,
        record_date=day,
        motorcycle_id=motorcycle,
        name=name,
        quantity=Decimal(str(qty)),
        unit_price=Decimal(str(price)),
        current_km=Decimal(str(current_km)),
        next_service_km=Decimal(str(next_km)),
        created_at=created or datetime(day.year, day.month, day.day, 12),
    )


def make_reading(day, km, motorcycle="bike-1", created=None, owner=OWNER):
    return DailyOdometerReading(
        owner_id=owner,
        record_date=day,
        motorcycle_id=motorcycle,
        odometer_km=Decimal(str(km)),
        created_at=created or datetime(day.year, day.month, day.day, 12),
    )


def make_motorcycle(name="Beat", owner=OWNER):
    return Motorcycle(owner_id=owner, name=name, model="Honda", year=2020,
                      created_at=datetime(2024, 1, 1))


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def app_settings():
    return AppSettings()


@pytest.fixture
def today():
    return date(2024, 3, 20)
