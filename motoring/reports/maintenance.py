"""
Spare-part Service Reminders

A part is due soon when the motorcycle's latest odometer reading is
within the threshold of its next service odometer, and overdue once
the reading has passed it.
"""

from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from motoring.models.records import DailyOdometerReading, SparePart
from motoring.models.reports import ReminderStatus, ServiceReminder
from motoring.reports.periods import resolve_record_date


def latest_odometer(
    readings: Iterable[DailyOdometerReading],
    today: Optional[date] = None,
) -> dict[Optional[str], Decimal]:
    """
    Latest reading per motorcycle id.

    The None key holds the latest reading across all motorcycles, used
    for parts recorded without one.
    """
    latest: dict[Optional[str], tuple[tuple[date, datetime], Decimal]] = {}
    for reading in readings:
        position = (resolve_record_date(reading, today), reading.created_at or datetime.min)
        for key in {reading.motorcycle_id, None}:
            current = latest.get(key)
            if current is None or position >= current[0]:
                latest[key] = (position, reading.odometer_km)
    return {key: km for key, (_, km) in latest.items()}


def service_reminders(
    spare_parts: Iterable[SparePart],
    readings: Iterable[DailyOdometerReading],
    threshold_km: float = 1000.0,
    today: Optional[date] = None,
) -> list[ServiceReminder]:
    """Reminders for parts due soon or overdue, most urgent first."""
    odometer = latest_odometer(readings, today)
    threshold = Decimal(str(threshold_km))

    reminders = []
    for part in spare_parts:
        if part.next_service_km <= 0:
            continue
        current_km = odometer.get(part.motorcycle_id)
        if current_km is None:
            continue

        remaining = part.next_service_km - current_km
        if remaining < 0:
            status = ReminderStatus.OVERDUE
        elif remaining <= threshold:
            status = ReminderStatus.DUE_SOON
        else:
            continue

        reminders.append(ServiceReminder(
            spare_part_id=part.id,
            part_name=part.name,
            motorcycle_id=part.motorcycle_id,
            current_km=current_km,
            next_service_km=part.next_service_km,
            remaining_km=remaining,
            status=status,
        ))

    return sorted(reminders, key=lambda reminder: reminder.remaining_km)
