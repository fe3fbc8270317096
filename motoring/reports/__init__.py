"""Dashboard aggregation, service reminders and text reports."""

from motoring.reports.aggregator import PeriodAggregator, total_distance
from motoring.reports.formatter import OrderReportFormatter
from motoring.reports.maintenance import service_reminders
from motoring.reports.periods import (
    available_months,
    current_sub_period,
    period_bounds,
    resolve_record_date,
    working_days_in_range,
)

__all__ = [
    "OrderReportFormatter",
    "PeriodAggregator",
    "available_months",
    "current_sub_period",
    "period_bounds",
    "resolve_record_date",
    "service_reminders",
    "total_distance",
    "working_days_in_range",
]
