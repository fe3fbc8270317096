"""
Period Aggregator

Computes the dashboard figures for one owner's records and one
AggregationRequest:

- income from orders (month and sub-period filters only)
- expenses from spare parts and fuel stops (motorcycle, month and
  sub-period filters)
- distance traveled from odometer readings, per motorcycle
- average fuel price and working-day counts
- trailing monthly trends and net income per month over ALL records

DESIGN DECISION: aggregation is a pure function of an immutable
RecordSnapshot and a frozen request. The aggregator memoises results
keyed by the request value; a new snapshot means a new aggregator.

Records without a motorcycle never match a specific motorcycle filter.
"""

from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, TypeVar

from motoring.models.records import (
    DailyOdometerReading,
    FuelStop,
    MotorcycleBoundRecord,
    Order,
    OrderLabel,
    SparePart,
)
from motoring.models.reports import (
    AggregationRequest,
    MonthlyTrend,
    PeriodReport,
    RecordSnapshot,
)
from motoring.reports.periods import (
    elapsed_working_days,
    in_period,
    month_key,
    month_label,
    parse_month_key,
    resolve_record_date,
    trailing_months,
    working_days_in_period,
)


ZERO = Decimal("0")
UNASSIGNED_MOTORCYCLE = "unknown"

R = TypeVar("R", bound=MotorcycleBoundRecord)


def filter_income(orders: Iterable[Order], request: AggregationRequest) -> list[Order]:
    """Orders in the requested month/sub-period. Income ignores the motorcycle filter."""
    return [
        order for order in orders
        if in_period(resolve_record_date(order, request.today), request.month, request.sub_period)
    ]


def filter_expenses(records: Iterable[R], request: AggregationRequest) -> list[R]:
    """Expense-side records for the requested motorcycle (exact match) and period."""
    selected = []
    for record in records:
        if request.motorcycle_id is not None and record.motorcycle_id != request.motorcycle_id:
            continue
        if in_period(resolve_record_date(record, request.today), request.month, request.sub_period):
            selected.append(record)
    return selected


def total_distance(
    readings: Iterable[DailyOdometerReading],
    today: Optional[date] = None,
) -> Decimal:
    """
    Forward distance over odometer readings.

    Readings are grouped per motorcycle and walked in date order; a
    decreasing reading adds nothing for that step. When a motorcycle has
    several readings for one day, the most recently created one is used.
    """
    by_motorcycle: dict[str, dict[date, DailyOdometerReading]] = defaultdict(dict)
    for reading in readings:
        day = resolve_record_date(reading, today)
        group = by_motorcycle[reading.motorcycle_id or UNASSIGNED_MOTORCYCLE]
        existing = group.get(day)
        if existing is None or _created(reading) >= _created(existing):
            group[day] = reading

    distance = ZERO
    for group in by_motorcycle.values():
        previous: Optional[Decimal] = None
        for day in sorted(group):
            current = group[day].odometer_km
            if previous is not None and current >= previous:
                distance += current - previous
            previous = current
    return distance


def average_fuel_price(fuel_stops: Sequence[FuelStop]) -> Decimal:
    """Mean price per liter; zero when there are no fuel stops."""
    if not fuel_stops:
        return ZERO
    return sum((stop.liter_price for stop in fuel_stops), ZERO) / len(fuel_stops)


def income_and_expenses_by_month(
    orders: Iterable[Order],
    spare_parts: Iterable[SparePart],
    fuel_stops: Iterable[FuelStop],
    today: Optional[date] = None,
) -> tuple[dict[str, Decimal], dict[str, Decimal]]:
    income: dict[str, Decimal] = defaultdict(lambda: ZERO)
    expenses: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for order in orders:
        income[month_key(resolve_record_date(order, today))] += order.total
    for part in spare_parts:
        expenses[month_key(resolve_record_date(part, today))] += part.total
    for stop in fuel_stops:
        expenses[month_key(resolve_record_date(stop, today))] += stop.total
    return dict(income), dict(expenses)


def _created(record: MotorcycleBoundRecord) -> datetime:
    return record.created_at or datetime.min


class PeriodAggregator:
    """
    Aggregates one snapshot for any number of requests.

    Usage:
        aggregator = PeriodAggregator(snapshot, trend_months=6)
        report = aggregator.aggregate(AggregationRequest.default())
    """

    def __init__(self, snapshot: RecordSnapshot, trend_months: int = 6):
        self._snapshot = snapshot
        self._trend_months = trend_months
        self._cache: dict[AggregationRequest, PeriodReport] = {}

    @property
    def snapshot(self) -> RecordSnapshot:
        return self._snapshot

    def aggregate(self, request: AggregationRequest) -> PeriodReport:
        report = self._cache.get(request)
        if report is None:
            report = self._compute(request)
            self._cache[request] = report
        return report

    def _compute(self, request: AggregationRequest) -> PeriodReport:
        snapshot = self._snapshot
        today = request.today

        orders = filter_income(snapshot.orders, request)
        spare_parts = filter_expenses(snapshot.spare_parts, request)
        fuel_stops = filter_expenses(snapshot.fuel_stops, request)
        readings = filter_expenses(snapshot.odometer_readings, request)

        total_income = sum((order.total for order in orders), ZERO)
        sparepart_costs = sum((part.total for part in spare_parts), ZERO)
        fuel_costs = sum((stop.total for stop in fuel_stops), ZERO)
        total_expenses = sparepart_costs + fuel_costs
        net_income = total_income - total_expenses

        qty_by_label: dict[str, Decimal] = {label.value: ZERO for label in OrderLabel}
        income_by_label: dict[str, Decimal] = {label.value: ZERO for label in OrderLabel}
        for order in orders:
            qty_by_label[order.label.value] += order.quantity
            income_by_label[order.label.value] += order.total

        # Working days follow the selected month, else the current one
        if request.month is not None:
            year, month = parse_month_key(request.month)
        else:
            year, month = today.year, today.month
        period_month = f"{year:04d}-{month:02d}"

        return PeriodReport(
            request=request,
            total_income=total_income,
            total_fuel_costs=fuel_costs,
            total_sparepart_costs=sparepart_costs,
            total_expenses=total_expenses,
            net_income=net_income,
            total_orders=len(orders),
            total_order_qty=sum((order.quantity for order in orders), ZERO),
            total_fuel_stops=len(fuel_stops),
            total_distance_km=total_distance(readings, today),
            average_fuel_price=average_fuel_price(fuel_stops),
            qty_by_label=qty_by_label,
            income_by_label=income_by_label,
            working_days=working_days_in_period(year, month, request.sub_period),
            elapsed_working_days=elapsed_working_days(year, month, request.sub_period, today),
            monthly_trends=self.monthly_trends(today),
            net_income_per_month=self.net_income_per_month(today),
            net_income_per_period={
                f"{period_month}-{request.period_selector}": net_income,
            },
        )

    def monthly_trends(self, today: date) -> list[MonthlyTrend]:
        """Trailing months ending at today's month, over every record regardless of filters."""
        income, expenses = income_and_expenses_by_month(
            self._snapshot.orders,
            self._snapshot.spare_parts,
            self._snapshot.fuel_stops,
            today,
        )
        trends = []
        for key in trailing_months(today, self._trend_months):
            month_income = income.get(key, ZERO)
            month_expenses = expenses.get(key, ZERO)
            trends.append(MonthlyTrend(
                month_key=key,
                label=month_label(key),
                income=month_income,
                expenses=month_expenses,
                profit=month_income - month_expenses,
            ))
        return trends

    def net_income_per_month(self, today: Optional[date] = None) -> dict[str, Decimal]:
        """Income minus expenses for every month with data, most recent first."""
        income, expenses = income_and_expenses_by_month(
            self._snapshot.orders,
            self._snapshot.spare_parts,
            self._snapshot.fuel_stops,
            today,
        )
        months = sorted(set(income) | set(expenses), reverse=True)
        return {key: income.get(key, ZERO) - expenses.get(key, ZERO) for key in months}
