"""
Plain-text Order Report

Renders one sub-period of open orders for copy-paste distribution:

    Order report 2024-03 (1-15)
    1._
    2._
    3.5_2
    ...
    Total klik: 5
    Total paket: 2
    Total qty: 7

Each day line is `<day>.<klikQty>_<paketQty>`; a label with no orders
that day renders as an empty string (a quiet day is `<day>._`). The
currency variant adds nominal totals.
"""

from collections import defaultdict
from collections.abc import Iterable
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from motoring.models.records import Order, OrderLabel, SubPeriod
from motoring.reports.periods import (
    in_period,
    parse_month_key,
    period_day_range,
    resolve_record_date,
)


ZERO = Decimal("0")


def format_quantity(value: Decimal) -> str:
    """Whole quantities without decimals, others as written."""
    if value == value.to_integral_value():
        return str(int(value))
    return format(value.normalize(), "f")


def format_currency(value: Decimal, label: str = "Rp") -> str:
    return f"{label} {value:,.0f}"


class OrderReportFormatter:
    """
    Text report over already-filtered orders.

    Orders outside the requested month and sub-period are ignored, so
    callers can pass the open-orders list as-is.
    """

    def __init__(self, currency_label: str = "Rp"):
        self._currency_label = currency_label

    def render(
        self,
        orders: Iterable[Order],
        year_month: str,
        sub_period: Optional[SubPeriod] = None,
        include_currency: bool = False,
    ) -> str:
        year, month = parse_month_key(year_month)
        first_day, last_day = period_day_range(year, month, sub_period)

        qty = defaultdict(lambda: ZERO)
        nominal = defaultdict(lambda: ZERO)
        for order in orders:
            day = resolve_record_date(order)
            if not in_period(day, year_month, sub_period):
                continue
            qty[(day.day, order.label)] += order.quantity
            nominal[order.label] += order.total

        selector = SubPeriod(sub_period).value if sub_period else "all"
        lines = [f"Order report {year_month} ({selector})"]

        day = first_day
        while day <= last_day:
            klik = self._day_cell(qty, day.day, OrderLabel.KLIK)
            paket = self._day_cell(qty, day.day, OrderLabel.PAKET)
            lines.append(f"{day.day}.{klik}_{paket}")
            day += timedelta(days=1)

        label_totals = {
            label: sum((q for (_, order_label), q in qty.items() if order_label == label), ZERO)
            for label in OrderLabel
        }
        total_qty = sum(label_totals.values(), ZERO)
        total_nominal = sum(nominal.values(), ZERO)

        for label in OrderLabel:
            line = f"Total {label.value}: {format_quantity(label_totals[label])}"
            if include_currency:
                line += f" ({format_currency(nominal[label], self._currency_label)})"
            lines.append(line)
        lines.append(f"Total qty: {format_quantity(total_qty)}")
        if include_currency:
            lines.append(f"Total nominal: {format_currency(total_nominal, self._currency_label)}")

        return "\n".join(lines)

    @staticmethod
    def _day_cell(qty: dict, day: int, label: OrderLabel) -> str:
        if (day, label) not in qty:
            return ""
        return format_quantity(qty[(day, label)])
