"""
Book-Closing Ledger

Closing a sub-period summarises the owner's orders inside it into one
append-only ClosedPeriod entry. Orders are never mutated or deleted;
once their day falls inside any closed range they simply stop being
"open" and drop out of the open-orders list and text report.

Outcomes that need no write (nothing to close, already closed) are
returned as informational results. Store failures propagate as
StorageError to the orchestrating caller.
"""

from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import NamedTuple, Optional

from motoring.audit import AuditLogger
from motoring.models.ledger import ClosedPeriod, CloseBookResult, CloseBookStatus
from motoring.models.records import Order, OrderLabel, RecordKind, SubPeriod
from motoring.reports.periods import (
    current_sub_period,
    in_period,
    period_bounds,
    previous_month,
    resolve_record_date,
)
from motoring.services.storage import RecordStoreInterface


class PeriodRef(NamedTuple):
    year: int
    month: int
    sub_period: SubPeriod

    @property
    def year_month(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


class BookClosingLedger:
    """
    Closes semi-monthly books and answers which orders are still open.

    Usage:
        ledger = BookClosingLedger(store, audit_logger)
        result = await ledger.close_book(owner_id, month=3, year=2024, sub_period="1-15")
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit_logger

    async def history(self, owner_id: str) -> list[ClosedPeriod]:
        """Ledger entries, newest first."""
        return await self._store.list_records(RecordKind.CLOSED_PERIOD, owner_id)

    async def _orders_between(self, owner_id: str, start: date, end: date) -> list[Order]:
        """Orders with resolved day in [start, end)."""
        return await self._store.list_records(
            RecordKind.ORDER,
            owner_id,
            date_from=start,
            date_to=end - timedelta(days=1),
        )

    async def close_book(
        self,
        owner_id: str,
        month: int,
        year: int,
        sub_period: SubPeriod,
    ) -> CloseBookResult:
        sub_period = SubPeriod(sub_period)
        period = PeriodRef(year, month, sub_period)
        start, end = period_bounds(year, month, sub_period)

        if any(entry.matches(period.year_month, sub_period) for entry in await self.history(owner_id)):
            message = f"Books for {period.year_month} ({sub_period.value}) are already closed"
            await self._log_skipped(owner_id, period, "already_closed")
            return CloseBookResult(status=CloseBookStatus.ALREADY_CLOSED, message=message)

        orders = await self._orders_between(owner_id, start, end)
        if not orders:
            message = f"No orders to close for {period.year_month} ({sub_period.value})"
            await self._log_skipped(owner_id, period, "no_orders")
            return CloseBookResult(status=CloseBookStatus.NOTHING_TO_CLOSE, message=message)

        qty_by_label: dict[str, Decimal] = {}
        nominal_by_label: dict[str, Decimal] = {}
        for order in orders:
            label = (order.label or OrderLabel.KLIK).value
            qty_by_label[label] = qty_by_label.get(label, Decimal("0")) + order.quantity
            nominal_by_label[label] = nominal_by_label.get(label, Decimal("0")) + order.total

        entry = ClosedPeriod(
            owner_id=owner_id,
            year_month=period.year_month,
            sub_period=sub_period,
            start_date=start,
            end_date=end,
            total_orders=len(orders),
            qty_by_label=qty_by_label,
            nominal_by_label=nominal_by_label,
            total_qty=sum(qty_by_label.values(), Decimal("0")),
            total_nominal=sum(nominal_by_label.values(), Decimal("0")),
            created_at=datetime.utcnow(),
        )
        entry_id = await self._store.insert(RecordKind.CLOSED_PERIOD, entry)
        entry = entry.model_copy(update={"id": entry_id})

        if self._audit:
            await self._audit.log_book_closed(
                closed_period_id=entry_id,
                owner_id=owner_id,
                year_month=period.year_month,
                sub_period=sub_period.value,
                total_orders=entry.total_orders,
                total_nominal=str(entry.total_nominal),
            )

        return CloseBookResult(
            status=CloseBookStatus.CLOSED,
            message=(
                f"Closed {period.year_month} ({sub_period.value}): "
                f"{entry.total_orders} orders, total {entry.total_nominal}"
            ),
            closed_period=entry,
        )

    async def list_open_orders(
        self,
        owner_id: str,
        month: Optional[str] = None,
        sub_period: Optional[SubPeriod] = None,
    ) -> list[Order]:
        """
        Orders outside every closed range, newest first.

        month ('YYYY-MM') and sub_period narrow the list further.
        """
        closed = await self.history(owner_id)
        orders = await self._store.list_records(RecordKind.ORDER, owner_id)

        open_orders = []
        for order in orders:
            day = resolve_record_date(order)
            if any(entry.contains(day) for entry in closed):
                continue
            if in_period(day, month, sub_period):
                open_orders.append(order)

        open_orders.sort(
            key=lambda order: (resolve_record_date(order), order.created_at or datetime.min),
            reverse=True,
        )
        return open_orders

    async def orders_for_closed_period(self, owner_id: str, entry: ClosedPeriod) -> list[Order]:
        """The orders a ledger entry summarises, by the entry's stored bounds."""
        orders = await self._orders_between(owner_id, entry.start_date, entry.end_date)
        return sorted(orders, key=resolve_record_date)

    async def closable_periods(self, owner_id: str, today: Optional[date] = None) -> list[PeriodRef]:
        """
        Periods offered for closing: the current half and both halves of
        last month, keeping those with orders that aren't closed yet.
        """
        today = today or date.today()
        last_year, last_month = previous_month(today.year, today.month)
        candidates = [
            PeriodRef(today.year, today.month, current_sub_period(today)),
            PeriodRef(last_year, last_month, SubPeriod.FIRST_HALF),
            PeriodRef(last_year, last_month, SubPeriod.SECOND_HALF),
        ]

        closed = await self.history(owner_id)
        orders = await self._store.list_records(RecordKind.ORDER, owner_id)
        days = [resolve_record_date(order) for order in orders]

        closable = []
        for candidate in candidates:
            if any(entry.matches(candidate.year_month, candidate.sub_period) for entry in closed):
                continue
            start, end = period_bounds(*candidate)
            if any(start <= day < end for day in days):
                closable.append(candidate)
        return closable

    async def _log_skipped(self, owner_id: str, period: PeriodRef, reason: str) -> None:
        if self._audit:
            await self._audit.log_book_close_skipped(
                owner_id=owner_id,
                year_month=period.year_month,
                sub_period=period.sub_period.value,
                reason=reason,
            )
