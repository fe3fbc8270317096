"""Tests for the book-closing ledger."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from motoring.ledger import BookClosingLedger, PeriodRef
from motoring.models.audit import AuditEventType
from motoring.models.ledger import CloseBookStatus
from motoring.models.records import RecordKind, SubPeriod

from conftest import OWNER, make_order, run


async def _seed(store, *orders):
    for order in orders:
        await store.insert(RecordKind.ORDER, order)


@pytest.fixture
def ledger(store, audit_logger):
    return BookClosingLedger(store, audit_logger)


class TestCloseBook:
    """Closing a sub-period into a ledger entry."""

    def test_close_summarises_orders(self, store, ledger):
        run(_seed(
            store,
            make_order(date(2024, 3, 3), qty=5, rate=1000, label="klik"),
            make_order(date(2024, 3, 3), qty=2, rate=1500, label="paket"),
        ))
        result = run(ledger.close_book(OWNER, month=3, year=2024, sub_period="1-15"))

        assert result.status == CloseBookStatus.CLOSED
        assert result.was_closed
        entry = result.closed_period
        assert entry.id is not None
        assert entry.year_month == "2024-03"
        assert entry.start_date == date(2024, 3, 1)
        assert entry.end_date == date(2024, 3, 16)
        assert entry.total_orders == 2
        assert entry.total_qty == Decimal("7")
        assert entry.total_nominal == Decimal("8000")
        assert entry.qty_by_label == {"klik": Decimal("5"), "paket": Decimal("2")}
        assert entry.nominal_by_label == {"klik": Decimal("5000"), "paket": Decimal("3000")}

    def test_entry_is_stored(self, store, ledger):
        run(_seed(store, make_order(date(2024, 3, 3))))
        result = run(ledger.close_book(OWNER, 3, 2024, SubPeriod.FIRST_HALF))
        history = run(ledger.history(OWNER))
        assert [entry.id for entry in history] == [result.closed_period.id]

    def test_orders_outside_period_are_not_counted(self, store, ledger):
        run(_seed(
            store,
            make_order(date(2024, 3, 15), qty=1),
            make_order(date(2024, 3, 16), qty=4),
            make_order(date(2024, 2, 29), qty=8),
        ))
        result = run(ledger.close_book(OWNER, 3, 2024, "1-15"))
        assert result.closed_period.total_qty == Decimal("1")

    def test_second_half_runs_to_month_end(self, store, ledger):
        run(_seed(store, make_order(date(2024, 2, 29), qty=3)))
        result = run(ledger.close_book(OWNER, 2, 2024, "16-31"))
        assert result.closed_period.end_date == date(2024, 3, 1)
        assert result.closed_period.total_qty == Decimal("3")

    def test_nothing_to_close(self, store, ledger, audit_storage):
        result = run(ledger.close_book(OWNER, 3, 2024, "1-15"))
        assert result.status == CloseBookStatus.NOTHING_TO_CLOSE
        assert result.closed_period is None
        assert run(ledger.history(OWNER)) == []
        assert audit_storage.events[-1].event_type == AuditEventType.BOOK_CLOSE_SKIPPED

    def test_closing_twice_is_refused(self, store, ledger):
        run(_seed(store, make_order(date(2024, 3, 3))))
        run(ledger.close_book(OWNER, 3, 2024, "1-15"))
        again = run(ledger.close_book(OWNER, 3, 2024, "1-15"))
        assert again.status == CloseBookStatus.ALREADY_CLOSED
        assert len(run(ledger.history(OWNER))) == 1

    def test_other_owners_orders_ignored(self, store, ledger):
        run(_seed(store, make_order(date(2024, 3, 3), owner="someone-else")))
        result = run(ledger.close_book(OWNER, 3, 2024, "1-15"))
        assert result.status == CloseBookStatus.NOTHING_TO_CLOSE

    def test_close_is_audited(self, store, ledger, audit_storage):
        run(_seed(store, make_order(date(2024, 3, 3))))
        result = run(ledger.close_book(OWNER, 3, 2024, "1-15"))
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.BOOK_CLOSED
        assert event.entity_id == result.closed_period.id


class TestOpenOrders:
    """Orders inside a closed range stop being open."""

    def test_closed_orders_drop_out(self, store, ledger):
        run(_seed(
            store,
            make_order(date(2024, 3, 3), qty=1),
            make_order(date(2024, 3, 18), qty=2),
        ))
        run(ledger.close_book(OWNER, 3, 2024, "1-15"))
        open_orders = run(ledger.list_open_orders(OWNER))
        assert [order.quantity for order in open_orders] == [Decimal("2")]

    def test_orders_are_not_modified_by_closing(self, store, ledger):
        run(_seed(store, make_order(date(2024, 3, 3), qty=1)))
        before = [order.to_store_dict() for order in run(store.list_records(RecordKind.ORDER, OWNER))]
        run(ledger.close_book(OWNER, 3, 2024, "1-15"))
        after = [order.to_store_dict() for order in run(store.list_records(RecordKind.ORDER, OWNER))]
        assert after == before
        assert after[0]["qty"] == 1
        assert after[0]["tanggal"] == "2024-03-03"

    def test_newest_first(self, store, ledger):
        run(_seed(
            store,
            make_order(date(2024, 3, 1), qty=1),
            make_order(date(2024, 3, 9), qty=2),
            make_order(date(2024, 3, 5), qty=3),
        ))
        open_orders = run(ledger.list_open_orders(OWNER))
        assert [order.record_date.day for order in open_orders] == [9, 5, 1]

    def test_month_and_sub_period_filters(self, store, ledger):
        run(_seed(
            store,
            make_order(date(2024, 3, 3), qty=1),
            make_order(date(2024, 3, 20), qty=2),
            make_order(date(2024, 4, 2), qty=3),
        ))
        open_orders = run(ledger.list_open_orders(OWNER, "2024-03", SubPeriod.SECOND_HALF))
        assert [order.quantity for order in open_orders] == [Decimal("2")]

    def test_orders_for_closed_period(self, store, ledger):
        run(_seed(
            store,
            make_order(date(2024, 3, 9), qty=2),
            make_order(date(2024, 3, 3), qty=1),
            make_order(date(2024, 3, 16), qty=5),
        ))
        entry = run(ledger.close_book(OWNER, 3, 2024, "1-15")).closed_period
        orders = run(ledger.orders_for_closed_period(OWNER, entry))
        assert [order.record_date.day for order in orders] == [3, 9]


class TestClosablePeriods:
    def test_offers_current_and_last_month(self, store, ledger):
        run(_seed(
            store,
            make_order(date(2024, 3, 18)),
            make_order(date(2024, 2, 5)),
            make_order(date(2024, 2, 20)),
        ))
        periods = run(ledger.closable_periods(OWNER, today=date(2024, 3, 20)))
        assert periods == [
            PeriodRef(2024, 3, SubPeriod.SECOND_HALF),
            PeriodRef(2024, 2, SubPeriod.FIRST_HALF),
            PeriodRef(2024, 2, SubPeriod.SECOND_HALF),
        ]

    def test_skips_closed_and_empty(self, store, ledger):
        run(_seed(store, make_order(date(2024, 2, 5)), make_order(date(2024, 1, 3))))
        run(ledger.close_book(OWNER, 2, 2024, "1-15"))
        periods = run(ledger.closable_periods(OWNER, today=date(2024, 3, 20)))
        assert periods == []

    def test_january_looks_at_december(self, store, ledger):
        run(_seed(store, make_order(date(2023, 12, 28))))
        periods = run(ledger.closable_periods(OWNER, today=date(2024, 1, 4)))
        assert periods == [PeriodRef(2023, 12, SubPeriod.SECOND_HALF)]
        assert periods[0].year_month == "2023-12"
