"""Tests for the record stores (in-memory and Google Sheets with a fake worksheet)."""

from datetime import date
from decimal import Decimal

import pytest

from motoring.models.ledger import ClosedPeriod
from motoring.models.records import RecordKind, SubPeriod
from motoring.models.registry import store_columns
from motoring.services.storage import (
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    NotFoundError,
    StorageError,
)
from motoring.services.storage.google_sheets import record_to_row, row_to_record

from conftest import OWNER, make_fuel, make_motorcycle, make_order, make_part, run


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the store."""

    def __init__(self, header):
        self.values = [list(header)]

    def get_all_values(self):
        return [list(row) for row in self.values]

    def append_row(self, row, value_input_option=None):
        self.values.append(list(row))

    def update(self, range_name, values, value_input_option=None):
        row_number = int(range_name[1:])
        self.values[row_number - 1] = list(values[0])

    def delete_rows(self, index):
        del self.values[index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.sheets = {}

    def get_record_sheet(self, kind):
        if kind not in self.sheets:
            self.sheets[kind] = FakeWorksheet(store_columns(kind))
        return self.sheets[kind]

    def sheet_name_for(self, kind):
        return kind.value


class BrokenSheetsClient(FakeSheetsClient):
    def get_record_sheet(self, kind):
        raise RuntimeError("network down")


@pytest.fixture(params=["memory", "sheets"])
def any_store(request):
    if request.param == "memory":
        return InMemoryRecordStore()
    return GoogleSheetsRecordStore(FakeSheetsClient())


class TestRecordStoreContract:
    """Behaviour shared by every backend."""

    def test_insert_and_get(self, any_store):
        record_id = run(any_store.insert(RecordKind.ORDER, make_order(date(2024, 3, 3), qty=5)))
        stored = run(any_store.get(RecordKind.ORDER, record_id))
        assert stored.id == record_id
        assert stored.quantity == Decimal("5")
        assert stored.record_date == date(2024, 3, 3)

    def test_get_missing(self, any_store):
        assert run(any_store.get(RecordKind.ORDER, "nope")) is None

    def test_insert_checks_model(self, any_store):
        with pytest.raises(StorageError):
            run(any_store.insert(RecordKind.ORDER, make_motorcycle()))

    def test_list_is_per_owner_newest_first(self, any_store):
        run(any_store.insert(RecordKind.ORDER, make_order(date(2024, 3, 1))))
        run(any_store.insert(RecordKind.ORDER, make_order(date(2024, 3, 5))))
        run(any_store.insert(RecordKind.ORDER, make_order(date(2024, 3, 3), owner="other")))
        orders = run(any_store.list_records(RecordKind.ORDER, OWNER))
        assert [order.record_date.day for order in orders] == [5, 1]

    def test_list_filters(self, any_store):
        run(any_store.insert(RecordKind.FUEL_STOP, make_fuel(date(2024, 3, 1), motorcycle="a")))
        run(any_store.insert(RecordKind.FUEL_STOP, make_fuel(date(2024, 3, 5), motorcycle="b")))
        run(any_store.insert(RecordKind.FUEL_STOP, make_fuel(date(2024, 3, 9), motorcycle="a")))
        stops = run(any_store.list_records(
            RecordKind.FUEL_STOP, OWNER, date_from=date(2024, 3, 2), date_to=date(2024, 3, 9), motorcycle_id="a",
        ))
        assert [stop.record_date.day for stop in stops] == [9]

    def test_update_recomputes_total(self, any_store):
        record_id = run(any_store.insert(RecordKind.ORDER, make_order(date(2024, 3, 3), qty=2, rate=1000)))
        updated = run(any_store.update(RecordKind.ORDER, record_id, {"qty": 4}))
        assert updated.total == Decimal("4000")
        assert updated.updated_at is not None
        assert run(any_store.get(RecordKind.ORDER, record_id)).total == Decimal("4000")

    def test_returned_records_are_detached(self, any_store):
        """Changing a returned record never changes what the store holds."""
        source = make_order(date(2024, 3, 3), qty=1, rate=1000)
        record_id = run(any_store.insert(RecordKind.ORDER, source))
        source.quantity = Decimal("50")

        listed = run(any_store.list_records(RecordKind.ORDER, OWNER))
        listed[0].quantity = Decimal("99")
        fetched = run(any_store.get(RecordKind.ORDER, record_id))
        fetched.quantity = Decimal("98")
        updated = run(any_store.update(RecordKind.ORDER, record_id, {"tarif": 2000}))
        updated.quantity = Decimal("97")

        stored = run(any_store.get(RecordKind.ORDER, record_id))
        assert stored.quantity == Decimal("1")
        assert stored.total == Decimal("2000")

    def test_update_missing(self, any_store):
        with pytest.raises(NotFoundError):
            run(any_store.update(RecordKind.ORDER, "nope", {"qty": 4}))

    def test_update_cannot_change_owner(self, any_store):
        record_id = run(any_store.insert(RecordKind.ORDER, make_order(date(2024, 3, 3))))
        with pytest.raises(ValueError):
            run(any_store.update(RecordKind.ORDER, record_id, {"userId": "other"}))

    def test_delete(self, any_store):
        record_id = run(any_store.insert(RecordKind.ORDER, make_order(date(2024, 3, 3))))
        assert run(any_store.delete(RecordKind.ORDER, record_id)) is True
        assert run(any_store.delete(RecordKind.ORDER, record_id)) is False

    def test_batch_delete(self, any_store):
        run(any_store.insert(RecordKind.SPARE_PART, make_part(date(2024, 3, 1), motorcycle="a")))
        run(any_store.insert(RecordKind.SPARE_PART, make_part(date(2024, 3, 2), motorcycle="b")))
        run(any_store.insert(RecordKind.SPARE_PART, make_part(date(2024, 3, 3), motorcycle="a")))
        run(any_store.insert(RecordKind.SPARE_PART, make_part(date(2024, 3, 4), motorcycle="a", owner="other")))

        removed = run(any_store.batch_delete(
            RecordKind.SPARE_PART, OWNER, lambda part: part.motorcycle_id == "a"
        ))
        assert removed == 2
        remaining = run(any_store.list_records(RecordKind.SPARE_PART, OWNER))
        assert [part.motorcycle_id for part in remaining] == ["b"]
        assert len(run(any_store.list_records(RecordKind.SPARE_PART, "other"))) == 1


class TestSheetRows:
    def test_ledger_entry_maps_survive_cells(self):
        entry = ClosedPeriod(
            id="cp1",
            owner_id=OWNER,
            year_month="2024-03",
            sub_period=SubPeriod.FIRST_HALF,
            start_date=date(2024, 3, 1),
            end_date=date(2024, 3, 16),
            total_orders=2,
            qty_by_label={"klik": Decimal("5"), "paket": Decimal("2")},
        )
        header = store_columns(RecordKind.CLOSED_PERIOD)
        row = record_to_row(RecordKind.CLOSED_PERIOD, entry, header)
        assert all(isinstance(cell, str) for cell in row)
        restored = row_to_record(RecordKind.CLOSED_PERIOD, header, row)
        assert restored.qty_by_label == {"klik": Decimal("5"), "paket": Decimal("2")}
        assert restored.end_date == date(2024, 3, 16)

    def test_blank_cells_are_missing(self):
        header = store_columns(RecordKind.FUEL_STOP)
        stop = make_fuel(date(2024, 3, 3), motorcycle=None)
        row = record_to_row(RecordKind.FUEL_STOP, stop, header)
        assert row[header.index("motorcycleId")] == ""
        assert row_to_record(RecordKind.FUEL_STOP, header, row).motorcycle_id is None


class TestGoogleSheetsStore:
    def test_malformed_rows_are_skipped(self):
        client = FakeSheetsClient()
        store = GoogleSheetsRecordStore(client)
        run(store.insert(RecordKind.ORDER, make_order(date(2024, 3, 3))))
        sheet = client.get_record_sheet(RecordKind.ORDER)
        header = sheet.values[0]
        broken = [""] * len(header)
        broken[0] = "bad-row"
        broken[header.index("userId")] = OWNER
        broken[header.index("qty")] = "not-a-number"
        sheet.values.append(broken)

        orders = run(store.list_records(RecordKind.ORDER, OWNER))
        assert len(orders) == 1

    def test_backend_failure_is_storage_error(self):
        store = GoogleSheetsRecordStore(BrokenSheetsClient())
        with pytest.raises(StorageError):
            run(store.list_records(RecordKind.ORDER, OWNER))
        with pytest.raises(StorageError):
            run(store.insert(RecordKind.ORDER, make_order(date(2024, 3, 3))))
