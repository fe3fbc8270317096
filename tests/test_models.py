"""
Tests for Motoring models

Test strategy:
1. Unit tests for individual components (models, validators, reports)
2. Integration tests for flows (in-memory store, fake remote services)
3. No real API calls in tests
"""

import json
import pytest
from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from motoring.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from motoring.models.backup import BackupDocument, BackupMetadata, ExportType
from motoring.models.ledger import ClosedPeriod
from motoring.models.records import (
    FuelStop,
    Motorcycle,
    Order,
    OrderLabel,
    RecordKind,
    SparePart,
    SubPeriod,
    coerce_calendar_date,
    coerce_timestamp,
)
from motoring.models.registry import attribute_name, model_for, store_columns
from motoring.models.reports import AggregationRequest


class TestRecordModels:
    """Tests for record models and their stored field names."""

    def test_order_reads_stored_names(self):
        """Orders read the legacy stored names and compute the total."""
        order = Order.model_validate({
            "userId": "u1",
            "tanggal": "2024-03-03",
            "qty": 5,
            "tarif": 1000,
            "labelType": "paket",
        })
        assert order.owner_id == "u1"
        assert order.record_date == date(2024, 3, 3)
        assert order.total == Decimal("5000")
        assert order.label == OrderLabel.PAKET

    def test_order_total_is_recomputed(self):
        """A stored total never overrides quantity x rate."""
        order = Order(owner_id="u1", quantity=Decimal("2"), unit_rate=Decimal("1500"), total=Decimal("1"))
        assert order.total == Decimal("3000")

    def test_order_without_label_is_klik(self):
        order = Order.model_validate({"userId": "u1", "qty": 1, "tarif": 1000, "labelType": ""})
        assert order.label == OrderLabel.KLIK

    def test_order_rejects_zero_quantity(self):
        with pytest.raises(ValueError):
            Order(owner_id="u1", quantity=Decimal("0"), unit_rate=Decimal("1000"))

    def test_order_dumps_stored_names(self):
        order = Order(owner_id="u1", record_date=date(2024, 3, 3), quantity=Decimal("5"), unit_rate=Decimal("1000"))
        data = order.to_store_dict()
        assert data["tanggal"] == "2024-03-03"
        assert data["qty"] == 5
        assert data["tarif"] == 1000
        assert data["labelType"] == "klik"
        assert data["userId"] == "u1"

    def test_spare_part_rejects_next_below_current(self):
        with pytest.raises(ValueError):
            SparePart(
                owner_id="u1",
                name="Chain",
                quantity=Decimal("1"),
                unit_price=Decimal("100000"),
                current_km=Decimal("12000"),
                next_service_km=Decimal("11000"),
            )

    def test_spare_part_total(self):
        part = SparePart(owner_id="u1", name="Oil", quantity=Decimal("2"), unit_price=Decimal("45000"))
        assert part.total == Decimal("90000")

    def test_fuel_stop_keeps_paid_total(self):
        """The paid total is kept as entered; expected_total is informational."""
        stop = FuelStop(
            owner_id="u1",
            liter_price=Decimal("10000"),
            liters=Decimal("1.5"),
            total=Decimal("15001"),
        )
        assert stop.total == Decimal("15001")
        assert stop.expected_total == Decimal("15000.0")

    def test_blank_motorcycle_is_none(self):
        stop = FuelStop.model_validate({
            "userId": "u1", "price": 10000, "liters": 1, "total": 10000, "motorcycleId": "",
        })
        assert stop.motorcycle_id is None

    def test_motorcycle_blank_year(self):
        bike = Motorcycle.model_validate({"userId": "u1", "name": "Beat", "year": ""})
        assert bike.year is None


class TestValueCoercion:
    """Tests for timestamp and date normalisation."""

    def test_timestamp_object(self):
        assert coerce_timestamp({"seconds": 86400, "nanoseconds": 0}) == datetime(1970, 1, 2)

    def test_iso_timestamp_with_zone_is_utc(self):
        assert coerce_timestamp("2024-03-03T01:00:00+07:00") == datetime(2024, 3, 2, 18, 0)

    def test_z_suffix(self):
        assert coerce_timestamp("2024-03-03T10:00:00Z") == datetime(2024, 3, 3, 10, 0)

    def test_calendar_date_from_timestamp_string(self):
        assert coerce_calendar_date("2024-03-03T23:30:00Z") == date(2024, 3, 3)

    def test_calendar_date_plain(self):
        assert coerce_calendar_date("2024-03-03") == date(2024, 3, 3)
        assert coerce_calendar_date("") is None

    def test_unrecognised_date(self):
        with pytest.raises(ValueError):
            coerce_calendar_date(12345)


class TestRegistry:
    def test_model_for_collection_name(self):
        assert model_for("orders") is Order
        assert model_for(RecordKind.CLOSED_PERIOD) is ClosedPeriod

    def test_store_columns_start_with_id(self):
        columns = store_columns(RecordKind.ORDER)
        assert columns[0] == "id"
        assert "tanggal" in columns
        assert "qty" in columns

    def test_attribute_name(self):
        assert attribute_name(Order, "qty") == "quantity"
        assert attribute_name(Order, "quantity") == "quantity"
        with pytest.raises(ValueError):
            attribute_name(Order, "nope")


class TestClosedPeriod:
    def _entry(self):
        return ClosedPeriod(
            owner_id="u1",
            year_month="2024-03",
            sub_period=SubPeriod.FIRST_HALF,
            start_date=date(2024, 3, 1),
            end_date=date(2024, 3, 16),
        )

    def test_end_is_exclusive(self):
        entry = self._entry()
        assert entry.contains(date(2024, 3, 1))
        assert entry.contains(date(2024, 3, 15))
        assert not entry.contains(date(2024, 3, 16))

    def test_matches(self):
        entry = self._entry()
        assert entry.matches("2024-03", "1-15")
        assert not entry.matches("2024-03", SubPeriod.SECOND_HALF)

    def test_is_frozen(self):
        entry = self._entry()
        with pytest.raises(ValueError):
            entry.total_orders = 3

    def test_reads_stored_names(self):
        entry = ClosedPeriod.model_validate({
            "userId": "u1",
            "period": "2024-03",
            "subPeriod": "16-31",
            "startDate": "2024-03-16",
            "endDate": "2024-04-01",
            "qtyByLabel": {"klik": 5},
        })
        assert entry.sub_period == SubPeriod.SECOND_HALF
        assert entry.qty_by_label == {"klik": Decimal("5")}


class TestAggregationRequest:
    def test_all_means_no_filter(self):
        request = AggregationRequest(motorcycle_id="all", month="all", sub_period="all")
        assert request.motorcycle_id is None
        assert request.month is None
        assert request.sub_period is None
        assert request.period_selector == "all"

    def test_default_follows_today(self):
        request = AggregationRequest.default(date(2024, 3, 20))
        assert request.month == "2024-03"
        assert request.sub_period == SubPeriod.SECOND_HALF

    def test_is_hashable(self):
        a = AggregationRequest(month="2024-03", today=date(2024, 3, 20))
        b = AggregationRequest(month="2024-03", today=date(2024, 3, 20))
        assert hash(a) == hash(b)

    def test_rejects_bad_month(self):
        with pytest.raises(ValueError):
            AggregationRequest(month="March")


class TestBackupModels:
    def test_metadata_accepts_export_date(self):
        metadata = BackupMetadata.model_validate({"userId": "u1", "exportDate": "2024-03-03T10:00:00Z"})
        assert metadata.created_at == datetime(2024, 3, 3, 10, 0)
        assert metadata.export_type == ExportType.FULL

    def test_to_json_uses_stored_names(self):
        document = BackupDocument(
            fuel_stops=[{"price": 10000}],
            metadata=BackupMetadata(user_id="u1", user_email="a@b.c"),
        )
        data = json.loads(document.to_json())
        assert data["fuelStops"] == [{"price": 10000}]
        assert data["dailyKmHistory"] == []
        assert data["metadata"]["userId"] == "u1"
        assert data["metadata"]["exportType"] == "full"
        assert document.record_count == 1


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            owner_id="u1",
            entity_type="orders",
            entity_id="abc",
            description="Test event",
        )
        assert event.event_type == AuditEventType.RECORD_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_sheets_row_round_trip(self):
        event = AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORT_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id="u1",
            correlation_id=uuid4(),
            description="Import stopped",
            details={"imported": 2},
            error_message="boom",
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        restored = AuditEvent.from_sheets_row(row)
        assert restored.event_id == event.event_id
        assert restored.correlation_id == event.correlation_id
        assert restored.details == {"imported": 2}
        assert restored.error_message == "boom"

    def test_builder_book_closed(self):
        event = AuditEventBuilder.book_closed(
            closed_period_id="cp1",
            owner_id="u1",
            year_month="2024-03",
            sub_period="1-15",
            total_orders=2,
            total_nominal="8000",
        )
        assert event.event_type == AuditEventType.BOOK_CLOSED
        assert event.entity_id == "cp1"

    def test_builder_store_failure_is_error(self):
        event = AuditEventBuilder.store_operation_failed(
            operation="insert", kind="orders", owner_id="u1", error_message="offline",
        )
        assert event.event_type == AuditEventType.STORE_OPERATION_FAILED
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "offline"


class TestSettings:
    def test_app_defaults(self):
        from motoring.config import AppSettings

        settings = AppSettings()
        assert settings.trend_months == 6
        assert settings.service_reminder_threshold_km == 1000.0
        assert settings.fuel_total_tolerance == 0.01

    def test_validate_all_settings_reports_each_section(self):
        from motoring.config import validate_all_settings

        results = validate_all_settings()
        assert results["app"] is True
        assert {"google_sheets", "gemini"} <= set(results)
