"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the hosted backend because:
1. Riders can look at their own records directly in a spreadsheet
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (fine for one rider's records)
- No transactions (every write is independent)
- Limited query capabilities (we filter in Python)

Layout: one worksheet per record kind, header row of stored field
names, one record per row. Map columns (closed-period label totals)
are JSON-encoded. Values are written as text and re-validated through
the record models on read.

Reads are retried; writes are not, so a failed append is never
duplicated behind the caller's back.
"""

import json
import typing
from collections.abc import Callable
from datetime import date, datetime
from typing import Any, Optional
from uuid import uuid4

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from motoring.config import get_settings
from motoring.config.settings import GoogleSheetsSettings
from motoring.models.audit import AUDIT_SHEET_HEADERS, AuditEvent
from motoring.models.records import RecordBase, RecordKind
from motoring.models.registry import model_for, store_columns
from motoring.services.storage.filters import apply_changes, matches_filters, newest_first
from motoring.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    KindLike,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)


logger = structlog.get_logger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet lookup with retry logic.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """Authenticate with the service account credentials."""
        if self._client is None:
            try:
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=SCOPES,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(self._settings.spreadsheet_id)
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(f"Spreadsheet not found: {self._settings.spreadsheet_id}")
        return self._spreadsheet

    def get_sheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            logger.info("creating_worksheet", title=title, columns=len(columns))
            sheet = spreadsheet.add_worksheet(title=title, rows=rows, cols=len(columns))
            sheet.append_row(columns)
        return sheet

    def sheet_name_for(self, kind: RecordKind) -> str:
        return {
            RecordKind.ORDER: self._settings.orders_sheet_name,
            RecordKind.SPARE_PART: self._settings.spareparts_sheet_name,
            RecordKind.FUEL_STOP: self._settings.fuel_stops_sheet_name,
            RecordKind.ODOMETER_READING: self._settings.odometer_sheet_name,
            RecordKind.MOTORCYCLE: self._settings.motorcycles_sheet_name,
            RecordKind.CLOSED_PERIOD: self._settings.book_history_sheet_name,
        }[kind]

    def get_record_sheet(self, kind: RecordKind) -> gspread.Worksheet:
        return self.get_sheet(self.sheet_name_for(kind), store_columns(kind))

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_sheet(self._settings.audit_sheet_name, AUDIT_SHEET_HEADERS, rows=5000)


def _json_columns(kind: RecordKind) -> set[str]:
    """Stored names of map-valued fields."""
    model = model_for(kind)
    return {
        field.alias or name
        for name, field in model.model_fields.items()
        if typing.get_origin(field.annotation) is dict
    }


def record_to_row(kind: RecordKind, record: RecordBase, header: list[str]) -> list[str]:
    """Serialize a record into cells following the sheet's header."""
    data = record.to_store_dict()
    json_columns = _json_columns(kind)
    row = []
    for column in header:
        value = data.get(column)
        if value is None:
            row.append("")
        elif column in json_columns:
            row.append(json.dumps(value))
        else:
            row.append(str(value))
    return row


def row_to_record(kind: RecordKind, header: list[str], row: list[str]) -> RecordBase:
    """Rebuild a record from cells; blank cells are missing values."""
    json_columns = _json_columns(kind)
    data: dict[str, Any] = {}
    for column, cell in zip(header, row):
        if cell == "":
            continue
        data[column] = json.loads(cell) if column in json_columns else cell
    return model_for(kind).model_validate(data)


class GoogleSheetsRecordStore(RecordStoreInterface):
    """
    Google Sheets implementation of record storage.

    The first column of every record sheet is the id.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(
        retry=retry_if_exception_type(gspread.exceptions.APIError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _fetch(self, kind: RecordKind) -> tuple[gspread.Worksheet, list[str], list[list[str]]]:
        """Worksheet, header and data rows (row 1 is the header)."""
        sheet = self._client.get_record_sheet(kind)
        values = sheet.get_all_values()
        header = values[0] if values else store_columns(kind)
        return sheet, header, values[1:]

    def _load(self, kind: RecordKind) -> list[RecordBase]:
        _, header, rows = self._fetch(kind)
        records = []
        for row_number, row in enumerate(rows, start=2):
            if not row or not row[0]:
                continue
            try:
                records.append(row_to_record(kind, header, row))
            except (ValidationError, ValueError) as e:
                logger.warning(
                    "skipping_malformed_row",
                    sheet=self._client.sheet_name_for(kind),
                    row=row_number,
                    error=str(e),
                )
        return records

    @staticmethod
    def _find_row(rows: list[list[str]], record_id: str) -> Optional[int]:
        for idx, row in enumerate(rows, start=2):
            if row and row[0] == record_id:
                return idx
        return None

    async def insert(self, kind: KindLike, record: RecordBase) -> str:
        kind = RecordKind(kind)
        model = model_for(kind)
        if not isinstance(record, model):
            raise StorageError(f"{kind.value} expects {model.__name__}, got {type(record).__name__}")

        record_id = uuid4().hex
        stamp = {"id": record_id}
        if record.created_at is None:
            stamp["created_at"] = datetime.utcnow()
        stored = record.model_copy(update=stamp)

        try:
            sheet, header, _ = self._fetch(kind)
            sheet.append_row(record_to_row(kind, stored, header), value_input_option="RAW")
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save {kind.value} record: {e}")
        return record_id

    async def get(self, kind: KindLike, record_id: str) -> Optional[RecordBase]:
        kind = RecordKind(kind)
        try:
            _, header, rows = self._fetch(kind)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get {kind.value} record: {e}")

        idx = self._find_row(rows, record_id)
        if idx is None:
            return None
        return row_to_record(kind, header, rows[idx - 2])

    async def update(
        self,
        kind: KindLike,
        record_id: str,
        changes: dict[str, Any],
    ) -> RecordBase:
        kind = RecordKind(kind)
        try:
            sheet, header, rows = self._fetch(kind)
            idx = self._find_row(rows, record_id)
            if idx is None:
                raise NotFoundError(f"{kind.value} record not found: {record_id}")

            updated = apply_changes(row_to_record(kind, header, rows[idx - 2]), changes)
            sheet.update(
                range_name=f"A{idx}",
                values=[record_to_row(kind, updated, header)],
                value_input_option="RAW",
            )
            return updated
        except (StorageError, ValidationError, ValueError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {kind.value} record: {e}")

    async def delete(self, kind: KindLike, record_id: str) -> bool:
        kind = RecordKind(kind)
        try:
            sheet, _, rows = self._fetch(kind)
            idx = self._find_row(rows, record_id)
            if idx is None:
                return False
            sheet.delete_rows(idx)
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {kind.value} record: {e}")

    async def batch_delete(
        self,
        kind: KindLike,
        owner_id: str,
        predicate: Callable[[RecordBase], bool],
    ) -> int:
        kind = RecordKind(kind)
        try:
            sheet, header, rows = self._fetch(kind)
            doomed = []
            for idx, row in enumerate(rows, start=2):
                if not row or not row[0]:
                    continue
                try:
                    record = row_to_record(kind, header, row)
                except (ValidationError, ValueError):
                    continue
                if record.owner_id == owner_id and predicate(record):
                    doomed.append(idx)

            # Bottom-up so earlier row numbers stay valid
            for idx in reversed(doomed):
                sheet.delete_rows(idx)
            return len(doomed)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete {kind.value} records: {e}")

    async def list_records(
        self,
        kind: KindLike,
        owner_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        motorcycle_id: Optional[str] = None,
    ) -> list[RecordBase]:
        kind = RecordKind(kind)
        try:
            records = self._load(kind)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list {kind.value} records: {e}")

        return newest_first([
            record for record in records
            if record.owner_id == owner_id
            and matches_filters(record, date_from, date_to, motorcycle_id)
        ])


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning("audit_append_failed", error=str(e), event_id=str(event.event_id))
            return False

    def _load_events(self) -> list[AuditEvent]:
        try:
            rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

        events = []
        for row in rows:
            if not row or not row[0]:
                continue
            try:
                events.append(AuditEvent.from_sheets_row(row))
            except (ValidationError, ValueError) as e:
                logger.warning("skipping_malformed_audit_row", error=str(e))
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            event for event in self._load_events()
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        owner_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = [
            event for event in self._load_events()
            if owner_id is None or event.owner_id == owner_id
        ]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
