"""
Main Orchestrator for Motoring

This module ties together all the components and defines the
end-to-end flows for:
1. Records (validate → store → audit, with cascades and odometer upserts)
2. Dashboard (snapshot → period aggregation → reminders)
3. Ledger (close books → open orders → text report)
4. Backup (export / import)
5. Assistant (context → chat completion → fallback)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing reaches the store without passing validation
- A rider only ever sees or changes their own records
- Every write and every failure is audited
- Store failures surface as one generic "try again" error; user writes
  are never retried automatically
"""

import asyncio
from collections.abc import Awaitable, Sequence
from datetime import date, datetime
from typing import Any, NamedTuple, Optional, TypeVar, Union

import structlog

from motoring.agents import (
    AssistantContextBuilder,
    AssistantError,
    ChatAssistant,
    ConversationMessage,
    build_system_prompt,
)
from motoring.audit import AuditLogger
from motoring.backup import BackupService
from motoring.config import get_settings
from motoring.config.settings import AppSettings
from motoring.ledger import BookClosingLedger, PeriodRef
from motoring.models.ledger import ClosedPeriod, CloseBookResult
from motoring.models.records import Order, RecordBase, RecordKind, SubPeriod
from motoring.models.reports import (
    AggregationRequest,
    PeriodReport,
    RecordSnapshot,
    ServiceReminder,
)
from motoring.reports import (
    OrderReportFormatter,
    PeriodAggregator,
    available_months,
    service_reminders,
)
from motoring.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryAuditStorage,
    InMemoryRecordStore,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)
from motoring.validation import RecordValidationError, RecordValidator


logger = structlog.get_logger(__name__)

T = TypeVar("T")

GENERIC_FAILURE_MESSAGE = "The operation failed. Please try again."
ASSISTANT_FALLBACK_MESSAGE = (
    "Sorry, the assistant can't answer right now. Please try again in a moment."
)

# Kinds the rider edits directly; ledger entries are written by close_book only
EDITABLE_KINDS = (
    RecordKind.ORDER,
    RecordKind.SPARE_PART,
    RecordKind.FUEL_STOP,
    RecordKind.ODOMETER_READING,
    RecordKind.MOTORCYCLE,
)


class OperationFailedError(Exception):
    """A store call failed; the rider should simply try again."""

    def __init__(self, message: str = GENERIC_FAILURE_MESSAGE, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class _Flow:
    """Shared store-failure handling for the flows."""

    def __init__(self, store: RecordStoreInterface, audit_logger: Optional[AuditLogger] = None):
        self._store = store
        self._audit_logger = audit_logger

    async def _call(
        self,
        awaitable: Awaitable[T],
        operation: str,
        kind: Union[RecordKind, str],
        owner_id: Optional[str],
        record_id: Optional[str] = None,
    ) -> T:
        """
        Await a store call.

        NotFoundError passes through unchanged; any other StorageError is
        logged, audited and replaced by OperationFailedError.
        """
        try:
            return await awaitable
        except NotFoundError:
            raise
        except StorageError as e:
            kind_name = getattr(kind, "value", kind)
            logger.error(
                "store_operation_failed",
                operation=operation,
                kind=kind_name,
                record_id=record_id,
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_store_failure(
                    operation=operation,
                    kind=kind_name,
                    owner_id=owner_id,
                    error_message=str(e),
                    record_id=record_id,
                )
            raise OperationFailedError(cause=e) from e


class RecordFlow(_Flow):
    """
    Create, update and delete the rider's records.

    Flow:
    1. Validate → RecordValidationError before any store call
    2. Store → one write, never retried
    3. Audit → created / updated / deleted
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        validator: Optional[RecordValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(store, audit_logger)
        self._validator = validator or RecordValidator()

    @staticmethod
    def _editable(kind: Union[RecordKind, str]) -> RecordKind:
        kind = RecordKind(kind)
        if kind not in EDITABLE_KINDS:
            raise ValueError(f"{kind.value} records can't be edited directly")
        return kind

    async def _owned(self, kind: RecordKind, owner_id: str, record_id: str) -> RecordBase:
        """The record, if it exists and belongs to owner_id."""
        record = await self._call(self._store.get(kind, record_id), "get", kind, owner_id, record_id)
        if record is None or record.owner_id != owner_id:
            raise NotFoundError(f"{kind.value} {record_id} not found")
        return record

    async def _reject(self, kind: RecordKind, owner_id: str, error: RecordValidationError) -> None:
        if self._audit_logger:
            await self._audit_logger.log_validation_failed(
                kind=kind.value,
                owner_id=owner_id,
                issues=[issue.model_dump() for issue in error.result.issues if issue.severity == "error"],
            )

    async def create_record(
        self,
        kind: Union[RecordKind, str],
        owner_id: str,
        data: dict[str, Any],
    ) -> RecordBase:
        """
        Validate and store a new record.

        Raises:
            RecordValidationError: If the input is rejected
            OperationFailedError: If the store call failed
        """
        kind = self._editable(kind)
        try:
            record = self._validator.build(kind, owner_id, data)
        except RecordValidationError as e:
            await self._reject(kind, owner_id, e)
            raise

        record = record.model_copy(update={"created_at": datetime.utcnow()})
        record_id = await self._call(self._store.insert(kind, record), "insert", kind, owner_id)
        record = record.model_copy(update={"id": record_id})

        if self._audit_logger:
            await self._audit_logger.log_record_created(
                kind=kind.value,
                record_id=record_id,
                owner_id=owner_id,
                summary=record.to_store_dict(),
            )
        return record

    async def update_record(
        self,
        kind: Union[RecordKind, str],
        owner_id: str,
        record_id: str,
        changes: dict[str, Any],
    ) -> RecordBase:
        """
        Apply a partial update to one of the owner's records.

        Raises:
            NotFoundError: If the record doesn't exist or isn't the owner's
            RecordValidationError: If the merged record is rejected
            OperationFailedError: If the store call failed
        """
        kind = self._editable(kind)
        current = await self._owned(kind, owner_id, record_id)

        result = self._validator.validate_changes(kind, current, changes)
        if not result.is_valid:
            error = RecordValidationError(result)
            await self._reject(kind, owner_id, error)
            raise error

        try:
            updated = await self._call(
                self._store.update(kind, record_id, changes), "update", kind, owner_id, record_id
            )
        except ValueError as e:
            # Field-level rejection from the model itself (unknown or immutable field)
            logger.warning("update_rejected", kind=kind.value, record_id=record_id, error=str(e))
            raise

        if self._audit_logger:
            await self._audit_logger.log_record_updated(
                kind=kind.value,
                record_id=record_id,
                owner_id=owner_id,
                changed_fields=sorted(changes),
            )
        return updated

    async def delete_record(
        self,
        kind: Union[RecordKind, str],
        owner_id: str,
        record_id: str,
    ) -> None:
        """
        Delete one of the owner's records.

        Deleting a motorcycle also deletes its spare parts. The parts go
        first, so a failure never leaves parts pointing at nothing.
        """
        kind = self._editable(kind)
        await self._owned(kind, owner_id, record_id)

        cascaded: dict[str, int] = {}
        if kind == RecordKind.MOTORCYCLE:
            removed = await self._call(
                self._store.batch_delete(
                    RecordKind.SPARE_PART,
                    owner_id,
                    lambda part: part.motorcycle_id == record_id,
                ),
                "batch_delete",
                RecordKind.SPARE_PART,
                owner_id,
                record_id,
            )
            cascaded[RecordKind.SPARE_PART.value] = removed

        await self._call(self._store.delete(kind, record_id), "delete", kind, owner_id, record_id)

        if self._audit_logger:
            await self._audit_logger.log_record_deleted(
                kind=kind.value,
                record_id=record_id,
                owner_id=owner_id,
                cascaded=cascaded or None,
            )

    async def record_odometer(self, owner_id: str, data: dict[str, Any]) -> RecordBase:
        """
        Save the day's odometer reading for a motorcycle.

        A motorcycle has at most one reading per day: an existing reading
        for the same day is updated instead of adding another.
        """
        kind = RecordKind.ODOMETER_READING
        try:
            reading = self._validator.build(kind, owner_id, data)
        except RecordValidationError as e:
            await self._reject(kind, owner_id, e)
            raise

        existing = await self._call(
            self._store.list_records(
                kind,
                owner_id,
                date_from=reading.record_date,
                date_to=reading.record_date,
                motorcycle_id=reading.motorcycle_id,
            ),
            "list",
            kind,
            owner_id,
        )
        if not existing:
            return await self.create_record(kind, owner_id, data)

        return await self.update_record(
            kind,
            owner_id,
            existing[0].id,
            {"odometer_km": reading.odometer_km},
        )


class DashboardFlow(_Flow):
    """Period figures, service reminders and the month picker."""

    def __init__(
        self,
        store: RecordStoreInterface,
        settings: Optional[AppSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(store, audit_logger)
        self._settings = settings or get_settings().app

    async def load_snapshot(self, owner_id: str) -> RecordSnapshot:
        """Read every collection the dashboard needs, concurrently."""
        kinds = (
            RecordKind.ORDER,
            RecordKind.SPARE_PART,
            RecordKind.FUEL_STOP,
            RecordKind.ODOMETER_READING,
            RecordKind.MOTORCYCLE,
        )
        results = await self._call(
            asyncio.gather(*(self._store.list_records(kind, owner_id) for kind in kinds)),
            "list",
            "snapshot",
            owner_id,
        )
        orders, spare_parts, fuel_stops, readings, motorcycles = results
        return RecordSnapshot(
            orders=tuple(orders),
            spare_parts=tuple(spare_parts),
            fuel_stops=tuple(fuel_stops),
            odometer_readings=tuple(readings),
            motorcycles=tuple(motorcycles),
        )

    async def aggregator(self, owner_id: str) -> PeriodAggregator:
        """
        An aggregator over a fresh snapshot.

        Keep it while the rider flips through filters; repeated requests
        are served from its cache.
        """
        snapshot = await self.load_snapshot(owner_id)
        return PeriodAggregator(snapshot, trend_months=self._settings.trend_months)

    async def report(
        self,
        owner_id: str,
        request: Optional[AggregationRequest] = None,
    ) -> PeriodReport:
        aggregator = await self.aggregator(owner_id)
        return aggregator.aggregate(request or AggregationRequest.default())

    async def reminders(self, owner_id: str, today: Optional[date] = None) -> list[ServiceReminder]:
        spare_parts, readings = await self._call(
            asyncio.gather(
                self._store.list_records(RecordKind.SPARE_PART, owner_id),
                self._store.list_records(RecordKind.ODOMETER_READING, owner_id),
            ),
            "list",
            RecordKind.SPARE_PART,
            owner_id,
        )
        return service_reminders(
            spare_parts,
            readings,
            threshold_km=self._settings.service_reminder_threshold_km,
            today=today,
        )

    async def months(self, owner_id: str, today: Optional[date] = None) -> list[str]:
        """Months with activity for the month picker, newest first."""
        snapshot = await self.load_snapshot(owner_id)
        records = [*snapshot.orders, *snapshot.spare_parts, *snapshot.fuel_stops]
        return available_months(records, today)


class LedgerFlow(_Flow):
    """Book closing and the open-orders report."""

    def __init__(
        self,
        store: RecordStoreInterface,
        ledger: Optional[BookClosingLedger] = None,
        formatter: Optional[OrderReportFormatter] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(store, audit_logger)
        self._ledger = ledger or BookClosingLedger(store, audit_logger)
        self._formatter = formatter or OrderReportFormatter(get_settings().app.currency_label)

    async def close_book(
        self,
        owner_id: str,
        month: int,
        year: int,
        sub_period: Union[SubPeriod, str],
    ) -> CloseBookResult:
        return await self._call(
            self._ledger.close_book(owner_id, month, year, SubPeriod(sub_period)),
            "close_book",
            RecordKind.CLOSED_PERIOD,
            owner_id,
        )

    async def history(self, owner_id: str) -> list[ClosedPeriod]:
        return await self._call(
            self._ledger.history(owner_id), "list", RecordKind.CLOSED_PERIOD, owner_id
        )

    async def open_orders(
        self,
        owner_id: str,
        month: Optional[str] = None,
        sub_period: Optional[SubPeriod] = None,
    ) -> list[Order]:
        return await self._call(
            self._ledger.list_open_orders(owner_id, month, sub_period),
            "list",
            RecordKind.ORDER,
            owner_id,
        )

    async def closable_periods(self, owner_id: str, today: Optional[date] = None) -> list[PeriodRef]:
        return await self._call(
            self._ledger.closable_periods(owner_id, today),
            "list",
            RecordKind.CLOSED_PERIOD,
            owner_id,
        )

    async def render_open_orders_report(
        self,
        owner_id: str,
        year_month: str,
        sub_period: Optional[Union[SubPeriod, str]] = None,
        include_currency: bool = False,
    ) -> str:
        """Text report of the still-open orders of a month or half."""
        sub_period = SubPeriod(sub_period) if sub_period else None
        orders = await self.open_orders(owner_id, year_month, sub_period)
        return self._formatter.render(orders, year_month, sub_period, include_currency=include_currency)


class AssistantFlow(_Flow):
    """
    Chat with the assistant about the rider's records.

    The assistant is optional: without one (not configured) and whenever
    the remote call fails, the rider gets the fallback message.
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        assistant: Optional[ChatAssistant] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        super().__init__(store, audit_logger)
        self._assistant = assistant
        self._context_builder = AssistantContextBuilder(store)

    async def ask(
        self,
        owner_id: str,
        history: Sequence[ConversationMessage],
        page: Optional[str] = None,
    ) -> str:
        if not self._assistant:
            return ASSISTANT_FALLBACK_MESSAGE

        try:
            context = await self._context_builder.dashboard_summary(owner_id)
        except StorageError as e:
            # Answer without context rather than not at all
            logger.warning("assistant_context_unavailable", owner_id=owner_id, error=str(e))
            context = None

        succeeded = True
        try:
            answer = await self._assistant.chat_complete(build_system_prompt(page), history, context)
        except AssistantError as e:
            succeeded = False
            answer = ASSISTANT_FALLBACK_MESSAGE
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="gemini",
                    error_message=str(e),
                    owner_id=owner_id,
                )

        if self._audit_logger:
            await self._audit_logger.log_assistant_queried(
                owner_id=owner_id,
                message_count=len(history),
                succeeded=succeeded,
            )
        return answer


class AppComponents(NamedTuple):
    records: RecordFlow
    dashboard: DashboardFlow
    ledger: LedgerFlow
    backup: BackupService
    assistant: AssistantFlow
    store: RecordStoreInterface
    audit_storage: AuditStorageInterface


def create_app_components(use_storage: bool = True) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on the in-memory store.
    """
    store: RecordStoreInterface = InMemoryRecordStore()
    audit_storage: AuditStorageInterface = InMemoryAuditStorage()

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            store = GoogleSheetsRecordStore(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))

    audit_logger = AuditLogger(audit_storage)

    assistant = None
    try:
        assistant = ChatAssistant()
    except Exception as e:
        # Assistant not configured - the chat answers with the fallback
        logger.warning("assistant_not_configured", error=str(e))

    validator = RecordValidator()

    return AppComponents(
        records=RecordFlow(store, validator, audit_logger),
        dashboard=DashboardFlow(store, audit_logger=audit_logger),
        ledger=LedgerFlow(store, audit_logger=audit_logger),
        backup=BackupService(store, audit_logger, validator),
        assistant=AssistantFlow(store, assistant, audit_logger),
        store=store,
        audit_storage=audit_storage,
    )
