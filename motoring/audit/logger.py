"""
Audit Logger

DESIGN DECISION: Every write and every failure is logged.
This provides:
1. Traceability of what changed and who changed it
2. Debugging capability when the store or assistant fails
3. The rider's own audit trail

The audit logger:
- Always writes a structured local log line
- Persists best-effort: a failing audit store never breaks the caller
- Supports correlation IDs to trace the events of one bulk operation
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from motoring.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from motoring.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The audit store (for persistence and the audit trail page)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("motoring.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_record_created(
        self,
        kind: str,
        record_id: str,
        owner_id: str,
        summary: Optional[dict] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_created(kind, record_id, owner_id, summary))

    async def log_record_updated(
        self,
        kind: str,
        record_id: str,
        owner_id: str,
        changed_fields: list[str],
    ) -> None:
        await self.log(AuditEventBuilder.record_updated(kind, record_id, owner_id, changed_fields))

    async def log_record_deleted(
        self,
        kind: str,
        record_id: str,
        owner_id: str,
        cascaded: Optional[dict[str, int]] = None,
    ) -> None:
        await self.log(AuditEventBuilder.record_deleted(kind, record_id, owner_id, cascaded))

    async def log_validation_failed(
        self,
        kind: str,
        owner_id: str,
        issues: list[dict],
    ) -> None:
        """Log rejected input."""
        await self.log(AuditEventBuilder.validation_failed(kind, owner_id, issues))

    async def log_book_closed(
        self,
        closed_period_id: str,
        owner_id: str,
        year_month: str,
        sub_period: str,
        total_orders: int,
        total_nominal: str,
    ) -> None:
        event = AuditEventBuilder.book_closed(
            closed_period_id=closed_period_id,
            owner_id=owner_id,
            year_month=year_month,
            sub_period=sub_period,
            total_orders=total_orders,
            total_nominal=total_nominal,
        )
        await self.log(event)

    async def log_book_close_skipped(
        self,
        owner_id: str,
        year_month: str,
        sub_period: str,
        reason: str,
    ) -> None:
        await self.log(AuditEventBuilder.book_close_skipped(owner_id, year_month, sub_period, reason))

    async def log_backup_exported(
        self,
        owner_id: str,
        export_type: str,
        record_counts: dict[str, int],
    ) -> None:
        await self.log(AuditEventBuilder.backup_exported(owner_id, export_type, record_counts))

    async def log_backup_imported(
        self,
        owner_id: str,
        export_type: str,
        imported: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.backup_imported(owner_id, export_type, imported, correlation_id))

    async def log_backup_import_failed(
        self,
        owner_id: str,
        imported: int,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.backup_import_failed(
            owner_id=owner_id,
            imported=imported,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_assistant_queried(
        self,
        owner_id: str,
        message_count: int,
        succeeded: bool,
    ) -> None:
        await self.log(AuditEventBuilder.assistant_queried(owner_id, message_count, succeeded))

    async def log_store_failure(
        self,
        operation: str,
        kind: str,
        owner_id: Optional[str],
        error_message: str,
        record_id: Optional[str] = None,
    ) -> None:
        """Log a failed store call."""
        event = AuditEventBuilder.store_operation_failed(
            operation=operation,
            kind=kind,
            owner_id=owner_id,
            error_message=error_message,
            record_id=record_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        owner_id: Optional[str] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(service, error_message, owner_id))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a bulk operation (e.g. a backup import)
    and pass it to every event it produces.
    """
    return uuid4()
