"""
Audit Models for Motoring

Every write a rider makes, and every failure on the way, is logged for
audit purposes. This provides:
1. Traceability of record changes and closed books
2. Debugging information when the store or the assistant fails
3. The history shown on the audit trail page

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Record writes
    RECORD_CREATED = "record_created"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"
    VALIDATION_FAILED = "validation_failed"

    # Ledger
    BOOK_CLOSED = "book_closed"
    BOOK_CLOSE_SKIPPED = "book_close_skipped"

    # Backups
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_IMPORTED = "backup_imported"
    BACKUP_IMPORT_FAILED = "backup_import_failed"

    # Assistant
    ASSISTANT_QUERIED = "assistant_queried"

    # System events
    STORE_OPERATION_FAILED = "store_operation_failed"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    entity_id is the store identifier of the record the event is about;
    owner_id is the user who made the change.
    """

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    owner_id: Optional[str] = None
    entity_type: Optional[str] = Field(
        default=None,
        description="Record kind (e.g. 'orders', 'bookHistory')"
    )
    entity_id: Optional[str] = None
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="Ties together the events of one bulk operation"
    )

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row for the audit worksheet.

        Columns: [event_id, timestamp, event_type, severity, owner_id,
        entity_type, entity_id, correlation_id, description, details_json,
        error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.owner_id or "",
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]

    @classmethod
    def from_sheets_row(cls, row: list) -> "AuditEvent":
        """Inverse of to_sheets_row."""
        padded = list(row) + [""] * (12 - len(row))
        return cls(
            event_id=UUID(padded[0]),
            timestamp=datetime.fromisoformat(padded[1]),
            event_type=AuditEventType(padded[2]),
            severity=AuditSeverity(padded[3]),
            owner_id=padded[4] or None,
            entity_type=padded[5] or None,
            entity_id=padded[6] or None,
            correlation_id=UUID(padded[7]) if padded[7] else None,
            description=padded[8],
            details=json.loads(padded[9]) if padded[9] else {},
            error_message=padded[10] or None,
            is_user_action=str(padded[11]).lower() == "true",
        )


AUDIT_SHEET_HEADERS = [
    "event_id", "timestamp", "event_type", "severity", "owner_id",
    "entity_type", "entity_id", "correlation_id", "description",
    "details", "error_message", "is_user_action",
]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_created("orders", order_id, owner_id, summary)
        event = AuditEventBuilder.book_closed(closed_period)
    """

    @staticmethod
    def record_created(
        kind: str,
        record_id: str,
        owner_id: str,
        summary: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            owner_id=owner_id,
            entity_type=kind,
            entity_id=record_id,
            description=f"Created {kind} record",
            details=summary or {},
            is_user_action=True,
        )

    @staticmethod
    def record_updated(
        kind: str,
        record_id: str,
        owner_id: str,
        changed_fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_UPDATED,
            owner_id=owner_id,
            entity_type=kind,
            entity_id=record_id,
            description=f"Updated {kind} record ({len(changed_fields)} fields)",
            details={"changed_fields": changed_fields},
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(
        kind: str,
        record_id: str,
        owner_id: str,
        cascaded: Optional[dict[str, int]] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            owner_id=owner_id,
            entity_type=kind,
            entity_id=record_id,
            description=f"Deleted {kind} record",
            details={"cascaded": cascaded} if cascaded else {},
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        kind: str,
        owner_id: str,
        issues: list[dict],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type=kind,
            description=f"{kind} input rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )

    @staticmethod
    def book_closed(
        closed_period_id: str,
        owner_id: str,
        year_month: str,
        sub_period: str,
        total_orders: int,
        total_nominal: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BOOK_CLOSED,
            owner_id=owner_id,
            entity_type="bookHistory",
            entity_id=closed_period_id,
            description=f"Closed book {year_month} {sub_period}: {total_orders} orders",
            details={
                "period": year_month,
                "sub_period": sub_period,
                "total_orders": total_orders,
                "total_nominal": total_nominal,
            },
            is_user_action=True,
        )

    @staticmethod
    def book_close_skipped(
        owner_id: str,
        year_month: str,
        sub_period: str,
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BOOK_CLOSE_SKIPPED,
            owner_id=owner_id,
            entity_type="bookHistory",
            description=f"Close book {year_month} {sub_period} skipped: {reason}",
            details={"period": year_month, "sub_period": sub_period, "reason": reason},
            is_user_action=True,
        )

    @staticmethod
    def backup_exported(
        owner_id: str,
        export_type: str,
        record_counts: dict[str, int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            owner_id=owner_id,
            description=f"Exported {export_type} backup",
            details={"export_type": export_type, "record_counts": record_counts},
            is_user_action=True,
        )

    @staticmethod
    def backup_imported(
        owner_id: str,
        export_type: str,
        imported: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORTED,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Imported {imported} records from {export_type} backup",
            details={"export_type": export_type, "imported": imported},
            is_user_action=True,
        )

    @staticmethod
    def backup_import_failed(
        owner_id: str,
        imported: int,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORT_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            correlation_id=correlation_id,
            description=f"Backup import aborted after {imported} records",
            error_message=error_message,
            details={"imported": imported},
            is_user_action=True,
        )

    @staticmethod
    def assistant_queried(
        owner_id: str,
        message_count: int,
        succeeded: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSISTANT_QUERIED,
            severity=AuditSeverity.INFO if succeeded else AuditSeverity.WARNING,
            owner_id=owner_id,
            description="Assistant answered" if succeeded else "Assistant unavailable",
            details={"message_count": message_count, "succeeded": succeeded},
            is_user_action=True,
        )

    @staticmethod
    def store_operation_failed(
        operation: str,
        kind: str,
        owner_id: Optional[str],
        error_message: str,
        record_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_OPERATION_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            entity_type=kind,
            entity_id=record_id,
            description=f"Store {operation} failed for {kind}",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        owner_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
        )
