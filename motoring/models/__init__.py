"""
Data Models Package

This package contains all Pydantic models used in Motoring.
Stored records, backups and reports all conform to these schemas.
"""

from motoring.models.records import (
    DailyOdometerReading,
    FuelStop,
    Motorcycle,
    Order,
    OrderLabel,
    RecordBase,
    RecordKind,
    SparePart,
    SubPeriod,
    UserIdentity,
)
from motoring.models.ledger import (
    ClosedPeriod,
    CloseBookResult,
    CloseBookStatus,
)
from motoring.models.reports import (
    AggregationRequest,
    MonthlyTrend,
    PeriodReport,
    RecordSnapshot,
    ReminderStatus,
    ServiceReminder,
)
from motoring.models.backup import (
    BackupDocument,
    BackupMetadata,
    BulkOperationResult,
    ExportType,
)
from motoring.models.validation import ValidationIssue, ValidationResult
from motoring.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from motoring.models.registry import RECORD_MODELS, model_for

__all__ = [
    # Record models
    "DailyOdometerReading",
    "FuelStop",
    "Motorcycle",
    "Order",
    "OrderLabel",
    "RecordBase",
    "RecordKind",
    "SparePart",
    "SubPeriod",
    "UserIdentity",
    "RECORD_MODELS",
    "model_for",
    # Ledger models
    "ClosedPeriod",
    "CloseBookResult",
    "CloseBookStatus",
    # Reports
    "AggregationRequest",
    "MonthlyTrend",
    "PeriodReport",
    "RecordSnapshot",
    "ReminderStatus",
    "ServiceReminder",
    # Backups
    "BackupDocument",
    "BackupMetadata",
    "BulkOperationResult",
    "ExportType",
    # Validation
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
