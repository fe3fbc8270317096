"""
Backup Export and Import

Export collects the owner's records into one JSON document; import
writes a document's records back under the caller's id.

DESIGN DECISION: there is no transaction across records. Import writes
one record at a time, stops at the first failure and leaves the
records already written in place. The BulkOperationResult says exactly
which ones made it, so a retry can be reasoned about.
"""

import json
from collections.abc import Callable
from datetime import date
from math import floor
from typing import Optional, Union

from pydantic import ValidationError

from motoring.audit import AuditLogger, create_correlation_id
from motoring.models.backup import (
    EXPORT_KINDS,
    BackupDocument,
    BackupMetadata,
    BulkOperationResult,
    ExportType,
)
from motoring.models.records import RecordKind, UserIdentity
from motoring.models.registry import model_for
from motoring.services.storage import RecordStoreInterface, StorageError
from motoring.validation import RecordValidationError, RecordValidator


ProgressCallback = Callable[[int, str], None]

# Kind order in documents, with the progress reached after exporting each
EXPORT_STEPS: list[tuple[RecordKind, int]] = [
    (RecordKind.ORDER, 20),
    (RecordKind.SPARE_PART, 40),
    (RecordKind.FUEL_STOP, 60),
    (RecordKind.MOTORCYCLE, 80),
    (RecordKind.ODOMETER_READING, 90),
]

# Kind order on import, with the progress band each kind fills
IMPORT_BANDS: list[tuple[RecordKind, int, int]] = [
    (RecordKind.ORDER, 5, 25),
    (RecordKind.SPARE_PART, 25, 45),
    (RecordKind.FUEL_STOP, 45, 65),
    (RecordKind.MOTORCYCLE, 65, 85),
    (RecordKind.ODOMETER_READING, 85, 100),
]


class BackupValidationError(ValueError):
    """The backup file can't be imported (malformed, or another user's)."""
    pass


def _report(progress: Optional[ProgressCallback], percent: int, message: str) -> None:
    if progress is not None:
        progress(percent, message)


def export_filename(export_type: Union[ExportType, str], today: Optional[date] = None) -> str:
    """`motoring_<type>_export_<YYYY-MM-DD>.json`"""
    today = today or date.today()
    return f"motoring_{ExportType(export_type).value}_export_{today.isoformat()}.json"


def backup_filename(today: Optional[date] = None) -> str:
    """`motoring_backup_<YYYY-MM-DD>.json`"""
    today = today or date.today()
    return f"motoring_backup_{today.isoformat()}.json"


def parse_backup(text: Union[str, bytes]) -> BackupDocument:
    """
    Parse an uploaded backup file.

    Raises:
        BackupValidationError: If the text isn't a backup document
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise BackupValidationError(f"Backup file is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise BackupValidationError("Backup file must contain a JSON object")
    if not isinstance(data.get("metadata"), dict) or not data["metadata"].get("userId"):
        raise BackupValidationError("Backup file has no owner metadata")

    try:
        return BackupDocument.model_validate(data)
    except ValidationError as e:
        raise BackupValidationError(f"Backup file has an unexpected shape: {e}")


class BackupService:
    """
    Usage:
        service = BackupService(store, audit_logger)
        document = await service.export_backup(user, ExportType.FULL)
        result = await service.import_backup(user.id, parse_backup(text))
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[RecordValidator] = None,
    ):
        self._store = store
        self._audit = audit_logger
        self._validator = validator or RecordValidator()

    async def export_backup(
        self,
        user: UserIdentity,
        export_type: ExportType = ExportType.FULL,
        progress: Optional[ProgressCallback] = None,
    ) -> BackupDocument:
        """
        Collect the kinds covered by export_type.

        Odometer history is only part of full exports.
        """
        export_type = ExportType(export_type)
        wanted = EXPORT_KINDS[export_type]
        _report(progress, 0, "Starting export")

        arrays: dict[RecordKind, list[dict]] = {}
        for kind, percent in EXPORT_STEPS:
            if kind not in wanted:
                continue
            records = await self._store.list_records(kind, user.id)
            arrays[kind] = [record.to_store_dict() for record in records]
            _report(progress, percent, f"Exported {len(records)} {kind.value}")

        document = BackupDocument(
            orders=arrays.get(RecordKind.ORDER, []),
            spareparts=arrays.get(RecordKind.SPARE_PART, []),
            fuel_stops=arrays.get(RecordKind.FUEL_STOP, []),
            motorcycles=arrays.get(RecordKind.MOTORCYCLE, []),
            daily_km_history=arrays.get(RecordKind.ODOMETER_READING, []),
            metadata=BackupMetadata(
                user_id=user.id,
                user_email=user.email,
                export_type=export_type,
            ),
        )
        _report(progress, 100, "Export complete")

        if self._audit:
            await self._audit.log_backup_exported(
                owner_id=user.id,
                export_type=export_type.value,
                record_counts={kind.value: len(rows) for kind, rows in arrays.items()},
            )
        return document

    async def import_backup(
        self,
        user_id: str,
        document: BackupDocument,
        progress: Optional[ProgressCallback] = None,
    ) -> BulkOperationResult:
        """
        Write the document's records under user_id.

        Only kinds covered by the document's export type are imported.
        Source ids are dropped; each record gets a new one. Each record
        goes through the validator's semantic checks before it is written.

        Raises:
            BackupValidationError: If the document belongs to another user
        """
        if document.metadata.user_id != user_id:
            raise BackupValidationError("This backup belongs to a different user")

        correlation_id = create_correlation_id()
        allowed = EXPORT_KINDS[document.metadata.export_type]
        result = BulkOperationResult()
        _report(progress, 5, "Starting import")

        for kind, band_start, band_end in IMPORT_BANDS:
            rows = document.records_for(kind) if kind in allowed else []
            for index, row in enumerate(rows):
                source_id = str(row.get("id") or f"{kind.value}[{index}]")
                data = {key: value for key, value in row.items() if key != "id"}
                data["userId"] = user_id

                try:
                    record = model_for(kind).model_validate(data)
                    checked = self._validator.validate_record(kind, record)
                    if not checked.is_valid:
                        raise RecordValidationError(checked)
                    new_id = await self._store.insert(kind, record)
                except (ValueError, StorageError) as e:
                    result.failed_ids.append(source_id)
                    result.first_error = f"{kind.value} {source_id}: {e}"
                    result.aborted = True
                    if self._audit:
                        await self._audit.log_backup_import_failed(
                            owner_id=user_id,
                            imported=result.succeeded_count,
                            error_message=result.first_error,
                            correlation_id=correlation_id,
                        )
                    return result

                result.succeeded_ids.append(new_id)
                percent = floor(band_start + (index / len(rows)) * (band_end - band_start))
                _report(progress, percent, f"Importing {kind.value}")

            _report(progress, band_end, f"Imported {kind.value}")

        if self._audit:
            await self._audit.log_backup_imported(
                owner_id=user_id,
                export_type=document.metadata.export_type.value,
                imported=result.succeeded_count,
                correlation_id=correlation_id,
            )
        return result
