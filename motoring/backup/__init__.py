"""Backup export and import."""

from motoring.backup.service import (
    BackupService,
    BackupValidationError,
    backup_filename,
    export_filename,
    parse_backup,
)

__all__ = [
    "BackupService",
    "BackupValidationError",
    "backup_filename",
    "export_filename",
    "parse_backup",
]
