"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep Google Sheets or move to a real database later
2. Use in-memory storage for tests and local runs
3. Keep ledger, reports and backups decoupled from the backend

The interface is intentionally small: typed records in, typed records
out, filtered per owner. Every call is independent; there are no
transactions, so multi-record operations can complete partially.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import date
from typing import Any, Optional, Union

from motoring.models.audit import AuditEvent
from motoring.models.records import RecordBase, RecordKind


KindLike = Union[RecordKind, str]


class RecordStoreInterface(ABC):
    """
    Abstract interface for record storage.

    Any storage implementation (Google Sheets, in-memory, a database)
    must implement these methods. Records are returned as the model
    registered for their kind (see models.registry).
    """

    @abstractmethod
    async def insert(self, kind: KindLike, record: RecordBase) -> str:
        """
        Store a new record.

        The store assigns the id and, if missing, created_at.

        Returns:
            The new record's id

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def get(self, kind: KindLike, record_id: str) -> Optional[RecordBase]:
        """Retrieve a record by id, None if it doesn't exist."""
        pass

    @abstractmethod
    async def update(
        self,
        kind: KindLike,
        record_id: str,
        changes: dict[str, Any],
    ) -> RecordBase:
        """
        Apply a partial update.

        Args:
            changes: Field values keyed by attribute name or stored alias

        Returns:
            The updated record (computed fields recomputed)

        Raises:
            NotFoundError: If the record doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, kind: KindLike, record_id: str) -> bool:
        """Delete a record. Returns False if it didn't exist."""
        pass

    @abstractmethod
    async def batch_delete(
        self,
        kind: KindLike,
        owner_id: str,
        predicate: Callable[[RecordBase], bool],
    ) -> int:
        """
        Delete every record of the owner matching the predicate.

        Returns:
            Number of records deleted
        """
        pass

    @abstractmethod
    async def list_records(
        self,
        kind: KindLike,
        owner_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        motorcycle_id: Optional[str] = None,
    ) -> list[RecordBase]:
        """
        List an owner's records.

        Args:
            date_from: Keep records whose resolved date is on or after this day
            date_to: Keep records whose resolved date is on or before this day
            motorcycle_id: Exact motorcycle match (records without one are excluded)

        Returns:
            Matching records, newest created first. Callers must not rely
            on any other ordering.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Returns True if persisted."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """All events for one record, oldest first."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        owner_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events (newest first), optionally for one owner."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
