"""
In-memory Storage

Dict-backed implementations of both storage interfaces. Used by the
test suite and when no spreadsheet is configured.
"""

from collections import defaultdict
from collections.abc import Callable
from datetime import date, datetime
from typing import Any, Optional
from uuid import uuid4

from motoring.models.audit import AuditEvent
from motoring.models.records import RecordBase, RecordKind
from motoring.models.registry import model_for
from motoring.services.storage.filters import apply_changes, matches_filters, newest_first
from motoring.services.storage.interface import (
    AuditStorageInterface,
    KindLike,
    NotFoundError,
    RecordStoreInterface,
    StorageError,
)


class InMemoryRecordStore(RecordStoreInterface):
    """Records kept per kind in insertion order; callers get copies."""

    def __init__(self):
        self._records: dict[RecordKind, dict[str, RecordBase]] = defaultdict(dict)

    async def insert(self, kind: KindLike, record: RecordBase) -> str:
        kind = RecordKind(kind)
        model = model_for(kind)
        if not isinstance(record, model):
            raise StorageError(f"{kind.value} expects {model.__name__}, got {type(record).__name__}")

        record_id = uuid4().hex
        stamp = {"id": record_id}
        if record.created_at is None:
            stamp["created_at"] = datetime.utcnow()
        self._records[kind][record_id] = record.model_copy(update=stamp, deep=True)
        return record_id

    async def get(self, kind: KindLike, record_id: str) -> Optional[RecordBase]:
        record = self._records[RecordKind(kind)].get(record_id)
        return record.model_copy(deep=True) if record is not None else None

    async def update(
        self,
        kind: KindLike,
        record_id: str,
        changes: dict[str, Any],
    ) -> RecordBase:
        records = self._records[RecordKind(kind)]
        current = records.get(record_id)
        if current is None:
            raise NotFoundError(f"{RecordKind(kind).value} record not found: {record_id}")
        updated = apply_changes(current, changes)
        records[record_id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, kind: KindLike, record_id: str) -> bool:
        return self._records[RecordKind(kind)].pop(record_id, None) is not None

    async def batch_delete(
        self,
        kind: KindLike,
        owner_id: str,
        predicate: Callable[[RecordBase], bool],
    ) -> int:
        records = self._records[RecordKind(kind)]
        doomed = [
            record_id for record_id, record in records.items()
            if record.owner_id == owner_id and predicate(record)
        ]
        for record_id in doomed:
            del records[record_id]
        return len(doomed)

    async def list_records(
        self,
        kind: KindLike,
        owner_id: str,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        motorcycle_id: Optional[str] = None,
    ) -> list[RecordBase]:
        return newest_first([
            record.model_copy(deep=True) for record in self._records[RecordKind(kind)].values()
            if record.owner_id == owner_id
            and matches_filters(record, date_from, date_to, motorcycle_id)
        ])


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            event for event in self._events
            if event.entity_type == entity_type and event.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        owner_id: Optional[str] = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = [
            event for event in self._events
            if owner_id is None or event.owner_id == owner_id
        ]
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
