# =============================================================================
# FILE: infrastructure/repositories/in_memory/audit_repository.py
# =============================================================================
"""
In-Memory Audit Record Repository for testing and development.

NOT FOR PRODUCTION USE - data is lost on restart.
"""

from __future__ import annotations

import dataclasses
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from ....domain.audit import AuditPage, AuditQuery, AuditRecord

# Columnas cubiertas por la búsqueda libre (substring, case-insensitive).
SEARCHABLE_ATTRIBUTES = (
    "entity_type",
    "ip_address",
    "entity_id",
    "created_at",
    "route_name",
    "actor_id",
)


class InMemoryAuditRecordRepository:
    """
    In-memory implementation of AuditRecordRepository.

    Useful for:
      - Unit testing
      - Local development without database
      - The background dispatcher when no Postgres is configured
    """

    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._records: Dict[UUID, AuditRecord] = {}
        self._lock = threading.Lock()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def record(self, record: AuditRecord) -> AuditRecord:
        """Persist a record; a repeated id returns the stored copy untouched."""
        with self._lock:
            existing = self._records.get(record.id)
            if existing is not None:
                return existing
            stored = dataclasses.replace(
                record, created_at=record.created_at or self._clock()
            )
            self._records[stored.id] = stored
            return stored

    def get(self, record_id: UUID) -> Optional[AuditRecord]:
        with self._lock:
            return self._records.get(record_id)

    def search(self, query: AuditQuery) -> AuditPage:
        with self._lock:
            records = list(self._records.values())

        total = len(records)
        results = [r for r in records if _matches(r, query)]
        filtered = len(results)

        attribute = query.sort_attribute
        # id como desempate: orden estable con timestamps iguales.
        results.sort(key=lambda r: str(r.id), reverse=query.descending)
        present = [r for r in results if getattr(r, attribute) is not None]
        missing = [r for r in results if getattr(r, attribute) is None]
        present.sort(
            key=lambda r: _sort_value(getattr(r, attribute)),
            reverse=query.descending,
        )
        # NULLs al final en asc y al principio en desc (como PostgreSQL).
        ordered = missing + present if query.descending else present + missing

        page = ordered[query.offset : query.offset + query.limit]
        return AuditPage(items=page, total=total, filtered=filtered)

    # -------------------------------------------------------------------------
    # Testing helpers
    # -------------------------------------------------------------------------
    def clear(self) -> None:
        """Clear all data (for testing)."""
        with self._lock:
            self._records.clear()

    def all(self) -> List[AuditRecord]:
        """All records in insertion order (for testing)."""
        with self._lock:
            return list(self._records.values())


def _sort_value(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if hasattr(value, "value") and not isinstance(value, (str, bool)):
        return value.value
    return value


def _matches(record: AuditRecord, query: AuditQuery) -> bool:
    if query.entity_type is not None and record.entity_type != query.entity_type:
        return False
    if query.entity_id is not None and record.entity_id != str(query.entity_id):
        return False
    if query.actor_id is not None and record.actor_id != query.actor_id:
        return False
    if query.event is not None and record.event != query.event:
        return False
    if query.start_at is not None and (
        record.created_at is None or record.created_at < query.start_at
    ):
        return False
    if query.end_at is not None and (
        record.created_at is None or record.created_at > query.end_at
    ):
        return False
    if query.search:
        needle = query.search.lower()
        haystack = []
        for name in SEARCHABLE_ATTRIBUTES:
            value = getattr(record, name)
            if value is None:
                continue
            if isinstance(value, datetime):
                value = value.isoformat()
            haystack.append(str(value))
        if not any(needle in item.lower() for item in haystack):
            return False
    return True
