"""
Name: Audit Repository Interfaces (Ports)

Responsibilities:
  - Define the persistence contract of the audit record store
  - Keep the emitter/worker independent of any storage engine

Collaborators:
  - domain.audit: AuditRecord, AuditQuery, AuditPage
  - infrastructure.repositories: in_memory / postgres implementations

Constraints:
  - Pure interfaces only: no side effects, no infrastructure imports, no SQL.
  - Implementations MUST match method signatures exactly.

Notes:
  - We use typing.Protocol for structural subtyping ("duck typing").
  - `record` is append-only and idempotent by record id (at-least-once delivery).
"""

from typing import Optional, Protocol
from uuid import UUID

from .audit import AuditPage, AuditQuery, AuditRecord


class AuditRecordRepository(Protocol):
    """R: Interface for audit record persistence."""

    def record(self, record: AuditRecord) -> AuditRecord:
        """
        R: Persist an audit record.

        Sets `created_at` once; re-delivering the same record id must not
        create a duplicate. Returns the stored record.
        """
        ...

    def get(self, record_id: UUID) -> Optional[AuditRecord]:
        """R: Fetch a record by id."""
        ...

    def search(self, query: AuditQuery) -> AuditPage:
        """R: Filter, search, sort and paginate records."""
        ...
