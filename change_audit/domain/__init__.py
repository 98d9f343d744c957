"""
Name: Domain Layer

Responsibilities:
  - Audit record model, per-entity configuration and query contract
  - Ports (Protocols) for the record store and the dispatcher
"""

from .audit import (
    SORTABLE_COLUMNS,
    AuditConfiguration,
    AuditEventType,
    AuditPage,
    AuditQuery,
    AuditRecord,
    EntityState,
    entity_type_name,
)
from .repositories import AuditRecordRepository
from .services import AuditDispatcher

__all__ = [
    "SORTABLE_COLUMNS",
    "AuditConfiguration",
    "AuditDispatcher",
    "AuditEventType",
    "AuditPage",
    "AuditQuery",
    "AuditRecord",
    "AuditRecordRepository",
    "EntityState",
    "entity_type_name",
]
