"""Implementaciones del store de registros de auditoría."""

from .in_memory import InMemoryAuditRecordRepository
from .postgres import PostgresAuditRecordRepository

__all__ = ["InMemoryAuditRecordRepository", "PostgresAuditRecordRepository"]
