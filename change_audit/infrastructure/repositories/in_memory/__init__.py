from .audit_repository import InMemoryAuditRecordRepository

__all__ = ["InMemoryAuditRecordRepository"]
