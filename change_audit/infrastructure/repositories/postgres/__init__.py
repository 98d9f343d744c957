from .audit_record import PostgresAuditRecordRepository

__all__ = ["PostgresAuditRecordRepository"]
