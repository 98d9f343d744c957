"""Infra DB del store de auditoría: pool, esquema y errores tipados."""

from .errors import (
    DatabasePoolError,
    PoolAlreadyInitializedError,
    PoolNotInitializedError,
)
from .schema import AUDIT_RECORDS_DDL, ensure_schema
from .pool import close_pool, get_pool, init_pool, is_pool_initialized, reset_pool

__all__ = [
    "AUDIT_RECORDS_DDL",
    "ensure_schema",
    "DatabasePoolError",
    "PoolAlreadyInitializedError",
    "PoolNotInitializedError",
    "close_pool",
    "get_pool",
    "init_pool",
    "is_pool_initialized",
    "reset_pool",
]
