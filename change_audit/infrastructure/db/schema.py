"""
===============================================================================
CRC CARD — infrastructure/db/schema.py
===============================================================================

Componente:
  Esquema de la tabla `audit_records`

Responsabilidades:
  - Declarar el DDL idempotente de la tabla y sus índices de consulta.
  - Aplicarlo sobre un pool (bootstrap del worker / entornos locales).

Notas:
  - id es la PK: el INSERT usa ON CONFLICT (id) DO NOTHING, así la
    re-entrega de un job no duplica registros.
  - created_at lo asigna la base (DEFAULT now()).
===============================================================================
"""

from __future__ import annotations

from psycopg_pool import ConnectionPool

from ...crosscutting.logger import logger

AUDIT_RECORDS_DDL = """
CREATE TABLE IF NOT EXISTS audit_records (
    id UUID PRIMARY KEY,
    actor_id TEXT NULL,
    event TEXT NOT NULL,
    entity_type TEXT NOT NULL,
    entity_id TEXT NULL,
    before JSONB NULL,
    after JSONB NULL,
    ip_address TEXT NULL,
    user_agent TEXT NULL,
    url TEXT NULL,
    http_method TEXT NULL,
    route_name TEXT NULL,
    auth_guard TEXT NULL,
    is_critical BOOLEAN NOT NULL DEFAULT FALSE,
    description TEXT NULL,
    snapshot JSONB NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS ix_audit_records_entity
    ON audit_records (entity_type, entity_id);
CREATE INDEX IF NOT EXISTS ix_audit_records_actor_id
    ON audit_records (actor_id);
CREATE INDEX IF NOT EXISTS ix_audit_records_created_at
    ON audit_records (created_at DESC, id DESC);
"""


def ensure_schema(pool: ConnectionPool) -> None:
    """Crea la tabla e índices si no existen."""
    with pool.connection() as conn:
        conn.execute(AUDIT_RECORDS_DDL)
    logger.info("Esquema audit_records verificado")
