"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/audit_record.py
============================================================
Class: PostgresAuditRecordRepository

Responsibilities:
  - Persistir registros de auditoría en PostgreSQL (tabla audit_records).
  - Insertar de forma idempotente por id (re-entrega de jobs sin duplicar).
  - Listar con filtros, búsqueda libre, orden por columna y paginación,
    devolviendo total y filtrados.

Collaborators:
  - domain.audit.AuditRecord / AuditQuery / AuditPage
  - psycopg_pool.ConnectionPool (pool de conexiones)
  - psycopg.types.json.Json (JSONB seguro hacia PostgreSQL)
  - crosscutting.logger.logger (observabilidad)
  - crosscutting.exceptions.DatabaseError (contrato de errores infra)

Constraints / Notes:
  - Repo puro: NO decide qué auditar.
  - Queries SIEMPRE parametrizadas; ORDER BY sólo con columnas de la
    whitelist SORTABLE_COLUMNS.
  - Errores se propagan como DatabaseError con el error original encadenado
    (el retry decide si es transitorio mirando `original_error`).
============================================================
"""

from __future__ import annotations

from typing import Iterable, Optional
from uuid import UUID

from psycopg.types.json import Json
from psycopg_pool import ConnectionPool

from ....crosscutting.exceptions import DatabaseError
from ....crosscutting.logger import logger
from ....domain.audit import AuditPage, AuditQuery, AuditRecord

_COLUMNS = (
    "id, actor_id, event, entity_type, entity_id, before, after, ip_address, "
    "user_agent, url, http_method, route_name, auth_guard, is_critical, "
    "description, snapshot, created_at"
)

# Expresiones SQL de la búsqueda libre (ILIKE).
_SEARCH_EXPRESSIONS = (
    "entity_type",
    "ip_address",
    "entity_id",
    "created_at::text",
    "route_name",
    "actor_id",
)


class PostgresAuditRecordRepository:
    """Repositorio PostgreSQL para registros de auditoría."""

    def __init__(self, pool: ConnectionPool | None = None):
        # Pool inyectable: tests pasan un fake; el worker usa el pool global.
        self._pool = pool

    def _get_pool(self) -> ConnectionPool:
        if self._pool is not None:
            return self._pool

        from ...db.pool import get_pool

        return get_pool()

    def _fetchall(
        self,
        *,
        query: str,
        params: Iterable[object],
        error_message: str,
        extra: dict[str, object],
    ) -> list[tuple]:
        try:
            pool = self._get_pool()
            with pool.connection() as conn:
                return conn.execute(query, tuple(params)).fetchall()
        except Exception as exc:
            logger.exception(error_message, extra={**extra, "error": str(exc)})
            raise DatabaseError(
                f"{error_message}: {exc}", original_error=exc
            ) from exc

    # ------------------------------------------------------------
    # Escritura (append-only, idempotente)
    # ------------------------------------------------------------
    def record(self, record: AuditRecord) -> AuditRecord:
        """
        Inserta el registro; si el id ya existe devuelve el almacenado.

        created_at lo asigna la base en el primer INSERT.
        """
        try:
            pool = self._get_pool()
            with pool.connection() as conn:
                row = conn.execute(
                    f"""
                    INSERT INTO audit_records ({_COLUMNS})
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s,
                            %s, %s, %s, %s, COALESCE(%s, now()))
                    ON CONFLICT (id) DO NOTHING
                    RETURNING {_COLUMNS}
                    """,
                    (
                        record.id,
                        record.actor_id,
                        record.event.value,
                        record.entity_type,
                        record.entity_id,
                        _json(record.before),
                        _json(record.after),
                        record.ip_address,
                        record.user_agent,
                        record.url,
                        record.http_method,
                        record.route_name,
                        record.auth_guard,
                        record.is_critical,
                        record.description,
                        _json(record.snapshot),
                        record.created_at,
                    ),
                ).fetchone()
                if row is None:
                    # Conflicto: ya existía (re-entrega).
                    row = conn.execute(
                        f"SELECT {_COLUMNS} FROM audit_records WHERE id = %s",
                        (record.id,),
                    ).fetchone()
        except Exception as exc:
            logger.exception(
                "PostgresAuditRecordRepository: Failed to record audit record",
                extra={
                    "record_id": str(record.id),
                    "entity_type": record.entity_type,
                    "event": record.event.value,
                    "error": str(exc),
                },
            )
            raise DatabaseError(
                f"Failed to record audit record: {exc}", original_error=exc
            ) from exc

        return _row_to_record(row) if row is not None else record

    # ------------------------------------------------------------
    # Lectura
    # ------------------------------------------------------------
    def get(self, record_id: UUID) -> Optional[AuditRecord]:
        rows = self._fetchall(
            query=f"SELECT {_COLUMNS} FROM audit_records WHERE id = %s",
            params=[record_id],
            error_message="PostgresAuditRecordRepository: Failed to get audit record",
            extra={"record_id": str(record_id)},
        )
        return _row_to_record(rows[0]) if rows else None

    def search(self, query: AuditQuery) -> AuditPage:
        """
        Lista registros.

        Orden:
        - columna pedida (whitelist) + id en la misma dirección, estable aun
          con valores iguales.
        """
        conditions, params = _build_conditions(query)
        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        direction = "DESC" if query.descending else "ASC"
        extra = {
            "entity_type": query.entity_type,
            "entity_id": query.entity_id,
            "actor_id": query.actor_id,
            "sort_by": query.sort_by,
            "sort_dir": query.sort_dir,
            "limit": query.limit,
            "offset": query.offset,
        }

        counts = self._fetchall(
            query=f"""
                SELECT
                    (SELECT COUNT(*) FROM audit_records),
                    (SELECT COUNT(*) FROM audit_records {where_clause})
            """,
            params=params,
            error_message="PostgresAuditRecordRepository: Failed to count audit records",
            extra=extra,
        )
        total, filtered = counts[0] if counts else (0, 0)

        if query.limit <= 0:
            return AuditPage(items=[], total=int(total), filtered=int(filtered))

        rows = self._fetchall(
            query=f"""
                SELECT {_COLUMNS}
                FROM audit_records
                {where_clause}
                ORDER BY {query.sort_attribute} {direction}, id {direction}
                LIMIT %s OFFSET %s
            """,
            params=[*params, query.limit, query.offset],
            error_message="PostgresAuditRecordRepository: Failed to list audit records",
            extra=extra,
        )

        return AuditPage(
            items=[_row_to_record(row) for row in rows],
            total=int(total),
            filtered=int(filtered),
        )


def _json(value) -> Json | None:
    return Json(dict(value)) if value is not None else None


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _build_conditions(query: AuditQuery) -> tuple[list[str], list[object]]:
    conditions: list[str] = []
    params: list[object] = []

    if query.entity_type is not None:
        conditions.append("entity_type = %s")
        params.append(query.entity_type)
    if query.entity_id is not None:
        conditions.append("entity_id = %s")
        params.append(str(query.entity_id))
    if query.actor_id is not None:
        conditions.append("actor_id = %s")
        params.append(query.actor_id)
    if query.event is not None:
        conditions.append("event = %s")
        params.append(query.event.value)
    if query.start_at is not None:
        conditions.append("created_at >= %s")
        params.append(query.start_at)
    if query.end_at is not None:
        conditions.append("created_at <= %s")
        params.append(query.end_at)
    if query.search:
        pattern = f"%{_escape_like(query.search)}%"
        conditions.append(
            "("
            + " OR ".join(f"{expr} ILIKE %s" for expr in _SEARCH_EXPRESSIONS)
            + ")"
        )
        params.extend([pattern] * len(_SEARCH_EXPRESSIONS))

    return conditions, params


def _row_to_record(row: tuple) -> AuditRecord:
    (
        record_id,
        actor_id,
        event,
        entity_type,
        entity_id,
        before,
        after,
        ip_address,
        user_agent,
        url,
        http_method,
        route_name,
        auth_guard,
        is_critical,
        description,
        snapshot,
        created_at,
    ) = row
    return AuditRecord(
        id=record_id if isinstance(record_id, UUID) else UUID(str(record_id)),
        actor_id=actor_id,
        event=event,
        entity_type=entity_type,
        entity_id=entity_id,
        before=before,
        after=after,
        ip_address=ip_address,
        user_agent=user_agent,
        url=url,
        http_method=http_method,
        route_name=route_name,
        auth_guard=auth_guard,
        is_critical=bool(is_critical),
        description=description,
        snapshot=snapshot,
        created_at=created_at,
    )
