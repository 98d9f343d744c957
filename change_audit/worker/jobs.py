"""
===============================================================================
TARJETA CRC — worker/jobs.py (Job RQ: persistencia de registros de auditoría)
===============================================================================

Responsabilidades:
  - Definir el entrypoint que RQ ejecuta por cada registro encolado.
  - Reconstruir el AuditRecord desde el payload JSON y persistirlo con retry.
  - Emitir logs/métricas con contexto consistente.
  - Garantizar limpieza de contexto al finalizar (éxito o fallo).

Patrones aplicados:
  - Command (Job): función pura como comando a ejecutar por el worker.
  - Fail-fast: payload malformado se registra y NO se reintenta.

Colaboradores:
  - domain.audit.AuditRecord.from_payload
  - container.get_audit_repository
  - infrastructure.retry.persist_with_retry
  - crosscutting.metrics (record_worker_processed/failed, observe_worker_duration)
  - context (set_request_context, clear_context)

Notas:
  - Si se agotan los reintentos internos (tenacity) la excepción se relanza:
    RQ aplica su Retry y, al final, deja el job en el failed registry
    (dead-letter).
===============================================================================
"""

from __future__ import annotations

import time
from typing import Any, Mapping

from rq import get_current_job

from ..container import get_audit_repository
from ..context import clear_context, set_request_context
from ..crosscutting.logger import logger
from ..crosscutting.metrics import (
    observe_worker_duration,
    record_worker_failed,
    record_worker_processed,
)
from ..domain.audit import AuditRecord
from ..infrastructure.retry import persist_with_retry


def _parse_record(
    payload: Mapping[str, Any], *, job_id: str | None
) -> AuditRecord | None:
    try:
        return AuditRecord.from_payload(payload)
    except (KeyError, TypeError, ValueError) as exc:
        logger.error(
            "Job inválido: payload de auditoría malformado",
            extra={"job_id": job_id, "error": str(exc)},
        )
        return None


def persist_audit_record_job(payload: dict[str, Any]) -> str | None:
    """
    Job RQ: persiste un registro previamente encolado por RQAuditDispatcher.

    Contrato:
      - payload es AuditRecord.to_payload() (RQ serializa argumentos).
      - Devuelve el id persistido (o None si el payload era inválido).
    """
    job = get_current_job()
    job_id = getattr(job, "id", None)
    record_id = payload.get("id") if isinstance(payload, Mapping) else None

    set_request_context(
        request_id=job_id or str(record_id or ""),
        method="WORKER",
        path="rq.persist_audit_record_job",
    )

    start = time.perf_counter()
    status = "UNKNOWN"

    try:
        record = _parse_record(payload, job_id=job_id) if record_id else None
        if record is None:
            status = "INVALID"
            return None

        stored = persist_with_retry(get_audit_repository(), record)
        status = "PERSISTED"
        return str(stored.id)

    except Exception as exc:
        # Relanzamos para que RQ gestione retries / failed registry.
        status = "FAILED"
        logger.exception(
            "Worker job de auditoría falló",
            extra={"job_id": job_id, "record_id": record_id, "error": str(exc)},
        )
        raise

    finally:
        duration = time.perf_counter() - start
        record_worker_processed(status)
        if status in {"FAILED", "INVALID"}:
            record_worker_failed()
        observe_worker_duration(duration)

        logger.info(
            "Worker job de auditoría finalizado",
            extra={
                "job_id": job_id,
                "record_id": record_id,
                "status": status,
                "duration_seconds": round(duration, 3),
            },
        )
        clear_context()


__all__ = ["persist_audit_record_job"]
