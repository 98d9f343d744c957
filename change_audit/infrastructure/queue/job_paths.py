"""
===============================================================================
SUBSISTEMA: Infraestructura / Queue
===============================================================================

CRC CARD (Módulo)
-------------------------------------------------------------------------------
Nombre:
    Rutas y Constantes de Jobs

Responsabilidades:
    - Centralizar el nombre de la cola de auditoría y la ruta "importable" del
      job de persistencia.
    - Evitar strings mágicos dispersos (anti-drift).

Colaboradores:
    - rq_queue.RQAuditDispatcher
    - worker.jobs.persist_audit_record_job (job ejecutado por el worker)

Notas:
    - Las rutas deben ser importables por el worker de RQ.
    - Si se renombra/mueve un job, se actualiza acá y se valida en runtime.
===============================================================================
"""

from __future__ import annotations

# Nombre por defecto de la cola de auditoría.
AUDIT_QUEUE_NAME: str = "audit"


# Job de persistencia de registros.
# IMPORTANTE:
#   - Debe coincidir con la ubicación real del job.
#   - Se valida en runtime cuando se inicializa la cola.
PERSIST_AUDIT_RECORD_JOB_PATH: str = "change_audit.worker.jobs.persist_audit_record_job"
