"""
===============================================================================
ARCHIVO: infrastructure/queue/inline.py
===============================================================================

CRC CARD (Class)
-------------------------------------------------------------------------------
Clase:
    InlineAuditDispatcher

Responsabilidades:
    - Modo degenerado sin cola: persiste el registro en el mismo thread.
    - Mantener el contrato del dispatcher: un fallo del store se loguea y se
      traga, nunca llega al caller.

Colaboradores:
    - domain.repositories.AuditRecordRepository
    - crosscutting.logger / crosscutting.metrics

Notas:
    - Pensado para tests y scripts. No reintenta: un retry con backoff
      bloquearía la operación de negocio.
===============================================================================
"""

from __future__ import annotations

from ...crosscutting.logger import logger
from ...crosscutting.metrics import record_dispatch
from ...domain.audit import AuditRecord
from ...domain.repositories import AuditRecordRepository
from ...domain.services import AuditDispatcher


class InlineAuditDispatcher(AuditDispatcher):
    """Persistencia síncrona con la misma política fail-open."""

    mode = "inline"

    def __init__(self, *, repository: AuditRecordRepository) -> None:
        self._repository = repository

    def submit(self, record: AuditRecord) -> bool:
        try:
            self._repository.record(record)
        except Exception as exc:
            record_dispatch(self.mode, "failed")
            logger.error(
                "Persistencia inline de auditoría falló (se descarta)",
                extra={
                    "record_id": str(record.id),
                    "entity_type": record.entity_type,
                    "event": record.event.value,
                    "error": str(exc),
                },
            )
            return False

        record_dispatch(self.mode, "persisted")
        return True
