"""
===============================================================================
ARCHIVO: infrastructure/queue/background.py
===============================================================================

CRC CARD (Class)
-------------------------------------------------------------------------------
Clase:
    BackgroundAuditDispatcher

Responsabilidades:
    - Persistir registros en un thread propio del proceso (sin Redis).
    - Mantener orden FIFO por productor (un solo worker thread).
    - Acotar registros pendientes: con la cola llena, log + descarte
      (fail-open), nunca bloquear al caller.
    - Aplicar retry con backoff (infrastructure.retry) en el thread de fondo.

Colaboradores:
    - domain.repositories.AuditRecordRepository
    - infrastructure.retry.persist_with_retry
    - concurrent.futures.ThreadPoolExecutor
    - crosscutting.logger / crosscutting.metrics
===============================================================================
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor

from ...crosscutting.logger import logger
from ...crosscutting.metrics import (
    observe_worker_duration,
    record_dispatch,
    record_worker_failed,
    record_worker_processed,
)
from ...domain.audit import AuditRecord
from ...domain.repositories import AuditRecordRepository
from ...domain.services import AuditDispatcher
from ..retry import persist_with_retry
from .errors import QueueFullError


class BackgroundAuditDispatcher(AuditDispatcher):
    """Dispatcher en thread de fondo con límite de pendientes."""

    mode = "background"

    def __init__(
        self,
        *,
        repository: AuditRecordRepository,
        max_pending: int = 1000,
        retry_max_attempts: int | None = None,
    ) -> None:
        if max_pending <= 0:
            raise ValueError("max_pending debe ser > 0")
        self._repository = repository
        self._retry_max_attempts = retry_max_attempts
        self._slots = threading.BoundedSemaphore(max_pending)
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="change-audit"
        )

    def submit(self, record: AuditRecord) -> bool:
        try:
            if not self._slots.acquire(blocking=False):
                raise QueueFullError("Cola de auditoría llena")
            try:
                self._executor.submit(self._persist, record)
            except RuntimeError:
                # Executor cerrado.
                self._slots.release()
                raise
        except (QueueFullError, RuntimeError) as exc:
            record_dispatch(self.mode, "dropped")
            logger.error(
                "Registro de auditoría descartado",
                extra={
                    "record_id": str(record.id),
                    "entity_type": record.entity_type,
                    "event": record.event.value,
                    "error": str(exc),
                },
            )
            return False

        record_dispatch(self.mode, "enqueued")
        return True

    def flush(self, timeout: float | None = None) -> None:
        """Espera a que se persistan los registros encolados hasta ahora."""
        marker: Future = self._executor.submit(lambda: None)
        marker.result(timeout=timeout)

    def close(self, wait: bool = True) -> None:
        """Cierra el executor (idempotente)."""
        self._executor.shutdown(wait=wait)

    def _persist(self, record: AuditRecord) -> None:
        start = time.perf_counter()
        try:
            overrides = {}
            if self._retry_max_attempts is not None:
                overrides["max_attempts"] = self._retry_max_attempts
            persist_with_retry(self._repository, record, **overrides)
            record_worker_processed("PERSISTED")
        except Exception as exc:
            # Dead-letter: el registro se pierde, queda el log completo.
            record_worker_processed("FAILED")
            record_worker_failed()
            logger.error(
                "Persistencia de auditoría agotó reintentos",
                extra={
                    "record_id": str(record.id),
                    "entity_type": record.entity_type,
                    "event": record.event.value,
                    "payload": record.to_payload(),
                    "error": str(exc),
                },
            )
        finally:
            observe_worker_duration(time.perf_counter() - start)
            self._slots.release()
