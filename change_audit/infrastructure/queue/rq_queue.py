"""
===============================================================================
ARCHIVO: infrastructure/queue/rq_queue.py
===============================================================================

CRC CARD (Class)
-------------------------------------------------------------------------------
Clase:
    RQAuditDispatcher (Adapter)

Responsabilidades:
    - Implementar el puerto `AuditDispatcher` usando RQ (Redis).
    - Encolar el job de persistencia de registros de forma segura y observable.
    - Validar configuración (nombre de cola + job path importable) en modo fail-fast.
    - Tragar (log + métrica) cualquier fallo de hand-off: submit() nunca lanza.

Colaboradores:
    - domain.services.AuditDispatcher
    - job_paths.PERSIST_AUDIT_RECORD_JOB_PATH
    - import_utils.is_importable_dotted_path
    - errors.QueueConfigurationError / QueueEnqueueError
    - crosscutting.logger / crosscutting.metrics

Patrones:
    - Adapter: traduce el puerto del dominio a una implementación RQ.
    - Fail-Fast en construcción, Fail-Open en submit.
    - Lazy Import: rq se importa solo si se usa.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ...crosscutting.logger import logger
from ...crosscutting.metrics import record_dispatch
from ...domain.audit import AuditRecord
from ...domain.services import AuditDispatcher
from .errors import QueueConfigurationError, QueueEnqueueError, QueueError
from .import_utils import is_importable_dotted_path
from .job_paths import AUDIT_QUEUE_NAME, PERSIST_AUDIT_RECORD_JOB_PATH


@dataclass(frozen=True)
class RQQueueConfig:
    """Configuración del adaptador RQ.

    queue_name:
        Nombre de la cola en Redis.
    retry_max_attempts:
        Reintentos del job completo si el worker lo marca fallido.
    retry_base_delay_seconds:
        Primer intervalo entre reintentos (luego se duplica).
    retry_max_delay_seconds:
        Techo de los intervalos.
    job_timeout_seconds:
        Timeout máximo de ejecución del job en el worker.
    result_ttl_seconds:
        Tiempo de vida del resultado del job en Redis.
    """

    queue_name: str = AUDIT_QUEUE_NAME
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0
    job_timeout_seconds: int = 60
    result_ttl_seconds: int = 0


class RQAuditDispatcher(AuditDispatcher):
    """Adapter RQ: la persistencia ocurre en un worker separado."""

    mode = "rq"

    def __init__(self, *, redis: Any, config: RQQueueConfig) -> None:
        """Construye el adaptador.

        Diseño:
          - `redis` se inyecta desde el contenedor para compartir conexión.
          - Validamos configuración temprano para evitar jobs zombis.
        """
        self._redis = redis
        self._config = _validate_config(config)

        if not is_importable_dotted_path(PERSIST_AUDIT_RECORD_JOB_PATH):
            raise QueueConfigurationError(
                "Job path no importable para RQ: "
                f"{PERSIST_AUDIT_RECORD_JOB_PATH}. "
                "Revisar `infrastructure/queue/job_paths.py` y `worker/jobs.py`."
            )

        self._rq = _lazy_import_rq()
        self._queue = self._rq.Queue(name=self._config.queue_name, connection=redis)

        # Backoff exponencial entre reintentos del job (RQ acepta lista de intervalos).
        self._retry = None
        if self._config.retry_max_attempts > 0:
            self._retry = self._rq.Retry(
                max=self._config.retry_max_attempts,
                interval=backoff_intervals(
                    self._config.retry_max_attempts,
                    base=self._config.retry_base_delay_seconds,
                    ceiling=self._config.retry_max_delay_seconds,
                ),
            )

        logger.info(
            "RQ de auditoría inicializada",
            extra={
                "queue": self._config.queue_name,
                "retry_max_attempts": self._config.retry_max_attempts,
                "job_timeout_seconds": self._config.job_timeout_seconds,
            },
        )

    def enqueue_record(self, record: AuditRecord) -> str:
        """Encola la persistencia de un registro y devuelve el job id.

        Contrato de serialización:
          - En la cola guardamos el payload JSON-compatible del registro.
          - job_id = id del registro: reencolar el mismo registro no duplica jobs.
        """
        try:
            job = self._queue.enqueue(
                PERSIST_AUDIT_RECORD_JOB_PATH,
                args=(record.to_payload(),),
                job_id=str(record.id),
                retry=self._retry,
                job_timeout=self._config.job_timeout_seconds,
                result_ttl=self._config.result_ttl_seconds,
                description=f"persist_audit_record:{record.entity_type}:{record.event.value}",
            )
        except Exception as exc:
            raise QueueEnqueueError(
                "No se pudo encolar el registro de auditoría",
                original_error=exc,
            ) from exc

        job_id = getattr(job, "id", None) or ""
        return str(job_id)

    def submit(self, record: AuditRecord) -> bool:
        try:
            job_id = self.enqueue_record(record)
        except QueueError as exc:
            record_dispatch(self.mode, "failed")
            logger.error(
                "Error al encolar registro de auditoría (se descarta)",
                extra={
                    "record_id": str(record.id),
                    "entity_type": record.entity_type,
                    "event": record.event.value,
                    "queue": self._config.queue_name,
                    "error": str(getattr(exc, "original_error", None) or exc),
                },
            )
            return False

        record_dispatch(self.mode, "enqueued")
        logger.debug(
            "Registro de auditoría encolado",
            extra={
                "record_id": str(record.id),
                "job_id": job_id,
                "queue": self._config.queue_name,
            },
        )
        return True


# -----------------------------------------------------------------------------
# Helpers privados (módulo)
# -----------------------------------------------------------------------------


def backoff_intervals(attempts: int, *, base: float, ceiling: float) -> list[int]:
    """Intervalos (segundos enteros) base, 2*base, 4*base… acotados por `ceiling`."""
    intervals: list[int] = []
    for attempt in range(attempts):
        delay = min(ceiling, base * (2**attempt))
        intervals.append(max(1, int(round(delay))))
    return intervals


def _validate_config(config: RQQueueConfig) -> RQQueueConfig:
    """Valida y normaliza configuración (fail-fast)."""
    queue_name = (config.queue_name or "").strip() or AUDIT_QUEUE_NAME
    retry_max_attempts = int(config.retry_max_attempts)
    job_timeout_seconds = int(config.job_timeout_seconds)
    result_ttl_seconds = int(config.result_ttl_seconds)

    if retry_max_attempts < 0:
        raise QueueConfigurationError("retry_max_attempts no puede ser negativo")
    if config.retry_base_delay_seconds < 0 or config.retry_max_delay_seconds < 0:
        raise QueueConfigurationError("los delays de retry no pueden ser negativos")
    if job_timeout_seconds <= 0:
        raise QueueConfigurationError("job_timeout_seconds debe ser > 0")
    if result_ttl_seconds < 0:
        raise QueueConfigurationError("result_ttl_seconds no puede ser negativo")

    return RQQueueConfig(
        queue_name=queue_name,
        retry_max_attempts=retry_max_attempts,
        retry_base_delay_seconds=float(config.retry_base_delay_seconds),
        retry_max_delay_seconds=float(config.retry_max_delay_seconds),
        job_timeout_seconds=job_timeout_seconds,
        result_ttl_seconds=result_ttl_seconds,
    )


def _lazy_import_rq():
    """Importa RQ de forma lazy; el error queda acotado a la funcionalidad de cola."""
    try:
        import rq
    except ImportError as exc:
        raise QueueConfigurationError(
            "RQ no está disponible. Instalar dependencia 'rq' para usar colas."
        ) from exc
    return rq
