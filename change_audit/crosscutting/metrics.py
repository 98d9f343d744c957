"""
===============================================================================
ARCHIVO: crosscutting/metrics.py
===============================================================================

CRC CARD (Módulo)
-------------------------------------------------------------------------------
Nombre:
    Métricas (Prometheus) del pipeline de auditoría

Responsabilidades:
    - Definir métricas Prometheus en un registry propio.
    - Proveer funciones pequeñas y estables para registrar eventos/duraciones.
    - Cuidar cardinalidad (NO entity_id, NO actor_id, solo labels acotados).
    - Exponer helpers para generar la respuesta /metrics del worker.

Colaboradores:
    - change_audit/audit.py: emitidos / suprimidos / fallos de ensamblado.
    - infrastructure/queue: resultado del hand-off a la cola.
    - worker/jobs: métricas de persistencia asíncrona.
===============================================================================
"""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

_registry = CollectorRegistry()

# -----------------------------------------------------------------------------
# Emisor
# -----------------------------------------------------------------------------

_records_emitted_total = Counter(
    "change_audit_records_emitted_total",
    "Registros de auditoría ensamblados y entregados al dispatcher",
    ["event"],
    registry=_registry,
)

_records_suppressed_total = Counter(
    "change_audit_records_suppressed_total",
    "Eventos de ciclo de vida que no generaron registro",
    ["reason"],
    registry=_registry,
)

_assembly_failed_total = Counter(
    "change_audit_assembly_failed_total",
    "Fallos al ensamblar registros (tragados en el borde del emisor)",
    ["event"],
    registry=_registry,
)

# -----------------------------------------------------------------------------
# Dispatcher
# -----------------------------------------------------------------------------

_dispatch_total = Counter(
    "change_audit_dispatch_total",
    "Resultado del hand-off de registros a la cola",
    ["mode", "outcome"],
    registry=_registry,
)

# -----------------------------------------------------------------------------
# Worker
# -----------------------------------------------------------------------------

_worker_processed_total = Counter(
    "change_audit_worker_processed_total",
    "Total de registros procesados por el worker",
    ["status"],
    registry=_registry,
)

_worker_failed_total = Counter(
    "change_audit_worker_failed_total",
    "Total de fallos de persistencia del worker",
    registry=_registry,
)

_worker_duration = Histogram(
    "change_audit_worker_duration_seconds",
    "Duración de la persistencia de un registro (segundos)",
    buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0),
    registry=_registry,
)


# -----------------------------------------------------------------------------
# API pública (helpers de registro)
# -----------------------------------------------------------------------------


def record_emitted(event: str) -> None:
    """Cuenta registros emitidos por tipo de evento."""
    _records_emitted_total.labels(event=event).inc()


def record_suppressed(reason: str) -> None:
    """Cuenta eventos suprimidos (gate, entidad deshabilitada, update no-op)."""
    _records_suppressed_total.labels(reason=reason).inc()


def record_assembly_failed(event: str) -> None:
    """Cuenta fallos de ensamblado."""
    _assembly_failed_total.labels(event=event).inc()


def record_dispatch(mode: str, outcome: str) -> None:
    """Cuenta hand-offs por modo (rq/background/inline) y resultado."""
    _dispatch_total.labels(mode=mode, outcome=outcome).inc()


def record_worker_processed(status: str) -> None:
    """Cuenta registros procesados por status."""
    _worker_processed_total.labels(status=status).inc()


def record_worker_failed(count: int = 1) -> None:
    """Cuenta fallos del worker."""
    _worker_failed_total.inc(count)


def observe_worker_duration(duration_seconds: float) -> None:
    """Observa duración del worker."""
    _worker_duration.observe(duration_seconds)


def generate_metrics() -> tuple[bytes, str]:
    """Devuelve (payload, content_type) para exponer /metrics."""
    return generate_latest(_registry), CONTENT_TYPE_LATEST


def get_sample_value(name: str, labels: dict[str, str] | None = None) -> float | None:
    """Lee el valor actual de una métrica (útil en tests y health checks)."""
    return _registry.get_sample_value(name, labels or {})
