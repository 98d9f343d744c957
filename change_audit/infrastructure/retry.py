"""change_audit.infrastructure.retry

Name: Retry Helper with Exponential Backoff + Jitter (store writes)

Qué es
------
Utilidad de **resiliencia** para la persistencia asíncrona de registros.
Implementa:
  - Clasificación de errores del store: **transient** (reintentar) vs
    **permanent** (fail-fast, ej: constraint violation)
  - Decorator de `tenacity` para aplicar **exponential backoff + jitter**
  - Logging estructurado de intentos de retry (incluye record_id)

CRC (Component Card)
--------------------
Component: retry helper
Responsibilities:
  - Decidir qué errores de persistencia son reintentables
  - Proveer un decorator estándar (tenacity) con backoff+jitter
  - Persistir un registro con la política configurada (persist_with_retry)
Collaborators:
  - tenacity (motor de retry)
  - psycopg.errors (clasificación de errores de PostgreSQL)
  - crosscutting.config.get_settings (attempts/delays)
  - crosscutting.logger
  - worker.jobs / queue.background (consumidores)
Constraints:
  - Reintentar SOLO errores transitorios (conexión, timeouts, pool)
  - Nunca reintentar IntegrityError/DataError/ProgrammingError
"""

from __future__ import annotations

from typing import Any, Callable, Optional, TypeVar

import psycopg
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from ..crosscutting.config import get_settings
from ..crosscutting.logger import logger
from ..domain.audit import AuditRecord
from ..domain.repositories import AuditRecordRepository

T = TypeVar("T")

# R: Errores de PostgreSQL que NO tiene sentido reintentar.
_PERMANENT_DB_ERRORS: tuple[type[BaseException], ...] = (
    psycopg.IntegrityError,
    psycopg.DataError,
    psycopg.ProgrammingError,
    psycopg.NotSupportedError,
)

# R: Errores de PostgreSQL típicamente transitorios.
_TRANSIENT_DB_ERRORS: tuple[type[BaseException], ...] = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
)


def _root_cause(exception: BaseException) -> BaseException:
    """R: Desenvuelve DatabaseError/encadenamientos hasta el error original."""
    seen: set[int] = set()
    current = exception
    while id(current) not in seen:
        seen.add(id(current))
        nested = getattr(current, "original_error", None) or current.__cause__
        if nested is None:
            break
        current = nested
    return current


def is_transient_error(exception: BaseException) -> bool:
    """R: Decide si un error del store es transitorio (reintentar) o permanente.

    Reglas (en orden):
      1) Error de PostgreSQL permanente → False.
      2) Error de PostgreSQL transitorio → True.
      3) Timeout/conexión built-in → True.
      4) Default: fail-fast (False).
    """
    cause = _root_cause(exception)

    if isinstance(cause, _PERMANENT_DB_ERRORS):
        return False
    if isinstance(cause, _TRANSIENT_DB_ERRORS):
        return True
    if isinstance(cause, (TimeoutError, ConnectionError, OSError)):
        return True

    exception_name = type(cause).__name__.lower()
    return any(p in exception_name for p in ("timeout", "connection", "pool"))


def _log_retry(retry_state: RetryCallState) -> None:
    """R: Loguea cada intento antes de dormir (before_sleep)."""
    wait_time = (
        retry_state.next_action.sleep
        if getattr(retry_state, "next_action", None) is not None
        else 0
    )

    exc: Optional[BaseException] = None
    if getattr(retry_state, "outcome", None) is not None:
        exc = retry_state.outcome.exception()

    record = retry_state.args[1] if len(retry_state.args) > 1 else None

    logger.warning(
        "Reintentando persistencia de auditoría",
        extra={
            "attempt": retry_state.attempt_number,
            "wait_seconds": round(float(wait_time), 2),
            "record_id": str(getattr(record, "id", "")) or None,
            "error": str(exc) if exc else None,
            "error_type": type(exc).__name__ if exc else None,
        },
    )


def create_retry_decorator(
    max_attempts: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """R: Crea un decorator `tenacity` con exponential backoff + jitter.

    Config:
      - stop: `stop_after_attempt(max_attempts)`
      - wait: `wait_exponential_jitter(initial=base_delay, max=max_delay)`
      - retry: solo si `is_transient_error(exception)`
      - before_sleep: `_log_retry`
      - reraise: True (propaga la última excepción)
    """
    settings = get_settings()

    _max_attempts = (
        settings.audit_retry_max_attempts if max_attempts is None else max_attempts
    )
    _base_delay = (
        settings.audit_retry_base_delay_seconds
        if base_delay is None
        else float(base_delay)
    )
    _max_delay = (
        settings.audit_retry_max_delay_seconds if max_delay is None else float(max_delay)
    )

    if _max_attempts <= 0:
        raise ValueError("max_attempts must be > 0")
    if _base_delay < 0:
        raise ValueError("base_delay must be >= 0")
    if _max_delay < 0:
        raise ValueError("max_delay must be >= 0")

    return retry(
        stop=stop_after_attempt(_max_attempts),
        wait=wait_exponential_jitter(
            initial=_base_delay, max=_max_delay, jitter=_base_delay
        ),
        retry=retry_if_exception(is_transient_error),
        before_sleep=_log_retry,
        reraise=True,
    )


def _write(repository: AuditRecordRepository, record: AuditRecord) -> AuditRecord:
    return repository.record(record)


def persist_with_retry(
    repository: AuditRecordRepository,
    record: AuditRecord,
    **retry_overrides: Any,
) -> AuditRecord:
    """R: Persiste `record` reintentando errores transitorios; propaga el último error."""
    return create_retry_decorator(**retry_overrides)(_write)(repository, record)
