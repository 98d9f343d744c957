"""
===============================================================================
TARJETA CRC — change_audit/container.py (Composition Root / DI manual)
===============================================================================

Responsabilidades:
  - Componer el pipeline de auditoría (registry, gate, store, dispatcher,
    emisor) a partir de Settings.
  - Exponer factories para el host (app web) y para el worker RQ.
  - Mantener singletons por proceso con lru_cache.

Colaboradores:
  - crosscutting.config.get_settings
  - application.AuditRegistry / AuditGate / AuditContextResolver
  - infrastructure.repositories (in_memory / postgres)
  - infrastructure.queue (rq / background / inline)
  - change_audit.audit.AuditEmitter

Patrones aplicados:
  - Composition Root
  - Lazy singletons con lru_cache

Notas:
  - Este archivo NO contiene lógica de auditoría.
  - reset_container() limpia todos los singletons (tests).
===============================================================================
"""

from __future__ import annotations

from functools import lru_cache

from redis import Redis

from .application import AuditContextResolver, AuditGate, AuditRegistry
from .audit import AuditEmitter
from .crosscutting.config import get_settings
from .domain.repositories import AuditRecordRepository
from .domain.services import AuditDispatcher
from .infrastructure.queue import (
    BackgroundAuditDispatcher,
    InlineAuditDispatcher,
    RQAuditDispatcher,
    RQQueueConfig,
)
from .infrastructure.repositories import (
    InMemoryAuditRecordRepository,
    PostgresAuditRecordRepository,
)

# =============================================================================
# Configuración por tipo + switches
# =============================================================================


@lru_cache
def get_audit_registry() -> AuditRegistry:
    return AuditRegistry(get_settings().get_default_ignored_attributes())


@lru_cache
def get_audit_gate() -> AuditGate:
    return AuditGate(get_audit_registry(), enabled=get_settings().audit_enabled)


# =============================================================================
# Store
# =============================================================================


@lru_cache
def get_audit_repository() -> AuditRecordRepository:
    """
    Store de registros según AUDIT_STORE_BACKEND.

    - memory: dev/tests (se pierde al reiniciar)
    - postgres: usa el pool global (infrastructure/db/pool.py)
    """
    if get_settings().audit_store_backend == "postgres":
        return PostgresAuditRecordRepository()
    return InMemoryAuditRecordRepository()


# =============================================================================
# Dispatcher
# =============================================================================


@lru_cache
def get_redis_connection() -> Redis:
    settings = get_settings()
    return Redis.from_url(
        settings.redis_url,
        socket_connect_timeout=2,
        socket_timeout=5,
        health_check_interval=30,
    )


@lru_cache
def get_audit_dispatcher() -> AuditDispatcher:
    settings = get_settings()
    mode = settings.resolve_dispatch_mode()

    if mode == "rq":
        config = RQQueueConfig(
            queue_name=settings.audit_queue_name,
            retry_max_attempts=settings.audit_retry_max_attempts,
            retry_base_delay_seconds=settings.audit_retry_base_delay_seconds,
            retry_max_delay_seconds=settings.audit_retry_max_delay_seconds,
            job_timeout_seconds=settings.audit_job_timeout_seconds,
            result_ttl_seconds=settings.audit_result_ttl_seconds,
        )
        return RQAuditDispatcher(redis=get_redis_connection(), config=config)

    if mode == "inline":
        return InlineAuditDispatcher(repository=get_audit_repository())

    return BackgroundAuditDispatcher(
        repository=get_audit_repository(),
        max_pending=settings.audit_background_queue_size,
        retry_max_attempts=settings.audit_retry_max_attempts,
    )


# =============================================================================
# Emisor
# =============================================================================


@lru_cache
def get_audit_emitter() -> AuditEmitter:
    return AuditEmitter(
        dispatcher=get_audit_dispatcher(),
        registry=get_audit_registry(),
        gate=get_audit_gate(),
        resolver=AuditContextResolver(),
    )


def reset_container() -> None:
    """Olvida los singletons (tests / recarga de settings)."""
    if get_audit_dispatcher.cache_info().currsize:
        dispatcher = get_audit_dispatcher()
        if isinstance(dispatcher, BackgroundAuditDispatcher):
            dispatcher.close(wait=False)

    for factory in (
        get_audit_emitter,
        get_audit_dispatcher,
        get_redis_connection,
        get_audit_repository,
        get_audit_gate,
        get_audit_registry,
    ):
        factory.cache_clear()
