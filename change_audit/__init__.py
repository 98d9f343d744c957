"""
===============================================================================
change_audit — registro de auditoría de cambios de entidades
===============================================================================

Superficie pública estable para el host:

    from change_audit import EntityState, get_audit_emitter

    emitter = get_audit_emitter()
    emitter.registry.register(Product, ignored_attributes={"views"})
    emitter.created(EntityState(Product, product.id, product_attrs))

El host llama a los hooks del emisor desde su capa de persistencia; el
middleware (AuditContextMiddleware) o audit_context() aportan actor y
metadata del request.
===============================================================================
"""

from .application import (
    AuditContext,
    AuditContextResolver,
    AuditGate,
    AuditRegistry,
    entity_type_name,
)
from .audit import AuditEmitter
from .container import (
    get_audit_dispatcher,
    get_audit_emitter,
    get_audit_gate,
    get_audit_registry,
    get_audit_repository,
    reset_container,
)
from .context import audit_context, clear_context, set_actor, set_audit_context
from .domain import (
    AuditConfiguration,
    AuditEventType,
    AuditPage,
    AuditQuery,
    AuditRecord,
    EntityState,
)

__all__ = [
    "AuditConfiguration",
    "AuditContext",
    "AuditContextResolver",
    "AuditEmitter",
    "AuditEventType",
    "AuditGate",
    "AuditPage",
    "AuditQuery",
    "AuditRecord",
    "AuditRegistry",
    "EntityState",
    "audit_context",
    "clear_context",
    "entity_type_name",
    "get_audit_dispatcher",
    "get_audit_emitter",
    "get_audit_gate",
    "get_audit_registry",
    "get_audit_repository",
    "reset_container",
    "set_actor",
    "set_audit_context",
]
