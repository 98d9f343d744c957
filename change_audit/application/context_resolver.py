"""
===============================================================================
MÓDULO: AuditContextResolver — actor y metadata del request
===============================================================================

Responsabilidades:
  - Leer, en el momento de emitir, el actor y los datos del request
    (IP, user agent, URL, método, ruta, guard) desde los ContextVars.
  - Devolver None en cada campo cuando no hay request (worker, consola).

Colaboradores:
  - context.get_audit_context_values()
  - crosscutting.middleware.AuditContextMiddleware (quien llena el contexto)
  - change_audit/audit.py (consume AuditContext)

Reglas:
  - Solo lectura, sin side effects: llamar N veces en la misma operación
    devuelve lo mismo.
  - Nunca lanza por falta de contexto.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass

from ..context import get_audit_context_values


@dataclass(frozen=True, slots=True)
class AuditContext:
    """Snapshot del contexto ambiente al momento del evento."""

    actor_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    url: str | None = None
    http_method: str | None = None
    route_name: str | None = None
    auth_guard: str | None = None


class AuditContextResolver:
    """Traduce los ContextVars ("" = no disponible) a un AuditContext."""

    def resolve(self) -> AuditContext:
        values = get_audit_context_values()
        return AuditContext(**{name: (value or None) for name, value in values.items()})
