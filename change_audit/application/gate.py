"""
===============================================================================
MÓDULO: AuditGate — switch de auditoría (global + por contexto + por tipo)
===============================================================================

Responsabilidades:
  - Switch global del proceso: disable() / enable() / is_enabled().
  - Supresión acotada: run_without_auditing() / without_auditing().
  - Decidir si una entidad es auditable (global AND contexto AND tipo).

Colaboradores:
  - context.audit_suppressed_var (supresión por contexto de ejecución)
  - application.registry.AuditRegistry (switch por tipo)
  - change_audit/audit.py (consulta allows() antes de emitir)

Concurrencia:
  - run_without_auditing NO toca el flag global: setea un ContextVar y lo
    resetea con su token. Threads y tasks asyncio concurrentes no ven la
    supresión de otros (cada uno corre en su propio contexto).
  - disable()/enable() SÍ son globales: afectan a todas las operaciones
    concurrentes del proceso. Usarlos solo para mantenimiento/bootstrap.
===============================================================================
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Iterator, TypeVar

from ..context import audit_suppressed_var
from .registry import AuditRegistry

T = TypeVar("T")


class AuditGate:
    """Decide si un evento de ciclo de vida puede generar un registro."""

    def __init__(self, registry: AuditRegistry, *, enabled: bool = True) -> None:
        self._registry = registry
        self._lock = threading.Lock()
        self._enabled = enabled

    # ------------------------------------------------------------------
    # Switch global (proceso)
    # ------------------------------------------------------------------
    def disable(self) -> None:
        with self._lock:
            self._enabled = False

    def enable(self) -> None:
        with self._lock:
            self._enabled = True

    def is_enabled(self) -> bool:
        with self._lock:
            return self._enabled

    # ------------------------------------------------------------------
    # Supresión por contexto de ejecución
    # ------------------------------------------------------------------
    def is_suppressed(self) -> bool:
        return audit_suppressed_var.get()

    @contextmanager
    def without_auditing(self) -> Iterator[None]:
        """Bloque sin auditoría; se restaura en cualquier salida (incluye excepción)."""
        token = audit_suppressed_var.set(True)
        try:
            yield
        finally:
            audit_suppressed_var.reset(token)

    def run_without_auditing(
        self, action: Callable[..., T], *args: Any, **kwargs: Any
    ) -> T:
        """Ejecuta `action` sin auditoría y devuelve su resultado (o propaga su error)."""
        with self.without_auditing():
            return action(*args, **kwargs)

    async def arun_without_auditing(
        self, action: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """Variante async: la supresión cubre todo el await."""
        with self.without_auditing():
            return await action(*args, **kwargs)

    # ------------------------------------------------------------------
    # Decisión
    # ------------------------------------------------------------------
    def allows(self, entity_type: type | str) -> bool:
        """Auditable sii global AND no suprimido AND el tipo está habilitado."""
        if not self.is_enabled() or self.is_suppressed():
            return False
        return self._registry.is_enabled(entity_type)

    def suppression_reason(self, entity_type: type | str) -> str | None:
        """Motivo de supresión (label de métricas), o None si está permitido."""
        if not self.is_enabled():
            return "global_disabled"
        if self.is_suppressed():
            return "scoped_disabled"
        if not self._registry.is_enabled(entity_type):
            return "entity_disabled"
        return None
