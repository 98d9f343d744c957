"""
===============================================================================
TARJETA CRC — change_audit/audit.py (Emisión de auditoría)
===============================================================================

Responsabilidades:
  - Recibir los hooks de ciclo de vida que invoca la capa de persistencia del
    host: created / updating / updated / deleted / restored / force_deleted.
  - Consultar el AuditGate, calcular el diff (updates) y resolver el contexto
    del request.
  - Ensamblar un AuditRecord con formato consistente y entregarlo al
    AuditDispatcher.
  - “Best-effort”: si algo falla (ensamblado o hand-off), se loguea y se traga;
    la operación de negocio NUNCA falla por auditoría.

Colaboradores:
  - application.gate.AuditGate / application.registry.AuditRegistry
  - application.differ.diff_attributes
  - application.context_resolver.AuditContextResolver
  - application.encoding.encode_attributes
  - domain.services.AuditDispatcher
  - context.captured_originals_var (snapshot original por operación)
  - crosscutting.logger / crosscutting.metrics

Patrones aplicados:
  - Explicit hooks: el host llama al emisor (composición, no herencia).
  - Fail-open: errores de auditoría no se propagan.

Notas:
  - `updating` captura SIEMPRE el original, aunque el gate esté cerrado: si el
    gate cambia entre la captura y el commit, el diff sigue siendo correcto.
  - El snapshot capturado vive en el contexto de la operación y se descarta al
    consumirse en `updated`.
  - Los hooks devuelven el registro solo si el dispatcher lo aceptó; None si
    se suprimió, falló o fue descartado.
===============================================================================
"""

from __future__ import annotations

import re
from typing import Any, Mapping, NamedTuple

from .application.context_resolver import AuditContextResolver
from .application.differ import diff_attributes, filter_attributes
from .application.encoding import encode_attributes
from .application.gate import AuditGate
from .application.registry import AuditRegistry
from .context import captured_originals_var
from .crosscutting.exceptions import AuditAssemblyError
from .crosscutting.logger import logger
from .crosscutting.metrics import (
    record_assembly_failed,
    record_emitted,
    record_suppressed,
)
from .domain.audit import AuditConfiguration, AuditEventType, AuditRecord, EntityState
from .domain.services import AuditDispatcher

_TYPE_SEPARATORS = re.compile(r"[.\\:]")


def short_type_name(entity_type: str) -> str:
    """'shop.models.Product' -> 'Product'."""
    return _TYPE_SEPARATORS.split(entity_type)[-1] or entity_type


def describe(
    config: AuditConfiguration,
    event: AuditEventType,
    entity_type: str,
    entity_id: str | None,
) -> str:
    """Descripción legible: "{Tipo} {evento} ({id})" o el template configurado."""
    short_type = short_type_name(entity_type)
    if config.description_template:
        try:
            return config.description_template.format(
                entity_type=entity_type,
                short_type=short_type,
                event=event.value,
                entity_id=entity_id if entity_id is not None else "",
            )
        except (KeyError, IndexError, ValueError) as exc:
            raise AuditAssemblyError(
                f"description_template inválido para {entity_type}",
                original_error=exc,
            ) from exc

    if entity_id is None:
        return f"{short_type} {event.value}"
    return f"{short_type} {event.value} ({entity_id})"


class _Suppressed(NamedTuple):
    """Resultado de un builder que decide no emitir (motivo para métricas)."""

    reason: str


def _changed_attributes(
    current: Mapping[str, Any], original: Mapping[str, Any]
) -> dict[str, Any]:
    """Atributos de `current` que difieren de `original` (o son nuevos)."""
    return {
        key: value
        for key, value in current.items()
        if key not in original or original[key] != value
    }


class AuditEmitter:
    """Traduce eventos de ciclo de vida en registros de auditoría."""

    def __init__(
        self,
        *,
        dispatcher: AuditDispatcher,
        registry: AuditRegistry,
        gate: AuditGate,
        resolver: AuditContextResolver | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._registry = registry
        self._gate = gate
        self._resolver = resolver or AuditContextResolver()

    @property
    def gate(self) -> AuditGate:
        return self._gate

    @property
    def registry(self) -> AuditRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Hooks de ciclo de vida
    # ------------------------------------------------------------------
    def created(self, state: EntityState) -> AuditRecord | None:
        """Post-commit de una creación: before=None, after=atributos."""
        return self._guarded(
            AuditEventType.CREATED, state, lambda config: (None, state.attributes)
        )

    def updating(self, state: EntityState) -> Mapping[str, Any]:
        """
        Pre-commit de un update: captura el estado original.

        Se ejecuta siempre (sin consultar el gate). Devuelve el snapshot por si
        el host prefiere pasarlo explícitamente a `updated(captured=...)`.
        """
        try:
            source = state.original if state.original is not None else state.attributes
            original = dict(source)
            captured = captured_originals_var.get()
            captured_originals_var.set({**captured, state.key: original})
            return original
        except Exception as exc:
            logger.error(
                "Falló la captura del estado original",
                extra={"entity_type": state.entity_type, "error": str(exc)},
            )
            return {}

    def updated(
        self,
        state: EntityState,
        changes: Mapping[str, Any] | None = None,
        captured: Mapping[str, Any] | None = None,
    ) -> AuditRecord | None:
        """
        Post-commit de un update.

        before = original capturado (o `state.original`) sin ignorados
        after  = `changes` sin ignorados (si no vienen, se calculan contra el original)

        Sin original disponible no se emite: un update sin `before` no es
        auditable (warning + métrica `no_original`).
        """
        # Se consume siempre, aunque el gate no permita emitir.
        from_context = self._pop_captured(state)

        def build(config: AuditConfiguration):
            original = captured if captured is not None else from_context
            if original is None:
                original = state.original
            if original is None:
                logger.warning(
                    "Update sin estado original: no se emite registro",
                    extra={
                        "entity_type": state.entity_type,
                        "entity_id": state.entity_id,
                    },
                )
                return _Suppressed("no_original")
            changed = (
                changes
                if changes is not None
                else _changed_attributes(state.attributes, original)
            )
            diff = diff_attributes(original, changed, config.ignored_attributes)
            if diff.is_empty:
                return None
            return diff.before, diff.after

        return self._guarded(AuditEventType.UPDATED, state, build)

    def deleted(self, state: EntityState) -> AuditRecord | None:
        """Post-commit de un borrado (soft o hard): before=atributos, after=None."""
        return self._guarded(
            AuditEventType.DELETED, state, lambda config: (state.attributes, None)
        )

    def restored(self, state: EntityState) -> AuditRecord | None:
        """Post-commit de una restauración: before=None, after=atributos."""
        return self._guarded(
            AuditEventType.RESTORED, state, lambda config: (None, state.attributes)
        )

    def force_deleted(self, state: EntityState) -> AuditRecord | None:
        """Post-commit de un borrado definitivo: before=atributos, after=None."""
        return self._guarded(
            AuditEventType.FORCE_DELETED,
            state,
            lambda config: (state.attributes, None),
        )

    # ------------------------------------------------------------------
    # Ensamblado + hand-off
    # ------------------------------------------------------------------
    def record_activity(
        self,
        event: AuditEventType,
        state: EntityState,
        before: Mapping[str, Any] | None,
        after: Mapping[str, Any] | None,
    ) -> AuditRecord | None:
        """
        Emite un registro con before/after ya decididos por el caller.

        Aplica gate, ignore-list y la misma política best-effort que los hooks.
        """
        return self._guarded(
            AuditEventType(event), state, lambda config: (before, after)
        )

    def _guarded(
        self, event: AuditEventType, state: EntityState, build
    ) -> AuditRecord | None:
        try:
            reason = self._gate.suppression_reason(state.entity_type)
            if reason is not None:
                record_suppressed(reason)
                return None

            config = self._registry.resolve(state.entity_type)
            pair = build(config)
            if pair is None:
                record_suppressed("noop_update")
                return None
            if isinstance(pair, _Suppressed):
                record_suppressed(pair.reason)
                return None

            before, after = pair
            record = self._assemble(event, state, config, before, after)
            if not self._dispatcher.submit(record):
                # Descartado por el dispatcher (ya logueado allí).
                return None
            record_emitted(event.value)
            return record
        except Exception as exc:
            # Best-effort: logueamos y seguimos.
            record_assembly_failed(event.value)
            logger.error(
                "Falló la emisión del registro de auditoría",
                extra={
                    "entity_type": state.entity_type,
                    "event": event.value,
                    "error": str(exc),
                },
                exc_info=True,
            )
            return None

    def _assemble(
        self,
        event: AuditEventType,
        state: EntityState,
        config: AuditConfiguration,
        before: Mapping[str, Any] | None,
        after: Mapping[str, Any] | None,
    ) -> AuditRecord:
        ctx = self._resolver.resolve()
        entity_id = None if state.entity_id is None else str(state.entity_id)
        ignored = config.ignored_attributes

        return AuditRecord(
            event=event,
            entity_type=state.entity_type,
            entity_id=entity_id,
            actor_id=ctx.actor_id,
            before=encode_attributes(filter_attributes(before, ignored)),
            after=encode_attributes(filter_attributes(after, ignored)),
            ip_address=ctx.ip_address,
            user_agent=ctx.user_agent,
            url=ctx.url,
            http_method=ctx.http_method,
            route_name=ctx.route_name,
            auth_guard=ctx.auth_guard,
            is_critical=config.is_critical(event),
            description=describe(config, event, state.entity_type, entity_id),
            snapshot=(
                encode_attributes(state.attributes) if config.include_snapshot else None
            ),
        )

    def _pop_captured(self, state: EntityState) -> Mapping[str, Any] | None:
        try:
            key = state.key
            captured = captured_originals_var.get()
            if key not in captured:
                return None
            captured_originals_var.set(
                {other: value for other, value in captured.items() if other != key}
            )
            return captured[key]
        except Exception as exc:
            logger.error(
                "Falló la lectura del estado original capturado",
                extra={"entity_type": state.entity_type, "error": str(exc)},
            )
            return None
