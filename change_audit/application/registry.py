"""
===============================================================================
MÓDULO: AuditRegistry — configuración declarativa por tipo de entidad
===============================================================================

Responsabilidades:
  - Guardar la AuditConfiguration de cada tipo de entidad (por nombre estable).
  - Resolver defaults seguros para tipos no registrados o config malformada.
  - Exponer el switch de auditoría por tipo (set_enabled / is_enabled).
  - Auto-excluir al propio store: AuditRecord nunca se audita a sí mismo.

Colaboradores:
  - domain.audit.AuditConfiguration / AuditEventType
  - application.gate.AuditGate (consulta is_enabled por tipo)
  - change_audit/audit.py (resuelve ignore-list, críticos, snapshot, template)
  - crosscutting.logger (warnings por config malformada)

Decisiones de diseño:
  - Config malformada NO falla: se degrada a sets vacíos y se loguea.
  - Acceso protegido por lock: registro y toggles pueden ocurrir desde
    cualquier thread.
===============================================================================
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any, Iterable, Mapping

from ..crosscutting.logger import logger
from ..domain.audit import (
    AuditConfiguration,
    AuditEventType,
    AuditRecord,
    entity_type_name,
)

DEFAULT_IGNORED_ATTRIBUTES: frozenset[str] = frozenset(
    {"created_at", "updated_at", "deleted_at"}
)

# Tipo del propio store (auto-exclusión).
AUDIT_RECORD_ENTITY_TYPE: str = entity_type_name(AuditRecord)


def _parse_names(raw: Any, *, field_name: str, entity_type: str) -> frozenset[str]:
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        return frozenset(part.strip() for part in raw.split(",") if part.strip())
    if isinstance(raw, Iterable):
        names = [item for item in raw if isinstance(item, str) and item.strip()]
        return frozenset(name.strip() for name in names)
    logger.warning(
        "Config de auditoría malformada, se usa set vacío",
        extra={"entity_type": entity_type, "field": field_name},
    )
    return frozenset()


def _parse_events(raw: Any, *, entity_type: str) -> frozenset[AuditEventType]:
    events: set[AuditEventType] = set()
    for name in _parse_names(raw, field_name="critical_events", entity_type=entity_type):
        try:
            events.add(AuditEventType(name))
        except ValueError:
            logger.warning(
                "Evento crítico desconocido, se ignora",
                extra={"entity_type": entity_type, "event": name},
            )
    return frozenset(events)


class AuditRegistry:
    """Catálogo thread-safe de AuditConfiguration por tipo de entidad."""

    def __init__(
        self, default_ignored_attributes: Iterable[str] = DEFAULT_IGNORED_ATTRIBUTES
    ) -> None:
        self._lock = threading.Lock()
        self._default = AuditConfiguration(
            ignored_attributes=frozenset(default_ignored_attributes)
        )
        self._configs: dict[str, AuditConfiguration] = {}
        self.register(AUDIT_RECORD_ENTITY_TYPE, auditing_enabled=False)

    @property
    def default(self) -> AuditConfiguration:
        return self._default

    def register(
        self,
        entity_type: type | str,
        config: AuditConfiguration | None = None,
        **overrides: Any,
    ) -> AuditConfiguration:
        """
        Registra (o reemplaza) la configuración de un tipo.

        `overrides` se aplican sobre `config` o sobre el default:

            registry.register(Product, ignored_attributes={"updated_at", "stock_cache"})
        """
        name = entity_type_name(entity_type)
        base = config or self._default
        if "ignored_attributes" in overrides:
            overrides["ignored_attributes"] = frozenset(overrides["ignored_attributes"])
        if "critical_events" in overrides:
            # Nombres desconocidos se descartan con warning (igual que en mapping).
            overrides["critical_events"] = _parse_events(
                overrides["critical_events"], entity_type=name
            )
        resolved = replace(base, **overrides) if overrides else base
        with self._lock:
            self._configs[name] = resolved
        return resolved

    def register_from_mapping(
        self, entity_type: type | str, raw: Mapping[str, Any] | None
    ) -> AuditConfiguration:
        """Registra desde config “cruda” (dict/JSON); lo malformado cae a defaults."""
        name = entity_type_name(entity_type)
        raw = raw if isinstance(raw, Mapping) else {}
        config = AuditConfiguration(
            ignored_attributes=(
                _parse_names(
                    raw["ignored_attributes"],
                    field_name="ignored_attributes",
                    entity_type=name,
                )
                if "ignored_attributes" in raw
                else self._default.ignored_attributes
            ),
            critical_events=_parse_events(raw.get("critical_events"), entity_type=name),
            include_snapshot=bool(raw.get("include_snapshot", False)),
            auditing_enabled=bool(raw.get("auditing_enabled", True)),
            description_template=(
                raw.get("description_template")
                if isinstance(raw.get("description_template"), str)
                else None
            ),
        )
        with self._lock:
            self._configs[name] = config
        return config

    def resolve(self, entity_type: type | str) -> AuditConfiguration:
        """Config del tipo, o el default si no está registrado."""
        with self._lock:
            return self._configs.get(entity_type_name(entity_type), self._default)

    def set_enabled(self, entity_type: type | str, enabled: bool) -> None:
        """Prende/apaga la auditoría de UN tipo (no afecta a los demás)."""
        name = entity_type_name(entity_type)
        with self._lock:
            current = self._configs.get(name, self._default)
            self._configs[name] = replace(current, auditing_enabled=enabled)

    def is_enabled(self, entity_type: type | str) -> bool:
        return self.resolve(entity_type).auditing_enabled
