"""
===============================================================================
TARJETA CRC — domain/audit.py
===============================================================================

Módulo:
    Modelos de Auditoría (Dominio)

Responsabilidades:
    - Definir los eventos de ciclo de vida auditables (AuditEventType).
    - Definir el registro inmutable de auditoría (AuditRecord).
    - Definir la configuración declarativa por tipo de entidad
      (AuditConfiguration) y el estado que entrega el host (EntityState).
    - Definir el contrato de consulta del store (AuditQuery / AuditPage).

Colaboradores:
    - domain.repositories.AuditRecordRepository: persiste y consulta registros.
    - change_audit/audit.py: ensambla registros (orquestación).
    - infra repos: mapean hacia/desde DB.

Notas:
    - Auditoría es append-only: un registro no se edita nunca.
    - before/after/snapshot se exponen como mappings de solo lectura.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID, uuid4


class AuditEventType(str, Enum):
    """Eventos de ciclo de vida que generan registros."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    RESTORED = "restored"
    FORCE_DELETED = "force_deleted"


def entity_type_name(entity: type | object | str) -> str:
    """Nombre estable de un tipo: 'modulo.Clase' (o el string tal cual)."""
    if isinstance(entity, str):
        return entity
    cls = entity if isinstance(entity, type) else type(entity)
    return f"{cls.__module__}.{cls.__qualname__}"


def _freeze(value: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    if value is None:
        return None
    return MappingProxyType(dict(value))


def _as_utc(value: datetime | None) -> datetime | None:
    """Un datetime naive se interpreta como UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class AuditRecord:
    """Entrada de auditoría (write-once)."""

    event: AuditEventType
    entity_type: str
    entity_id: str | None = None
    actor_id: str | None = None
    before: Mapping[str, Any] | None = None
    after: Mapping[str, Any] | None = None
    ip_address: str | None = None
    user_agent: str | None = None
    url: str | None = None
    http_method: str | None = None
    route_name: str | None = None
    auth_guard: str | None = None
    is_critical: bool = False
    description: str | None = None
    snapshot: Mapping[str, Any] | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "event", AuditEventType(self.event))
        object.__setattr__(self, "before", _freeze(self.before))
        object.__setattr__(self, "after", _freeze(self.after))
        object.__setattr__(self, "snapshot", _freeze(self.snapshot))
        object.__setattr__(self, "created_at", _as_utc(self.created_at))

    def to_payload(self) -> dict[str, Any]:
        """Forma serializable (JSON) usada por la cola y los stores."""
        return {
            "id": str(self.id),
            "actor_id": self.actor_id,
            "event": self.event.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "before": dict(self.before) if self.before is not None else None,
            "after": dict(self.after) if self.after is not None else None,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "url": self.url,
            "http_method": self.http_method,
            "route_name": self.route_name,
            "auth_guard": self.auth_guard,
            "is_critical": self.is_critical,
            "description": self.description,
            "snapshot": dict(self.snapshot) if self.snapshot is not None else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "AuditRecord":
        """Inverso de to_payload (lo usa el worker al desencolar)."""
        created_at = payload.get("created_at")
        return cls(
            id=UUID(str(payload["id"])),
            actor_id=payload.get("actor_id"),
            event=AuditEventType(payload["event"]),
            entity_type=payload["entity_type"],
            entity_id=payload.get("entity_id"),
            before=payload.get("before"),
            after=payload.get("after"),
            ip_address=payload.get("ip_address"),
            user_agent=payload.get("user_agent"),
            url=payload.get("url"),
            http_method=payload.get("http_method"),
            route_name=payload.get("route_name"),
            auth_guard=payload.get("auth_guard"),
            is_critical=bool(payload.get("is_critical", False)),
            description=payload.get("description"),
            snapshot=payload.get("snapshot"),
            created_at=datetime.fromisoformat(created_at) if created_at else None,
        )


@dataclass(frozen=True, slots=True)
class AuditConfiguration:
    """Reglas de auditoría de un tipo de entidad."""

    ignored_attributes: frozenset[str] = frozenset()
    critical_events: frozenset[AuditEventType] = frozenset()
    include_snapshot: bool = False
    auditing_enabled: bool = True
    # Placeholders: {entity_type} {short_type} {event} {entity_id}
    description_template: str | None = None

    def is_critical(self, event: AuditEventType) -> bool:
        return event in self.critical_events


@dataclass(frozen=True, slots=True)
class EntityState:
    """
    Estado de una entidad tal como lo entrega la capa de persistencia del host.

    attributes: estado completo actual.
    original:   estado previo (updates), si el host lo conoce.
    """

    entity_type: str
    entity_id: Any = None
    attributes: Mapping[str, Any] = field(default_factory=dict)
    original: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        # Se acepta la clase del modelo: se normaliza a 'modulo.Clase'.
        object.__setattr__(self, "entity_type", entity_type_name(self.entity_type))

    @property
    def key(self) -> tuple[str, str]:
        return (self.entity_type, "" if self.entity_id is None else str(self.entity_id))


# Columnas ordenables (nombre público -> atributo del registro).
SORTABLE_COLUMNS: dict[str, str] = {
    "id": "id",
    "actor": "actor_id",
    "event": "event",
    "entity_type": "entity_type",
    "route_name": "route_name",
    "method": "http_method",
    "url": "url",
    "ip_address": "ip_address",
    "user_agent": "user_agent",
    "is_critical": "is_critical",
    "created_at": "created_at",
}

DEFAULT_SORT_COLUMN = "created_at"
DEFAULT_SORT_DIRECTION = "desc"


@dataclass(frozen=True, slots=True)
class AuditQuery:
    """Filtros, búsqueda, orden y paginación del listado de auditoría."""

    entity_type: str | None = None
    entity_id: str | None = None
    actor_id: str | None = None
    event: AuditEventType | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    search: str | None = None
    sort_by: str = DEFAULT_SORT_COLUMN
    sort_dir: str = DEFAULT_SORT_DIRECTION
    offset: int = 0
    limit: int = 50

    def __post_init__(self) -> None:
        # Columnas/direcciones desconocidas caen al default (nunca error).
        if self.sort_by not in SORTABLE_COLUMNS:
            object.__setattr__(self, "sort_by", DEFAULT_SORT_COLUMN)
        direction = (self.sort_dir or "").strip().lower()
        if direction not in {"asc", "desc"}:
            direction = DEFAULT_SORT_DIRECTION
        object.__setattr__(self, "sort_dir", direction)
        object.__setattr__(self, "offset", max(0, int(self.offset)))
        object.__setattr__(self, "limit", max(0, int(self.limit)))
        if self.event is not None:
            object.__setattr__(self, "event", AuditEventType(self.event))
        if self.entity_type is not None:
            object.__setattr__(self, "entity_type", entity_type_name(self.entity_type))
        if self.entity_id is not None:
            object.__setattr__(self, "entity_id", str(self.entity_id))
        object.__setattr__(self, "start_at", _as_utc(self.start_at))
        object.__setattr__(self, "end_at", _as_utc(self.end_at))
        search = (self.search or "").strip()
        object.__setattr__(self, "search", search or None)

    @property
    def sort_attribute(self) -> str:
        return SORTABLE_COLUMNS[self.sort_by]

    @property
    def descending(self) -> bool:
        return self.sort_dir == "desc"


@dataclass(frozen=True, slots=True)
class AuditPage:
    """Página de resultados + contadores (total y filtrados)."""

    items: list[AuditRecord]
    total: int
    filtered: int
