"""
===============================================================================
APPLICATION LAYER (Public API / Exports)
===============================================================================

Expone los puntos de entrada estables de la capa de aplicación:
  - diff_attributes / AttributeDiff: before/after filtrados por ignore-list
  - AuditContextResolver: actor + metadata del request
  - AuditGate: switch global, por contexto y por tipo
  - AuditRegistry: configuración declarativa por tipo de entidad
  - to_jsonable / encode_attributes: encoding estable de valores

Nota:
  - El emisor (orquestación) vive en `change_audit/audit.py`.
===============================================================================
"""

from .context_resolver import AuditContext, AuditContextResolver
from .differ import AttributeDiff, diff_attributes, filter_attributes
from .encoding import encode_attributes, to_jsonable
from .gate import AuditGate
from .registry import (
    AUDIT_RECORD_ENTITY_TYPE,
    DEFAULT_IGNORED_ATTRIBUTES,
    AuditRegistry,
    entity_type_name,
)

__all__ = [
    # Differ
    "AttributeDiff",
    "diff_attributes",
    "filter_attributes",
    # Context
    "AuditContext",
    "AuditContextResolver",
    # Gate / Registry
    "AuditGate",
    "AuditRegistry",
    "AUDIT_RECORD_ENTITY_TYPE",
    "DEFAULT_IGNORED_ATTRIBUTES",
    "entity_type_name",
    # Encoding
    "encode_attributes",
    "to_jsonable",
]
