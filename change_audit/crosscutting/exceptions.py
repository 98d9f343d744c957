"""
===============================================================================
MÓDULO: Excepciones tipadas del pipeline de auditoría
===============================================================================

Objetivo
--------
Tener excepciones internas coherentes, con:
- error_code estable
- error_id para correlación con logs
- message “humana” (sin filtrar valores de atributos auditados)

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  ChangeAuditError + subclases

Responsabilidades:
  - Estandarizar errores internos (store, ensamblado de registros)
  - Generar error_id para rastreo

Colaboradores:
  - change_audit/audit.py (captura AuditAssemblyError en el borde del emisor)
  - infrastructure/repositories/postgres (levanta DatabaseError)
  - worker/jobs.py (reintenta DatabaseError)
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4


@dataclass(frozen=True)
class ErrorResponse:
    """Estructura mínima para reportar errores de forma consistente."""

    error_code: str
    message: str
    error_id: str

    def to_dict(self) -> dict:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "error_id": self.error_id,
        }


class ChangeAuditError(Exception):
    """Base para errores internos del sistema de auditoría."""

    error_code: str = "CHANGE_AUDIT_ERROR"

    def __init__(
        self,
        message: str,
        error_id: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.error_id = error_id or str(uuid4())
        self.original_error = original_error
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error_code=self.error_code, message=self.message, error_id=self.error_id
        )


class DatabaseError(ChangeAuditError):
    """Errores de DB (conexión, query, timeout, pool)."""

    error_code: str = "DATABASE_ERROR"


class AuditAssemblyError(ChangeAuditError):
    """Fallo al ensamblar un registro (encoding, template de descripción, etc.)."""

    error_code: str = "AUDIT_ASSEMBLY_ERROR"
