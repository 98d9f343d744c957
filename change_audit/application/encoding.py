"""
===============================================================================
MÓDULO: Encoding de valores de atributos (JSON-compatible y estable)
===============================================================================

Responsabilidades:
  - Convertir valores crudos de atributos (fechas, bytes, Decimal, UUID,
    dataclasses, modelos pydantic, sets…) a tipos serializables en JSON.
  - Producir siempre la misma salida para la misma entrada (sets ordenados).

Colaboradores:
  - change_audit/audit.py: codifica before/after/snapshot al ensamblar.

Reglas de encoding:
  - None/bool/int/str -> igual
  - float finito -> igual; NaN/Infinity -> str
  - Decimal -> str (sin pérdida de precisión)
  - datetime/date/time -> ISO-8601
  - UUID -> str
  - Enum -> encoding de .value
  - bytes/bytearray/memoryview -> "base64:<...>"
  - Mapping -> dict con claves str (recursivo)
  - list/tuple -> list (recursivo)
  - set/frozenset -> list ordenada por su forma JSON
  - dataclass -> dict (recursivo)
  - pydantic BaseModel -> model_dump(mode="json")
  - otros -> str(value)
===============================================================================
"""

from __future__ import annotations

import base64
import dataclasses
import json
import math
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping
from uuid import UUID

from pydantic import BaseModel


def to_jsonable(value: Any) -> Any:
    """Codifica un valor a su forma JSON-compatible estable."""
    # Enum antes que str/int: los str-Enum son instancias de str.
    if isinstance(value, Enum):
        return to_jsonable(value.value)

    if value is None or isinstance(value, (bool, int, str)):
        return value

    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)

    if isinstance(value, Decimal):
        return str(value)

    # datetime antes que date (datetime es subclase de date).
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()

    if isinstance(value, UUID):
        return str(value)

    if isinstance(value, (bytes, bytearray, memoryview)):
        return "base64:" + base64.b64encode(bytes(value)).decode("ascii")

    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: to_jsonable(getattr(value, f.name))
            for f in dataclasses.fields(value)
        }

    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]

    if isinstance(value, (set, frozenset)):
        encoded = [to_jsonable(v) for v in value]
        return sorted(encoded, key=lambda v: json.dumps(v, sort_keys=True))

    return str(value)


def encode_attributes(attributes: Mapping[str, Any] | None) -> dict[str, Any] | None:
    """Codifica un mapa de atributos; vacío o None -> None."""
    if not attributes:
        return None
    return {str(key): to_jsonable(value) for key, value in attributes.items()}
