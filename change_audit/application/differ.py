"""
===============================================================================
MÓDULO: Attribute Differ — before/after filtrados para un update
===============================================================================

Responsabilidades:
  - Quitar los atributos ignorados de los mapas original y modificado.
  - Indicar si el update resultante es “audit-worthy” (after no vacío).

Colaboradores:
  - change_audit/audit.py: usa AttributeDiff.is_empty para suprimir emisión.

Decisiones de diseño:
  - Funciones puras (sin IO, sin side effects).
  - Se preserva el orden de claves de los mapas de entrada.
  - NO se normalizan valores: el encoding es responsabilidad del ensamblado
    del registro (application/encoding.py).
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Collection, Mapping


@dataclass(frozen=True, slots=True)
class AttributeDiff:
    """Par before/after ya filtrado."""

    before: dict[str, Any]
    after: dict[str, Any]

    @property
    def is_empty(self) -> bool:
        """Un update que solo tocó atributos ignorados no se audita."""
        return not self.after


def filter_attributes(
    attributes: Mapping[str, Any] | None, ignore: Collection[str]
) -> dict[str, Any]:
    """Copia `attributes` sin las claves de `ignore`."""
    if not attributes:
        return {}
    return {key: value for key, value in attributes.items() if key not in ignore}


def diff_attributes(
    before: Mapping[str, Any] | None,
    after: Mapping[str, Any] | None,
    ignore: Collection[str],
) -> AttributeDiff:
    """
    Filtra ambos mapas con el mismo ignore-list.

    Ejemplo:
      before={"body": "World", "updated_at": T1}
      after={"body": "Universe", "updated_at": T2}
      ignore={"updated_at"}
      -> AttributeDiff(before={"body": "World"}, after={"body": "Universe"})
    """
    return AttributeDiff(
        before=filter_attributes(before, ignore),
        after=filter_attributes(after, ignore),
    )
