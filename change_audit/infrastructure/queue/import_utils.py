"""
===============================================================================
SUBSISTEMA: Infraestructura / Queue
===============================================================================

CRC CARD (Módulo)
-------------------------------------------------------------------------------
Nombre:
    Resolución de jobs por dotted path

Responsabilidades:
    - Resolver "paquete.modulo.funcion" al callable del job.
    - Permitir que el dispatcher RQ falle al construirse (fail-fast) si el job
      de persistencia no es importable, en vez de descubrirlo en el worker.

Colaboradores:
    - rq_queue.RQAuditDispatcher
    - importlib (carga dinámica)
===============================================================================
"""

from __future__ import annotations

from functools import lru_cache
from importlib import import_module
from typing import Any, Callable


def resolve_dotted_path(dotted_path: str) -> Callable[..., Any]:
    """
    Devuelve el callable apuntado por `dotted_path`.

    Raises:
        ValueError: path sin forma "modulo.atributo" o atributo no callable.
        ModuleNotFoundError / AttributeError: el módulo o atributo no existen.
    """
    module_name, _, attr_name = (dotted_path or "").rpartition(".")
    if not module_name or not attr_name:
        raise ValueError(f"dotted path inválido: {dotted_path!r}")

    target = getattr(import_module(module_name), attr_name)
    if not callable(target):
        raise ValueError(f"{dotted_path} no es callable")
    return target


@lru_cache(maxsize=32)
def is_importable_dotted_path(dotted_path: str) -> bool:
    """True si `dotted_path` resuelve a un callable (resultado cacheado)."""
    try:
        resolve_dotted_path(dotted_path)
    except (ValueError, ModuleNotFoundError, AttributeError):
        return False
    return True
