"""
===============================================================================
CRC CARD — infrastructure/db/errors.py
===============================================================================

Componente:
  Errores tipados del pool de PostgreSQL del store de auditoría

Responsabilidades:
  - Distinguir "pool no inicializado" de "pool ya inicializado".
  - Dar al worker y al contenedor errores con nombre propio.
===============================================================================
"""


class DatabasePoolError(Exception):
    """Base de errores del pool de auditoría."""


class PoolAlreadyInitializedError(DatabasePoolError):
    """init_pool() se llamó dos veces en el mismo proceso."""


class PoolNotInitializedError(DatabasePoolError):
    """Se pidió el pool antes de init_pool()."""
