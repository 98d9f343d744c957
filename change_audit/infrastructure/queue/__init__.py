"""
===============================================================================
SUBSISTEMA: Infraestructura / Queue
===============================================================================

CRC CARD (Package)
-------------------------------------------------------------------------------
Nombre:
    infrastructure.queue

Responsabilidades:
    - Exponer los dispatchers de auditoría usados por DI:
        * RQAuditDispatcher (Redis + worker separado)
        * BackgroundAuditDispatcher (thread del proceso)
        * InlineAuditDispatcher (síncrono, tests/scripts)
    - Exponer el contrato de configuración (RQQueueConfig).
===============================================================================
"""

from .background import BackgroundAuditDispatcher
from .errors import (
    QueueConfigurationError,
    QueueEnqueueError,
    QueueError,
    QueueFullError,
)
from .inline import InlineAuditDispatcher
from .rq_queue import RQAuditDispatcher, RQQueueConfig

__all__ = [
    "BackgroundAuditDispatcher",
    "InlineAuditDispatcher",
    "QueueConfigurationError",
    "QueueEnqueueError",
    "QueueError",
    "QueueFullError",
    "RQAuditDispatcher",
    "RQQueueConfig",
]
