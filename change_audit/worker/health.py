"""
===============================================================================
TARJETA CRC — worker/health.py (Health & Readiness del Worker)
===============================================================================

Responsabilidades:
  - Verificar conectividad de Redis (y Postgres si es el store configurado).
  - Entregar payloads simples para /readyz y /healthz.

Patrones aplicados:
  - Fail-safe diagnostics: nunca lanzar excepciones al caller; devolver estado.
===============================================================================
"""

from __future__ import annotations

import time
from typing import Any

import psycopg
from redis import Redis

from ..crosscutting.config import get_settings
from ..crosscutting.logger import logger

_START_TIME = time.time()


def _check_db(database_url: str) -> bool:
    if not database_url:
        return False
    try:
        with psycopg.connect(database_url, connect_timeout=2) as conn:
            conn.execute("SELECT 1")
        return True
    except Exception as exc:
        logger.warning("Readiness worker: DB no disponible", extra={"error": str(exc)})
        return False


def _check_redis(redis_url: str) -> bool:
    if not redis_url:
        return False
    try:
        redis = Redis.from_url(redis_url, socket_connect_timeout=2, socket_timeout=2)
        return bool(redis.ping())
    except Exception as exc:
        logger.warning(
            "Readiness worker: Redis no disponible", extra={"error": str(exc)}
        )
        return False


def readiness_payload() -> dict[str, Any]:
    """ok si Redis responde y, con store postgres, la DB también."""
    settings = get_settings()
    redis_ok = _check_redis(settings.redis_url)
    payload: dict[str, Any] = {
        "redis": "connected" if redis_ok else "disconnected",
    }
    ok = redis_ok
    if settings.audit_store_backend == "postgres":
        db_ok = _check_db(settings.database_url)
        payload["db"] = "connected" if db_ok else "disconnected"
        ok = ok and db_ok
    payload["ok"] = ok
    return payload


def health_payload() -> dict[str, Any]:
    return {"ok": True, "uptime_seconds": int(time.time() - _START_TIME)}
