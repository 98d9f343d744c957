"""
===============================================================================
TARJETA CRC — worker/worker.py (Entrypoint del proceso Worker de auditoría)
===============================================================================

Responsabilidades:
  - Levantar un RQ Worker consumiendo la cola de auditoría.
  - Inicializar dependencias del proceso: Redis y, con store postgres, el pool.
  - Exponer HTTP liviano de health/ready/metrics.
  - Apagar recursos de forma ordenada.

Patrones aplicados:
  - Process Bootstrap: recursos listos antes de consumir jobs.
  - Fail-fast: si Redis/BD no están disponibles al inicio, no arrancar.

Colaboradores:
  - crosscutting.config.get_settings
  - infrastructure.db (init_pool / ensure_schema / close_pool)
  - container.get_redis_connection
  - rq.Queue / rq.Worker
  - worker.server.start_worker_http_server
===============================================================================
"""

from __future__ import annotations

from rq import Queue, Worker

from ..container import get_redis_connection
from ..crosscutting.config import get_settings
from ..crosscutting.logger import logger
from ..infrastructure.db import close_pool, ensure_schema, init_pool
from .server import start_worker_http_server


def main() -> None:
    settings = get_settings()

    if not settings.redis_url:
        raise SystemExit("REDIS_URL es requerido para ejecutar el worker.")

    redis_conn = get_redis_connection()
    try:
        redis_conn.ping()
    except Exception as exc:
        logger.error("Redis no disponible para worker", extra={"error": str(exc)})
        raise SystemExit("Redis no disponible.") from exc

    use_postgres = settings.audit_store_backend == "postgres"
    if use_postgres:
        pool = init_pool(
            database_url=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
        )
        ensure_schema(pool)

    server = None
    try:
        server = start_worker_http_server(settings.worker_http_port)

        logger.info(
            "Worker de auditoría arrancando",
            extra={
                "queue": settings.audit_queue_name,
                "http_port": settings.worker_http_port,
                "store": settings.audit_store_backend,
            },
        )

        queue = Queue(name=settings.audit_queue_name, connection=redis_conn)
        worker = Worker([queue], connection=redis_conn)
        # Scheduler activo: los reintentos con intervalo de RQ lo necesitan.
        worker.work(with_scheduler=True)

    except KeyboardInterrupt:
        logger.info("Worker detenido por señal (KeyboardInterrupt)")
    finally:
        if server is not None:
            server.shutdown()
            server.server_close()
        if use_postgres:
            close_pool()
        logger.info("Worker apagado")


if __name__ == "__main__":
    main()
