"""
===============================================================================
TARJETA CRC — worker/server.py (HTTP liviano para el Worker)
===============================================================================

Responsabilidades:
  - Exponer endpoints operativos del worker:
      * GET /healthz  (liveness)
      * GET /readyz   (readiness: Redis + DB)
      * GET /metrics  (Prometheus)

Patrones aplicados:
  - Minimal HTTP Server: http.server (sin framework web en el worker).
  - Best-effort: si el server no puede iniciar, no rompe el worker.

Colaboradores:
  - worker.health.health_payload / readiness_payload
  - crosscutting.metrics.generate_metrics
===============================================================================
"""

from __future__ import annotations

import json
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import urlparse

from ..crosscutting.logger import logger
from ..crosscutting.metrics import generate_metrics
from .health import health_payload, readiness_payload


class _WorkerHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:
        path = urlparse(self.path).path

        if path == "/healthz":
            self._write_json(200, health_payload())
            return

        if path == "/readyz":
            payload = readiness_payload()
            self._write_json(200 if payload.get("ok") else 503, payload)
            return

        if path == "/metrics":
            body, content_type = generate_metrics()
            self.send_response(200)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
            return

        self.send_response(404)
        self.end_headers()

    def log_message(self, format: str, *args) -> None:
        logger.debug(
            "Worker HTTP request",
            extra={
                "client": self.client_address[0] if self.client_address else None,
                "path": getattr(self, "path", None),
            },
        )

    def _write_json(self, status: int, payload: dict) -> None:
        body = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


def start_worker_http_server(
    port: int, host: str = "0.0.0.0"
) -> ThreadingHTTPServer | None:
    """Inicia el server en un thread daemon; None si el puerto no está libre."""
    try:
        server = ThreadingHTTPServer((host, port), _WorkerHandler)
    except OSError as exc:
        logger.warning("Worker HTTP server no pudo iniciar", extra={"error": str(exc)})
        return None

    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    logger.info("Worker HTTP server iniciado", extra={"port": port})
    return server


__all__ = ["start_worker_http_server"]
