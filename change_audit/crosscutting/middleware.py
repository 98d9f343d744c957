# change_audit/crosscutting/middleware.py
"""
===============================================================================
MÓDULO: Middleware HTTP de contexto de auditoría
===============================================================================

Objetivo
--------
AuditContextMiddleware:
   - Generar/propagar request_id
   - Setear los contextvars que enriquecen cada registro de auditoría
     (actor, IP, user agent, URL, método, ruta, guard)
   - Log por request y clear_context() garantizado

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  AuditContextMiddleware

Responsabilidades:
  - Poblar el contexto ambiente antes de que corra el endpoint
  - Evitar leaks de contexto entre requests

Colaboradores:
  - change_audit/context.py
  - application.context_resolver (lee lo que este middleware setea)
  - crosscutting.logger
===============================================================================
"""

from __future__ import annotations

import time
import uuid
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match
from starlette.types import ASGIApp

from ..context import (
    clear_context,
    set_audit_context,
    set_principal_loader,
    set_request_context,
)
from .logger import logger

Resolver = Callable[[Request], Optional[str]]


class AuditContextMiddleware(BaseHTTPMiddleware):
    """
    ----------------------------------------------------------------------------
    CRC (Class Card)
    ----------------------------------------------------------------------------
    Clase:
      AuditContextMiddleware

    Responsabilidades:
      - Generar/aceptar X-Request-Id
      - Resolver actor y guard al momento de emitir (request.state,
        scope["user"] o resolvers inyectados)
      - Resolver el nombre de la ruta antes del routing (match contra el router)
      - Garantizar clear_context() para evitar leaks
    ----------------------------------------------------------------------------
    """

    _QUIET_PATHS = {"/healthz", "/metrics"}

    def __init__(
        self,
        app: ASGIApp,
        *,
        actor_resolver: Resolver | None = None,
        guard_resolver: Resolver | None = None,
        trust_forwarded_for: bool = True,
    ) -> None:
        super().__init__(app)
        self._actor_resolver = actor_resolver or _default_actor
        self._guard_resolver = guard_resolver or _default_guard
        self._trust_forwarded_for = trust_forwarded_for

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        incoming = (request.headers.get("x-request-id") or "").strip()
        request_id = (
            incoming if self._is_valid_request_id(incoming) else str(uuid.uuid4())
        )

        set_request_context(
            request_id=request_id, method=request.method, path=request.url.path
        )
        set_audit_context(
            ip_address=self._client_ip(request),
            user_agent=request.headers.get("user-agent"),
            url=str(request.url),
            http_method=request.method,
            route_name=_route_name(request),
        )
        # El actor se lee al emitir: la auth del endpoint corre después.
        set_principal_loader(
            lambda: (self._actor_resolver(request), self._guard_resolver(request))
        )
        request.state.request_id = request_id

        start = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["X-Request-Id"] = request_id
            return response
        except Exception:
            latency = time.perf_counter() - start
            logger.exception(
                "request falló",
                extra={"status_code": 500, "latency_ms": round(latency * 1000, 2)},
            )
            raise
        finally:
            latency = time.perf_counter() - start
            if request.url.path not in self._QUIET_PATHS:
                logger.info(
                    "request completado",
                    extra={
                        "status_code": status_code,
                        "latency_ms": round(latency * 1000, 2),
                    },
                )
            clear_context()

    def _client_ip(self, request: Request) -> Optional[str]:
        if self._trust_forwarded_for:
            forwarded = request.headers.get("x-forwarded-for") or ""
            first_hop = forwarded.split(",")[0].strip()
            if first_hop:
                return first_hop
        return request.client.host if request.client else None

    @staticmethod
    def _is_valid_request_id(value: str) -> bool:
        return bool(value) and len(value) <= 128


def _default_actor(request: Request) -> Optional[str]:
    actor = getattr(request.state, "actor_id", None)
    if actor is not None:
        return str(actor)

    # scope["user"] lo setea AuthenticationMiddleware si está instalado.
    user = request.scope.get("user")
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    for attr in ("id", "identity"):
        try:
            value = getattr(user, attr, None)
        except NotImplementedError:
            value = None
        if value is not None:
            return str(value)
    return None


def _default_guard(request: Request) -> Optional[str]:
    return getattr(request.state, "auth_guard", None)


def _route_name(request: Request) -> Optional[str]:
    """Nombre de la ruta que va a atender el request (None si no hay match)."""
    route = request.scope.get("route")
    if route is not None:
        return getattr(route, "name", None)

    router = getattr(request.scope.get("app"), "router", None)
    for candidate in getattr(router, "routes", ()):
        match, _ = candidate.matches(request.scope)
        if match == Match.FULL:
            return getattr(candidate, "name", None)
    return None
