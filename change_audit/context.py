"""
===============================================================================
TARJETA CRC — change_audit/context.py (Contexto por request / job)
===============================================================================

Responsabilidades:
  - Mantener contexto “request-scoped” usando ContextVars (async-safe).
  - Guardar los datos del request que enriquecen cada registro de auditoría
    (actor, IP, user agent, URL, método, ruta, guard).
  - Guardar el estado por operación del pipeline: supresión de auditoría
    (run_without_auditing) y snapshots originales capturados antes de un update.
  - Proveer helpers mínimos: set_*(), audit_context(), get_context_dict(),
    clear_context().

Colaboradores:
  - crosscutting.middleware: setea el contexto al inicio del request.
  - crosscutting.logger: enriquece logs leyendo get_context_dict().
  - application.context_resolver: lee el contexto al emitir un registro.
  - application.gate: setea/lee la supresión por contexto.
  - worker.jobs: setea request_id por job y limpia contexto al finalizar.

Patrones aplicados:
  - Ambient Context (controlado y explícito).
  - Async-safe “thread-local” (ContextVar).

Restricciones:
  - Defaults vacíos ("") para strings; el resolver los traduce a None.
  - Los valores mutables se reemplazan, nunca se mutan in-place: un dict
    compartido entre contextos copiados filtraría estado entre tasks.
===============================================================================
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Callable, Final, Iterator, Mapping, Optional, Tuple

# =============================================================================
# ContextVars: correlación (logs)
# =============================================================================

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
http_method_var: ContextVar[str] = ContextVar("http_method", default="")
http_path_var: ContextVar[str] = ContextVar("http_path", default="")

# =============================================================================
# ContextVars: datos de auditoría del request
# =============================================================================

actor_id_var: ContextVar[str] = ContextVar("actor_id", default="")
ip_address_var: ContextVar[str] = ContextVar("ip_address", default="")
user_agent_var: ContextVar[str] = ContextVar("user_agent", default="")
url_var: ContextVar[str] = ContextVar("url", default="")
route_name_var: ContextVar[str] = ContextVar("route_name", default="")
auth_guard_var: ContextVar[str] = ContextVar("auth_guard", default="")

# Carga diferida de (actor_id, auth_guard): la autenticación puede correr
# después del middleware (dependencias del endpoint).
PrincipalLoader = Callable[[], Tuple[Optional[str], Optional[str]]]
principal_loader_var: ContextVar[PrincipalLoader | None] = ContextVar(
    "principal_loader", default=None
)

# =============================================================================
# ContextVars: estado del pipeline por operación
# =============================================================================

# True mientras corre un bloque run_without_auditing() en ESTE contexto.
audit_suppressed_var: ContextVar[bool] = ContextVar("audit_suppressed", default=False)

# (entity_type, entity_id) -> atributos originales capturados en `updating`.
captured_originals_var: ContextVar[Mapping[tuple[str, str], Mapping[str, Any]]] = (
    ContextVar("captured_originals", default={})
)

_CTX_REQUEST_ID: Final[str] = "request_id"
_CTX_METHOD: Final[str] = "method"
_CTX_PATH: Final[str] = "path"

_AUDIT_VARS: Final[dict[str, ContextVar[str]]] = {
    "actor_id": actor_id_var,
    "ip_address": ip_address_var,
    "user_agent": user_agent_var,
    "url": url_var,
    "http_method": http_method_var,
    "route_name": route_name_var,
    "auth_guard": auth_guard_var,
}


# =============================================================================
# API pública
# =============================================================================


def set_request_context(
    *, request_id: str = "", method: str = "", path: str = ""
) -> None:
    """
    Setea el contexto mínimo del request.

    Regla:
      - Strings vacíos significan “no disponible”.
    """
    request_id_var.set(request_id or "")
    http_method_var.set(method or "")
    http_path_var.set(path or "")


def set_audit_context(
    *,
    actor_id: str | int | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    url: str | None = None,
    http_method: str | None = None,
    route_name: str | None = None,
    auth_guard: str | None = None,
) -> None:
    """Setea los datos del request que se copian en cada registro."""
    actor_id_var.set("" if actor_id is None else str(actor_id))
    ip_address_var.set(ip_address or "")
    user_agent_var.set(user_agent or "")
    url_var.set(url or "")
    http_method_var.set(http_method or "")
    route_name_var.set(route_name or "")
    auth_guard_var.set(auth_guard or "")


@contextmanager
def audit_context(**values: str | int | None) -> Iterator[None]:
    """
    Setea datos de auditoría solo durante el bloque.

    Útil para jobs/CLI que actúan en nombre de un actor:

        with audit_context(actor_id=42, auth_guard="console"):
            service.update_product(...)
    """
    unknown = set(values) - set(_AUDIT_VARS)
    if unknown:
        raise TypeError(f"Campos de contexto desconocidos: {sorted(unknown)}")

    tokens = [
        (_AUDIT_VARS[name], _AUDIT_VARS[name].set("" if value is None else str(value)))
        for name, value in values.items()
    ]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def set_actor(actor_id: str | int | None, auth_guard: str | None = None) -> None:
    """
    Setea el actor autenticado del request en curso.

    Para código de auth que corre después del middleware:

        def current_user(request: Request) -> User:
            user = authenticate(request)
            set_actor(user.id, auth_guard="api")
            return user
    """
    actor_id_var.set("" if actor_id is None else str(actor_id))
    if auth_guard is not None:
        auth_guard_var.set(auth_guard)


def set_principal_loader(loader: PrincipalLoader | None) -> None:
    """Registra la función que resuelve (actor_id, auth_guard) al emitir."""
    principal_loader_var.set(loader)


def get_audit_context_values() -> dict[str, str]:
    """
    Valores crudos de auditoría ("" = no disponible).

    actor_id/auth_guard seteados explícitamente ganan; si faltan, se consulta
    el principal loader en este momento.
    """
    values = {name: var.get() for name, var in _AUDIT_VARS.items()}
    loader = principal_loader_var.get()
    if loader is not None and not (values["actor_id"] and values["auth_guard"]):
        actor_id, auth_guard = loader()
        if not values["actor_id"] and actor_id is not None:
            values["actor_id"] = str(actor_id)
        if not values["auth_guard"] and auth_guard is not None:
            values["auth_guard"] = str(auth_guard)
    return values


def get_context_dict() -> dict[str, str]:
    """
    Devuelve el contexto de correlación como dict, omitiendo claves vacías.

    Uso típico:
      - Enriquecimiento de logs estructurados.
    """
    ctx: dict[str, str] = {}

    if val := request_id_var.get():
        ctx[_CTX_REQUEST_ID] = val
    if val := http_method_var.get():
        ctx[_CTX_METHOD] = val
    if val := http_path_var.get():
        ctx[_CTX_PATH] = val

    return ctx


def clear_context() -> None:
    """
    Limpia el contexto al final del request/job.

    Importante:
      - Esto evita “filtración de contexto” entre requests cuando hay workers async.
    """
    request_id_var.set("")
    http_path_var.set("")
    for var in _AUDIT_VARS.values():
        var.set("")
    principal_loader_var.set(None)
    captured_originals_var.set({})
