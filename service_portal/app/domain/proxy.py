"""
Browser-facing proxy toward the Apps Script backend.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

from shared.errors import PortalException, ValidationError
from shared.logging import get_logger
from ..adapters.apps_script_client import TOKEN_PARAM, AppsScriptClient
from ..caching.cached_client import CachedAppsScript
from .owner_scope import OWNER_PARAM, scope_body, scope_params
from .session import SessionUser

DEFAULT_ACTION = "ping"

# Per-user payloads must not be stored by shared HTTP caches
USER_SCOPED_ACTIONS = frozenset({
    "alertas",
    "notificaciones",
    "procesos",
    "descargas",
    "users.getMe",
    "users.list",
    "bitacora",
    "errores",
})

PRIVATE_CACHE_CONTROL = "private, no-store, must-revalidate"
SHARED_CACHE_CONTROL = "private, s-maxage=30, stale-while-revalidate=60"


@dataclass
class ProxyResult:
    """Payload to return to the browser plus diagnostic headers."""
    data: Any
    headers: Dict[str, str] = field(default_factory=dict)


class AppsScriptProxy:
    """Scopes, caches and forwards proxy calls."""

    def __init__(self, cached: CachedAppsScript, client: AppsScriptClient):
        self.cached = cached
        self.client = client
        self.logger = get_logger("portal.proxy")

    async def get(self, user: SessionUser, query: Mapping[str, str]) -> ProxyResult:
        params = dict(query)
        action = params.pop("action", None) or DEFAULT_ACTION
        params.pop(TOKEN_PARAM, None)
        scoped = scope_params(user, params)

        self.logger.info("Proxy GET", action=action, email=user.email)
        try:
            response = await self.cached.fetch(action, scoped)
        except PortalException as exc:
            exc.headers["Cache-Control"] = PRIVATE_CACHE_CONTROL
            self.logger.warning("Proxy GET failed", action=action, code=exc.code, cache=exc.headers.get("X-Cache"))
            raise

        user_scoped = action in USER_SCOPED_ACTIONS or OWNER_PARAM in query
        headers = {
            "X-Cache": response.status.value,
            "X-Response-Time": f"{response.duration_ms}ms",
            "Cache-Control": PRIVATE_CACHE_CONTROL if user_scoped else SHARED_CACHE_CONTROL,
        }
        self.logger.info(
            "Proxy GET completed",
            action=action,
            cache=response.status.value,
            duration_ms=response.duration_ms
        )
        return ProxyResult(data=response.data, headers=headers)

    async def post(self, user: SessionUser, body: Any) -> Any:
        """Forward a write-style action; the upstream JSON is returned as is."""
        if not isinstance(body, dict):
            raise ValidationError("El cuerpo debe ser un objeto JSON")

        scoped = scope_body(user, body)
        self.logger.info("Proxy POST", action=scoped.get("action"), email=user.email)
        return await self.client.post(scoped)
