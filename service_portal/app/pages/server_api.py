"""
Server-side data loaders for the rendered pages.

Page loads go through the page cache and never fail the request: any
upstream or configuration problem is logged and the page is rendered with
``null`` initial data so that the client can fetch on its own.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from shared.errors import PortalException
from shared.logging import get_logger
from ..adapters.apps_script_client import AppsScriptClient
from ..caching.cached_client import CachedAppsScript
from ..domain.owner_scope import OWNER_PARAM, default_owner_email, scope_params
from ..domain.session import SessionUser

DEFAULT_PROCESOS_LIMIT = 200
DEFAULT_ERRORES_LIMIT = 500
DEFAULT_BITACORA_LIMIT = 100


@dataclass
class PageData:
    """Initial data for one page resource."""
    resource: str
    owner_email: Optional[str]
    data: Optional[Dict[str, Any]]


class ServerApi:
    """Loads initial page data through the page cache."""

    def __init__(self, cached: CachedAppsScript, client: AppsScriptClient):
        self.cached = cached
        self.client = client
        self.logger = get_logger("portal.pages")

    async def _load(self, user: SessionUser, action: str, params: Optional[Dict[str, Any]] = None) -> PageData:
        scoped = scope_params(user, params or {})
        owner_email = scoped[OWNER_PARAM]
        try:
            response = await self.cached.fetch(action, scoped)
        except PortalException as exc:
            self.logger.warning("Page data unavailable", action=action, code=exc.code, error=exc.message)
            return PageData(resource=action, owner_email=owner_email, data=None)

        self.logger.info(
            "Page data loaded",
            action=action,
            cache=response.status.value,
            duration_ms=response.duration_ms
        )
        return PageData(resource=action, owner_email=owner_email, data=response.data)

    async def get_dashboard(self, user: SessionUser) -> PageData:
        return await self._load(user, "dashboard")

    async def get_procesos(
        self,
        user: SessionUser,
        limite: int = DEFAULT_PROCESOS_LIMIT,
        owner_email: Optional[str] = None,
        cursor: Optional[str] = None,
    ) -> PageData:
        """First page of processes; admins start on the full view."""
        params = {
            "limite": limite,
            OWNER_PARAM: owner_email or default_owner_email(user),
            "cursor": cursor,
        }
        return await self._load(user, "procesos", params)

    async def get_errores(self, user: SessionUser, limite: int = DEFAULT_ERRORES_LIMIT) -> PageData:
        return await self._load(user, "errores", {"limite": limite})

    async def get_bitacora(self, user: SessionUser, limite: int = DEFAULT_BITACORA_LIMIT) -> PageData:
        return await self._load(user, "bitacora", {"limite": limite})

    async def get_descargas(self, user: SessionUser) -> PageData:
        return await self._load(user, "descargas")

    async def get_config(self, user: SessionUser) -> PageData:
        return await self._load(user, "config")

    async def get_proceso(self, process_id: str) -> Optional[Dict[str, Any]]:
        """Process detail with the detail timeout; None means not found."""
        return await self.client.fetch_detail(process_id)
