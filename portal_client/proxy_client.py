"""
HTTP client for the portal's ``/api/apps-script`` proxy.
"""

from typing import Any, Dict, Mapping, Optional

import httpx

from shared.errors import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    PortalException,
    UpstreamError,
    UpstreamTimeoutError,
    ValidationError,
)
from shared.logging import get_logger
from .pagination import Page, PageFetcher
from .query import Fetcher

PROXY_PATH = "/api/apps-script"
SESSION_COOKIE = "portal_session"

_ERRORS_BY_CODE = {
    "CONFIGURATION_ERROR": ConfigurationError,
    "UPSTREAM_ERROR": UpstreamError,
    "UPSTREAM_TIMEOUT": UpstreamTimeoutError,
    "VALIDATION_ERROR": ValidationError,
    "AUTHENTICATION_ERROR": AuthenticationError,
    "AUTHORIZATION_ERROR": AuthorizationError,
}


class ProxyClient:
    """Calls the proxy with the caller's session and maps error bodies back to exceptions."""

    def __init__(
        self,
        base_url: str,
        *,
        session_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.session_token = session_token
        self.timeout = timeout
        self.logger = get_logger("portal_client.proxy")
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        cookies = {SESSION_COOKIE: self.session_token} if self.session_token else None
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            cookies=cookies,
            transport=self._transport,
        )

    async def get(self, action: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        query = {"action": action}
        for key, value in (params or {}).items():
            if value is not None and value != "":
                query[key] = str(value)

        try:
            async with self._client() as client:
                response = await client.get(PROXY_PATH, params=query)
        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError(details={"action": action}) from exc
        except httpx.HTTPError as exc:
            self.logger.warning("Proxy request failed", action=action, error=str(exc))
            raise UpstreamError(f"Error de conexión: {exc}", details={"action": action}) from exc

        self.logger.debug(
            "Proxy response",
            action=action,
            status_code=response.status_code,
            cache=response.headers.get("X-Cache")
        )
        return self._decode(response, action)

    async def post(self, body: Dict[str, Any]) -> Any:
        action = body.get("action")
        try:
            async with self._client() as client:
                response = await client.post(PROXY_PATH, json=body)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Error de conexión: {exc}", details={"action": action}) from exc
        return self._decode(response, action)

    def _decode(self, response: httpx.Response, action: Optional[str]) -> Any:
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"HTTP error! status: {response.status_code}",
                details={"action": action, "status_code": response.status_code}
            ) from exc

        if response.is_success:
            return payload

        raise self._error_from_body(payload, response.status_code)

    @staticmethod
    def _error_from_body(payload: Any, status_code: int) -> PortalException:
        body = payload if isinstance(payload, dict) else {}
        error_class = _ERRORS_BY_CODE.get(body.get("code"), UpstreamError)
        message = body.get("error") or f"HTTP error! status: {status_code}"
        return error_class(message, details=body.get("details") or {"status_code": status_code})

    def fetcher(self, action: str, params: Optional[Mapping[str, Any]] = None) -> Fetcher:
        """Zero-argument coroutine factory for QueryClient."""

        async def fetch() -> Dict[str, Any]:
            return await self.get(action, params)

        return fetch

    def page_fetcher(self, action: str, items_key: str, params: Optional[Mapping[str, Any]] = None) -> PageFetcher:
        """Page fetcher for CursorPaginator; the scope is sent as ``ownerEmail``."""
        base_params = dict(params or {})

        async def fetch_page(scope: Optional[str], cursor: Optional[str]) -> Page:
            query = dict(base_params)
            if scope:
                query["ownerEmail"] = scope
            if cursor:
                query["cursor"] = cursor
            return Page.from_response(await self.get(action, query), items_key)

        return fetch_page
