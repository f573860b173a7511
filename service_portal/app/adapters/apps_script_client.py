"""
Apps Script client for the portal.

Every upstream call goes to a single Web App URL with an ``action`` query
parameter. The Web App answers with a redirect followed by a JSON body of the
shape ``{"success": bool, "error": str?, ...payload}``.
"""

import time
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlencode

import httpx

from shared.logging import get_logger
from shared.errors import ConfigurationError, UpstreamError, UpstreamTimeoutError
from shared.metrics import MetricsCollector

DEFAULT_TIMEOUT = httpx.Timeout(30.0)
TOKEN_PARAM = "_token"


class AppsScriptClient:
    """Client for the external Apps Script backend."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        *,
        detail_timeout: float = 15.0,
        metrics: Optional[MetricsCollector] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or ""
        self.token = token or ""
        self.detail_timeout = detail_timeout
        self.metrics = metrics
        self.logger = get_logger("portal.apps_script")
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    def _require_base_url(self) -> str:
        if not self.base_url:
            self.logger.error("APPS_SCRIPT_URL is not configured")
            raise ConfigurationError()
        return self.base_url

    def _client(self, timeout: Any = DEFAULT_TIMEOUT) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    @staticmethod
    def build_params(action: str, params: Optional[Mapping[str, Any]] = None) -> List[Tuple[str, str]]:
        """Return query parameters in append order: ``action`` first, then ``params``.

        Empty values are skipped.
        """
        pairs = [("action", action)]
        for key, value in (params or {}).items():
            if key == "action" or value is None or value == "":
                continue
            pairs.append((key, str(value)))
        return pairs

    def build_url(self, action: str, params: Optional[Mapping[str, Any]] = None) -> str:
        """Full request URL without the shared token."""
        base_url = self._require_base_url()
        separator = "&" if "?" in base_url else "?"
        return f"{base_url}{separator}{urlencode(self.build_params(action, params))}"

    async def call(
        self,
        action: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Issue a GET for ``action`` and return the JSON payload.

        Raises ConfigurationError when no base URL is configured, UpstreamError
        when the status is not 2xx or the payload reports ``success != true``,
        and UpstreamTimeoutError when ``timeout`` elapses.
        """
        url = self.build_url(action, params)
        if self.token:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}{urlencode({TOKEN_PARAM: self.token})}"

        start = time.perf_counter()
        outcome = "error"
        try:
            try:
                async with self._client(timeout if timeout is not None else DEFAULT_TIMEOUT) as client:
                    response = await client.get(url, headers={"Accept": "application/json"})
            except httpx.TimeoutException as exc:
                outcome = "timeout"
                self.logger.warning("Apps Script request timed out", action=action, timeout=timeout)
                raise UpstreamTimeoutError(details={"action": action}) from exc
            except httpx.HTTPError as exc:
                self.logger.error("Apps Script connection error", action=action, error=str(exc))
                raise UpstreamError(f"Error de conexión: {exc}", details={"action": action}) from exc

            if not response.is_success:
                self.logger.error(
                    "Apps Script returned non-success status",
                    action=action,
                    status_code=response.status_code
                )
                raise UpstreamError(
                    f"Apps Script respondió con status: {response.status_code}",
                    details={"action": action, "status_code": response.status_code}
                )

            data = self._decode(response, action)
            if not isinstance(data, dict) or data.get("success") is not True:
                error = data.get("error") if isinstance(data, dict) else None
                self.logger.warning("Apps Script reported failure", action=action, error=error)
                raise UpstreamError(error or "Error en la API", details={"action": action})

            outcome = "success"
            return data
        finally:
            duration = time.perf_counter() - start
            if self.metrics:
                self.metrics.record_upstream_call(action, outcome, duration)
            self.logger.debug(
                "Apps Script call finished",
                action=action,
                outcome=outcome,
                duration_ms=round(duration * 1000, 2)
            )

    async def post(self, body: Dict[str, Any]) -> Any:
        """Forward a JSON body verbatim and return the upstream JSON unmodified.

        Unlike ``call`` there is no ``success`` gate; callers interpret the
        result themselves.
        """
        base_url = self._require_base_url()
        payload = dict(body)
        if self.token:
            payload[TOKEN_PARAM] = self.token

        action = str(payload.get("action", "post"))
        start = time.perf_counter()
        outcome = "error"
        try:
            try:
                async with self._client() as client:
                    response = await client.post(base_url, json=payload)
            except httpx.TimeoutException as exc:
                outcome = "timeout"
                raise UpstreamTimeoutError(details={"action": action}) from exc
            except httpx.HTTPError as exc:
                self.logger.error("Apps Script POST connection error", action=action, error=str(exc))
                raise UpstreamError("Error en POST", details={"action": action}) from exc

            if not response.is_success:
                self.logger.error(
                    "Apps Script POST returned non-success status",
                    action=action,
                    status_code=response.status_code
                )
                raise UpstreamError(
                    f"Apps Script respondió con status: {response.status_code}",
                    details={"action": action, "status_code": response.status_code}
                )

            data = self._decode(response, action)
            outcome = "success"
            return data
        finally:
            if self.metrics:
                self.metrics.record_upstream_call(action, outcome, time.perf_counter() - start)

    async def fetch_detail(self, process_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one process with the detail timeout.

        Any failure, including a timeout, is treated as absence of data so that
        the detail page can render "not found" instead of failing.
        """
        try:
            return await self.call("proceso", {"id": process_id}, timeout=self.detail_timeout)
        except UpstreamTimeoutError:
            self.logger.warning("Process detail timed out", process_id=process_id)
            return None
        except (UpstreamError, ConfigurationError) as exc:
            self.logger.warning("Process detail unavailable", process_id=process_id, error=str(exc))
            return None

    async def validate_user(self, email: str) -> Dict[str, Any]:
        """Allow-list lookup for a signing-in user."""
        return await self.call("users.validate", {"email": email})

    async def ping(self) -> bool:
        """Liveness check against the upstream."""
        try:
            await self.call("ping")
            return True
        except (UpstreamError, ConfigurationError):
            return False

    def _decode(self, response: httpx.Response, action: str) -> Any:
        text = response.text
        if text.lstrip().startswith("<"):
            self.logger.warning("Apps Script returned HTML instead of JSON", action=action, body=text[:200])
            raise UpstreamError("Respuesta inválida de Apps Script", details={"action": action})
        try:
            return response.json()
        except ValueError as exc:
            self.logger.error("Apps Script returned invalid JSON", action=action, body=text[:200])
            raise UpstreamError("Respuesta inválida de Apps Script", details={"action": action}) from exc
