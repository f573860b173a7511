"""
ETL monitoring portal service.

Serves the server-rendered pages, the browser-facing Apps Script proxy, the
manual upload endpoint and the Google sign-in flow.
"""

import secrets
import time
from typing import Dict, Optional
from urllib.parse import quote

import httpx
from fastapi import Depends, File, Request, UploadFile
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import AuthorizationError, PortalException, ValidationError

from .adapters.apps_script_client import AppsScriptClient
from .adapters.drive_client import DriveUploader
from .adapters.google_oauth import GoogleOAuthClient
from .caching.cached_client import CachedAppsScript
from .caching.response_cache import ResponseCache, create_response_cache
from .domain.auth_middleware import AuthGateMiddleware, get_current_user
from .domain.proxy import AppsScriptProxy
from .domain.session import SESSION_COOKIE, STATE_COOKIE, SessionManager, SessionUser
from .domain.sign_in import SignInPolicy
from .domain.upload import build_upload_name, validate_upload
from .pages import rendering
from .pages.server_api import ServerApi

SERVICE_NAME = "portal"
SERVICE_PORT = 3000
OAUTH_CALLBACK_PATH = "/api/auth/callback/google"
STATE_COOKIE_MAX_AGE = 600

DATA_PAGES = {
    "/": ("Dashboard", "get_dashboard"),
    "/procesos": ("Procesos", "get_procesos"),
    "/errores": ("Errores", "get_errores"),
    "/bitacora": ("Bitácora", "get_bitacora"),
    "/descargas": ("Descargas", "get_descargas"),
    "/configuracion": ("Configuración", "get_config"),
}


class PortalService(BaseService):
    """Portal service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        apps_script_transport: Optional[httpx.AsyncBaseTransport] = None,
        oauth_transport: Optional[httpx.AsyncBaseTransport] = None,
        drive_uploader: Optional[DriveUploader] = None,
        page_cache: Optional[ResponseCache] = None,
        proxy_cache: Optional[ResponseCache] = None,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config or get_config(SERVICE_NAME, SERVICE_PORT))

        self.apps_script_client = AppsScriptClient(
            self.config.apps_script_url,
            self.config.apps_script_token,
            detail_timeout=self.config.detail_timeout_seconds,
            metrics=self.metrics,
            transport=apps_script_transport,
        )

        # Page loads and proxy calls never share cache state
        self.page_cache = page_cache or self._build_cache("pages")
        self.proxy_cache = proxy_cache or self._build_cache("proxy")
        self.server_api = ServerApi(
            CachedAppsScript(self.apps_script_client, self.page_cache, name="pages", metrics=self.metrics),
            self.apps_script_client,
        )
        self.proxy = AppsScriptProxy(
            CachedAppsScript(self.apps_script_client, self.proxy_cache, name="proxy", metrics=self.metrics),
            self.apps_script_client,
        )

        self.session_manager = SessionManager(
            self.config.session_secret,
            self.config.session_max_age,
            secure=self.config.base_url.startswith("https://"),
        )
        self.oauth_client = GoogleOAuthClient(
            self.config.google_client_id,
            self.config.google_client_secret,
            f"{self.config.base_url.rstrip('/')}{OAUTH_CALLBACK_PATH}",
            hosted_domain=self.config.allowed_domain,
            transport=oauth_transport,
        )
        self.sign_in_policy = SignInPolicy(self.config.allowed_domain, self.apps_script_client, metrics=self.metrics)
        self.drive_uploader = drive_uploader or DriveUploader(
            self.config.google_service_account_email,
            self.config.google_service_account_key,
            self.config.drive_folder_uploads,
        )

        self.app.add_middleware(AuthGateMiddleware, session_manager=self.session_manager)

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.page_cache.close()
            await self.proxy_cache.close()

        self._setup_proxy_routes()
        self._setup_upload_routes()
        self._setup_auth_routes()
        self._setup_page_routes()

        self.app.state.portal_service = self

    def _build_cache(self, namespace: str) -> ResponseCache:
        return create_response_cache(
            self.config.cache_backend,
            ttl_seconds=self.config.cache_ttl_seconds,
            redis_url=self.config.redis_url,
            namespace=namespace,
        )

    async def _check_dependencies(self) -> Dict[str, str]:
        return {
            "apps_script": "configured" if self.apps_script_client.is_configured else "unconfigured",
            "drive": "configured" if self.drive_uploader.is_configured else "unconfigured",
            "cache_backend": self.config.cache_backend,
        }

    def _setup_proxy_routes(self):
        """Browser-facing proxy toward Apps Script."""

        @self.app.get("/api/apps-script")
        async def proxy_get(request: Request, user: SessionUser = Depends(get_current_user)):
            result = await self.proxy.get(user, request.query_params)
            return JSONResponse(content=result.data, headers=result.headers)

        @self.app.post("/api/apps-script")
        async def proxy_post(request: Request, user: SessionUser = Depends(get_current_user)):
            try:
                body = await request.json()
            except ValueError as exc:
                raise ValidationError("Cuerpo JSON inválido") from exc
            data = await self.proxy.post(user, body)
            return JSONResponse(content=data)

    def _setup_upload_routes(self):
        """Manual upload to Google Drive."""

        @self.app.post("/api/upload")
        async def upload_file(
            file: Optional[UploadFile] = File(None),
            user: SessionUser = Depends(get_current_user),
        ):
            filename = file.filename if file is not None else None
            try:
                # the parser has already counted the bytes; refuse oversized files unread
                if file is not None and file.size is not None:
                    validate_upload(filename, file.size, self.config.max_upload_bytes)
                content = await file.read() if file is not None else b""
                validate_upload(filename, len(content), self.config.max_upload_bytes)
            except ValidationError:
                self.metrics.increment_counter("uploads_total", result="rejected")
                raise

            file_name = build_upload_name(user.email, filename)
            try:
                stored = await self.drive_uploader.upload(file_name, content, file.content_type)
            except PortalException:
                self.metrics.increment_counter("uploads_total", result="failed")
                raise

            self.metrics.increment_counter("uploads_total", result="stored")
            self.logger.info("Manual upload stored", file_id=stored.file_id, file_name=stored.file_name)
            return {
                "success": True,
                "fileId": stored.file_id,
                "fileName": stored.file_name,
                "webViewLink": stored.web_view_link,
            }

    def _setup_auth_routes(self):
        """Google sign-in, callback, sign-out and session lookup."""

        @self.app.get("/api/auth/signin")
        async def sign_in():
            state = secrets.token_urlsafe(24)
            response = RedirectResponse(self.oauth_client.authorization_url(state), status_code=302)
            response.set_cookie(
                STATE_COOKIE,
                state,
                max_age=STATE_COOKIE_MAX_AGE,
                httponly=True,
                secure=self.session_manager.secure,
                samesite="lax",
                path="/",
            )
            return response

        @self.app.get(OAUTH_CALLBACK_PATH)
        async def oauth_callback(request: Request, code: Optional[str] = None, state: Optional[str] = None):
            expected_state = request.cookies.get(STATE_COOKIE)
            if not code or not state or not expected_state or not secrets.compare_digest(state, expected_state):
                self.logger.warning("OAuth callback with invalid state")
                return self._login_redirect("Callback")

            try:
                identity = await self.oauth_client.exchange_code(code)
                role = await self.sign_in_policy.authorize(identity.email)
            except AuthorizationError:
                return self._login_redirect("AccessDenied")
            except PortalException as exc:
                self.logger.warning("Sign-in failed", code=exc.code, error=exc.message)
                return self._login_redirect("Callback")

            user = SessionUser(email=identity.email, role=role, name=identity.name, image=identity.picture)
            response = RedirectResponse("/", status_code=302)
            response.set_cookie(SESSION_COOKIE, self.session_manager.encode(user), **self.session_manager.cookie_kwargs())
            response.delete_cookie(STATE_COOKIE, path="/")
            return response

        @self.app.api_route("/api/auth/signout", methods=["GET", "POST"])
        async def sign_out():
            response = RedirectResponse("/login", status_code=302)
            response.delete_cookie(SESSION_COOKIE, path="/")
            return response

        @self.app.get("/api/auth/session")
        async def session(request: Request):
            user: Optional[SessionUser] = request.state.user
            if user is None:
                return {}
            return {"user": user.to_dict()}

    def _login_redirect(self, error: str) -> RedirectResponse:
        response = RedirectResponse(f"/login?error={quote(error)}", status_code=302)
        response.delete_cookie(STATE_COOKIE, path="/")
        return response

    def _setup_page_routes(self):
        """Server-rendered pages with embedded initial data."""

        @self.app.get("/login", response_class=HTMLResponse)
        async def login_page(error: Optional[str] = None):
            return rendering.render_login_page(error, self.config.allowed_domain)

        @self.app.get("/carga-manual", response_class=HTMLResponse)
        async def upload_page(user: SessionUser = Depends(get_current_user)):
            return rendering.render_upload_page(user, self.config.max_upload_bytes // (1024 * 1024))

        @self.app.get("/procesos/{process_id}", response_class=HTMLResponse)
        async def process_detail_page(process_id: str, user: SessionUser = Depends(get_current_user)):
            detail = await self.server_api.get_proceso(process_id)
            if not detail:
                return HTMLResponse(rendering.render_not_found(), status_code=404)
            return rendering.render_detail_page(process_id, detail, user)

        for path, (title, loader_name) in DATA_PAGES.items():
            self.app.add_api_route(
                path,
                self._data_page_handler(title, loader_name),
                methods=["GET"],
                response_class=HTMLResponse,
            )

    def _data_page_handler(self, title: str, loader_name: str):
        loader = getattr(self.server_api, loader_name)

        async def handler(user: SessionUser = Depends(get_current_user)):
            page = await loader(user)
            return rendering.render_data_page(title, page, user, time.time())

        handler.__name__ = f"page_{loader_name}"
        return handler


def create_app(config: Optional[ServiceConfig] = None, **dependencies):
    """Create FastAPI application."""
    service = PortalService(config, **dependencies)
    return service.app


if __name__ == "__main__":
    service = PortalService()
    service.run()
