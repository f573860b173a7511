"""
Authentication gate for the portal.

Every request outside the public paths needs a valid session cookie.
API calls without one get a 401 JSON body; page navigations are sent to
the login page instead.
"""

from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from shared.errors import AuthenticationError
from shared.logging import get_logger, set_user_context
from .session import SESSION_COOKIE, SessionManager, SessionUser

LOGIN_PATH = "/login"
PUBLIC_PATHS = frozenset({LOGIN_PATH, "/health", "/metrics", "/favicon.ico"})
PUBLIC_PREFIXES = ("/api/auth/", "/static/")


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


class AuthGateMiddleware(BaseHTTPMiddleware):
    """Resolves the session user and enforces the access rules."""

    def __init__(self, app, session_manager: SessionManager):
        super().__init__(app)
        self.session_manager = session_manager
        self.logger = get_logger("portal.auth_gate")

    async def dispatch(self, request: Request, call_next):
        user = self.session_manager.decode(request.cookies.get(SESSION_COOKIE))
        request.state.user = user
        path = request.url.path

        if user is not None:
            set_user_context(user.email)
            if path == LOGIN_PATH:
                return RedirectResponse("/", status_code=302)
            return await call_next(request)

        if is_public_path(path):
            return await call_next(request)

        if path.startswith("/api/"):
            self.logger.info("Rejected unauthenticated API call", path=path)
            error = AuthenticationError()
            return JSONResponse(status_code=error.status_code, content=error.to_response().model_dump())

        return RedirectResponse(LOGIN_PATH, status_code=302)


def get_current_user(request: Request) -> SessionUser:
    """FastAPI dependency returning the authenticated user."""
    user: Optional[SessionUser] = getattr(request.state, "user", None)
    if user is None:
        raise AuthenticationError()
    return user
