"""
Shared error handling for the ETL monitoring portal.
"""

from datetime import datetime, timezone
from typing import Dict, Any, Optional

from pydantic import BaseModel, Field


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ErrorResponse(BaseModel):
    """Standard error response format.

    ``success`` is always false so that callers of the proxy can treat error
    bodies and upstream logical failures the same way.
    """

    success: bool = False
    code: str
    error: str
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str = Field(default_factory=_utc_now_iso)


class PortalException(Exception):
    """Base exception for portal services."""

    status_code: int = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        # extra response headers (cache diagnostics on the proxy path)
        self.headers: Dict[str, str] = {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            error=self.message,
            details=self.details
        )


class ConfigurationError(PortalException):
    """Required environment configuration is missing."""

    status_code = 500

    def __init__(self, message: str = "API no configurada en el servidor", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class UpstreamError(PortalException):
    """Upstream reachable but returned a non-success status or payload."""

    status_code = 502

    def __init__(self, message: str = "Error en la API", details: Optional[Dict[str, Any]] = None):
        super().__init__("UPSTREAM_ERROR", message, details)


class UpstreamTimeoutError(UpstreamError):
    """Upstream call exceeded its abort timeout."""

    status_code = 504

    def __init__(self, message: str = "Tiempo de espera agotado", details: Optional[Dict[str, Any]] = None):
        PortalException.__init__(self, "UPSTREAM_TIMEOUT", message, details)


class ValidationError(PortalException):
    """Validation-related errors."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class AuthenticationError(PortalException):
    """Authentication-related errors."""

    status_code = 401

    def __init__(self, message: str = "No autorizado. Inicie sesión.", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHENTICATION_ERROR", message, details)


class AuthorizationError(PortalException):
    """Authorization-related errors."""

    status_code = 403

    def __init__(self, message: str = "Acceso denegado", details: Optional[Dict[str, Any]] = None):
        super().__init__("AUTHORIZATION_ERROR", message, details)
