"""
Shared configuration management for the ETL monitoring portal.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Environment
    env: str = Field(default="local", validation_alias="PORTAL_ENV")
    log_level: str = Field(default="info", validation_alias="PORTAL_LOG_LEVEL")

    # Upstream Apps Script backend
    apps_script_url: str = Field(default="", validation_alias="APPS_SCRIPT_URL")
    apps_script_token: str = Field(default="", validation_alias="APPS_SCRIPT_TOKEN")
    detail_timeout_seconds: float = Field(default=15.0, validation_alias="PORTAL_DETAIL_TIMEOUT_SECONDS")

    # Caching
    cache_ttl_seconds: float = Field(default=30.0, validation_alias="PORTAL_CACHE_TTL_SECONDS")
    cache_backend: str = Field(default="memory", validation_alias="PORTAL_CACHE_BACKEND")
    redis_url: str = Field(default="redis://localhost:6379/0", validation_alias="PORTAL_REDIS_URL")

    # Security
    allowed_domain: str = Field(default="transperuana.com.pe", validation_alias="ALLOWED_DOMAIN")
    google_client_id: str = Field(default="", validation_alias="GOOGLE_CLIENT_ID")
    google_client_secret: str = Field(default="", validation_alias="GOOGLE_CLIENT_SECRET")
    base_url: str = Field(default="http://localhost:3000", validation_alias="PORTAL_BASE_URL")
    session_secret: str = Field(default="dev-session-secret-change-me", validation_alias="PORTAL_SESSION_SECRET")
    session_max_age: int = Field(default=8 * 60 * 60, validation_alias="PORTAL_SESSION_MAX_AGE")

    # Manual uploads
    google_service_account_email: Optional[str] = Field(default=None, validation_alias="GOOGLE_SERVICE_ACCOUNT_EMAIL")
    google_service_account_key: Optional[str] = Field(default=None, validation_alias="GOOGLE_SERVICE_ACCOUNT_KEY")
    drive_folder_uploads: str = Field(default="", validation_alias="DRIVE_FOLDER_UPLOADS")
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, validation_alias="PORTAL_MAX_UPLOAD_BYTES")

    @property
    def is_upstream_configured(self) -> bool:
        return bool(self.apps_script_url)


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
