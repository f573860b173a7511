"""
Google Drive client used by the manual upload flow.
"""

import asyncio
import io
from dataclasses import dataclass
from typing import Any, Callable, Optional

from google.auth.exceptions import GoogleAuthError
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from shared.logging import get_logger
from shared.errors import ConfigurationError, UpstreamError

DRIVE_SCOPES = ["https://www.googleapis.com/auth/drive.file"]
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
DEFAULT_MIME_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@dataclass
class StoredFile:
    """File persisted in Drive."""
    file_id: str
    file_name: str
    web_view_link: Optional[str]


class DriveUploader:
    """Uploads files into a Drive folder under a service account."""

    def __init__(
        self,
        service_account_email: Optional[str],
        service_account_key: Optional[str],
        folder_id: str,
        *,
        service_factory: Optional[Callable[[], Any]] = None,
    ):
        self.service_account_email = service_account_email
        self.service_account_key = service_account_key
        self.folder_id = folder_id
        self.logger = get_logger("portal.drive")
        self._service_factory = service_factory or self._build_service
        self._service = None

    @property
    def is_configured(self) -> bool:
        return bool(self.service_account_email and self.service_account_key)

    def _build_service(self):
        credentials = Credentials.from_service_account_info(
            {
                "type": "service_account",
                "client_email": self.service_account_email,
                # keys stored in env files usually carry literal "\n" sequences
                "private_key": (self.service_account_key or "").replace("\\n", "\n"),
                "token_uri": GOOGLE_TOKEN_URI,
            },
            scopes=DRIVE_SCOPES,
        )
        return build("drive", "v3", credentials=credentials, cache_discovery=False)

    def _get_service(self):
        if not self.is_configured:
            self.logger.error("Drive service account credentials are not configured")
            raise ConfigurationError("Credenciales de Google Drive no configuradas")
        if self._service is None:
            try:
                self._service = self._service_factory()
            except (ValueError, GoogleAuthError) as exc:
                self.logger.error("Drive service account key is invalid", error=str(exc))
                raise ConfigurationError("Credenciales de Google Drive inválidas") from exc
        return self._service

    def _upload_sync(self, file_name: str, content: bytes, mime_type: str) -> StoredFile:
        service = self._get_service()
        media = MediaIoBaseUpload(io.BytesIO(content), mimetype=mime_type, resumable=False)

        try:
            created = service.files().create(
                body={"name": file_name, "parents": [self.folder_id]},
                media_body=media,
                fields="id, name, webViewLink",
            ).execute()
        except (HttpError, GoogleAuthError) as exc:
            self.logger.error("Drive upload failed", file_name=file_name, error=str(exc))
            raise UpstreamError("Error al subir archivo", details={"service": "drive"}) from exc

        if not created.get("id"):
            raise UpstreamError("No se pudo obtener ID del archivo subido", details={"service": "drive"})

        return StoredFile(
            file_id=created["id"],
            file_name=created.get("name", file_name),
            web_view_link=created.get("webViewLink"),
        )

    async def upload(self, file_name: str, content: bytes, mime_type: Optional[str] = None) -> StoredFile:
        """Upload ``content`` as ``file_name`` into the configured folder."""
        self.logger.info("Uploading file to Drive", file_name=file_name, folder_id=self.folder_id, size=len(content))
        stored = await asyncio.to_thread(self._upload_sync, file_name, content, mime_type or DEFAULT_MIME_TYPE)
        self.logger.info("Drive upload completed", file_id=stored.file_id)
        return stored
