"""
Adapters package for the portal service.

Contains client wrappers for external dependencies (Apps Script backend,
Google OAuth, Google Drive). These adapters encapsulate:

- Base URLs and request shapes
- Timeouts
- Error handling that maps to shared errors

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .apps_script_client import AppsScriptClient
from .drive_client import DriveUploader, StoredFile
from .google_oauth import GoogleIdentity, GoogleOAuthClient

__all__ = [
    "AppsScriptClient",
    "DriveUploader",
    "StoredFile",
    "GoogleIdentity",
    "GoogleOAuthClient",
]
