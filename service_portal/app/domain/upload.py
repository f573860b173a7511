"""
Manual upload rules.
"""

from datetime import datetime, timezone
from typing import Optional

from shared.errors import ValidationError

ALLOWED_EXTENSIONS = ("xlsx", "xls", "xlsm", "xltx", "xltm", "ods")
MAX_UPLOAD_BYTES = 10 * 1024 * 1024


def file_extension(filename: str) -> str:
    """Lower-cased text after the last dot, or an empty string."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def validate_upload(filename: Optional[str], size: int, max_bytes: int = MAX_UPLOAD_BYTES) -> str:
    """Check extension and size before anything is sent to storage.

    Returns the normalized extension.
    """
    if not filename:
        raise ValidationError("No se recibió archivo", details={"field": "file"})

    extension = file_extension(filename)
    if extension not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            f"Extensión .{extension} no permitida",
            details={"extension": extension, "allowed": list(ALLOWED_EXTENSIONS)}
        )

    if size > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise ValidationError(
            f"Archivo muy grande. Máximo {limit_mb}MB",
            details={"size": size, "max_bytes": max_bytes}
        )

    return extension


def build_upload_name(email: str, filename: str, now: Optional[datetime] = None) -> str:
    """``CM_<timestamp>_<user prefix>_<original name>``."""
    now = now or datetime.now(timezone.utc)
    timestamp = now.strftime("%Y-%m-%dT%H-%M-%S")
    user_prefix = email.split("@")[0][:10]
    return f"CM_{timestamp}_{user_prefix}_{filename}"
