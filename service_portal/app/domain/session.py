"""
Signed session cookies.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from shared.logging import get_logger

SESSION_COOKIE = "portal_session"
STATE_COOKIE = "portal_oauth_state"
SESSION_ALGORITHM = "HS256"


class UserRole(str, Enum):
    """Roles assigned by the upstream allow-list."""
    ADMIN = "ADMIN"
    EJECUTIVO = "EJECUTIVO"

    @classmethod
    def parse(cls, value: Any) -> "UserRole":
        """Unknown or missing roles fall back to the least privileged one."""
        if isinstance(value, str) and value.upper() == cls.ADMIN.value:
            return cls.ADMIN
        return cls.EJECUTIVO


@dataclass(frozen=True)
class SessionUser:
    """Authenticated user as exposed to the rest of the portal."""

    email: str
    role: UserRole
    name: Optional[str] = None
    image: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "name": self.name,
            "image": self.image,
            "role": self.role.value,
        }


class SessionManager:
    """Encodes and decodes the session cookie as an HS256 JWT."""

    def __init__(self, secret: str, max_age: int = 8 * 60 * 60, *, secure: bool = False):
        self.secret = secret
        self.max_age = max_age
        self.secure = secure
        self.logger = get_logger("portal.session")

    def encode(self, user: SessionUser, *, now: Optional[float] = None) -> str:
        issued_at = int(now if now is not None else time.time())
        claims = {
            "sub": user.email,
            "name": user.name,
            "picture": user.image,
            "role": user.role.value,
            "iat": issued_at,
            "exp": issued_at + self.max_age,
        }
        return jwt.encode(claims, self.secret, algorithm=SESSION_ALGORITHM)

    def decode(self, token: Optional[str]) -> Optional[SessionUser]:
        """Return the session user, or None for a missing/invalid/expired cookie."""
        if not token:
            return None
        try:
            claims = jwt.decode(token, self.secret, algorithms=[SESSION_ALGORITHM])
        except JWTError as exc:
            self.logger.info("Rejected session cookie", error=str(exc))
            return None

        email = claims.get("sub")
        if not isinstance(email, str) or not email:
            return None

        return SessionUser(
            email=email.lower(),
            role=UserRole.parse(claims.get("role")),
            name=claims.get("name"),
            image=claims.get("picture"),
        )

    def cookie_kwargs(self) -> Dict[str, Any]:
        return {
            "max_age": self.max_age,
            "httponly": True,
            "secure": self.secure,
            "samesite": "lax",
            "path": "/",
        }
