"""
Owner-scope resolution.

The scope a request is allowed to see is always derived from the session,
never from what the client asked for: executives only ever see their own
rows, admins see everything only when they explicitly ask for ``ALL``.
"""

from typing import Any, Dict, Mapping, Optional

from .session import SessionUser, UserRole

ALL_OWNERS = "ALL"
OWNER_PARAM = "ownerEmail"


def resolve_owner_email(user: SessionUser, requested: Optional[Any] = None) -> str:
    """Return the ``ownerEmail`` value the upstream call must carry."""
    if user.role == UserRole.ADMIN and isinstance(requested, str) and requested.upper() == ALL_OWNERS:
        return ALL_OWNERS
    return user.email


def default_owner_email(user: SessionUser) -> str:
    """Scope used for initial page loads: admins start on the full view."""
    return ALL_OWNERS if user.role == UserRole.ADMIN else user.email


def scope_params(user: SessionUser, params: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of query ``params`` with ``ownerEmail`` forced from the session."""
    scoped = dict(params)
    scoped[OWNER_PARAM] = resolve_owner_email(user, params.get(OWNER_PARAM))
    return scoped


def scope_body(user: SessionUser, body: Mapping[str, Any]) -> Dict[str, Any]:
    """Copy of a POST ``body`` with ``ownerEmail`` forced from the session."""
    scoped = dict(body)
    scoped[OWNER_PARAM] = resolve_owner_email(user, body.get(OWNER_PARAM))
    return scoped
