"""
Minimal HTML shells for the portal pages.

Each data page embeds its initial data as JSON so that the client runtime
can adopt it without a network round-trip.
"""

import json
from html import escape
from typing import Any, Dict, Optional

from shared.polling import POLLING_INTERVALS
from ..domain.session import SessionUser
from .server_api import PageData

INITIAL_DATA_ELEMENT_ID = "initial-data"
PORTAL_TITLE = "Portal de Monitoreo ETL"

NAVIGATION = (
    ("/", "Dashboard"),
    ("/procesos", "Procesos"),
    ("/errores", "Errores"),
    ("/bitacora", "Bitácora"),
    ("/descargas", "Descargas"),
    ("/carga-manual", "Carga manual"),
    ("/configuracion", "Configuración"),
)

ACCESS_DENIED_ERRORS = ("AccessDenied", "OAuthAccountNotLinked")


def embed_json(payload: Any) -> str:
    """Serialize ``payload`` so it cannot close the surrounding script tag."""
    return (
        json.dumps(payload, ensure_ascii=False, default=str)
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
        .replace("&", "\\u0026")
    )


def initial_data_payload(page: PageData, fetched_at: float) -> Dict[str, Any]:
    return {
        "resource": page.resource,
        "ownerEmail": page.owner_email,
        "pollIntervalMs": POLLING_INTERVALS.get(page.resource),
        "fetchedAt": fetched_at,
        "data": page.data,
    }


def _layout(title: str, body: str, user: Optional[SessionUser] = None) -> str:
    nav = ""
    if user is not None:
        links = "".join(f'<a href="{href}">{escape(label)}</a>' for href, label in NAVIGATION)
        nav = (
            f'<nav>{links}</nav>'
            f'<header><span class="user" data-role="{user.role.value}">{escape(user.email)}</span>'
            f'<a href="/api/auth/signout">Cerrar sesión</a></header>'
        )
    return (
        "<!DOCTYPE html>"
        '<html lang="es"><head><meta charset="utf-8">'
        f"<title>{escape(title)} | {PORTAL_TITLE}</title></head>"
        f"<body>{nav}<main>{body}</main></body></html>"
    )


def render_data_page(title: str, page: PageData, user: SessionUser, fetched_at: float) -> str:
    payload = embed_json(initial_data_payload(page, fetched_at))
    body = (
        f"<h1>{escape(title)}</h1>"
        f'<div id="app" data-resource="{escape(page.resource)}"></div>'
        f'<script type="application/json" id="{INITIAL_DATA_ELEMENT_ID}">{payload}</script>'
    )
    return _layout(title, body, user)


def render_detail_page(process_id: str, detail: Dict[str, Any], user: SessionUser) -> str:
    payload = embed_json({"resource": "proceso", "id": process_id, "data": detail})
    body = (
        f"<h1>Proceso {escape(process_id)}</h1>"
        f'<script type="application/json" id="{INITIAL_DATA_ELEMENT_ID}">{payload}</script>'
    )
    return _layout(f"Proceso {process_id}", body, user)


def render_upload_page(user: SessionUser, max_upload_mb: int) -> str:
    body = (
        "<h1>Carga manual</h1>"
        '<form method="post" action="/api/upload" enctype="multipart/form-data">'
        '<input type="file" name="file" accept=".xlsx,.xls,.xlsm,.xltx,.xltm,.ods">'
        f"<p>Tamaño máximo: {max_upload_mb}MB</p>"
        '<button type="submit">Subir</button></form>'
    )
    return _layout("Carga manual", body, user)


def render_login_page(error: Optional[str] = None, allowed_domain: str = "") -> str:
    message = ""
    if error:
        if error in ACCESS_DENIED_ERRORS:
            message = (
                '<div class="error" data-error="AccessDenied"><strong>Acceso denegado</strong>'
                f"<p>Solo cuentas @{escape(allowed_domain)} pueden acceder al portal.</p></div>"
            )
        else:
            message = (
                '<div class="error" data-error="AuthError"><strong>Error de autenticación</strong>'
                "<p>Ocurrió un error al iniciar sesión. Por favor intente nuevamente.</p></div>"
            )
    body = (
        f"<h1>{PORTAL_TITLE}</h1>{message}"
        '<a class="signin" href="/api/auth/signin">Iniciar sesión con Google</a>'
    )
    return _layout("Iniciar sesión", body)


def render_not_found(message: str = "Proceso no encontrado") -> str:
    return _layout("No encontrado", f"<h1>404</h1><p>{escape(message)}</p>")
