"""
Google OAuth 2.0 client for corporate sign-in.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from shared.errors import AuthenticationError, ConfigurationError
from shared.logging import get_logger

AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"
USERINFO_ENDPOINT = "https://openidconnect.googleapis.com/v1/userinfo"


@dataclass(frozen=True)
class GoogleIdentity:
    """Identity returned by Google after a successful code exchange."""

    email: str
    name: Optional[str]
    picture: Optional[str]
    hosted_domain: Optional[str]


class GoogleOAuthClient:
    """Authorization-code flow against Google's OpenID Connect endpoints."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        *,
        hosted_domain: Optional[str] = None,
        http_timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.hosted_domain = hosted_domain
        self.http_timeout = http_timeout
        self.logger = get_logger("portal.auth.google")
        self._transport = transport

    def _require_credentials(self) -> None:
        if not self.client_id or not self.client_secret:
            raise ConfigurationError("OAuth de Google no configurado")

    def authorization_url(self, state: str) -> str:
        """Build the consent-screen URL; ``hd`` restricts the account picker."""
        self._require_credentials()
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "prompt": "select_account",
            "state": state,
        }
        if self.hosted_domain:
            params["hd"] = self.hosted_domain
        return f"{AUTHORIZATION_ENDPOINT}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> GoogleIdentity:
        """Exchange an authorization code for the signed-in user's identity.

        Transport failures and undecodable bodies surface as AuthenticationError
        so the callback can send the user back to the sign-in page.
        """
        self._require_credentials()
        try:
            async with httpx.AsyncClient(timeout=self.http_timeout, transport=self._transport) as client:
                token_response = await client.post(
                    TOKEN_ENDPOINT,
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": self.redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
                if token_response.status_code != 200:
                    self.logger.warning("Google code exchange failed", status_code=token_response.status_code)
                    raise AuthenticationError("No se pudo completar el inicio de sesión")

                access_token = self._decode(token_response).get("access_token")
                if not access_token:
                    raise AuthenticationError("Respuesta de Google sin access_token")

                userinfo_response = await client.get(
                    USERINFO_ENDPOINT,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                if userinfo_response.status_code != 200:
                    self.logger.warning("Google userinfo failed", status_code=userinfo_response.status_code)
                    raise AuthenticationError("No se pudo obtener el perfil de Google")
        except httpx.HTTPError as exc:
            self.logger.error("Google OAuth request failed", error=str(exc))
            raise AuthenticationError("No se pudo contactar a Google") from exc

        info = self._decode(userinfo_response)
        email = info.get("email")
        if not email or info.get("email_verified") is False:
            raise AuthenticationError("Cuenta de Google sin email verificado")

        return GoogleIdentity(
            email=email.lower(),
            name=info.get("name"),
            picture=info.get("picture"),
            hosted_domain=info.get("hd"),
        )

    def _decode(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            self.logger.error("Google returned invalid JSON", url=str(response.request.url))
            raise AuthenticationError("Respuesta inválida de Google") from exc
        if not isinstance(payload, dict):
            raise AuthenticationError("Respuesta inválida de Google")
        return payload
