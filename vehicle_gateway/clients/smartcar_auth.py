"""
Smartcar Connect OAuth utilities.

These helpers drive the vehicle connect flow and the token refresh lifecycle.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import json
import logging
from datetime import datetime, timedelta, timezone
from hashlib import sha256
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from vehicle_gateway.core.config import SmartcarSettings
from vehicle_gateway.models.tokens import TokenExchange

logger = logging.getLogger(__name__)

# Smartcar refresh tokens are valid for 60 days from issuance.
REFRESH_TOKEN_LIFETIME = timedelta(days=60)


class OAuthStateError(ValueError):
    """Raised when an OAuth state token fails verification."""


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except (binascii.Error, ValueError) as exc:
            raise OAuthStateError("Malformed OAuth state.") from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise OAuthStateError("Invalid OAuth state signature.")
        return json.loads(serialized)


class OAuthTokenExchangeError(Exception):
    """Raised when the Smartcar token endpoint rejects an exchange."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class SmartcarAuthClient:
    """Build Connect URLs and trade codes or refresh tokens for token pairs."""

    def __init__(
        self,
        settings: SmartcarSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def build_authorization_url(self, state: str, *, force_prompt: bool = False) -> str:
        """Construct the Smartcar Connect URL the user is sent to."""
        params = {
            "response_type": "code",
            "client_id": self._settings.client_id,
            "redirect_uri": str(self._settings.redirect_uri),
            "scope": " ".join(self._settings.scopes),
            "mode": self._settings.mode,
            "approval_prompt": "force" if force_prompt else "auto",
            "state": state,
        }
        return f"{self._settings.connect_url}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> TokenExchange:
        """Exchange the code returned to the redirect URI for a token pair."""
        return await self._request_tokens(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": str(self._settings.redirect_uri),
            }
        )

    async def exchange_refresh_token(self, refresh_token: str) -> TokenExchange:
        """Mint a new token pair; Smartcar rotates the refresh token as well."""
        return await self._request_tokens(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )

    async def _request_tokens(self, form: Dict[str, str]) -> TokenExchange:
        issued_at = datetime.now(timezone.utc)
        async with httpx.AsyncClient(
            timeout=self._settings.timeout_seconds, transport=self._transport
        ) as client:
            response = await client.post(
                self._settings.token_url,
                data=form,
                auth=(self._settings.client_id, self._settings.client_secret),
            )

        if response.status_code != httpx.codes.OK:
            logger.warning(
                "Smartcar token endpoint rejected %s grant (status=%s)",
                form["grant_type"],
                response.status_code,
            )
            raise OAuthTokenExchangeError(response.text, status_code=response.status_code)

        payload = response.json()
        access_token = payload.get("access_token")
        refresh_token = payload.get("refresh_token")
        expires_in = payload.get("expires_in")
        if not access_token or not refresh_token or not expires_in:
            raise OAuthTokenExchangeError("Incomplete token payload returned from Smartcar.")

        return TokenExchange(
            access_token=access_token,
            refresh_token=refresh_token,
            expiration=issued_at + timedelta(seconds=int(expires_in)),
            refresh_expiration=issued_at + REFRESH_TOKEN_LIFETIME,
        )


__all__ = [
    "OAuthStateEncoder",
    "OAuthStateError",
    "OAuthTokenExchangeError",
    "REFRESH_TOKEN_LIFETIME",
    "SmartcarAuthClient",
]
