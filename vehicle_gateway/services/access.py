"""
Resolve the access credential for an inbound request.

The signed session cookie is tried first so a request with a live session
never touches the token store. Without one, the oldest connected vehicle's
stored tokens are used, refreshing them if needed.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Protocol

from pydantic import ValidationError

from vehicle_gateway.models.tokens import AccessCredential, utcnow
from vehicle_gateway.services.session import SessionCodec, SessionTokenError
from vehicle_gateway.services.vehicle_tokens import VehicleTokenService

logger = logging.getLogger(__name__)


class NoVehicleAccessError(Exception):
    """Raised when neither a session nor any connected vehicle can provide access."""


class HasCookies(Protocol):
    cookies: Mapping[str, str]


class AccessResolver:
    """Turn a request into an ``AccessCredential``."""

    def __init__(
        self,
        *,
        token_service: VehicleTokenService,
        session_codec: SessionCodec,
        cookie_name: str,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._tokens = token_service
        self._codec = session_codec
        self._cookie_name = cookie_name
        self._clock = clock

    async def resolve(self, request: HasCookies) -> AccessCredential:
        session = self.from_session(request.cookies.get(self._cookie_name))
        if session is not None:
            return session

        vehicle_ids = self._tokens.connected_vehicle_ids()
        if not vehicle_ids:
            raise NoVehicleAccessError(
                "No valid access token found. Please connect your vehicle."
            )
        # Every stored vehicle came from the same connect session.
        return await self._tokens.ensure_valid_access(vehicle_ids[0])

    def from_session(self, token: Optional[str]) -> Optional[AccessCredential]:
        """Return the cookie's credential when it verifies and is outside the expiry buffer."""
        if not token:
            return None
        try:
            payload: Any = self._codec.decode(token)
            credential = AccessCredential.model_validate(payload)
        except (SessionTokenError, ValidationError) as exc:
            logger.debug("Ignoring unusable session cookie: %s", exc)
            return None
        if not credential.is_usable(self._clock()):
            return None
        return credential


__all__ = ["AccessResolver", "HasCookies", "NoVehicleAccessError"]
