"""Authentication dependency guarding vehicle routes."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends, Request

from vehicle_gateway.models.tokens import AccessCredential
from vehicle_gateway.services import AccessResolver

from .clients import get_access_resolver

logger = logging.getLogger(__name__)


class AuthenticationRequiredError(Exception):
    """Rendered as ``401 {"error": message}`` by the application."""


async def require_vehicle_access(
    request: Request,
    resolver: Annotated[AccessResolver, Depends(get_access_resolver)],
) -> AccessCredential:
    """Resolve the caller's access credential and attach it to ``request.state``."""
    try:
        credential = await resolver.resolve(request)
    except Exception as exc:  # pylint: disable=broad-except
        logger.info("Rejected request to %s: %s", request.url.path, exc)
        raise AuthenticationRequiredError(str(exc) or "Authentication failed") from exc
    request.state.access = credential
    return credential


__all__ = ["AuthenticationRequiredError", "require_vehicle_access"]
