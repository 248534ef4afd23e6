"""Schemas related to the Smartcar connect flow."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class OAuthCallbackPayload(BaseModel):
    """Payload sent to complete the Smartcar Connect exchange."""

    code: str = Field(..., description="Authorization code returned by Smartcar Connect.")
    state: str = Field(..., description="Opaque state token issued when starting the flow.")


class AuthorizationResponse(BaseModel):
    authorization_url: str
    state: str


class ConnectResult(BaseModel):
    """Outcome of a completed connect flow."""

    status: str = "connected"
    vehicles: List[str] = Field(default_factory=list)
    redirect_to: Optional[str] = None


__all__ = ["AuthorizationResponse", "ConnectResult", "OAuthCallbackPayload"]
