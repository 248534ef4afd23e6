"""
Domain models for per-vehicle token persistence and session credentials.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from pydantic import BaseModel, Field, model_validator

EXPIRY_BUFFER = timedelta(minutes=5)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def expires_within_buffer(expiration: datetime, now: datetime) -> bool:
    """Return True once ``expiration`` is inside the safety buffer (or past)."""
    return _aware(expiration) - EXPIRY_BUFFER < now


class TokenExchange(BaseModel):
    """Token pair returned by the Smartcar token endpoint."""

    access_token: str
    refresh_token: str
    expiration: datetime
    refresh_expiration: datetime


class CredentialRecord(BaseModel):
    """Represents the token pair stored for a single connected vehicle."""

    vehicle_id: str = Field(..., min_length=1)
    access_token: str
    refresh_token: str
    expiration: datetime
    refresh_expiration: datetime
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def _normalise_timestamps(self) -> "CredentialRecord":
        self.expiration = _aware(self.expiration)
        self.refresh_expiration = _aware(self.refresh_expiration)
        self.created_at = _aware(self.created_at)
        self.updated_at = _aware(self.updated_at)
        return self

    @classmethod
    def from_exchange(
        cls, vehicle_id: str, exchange: TokenExchange, *, now: Optional[datetime] = None
    ) -> "CredentialRecord":
        """Build a fresh record, rejecting pairs whose refresh token dies first."""
        if _aware(exchange.refresh_expiration) < _aware(exchange.expiration):
            raise ValueError("Refresh token must not expire before the access token.")
        timestamp = now or utcnow()
        return cls(
            vehicle_id=vehicle_id,
            access_token=exchange.access_token,
            refresh_token=exchange.refresh_token,
            expiration=exchange.expiration,
            refresh_expiration=exchange.refresh_expiration,
            created_at=timestamp,
            updated_at=timestamp,
        )


class AccessCredential(BaseModel):
    """Short-lived projection of a credential record carried by the session cookie."""

    access_token: str
    expiration: datetime
    vehicle_id: Optional[str] = None

    def is_usable(self, now: Optional[datetime] = None) -> bool:
        return not expires_within_buffer(self.expiration, now or utcnow())


__all__ = [
    "AccessCredential",
    "CredentialRecord",
    "EXPIRY_BUFFER",
    "TokenExchange",
    "expires_within_buffer",
    "utcnow",
]
