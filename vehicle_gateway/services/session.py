"""Signed session cookie carrying the current access credential."""

from __future__ import annotations

from typing import Any, Dict

import jwt

from vehicle_gateway.models.tokens import AccessCredential


class SessionTokenError(ValueError):
    """Raised when a session token is malformed, tampered with or expired."""


class SessionCodec:
    """Encode access credentials as HS256 JWTs and verify them on the way back."""

    def __init__(self, *, secret: str, algorithm: str = "HS256") -> None:
        if not secret:
            raise ValueError("Session signing secret must be provided.")
        self._secret = secret
        self._algorithm = algorithm

    def encode(self, credential: AccessCredential) -> str:
        payload: Dict[str, Any] = credential.model_dump(mode="json")
        payload["exp"] = int(credential.expiration.timestamp())
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.InvalidTokenError as exc:
            raise SessionTokenError(str(exc)) from exc


__all__ = ["SessionCodec", "SessionTokenError"]
