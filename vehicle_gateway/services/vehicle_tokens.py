"""
Retrieval, refresh and persistence of per-vehicle Smartcar tokens.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from typing import Callable, List, Optional, Protocol

from vehicle_gateway.models.tokens import (
    AccessCredential,
    CredentialRecord,
    TokenExchange,
    expires_within_buffer,
    utcnow,
)

logger = logging.getLogger(__name__)


class VehicleTokenNotFoundError(Exception):
    """Raised when no credential record exists for a vehicle."""


class RefreshTokenExpiredError(Exception):
    """Raised when the stored refresh token has lapsed; the vehicle must be reconnected."""


class AuthClientNotConfiguredError(RuntimeError):
    """Raised when a refresh is attempted without a Smartcar auth client."""


class TokenStore(Protocol):
    def get(self, vehicle_id: str) -> Optional[CredentialRecord]: ...

    def upsert(self, record: CredentialRecord) -> None: ...

    def list_non_expired(self, now: datetime) -> List[str]: ...

    def delete(self, vehicle_id: str) -> None: ...

    def delete_all(self) -> None: ...


class RefreshExchanger(Protocol):
    async def exchange_refresh_token(self, refresh_token: str) -> TokenExchange: ...


class VehicleTokenService:
    """Sole writer of stored vehicle credentials.

    Refreshes are serialised per vehicle inside this process: a caller that
    queues behind an in-flight refresh re-reads the record and reuses the
    token the first caller obtained instead of spending the refresh token a
    second time. Separate processes still race, and the last upsert wins.
    """

    def __init__(
        self,
        store: TokenStore,
        auth_client: Optional[RefreshExchanger],
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._auth = auth_client
        self._clock = clock
        self._refresh_locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def ensure_valid_access(self, vehicle_id: str) -> AccessCredential:
        """Return a usable access token for ``vehicle_id``, refreshing when close to expiry."""
        record = self._load(vehicle_id)
        if not expires_within_buffer(record.expiration, self._clock()):
            return self._project(record)

        lock = self._refresh_locks[vehicle_id]
        contended = lock.locked()
        async with lock:
            if contended:
                record = self._load(vehicle_id)
                if not expires_within_buffer(record.expiration, self._clock()):
                    logger.debug("Reusing token refreshed concurrently for %s", vehicle_id)
                    return self._project(record)
            return await self._refresh(record)

    async def _refresh(self, record: CredentialRecord) -> AccessCredential:
        now = self._clock()
        if record.refresh_expiration < now:
            raise RefreshTokenExpiredError(
                "Refresh token expired, please reconnect vehicle."
            )
        if self._auth is None:
            raise AuthClientNotConfiguredError("Smartcar auth client not initialized.")

        exchange = await self._auth.exchange_refresh_token(record.refresh_token)
        refreshed = record.model_copy(
            update={
                "access_token": exchange.access_token,
                "refresh_token": exchange.refresh_token,
                "expiration": exchange.expiration,
                "refresh_expiration": exchange.refresh_expiration,
                "updated_at": self._clock(),
            }
        )
        self._store.upsert(refreshed)
        logger.info("Refreshed Smartcar tokens for vehicle %s", record.vehicle_id)
        return self._project(refreshed)

    def store_credentials(self, vehicle_id: str, exchange: TokenExchange) -> CredentialRecord:
        """Persist the token pair obtained when a vehicle is first connected."""
        record = CredentialRecord.from_exchange(vehicle_id, exchange, now=self._clock())
        self._store.upsert(record)
        return record

    def connected_vehicle_ids(self) -> List[str]:
        """Vehicles whose refresh token is still valid, in a stable order."""
        return self._store.list_non_expired(self._clock())

    def disconnect(self, vehicle_id: str) -> None:
        self._store.delete(vehicle_id)
        self._refresh_locks.pop(vehicle_id, None)

    def disconnect_all(self) -> None:
        self._store.delete_all()
        self._refresh_locks.clear()

    def _load(self, vehicle_id: str) -> CredentialRecord:
        record = self._store.get(vehicle_id)
        if record is None:
            raise VehicleTokenNotFoundError(f"No tokens found for vehicle {vehicle_id}.")
        return record

    @staticmethod
    def _project(record: CredentialRecord) -> AccessCredential:
        return AccessCredential(
            access_token=record.access_token,
            expiration=record.expiration,
            vehicle_id=record.vehicle_id,
        )


__all__ = [
    "AuthClientNotConfiguredError",
    "RefreshExchanger",
    "RefreshTokenExpiredError",
    "TokenStore",
    "VehicleTokenNotFoundError",
    "VehicleTokenService",
]
