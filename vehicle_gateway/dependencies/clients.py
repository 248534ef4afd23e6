"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from vehicle_gateway.clients import (
    OAuthStateEncoder,
    SmartcarAuthClient,
    SmartcarVehicleFactory,
    SQLiteTokenStore,
)
from vehicle_gateway.core.config import AppSettings, get_settings
from vehicle_gateway.services import (
    AccessResolver,
    SessionCodec,
    TokenCipherService,
    VehicleInfoService,
    VehicleTokenService,
)


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings()


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder derived from the Smartcar client secret."""
    settings = _settings()
    return OAuthStateEncoder(secret_key=settings.smartcar.client_secret)


@lru_cache()
def get_smartcar_auth_client() -> SmartcarAuthClient:
    """Create a singleton Smartcar Connect client."""
    return SmartcarAuthClient(_settings().smartcar)


@lru_cache()
def get_vehicle_factory() -> SmartcarVehicleFactory:
    """Provide the factory for Smartcar vehicle handles."""
    return SmartcarVehicleFactory(_settings().smartcar)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    settings = _settings()
    secret = settings.security.token_encryption_secret or settings.smartcar.client_secret
    return TokenCipherService(
        secret=secret,
        previous_secrets=settings.security.previous_encryption_secrets,
    )


@lru_cache()
def get_token_store() -> SQLiteTokenStore:
    """Provide the shared SQLite token store."""
    return SQLiteTokenStore(_settings().token_db_path, get_token_cipher_service())


@lru_cache()
def get_vehicle_token_service() -> VehicleTokenService:
    """Provide the token lifecycle manager; one instance so refresh locks are shared."""
    return VehicleTokenService(
        store=get_token_store(),
        auth_client=get_smartcar_auth_client(),
    )


@lru_cache()
def get_session_codec() -> SessionCodec:
    """Provide the signer for session cookies."""
    session = _settings().session
    return SessionCodec(secret=session.jwt_secret_key, algorithm=session.jwt_algorithm)


def get_access_resolver(
    token_service: Annotated[VehicleTokenService, Depends(get_vehicle_token_service)],
    session_codec: Annotated[SessionCodec, Depends(get_session_codec)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> AccessResolver:
    """Build the per-request access resolver."""
    return AccessResolver(
        token_service=token_service,
        session_codec=session_codec,
        cookie_name=settings.session.cookie_name,
    )


def get_vehicle_info_service(
    vehicle_factory: Annotated[SmartcarVehicleFactory, Depends(get_vehicle_factory)],
) -> VehicleInfoService:
    """Build the vehicle data aggregation service."""
    return VehicleInfoService(vehicle_factory)


__all__ = [
    "get_access_resolver",
    "get_app_settings",
    "get_oauth_state_encoder",
    "get_session_codec",
    "get_smartcar_auth_client",
    "get_token_cipher_service",
    "get_token_store",
    "get_vehicle_factory",
    "get_vehicle_info_service",
    "get_vehicle_token_service",
]
