"""Expose dependency helpers for FastAPI routers."""

from .auth import AuthenticationRequiredError, require_vehicle_access
from .clients import (
    get_access_resolver,
    get_app_settings,
    get_oauth_state_encoder,
    get_session_codec,
    get_smartcar_auth_client,
    get_token_cipher_service,
    get_token_store,
    get_vehicle_factory,
    get_vehicle_info_service,
    get_vehicle_token_service,
)

__all__ = [
    "AuthenticationRequiredError",
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
    "require_vehicle_access",
]
