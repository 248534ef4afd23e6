"""Service layer exports."""

from .access import AccessResolver, NoVehicleAccessError
from .session import SessionCodec, SessionTokenError
from .settlement import Settlement, reduce_settlement, settle_all
from .token_cipher import TokenCipherService
from .vehicle_info import VehicleInfoService, plan_endpoints
from .vehicle_properties import (
    VEHICLE_PROPERTIES,
    UnknownVehiclePropertyError,
    VehicleProperty,
)
from .vehicle_tokens import (
    AuthClientNotConfiguredError,
    RefreshTokenExpiredError,
    VehicleTokenNotFoundError,
    VehicleTokenService,
)

__all__ = [
    "AccessResolver",
    "AuthClientNotConfiguredError",
    "NoVehicleAccessError",
    "RefreshTokenExpiredError",
    "SessionCodec",
    "SessionTokenError",
    "Settlement",
    "TokenCipherService",
    "UnknownVehiclePropertyError",
    "VEHICLE_PROPERTIES",
    "VehicleInfoService",
    "VehicleProperty",
    "VehicleTokenNotFoundError",
    "VehicleTokenService",
    "plan_endpoints",
    "reduce_settlement",
    "settle_all",
]
