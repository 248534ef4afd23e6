"""Public schema exports."""

from .auth import AuthorizationResponse, ConnectResult, OAuthCallbackPayload
from .vehicle import (
    VehicleAttributes,
    VehicleAttributesError,
    VehicleInfo,
    VehicleListResponse,
)

__all__ = [
    "AuthorizationResponse",
    "ConnectResult",
    "OAuthCallbackPayload",
    "VehicleAttributes",
    "VehicleAttributesError",
    "VehicleInfo",
    "VehicleListResponse",
]
