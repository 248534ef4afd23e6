"""Expose constructed client wrappers."""

from .smartcar_auth import OAuthStateEncoder, OAuthTokenExchangeError, SmartcarAuthClient
from .smartcar_vehicle import (
    BatchResponse,
    SmartcarApiError,
    SmartcarVehicleFactory,
    UnitSystem,
)
from .sqlite_store import SQLiteTokenStore

__all__ = [
    "BatchResponse",
    "OAuthStateEncoder",
    "OAuthTokenExchangeError",
    "SQLiteTokenStore",
    "SmartcarApiError",
    "SmartcarAuthClient",
    "SmartcarVehicleFactory",
    "UnitSystem",
]
