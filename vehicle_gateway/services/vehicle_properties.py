"""
Static table of the vehicle properties the gateway knows how to fetch.

Each property names the Smartcar endpoint that serves it, optionally the
makes it is limited to, and how to pull its value out of a batch response.
Failed lookups become ``{"error": {...}}`` values so one bad endpoint never
sinks the rest of the batch.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Mapping, Optional, Union

from vehicle_gateway.clients.smartcar_vehicle import BatchResponse, SmartcarApiError

PERMISSION_ERROR = "PERMISSION"

Endpoint = Union[str, Callable[[str], str]]
Processor = Callable[[BatchResponse, Optional[str]], Any]


class VehicleProperty(str, Enum):
    VIN = "vin"
    ODOMETER = "odometer"
    LOCATION = "location"
    BATTERY = "battery"
    BATTERY_CAPACITY = "batteryCapacity"
    CHARGE_STATE = "chargeState"
    IS_PLUGGED_IN = "isPluggedIn"
    CHARGE_LIMIT = "chargeLimit"
    CHARGE_VOLTAGE = "chargeVoltage"
    CHARGE_AMPERAGE = "chargeAmperage"
    FUEL = "fuel"
    ENGINE_OIL = "engineOil"
    TIRE_PRESSURE = "tirePressure"
    LOCK_STATUS = "lockStatus"


class UnknownVehiclePropertyError(ValueError):
    """Raised when a caller asks for a property missing from the table."""


@dataclass(frozen=True)
class PropertySpec:
    endpoint: Endpoint
    process: Processor
    supported_makes: Optional[FrozenSet[str]] = None

    def supports(self, make: Optional[str]) -> bool:
        if self.supported_makes is None:
            return True
        return bool(make) and make.upper() in self.supported_makes

    def resolve_endpoint(self, make: Optional[str]) -> str:
        if callable(self.endpoint):
            return self.endpoint(make or "")
        return self.endpoint


def format_error(error: SmartcarApiError) -> Dict[str, Any]:
    return {"error": error.as_dict()}


def is_permission_error(value: Any) -> bool:
    if not isinstance(value, dict):
        return False
    error = value.get("error")
    return isinstance(error, dict) and error.get("type") == PERMISSION_ERROR


def _extract(endpoint: Endpoint, pick: Callable[[Dict[str, Any]], Any]) -> Processor:
    def process(batch: BatchResponse, make: Optional[str]) -> Any:
        path = endpoint(make or "") if callable(endpoint) else endpoint
        try:
            return pick(batch.get(path))
        except SmartcarApiError as exc:
            return format_error(exc)

    return process


def _brand_path(suffix: str) -> Callable[[str], str]:
    def resolve(make: str) -> str:
        return f"/{make.lower()}{suffix}"

    return resolve


def _fields(*names: str) -> Callable[[Dict[str, Any]], Dict[str, Any]]:
    return lambda body: {name: body.get(name) for name in names}


def _spec(
    endpoint: Endpoint,
    pick: Callable[[Dict[str, Any]], Any],
    makes: Optional[FrozenSet[str]] = None,
) -> PropertySpec:
    return PropertySpec(endpoint, _extract(endpoint, pick), makes)


_TESLA = frozenset({"TESLA"})

_PROPERTIES: Dict[VehicleProperty, PropertySpec] = {
    VehicleProperty.VIN: _spec("/vin", lambda body: body.get("vin")),
    VehicleProperty.ODOMETER: _spec("/odometer", lambda body: body.get("distance")),
    VehicleProperty.LOCATION: _spec("/location", _fields("latitude", "longitude")),
    VehicleProperty.BATTERY: _spec("/battery", _fields("percentRemaining", "range")),
    VehicleProperty.BATTERY_CAPACITY: _spec(
        "/battery/capacity", lambda body: body.get("capacity")
    ),
    VehicleProperty.CHARGE_STATE: _spec("/charge", lambda body: body.get("state")),
    VehicleProperty.IS_PLUGGED_IN: _spec("/charge", lambda body: body.get("isPluggedIn")),
    VehicleProperty.CHARGE_LIMIT: _spec("/charge/limit", lambda body: body.get("limit")),
    VehicleProperty.CHARGE_VOLTAGE: _spec(
        _brand_path("/charge/voltmeter"), lambda body: body.get("voltage"), _TESLA
    ),
    VehicleProperty.CHARGE_AMPERAGE: _spec(
        _brand_path("/charge/ammeter"), lambda body: body.get("amperage"), _TESLA
    ),
    VehicleProperty.FUEL: _spec(
        "/fuel", _fields("percentRemaining", "amountRemaining", "range")
    ),
    VehicleProperty.ENGINE_OIL: _spec("/engine/oil", lambda body: body.get("lifeRemaining")),
    VehicleProperty.TIRE_PRESSURE: _spec(
        "/tires/pressure", _fields("frontLeft", "frontRight", "backLeft", "backRight")
    ),
    VehicleProperty.LOCK_STATUS: _spec("/security", lambda body: body.get("isLocked")),
}

VEHICLE_PROPERTIES: Mapping[VehicleProperty, PropertySpec] = MappingProxyType(_PROPERTIES)


def lookup(name: Union[str, VehicleProperty]) -> VehicleProperty:
    try:
        return VehicleProperty(name)
    except ValueError as exc:
        raise UnknownVehiclePropertyError(f"Unknown vehicle property: {name}") from exc


__all__ = [
    "PERMISSION_ERROR",
    "PropertySpec",
    "UnknownVehiclePropertyError",
    "VEHICLE_PROPERTIES",
    "VehicleProperty",
    "format_error",
    "is_permission_error",
    "lookup",
]
