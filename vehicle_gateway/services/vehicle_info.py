"""
Vehicle data aggregation on top of the Smartcar vehicle handle.

``fetch_vehicle_info`` is meant for onboarding a vehicle: it asks for many
properties at once through a single batch call to limit vehicle wake-ups.
Callers that need fresh values repeatedly should persist the result and
poll selectively instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Union

from vehicle_gateway.clients.smartcar_vehicle import BatchResponse, UnitSystem
from vehicle_gateway.services.settlement import reduce_settlement, settle_all
from vehicle_gateway.services.vehicle_properties import (
    VEHICLE_PROPERTIES,
    PropertySpec,
    VehicleProperty,
    is_permission_error,
    lookup,
)

logger = logging.getLogger(__name__)


class VehicleHandle(Protocol):
    async def attributes(self) -> Dict[str, Any]: ...

    async def batch(self, paths: Iterable[str]) -> BatchResponse: ...


class VehicleFactory(Protocol):
    def create(
        self, vehicle_id: str, access_token: str, unit_system: Union[UnitSystem, str] = ...
    ) -> VehicleHandle: ...


@dataclass(frozen=True)
class EndpointPlan:
    """Properties that survive the make filter and the deduplicated endpoints they need."""

    properties: tuple[VehicleProperty, ...]
    endpoints: tuple[str, ...]


def plan_endpoints(
    requested: Sequence[Union[str, VehicleProperty]],
    make: Optional[str],
    table: Mapping[VehicleProperty, PropertySpec] = VEHICLE_PROPERTIES,
) -> EndpointPlan:
    properties: List[VehicleProperty] = []
    endpoints: List[str] = []
    for name in requested:
        prop = lookup(name)
        spec = table[prop]
        if not spec.supports(make):
            continue
        properties.append(prop)
        endpoint = spec.resolve_endpoint(make)
        if endpoint and endpoint not in endpoints:
            endpoints.append(endpoint)
    return EndpointPlan(tuple(properties), tuple(endpoints))


class VehicleInfoService:
    """Fetches vehicle attributes and property snapshots."""

    def __init__(
        self,
        vehicle_factory: VehicleFactory,
        properties: Mapping[VehicleProperty, PropertySpec] = VEHICLE_PROPERTIES,
    ) -> None:
        self._factory = vehicle_factory
        self._properties = properties

    async def fetch_vehicle_info(
        self,
        vehicle_id: str,
        access_token: str,
        requested_properties: Sequence[Union[str, VehicleProperty]] = (),
        unit_system: Union[UnitSystem, str] = UnitSystem.METRIC,
        make: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Return ``id``, ``make`` and every requested property the vehicle supports.

        Properties restricted to other makes are dropped before planning, and
        properties whose endpoint answered with a PERMISSION error are left
        out of the result. A failure of the batch call itself propagates.
        """
        plan = plan_endpoints(requested_properties, make, self._properties)
        info: Dict[str, Any] = {"id": vehicle_id, "make": make}

        if plan.endpoints:
            vehicle = self._factory.create(vehicle_id, access_token, unit_system)
            batch = await vehicle.batch(list(plan.endpoints))
        else:
            batch = BatchResponse([])

        for prop in plan.properties:
            value = self._properties[prop].process(batch, make)
            if is_permission_error(value):
                logger.debug("Vehicle %s lacks permission for %s", vehicle_id, prop.value)
                continue
            info[prop.value] = value
        return info

    async def list_vehicles_with_attributes(
        self, vehicle_ids: Sequence[str], access_token: str
    ) -> List[Dict[str, Any]]:
        """Fetch ``id``, ``make``, ``model``, ``year`` for every vehicle concurrently."""
        settlements = await settle_all(
            self._factory.create(vehicle_id, access_token).attributes()
            for vehicle_id in vehicle_ids
        )
        for vehicle_id, settlement in zip(vehicle_ids, settlements):
            if not settlement.fulfilled:
                logger.warning(
                    "Attributes unavailable for vehicle %s: %s", vehicle_id, settlement.reason
                )
        return [reduce_settlement(settlement) for settlement in settlements]


__all__ = [
    "EndpointPlan",
    "VehicleFactory",
    "VehicleHandle",
    "VehicleInfoService",
    "plan_endpoints",
]
