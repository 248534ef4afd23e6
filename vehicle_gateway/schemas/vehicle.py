"""Response schemas for vehicle routes."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel


class VehicleAttributes(BaseModel):
    id: str
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None


class VehicleAttributesError(BaseModel):
    error: str


class VehicleListResponse(BaseModel):
    """One entry per connected vehicle; failed lookups carry only ``error``."""

    vehicles: List[Union[VehicleAttributes, VehicleAttributesError]]


VehicleInfo = Dict[str, Any]


__all__ = [
    "VehicleAttributes",
    "VehicleAttributesError",
    "VehicleInfo",
    "VehicleListResponse",
]
