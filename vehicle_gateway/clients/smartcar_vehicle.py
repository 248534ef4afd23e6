"""
Async wrapper around the Smartcar vehicle endpoints.

Only the calls the gateway needs are covered: the vehicle list, the
attributes of one vehicle, and the batch endpoint that fetches several
signals in a single round-trip to the car.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import httpx

from vehicle_gateway.core.config import SmartcarSettings

logger = logging.getLogger(__name__)


class UnitSystem(str, Enum):
    METRIC = "metric"
    IMPERIAL = "imperial"


class SmartcarApiError(Exception):
    """Error reported by the Smartcar API, either for a whole call or one batch item."""

    def __init__(
        self,
        message: str,
        *,
        error_type: Optional[str] = None,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        path: str = "",
    ) -> None:
        self.error_type = error_type
        self.code = code
        self.status_code = status_code
        self.request_id = request_id
        self.path = path
        super().__init__(message)

    @classmethod
    def from_body(
        cls,
        body: Any,
        *,
        status_code: Optional[int],
        path: str = "",
        request_id: Optional[str] = None,
    ) -> "SmartcarApiError":
        if not isinstance(body, dict):
            body = {}
        return cls(
            body.get("description") or body.get("message") or "Smartcar request failed.",
            error_type=body.get("type"),
            code=body.get("code"),
            status_code=body.get("statusCode", status_code),
            request_id=body.get("requestId", request_id),
            path=path,
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "type": self.error_type,
            "code": self.code,
            "message": str(self),
            "statusCode": self.status_code,
            "requestId": self.request_id,
        }


def _meta_from_headers(headers: Any) -> Dict[str, Any]:
    return {
        "requestId": headers.get("sc-request-id"),
        "unitSystem": headers.get("sc-unit-system"),
        "dataAge": headers.get("sc-data-age"),
    }


class BatchResponse:
    """Per-path results of one batch call."""

    def __init__(self, responses: Iterable[Dict[str, Any]], meta: Optional[Dict[str, Any]] = None) -> None:
        self._responses = {item.get("path"): item for item in responses}
        self.meta = meta or {}

    @property
    def paths(self) -> List[str]:
        return list(self._responses)

    def get(self, path: str) -> Dict[str, Any]:
        """Return the body for ``path`` or raise the error Smartcar reported for it."""
        item = self._responses.get(path)
        if item is None:
            raise SmartcarApiError(
                f"No batch result for {path}.", error_type="MISSING_RESULT", path=path
            )
        status_code = item.get("code")
        body = item.get("body") or {}
        if status_code != httpx.codes.OK:
            raise SmartcarApiError.from_body(
                body,
                status_code=status_code,
                path=path,
                request_id=self.meta.get("requestId"),
            )
        return body

    def headers(self, path: str) -> Dict[str, Any]:
        item = self._responses.get(path) or {}
        return item.get("headers") or {}


class SmartcarVehicle:
    """Handle bound to one vehicle id and access token."""

    def __init__(
        self,
        vehicle_id: str,
        access_token: str,
        *,
        settings: SmartcarSettings,
        unit_system: UnitSystem | str = UnitSystem.METRIC,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.vehicle_id = vehicle_id
        self.unit_system = UnitSystem(unit_system)
        self._access_token = access_token
        self._settings = settings
        self._transport = transport

    async def attributes(self) -> Dict[str, Any]:
        """Return ``id``, ``make``, ``model``, ``year`` plus response ``meta``."""
        body, headers = await self._request("GET", "")
        return {
            "id": body.get("id", self.vehicle_id),
            "make": body.get("make"),
            "model": body.get("model"),
            "year": body.get("year"),
            "meta": _meta_from_headers(headers),
        }

    async def batch(self, paths: Iterable[str]) -> BatchResponse:
        requests = [{"path": path} for path in paths]
        body, headers = await self._request("POST", "/batch", json={"requests": requests})
        return BatchResponse(body.get("responses", []), meta=_meta_from_headers(headers))

    async def _request(
        self, method: str, suffix: str, *, json: Optional[Dict[str, Any]] = None
    ) -> tuple[Dict[str, Any], httpx.Headers]:
        url = f"{self._settings.api_base_url}/vehicles/{self.vehicle_id}{suffix}"
        async with httpx.AsyncClient(
            timeout=self._settings.timeout_seconds, transport=self._transport
        ) as client:
            response = await client.request(
                method,
                url,
                json=json,
                headers={
                    "Authorization": f"Bearer {self._access_token}",
                    "sc-unit-system": self.unit_system.value,
                },
            )
        if not response.is_success:
            logger.warning(
                "Smartcar %s %s failed for vehicle %s (status=%s)",
                method,
                suffix or "/",
                self.vehicle_id,
                response.status_code,
            )
            raise SmartcarApiError.from_body(
                _safe_json(response),
                status_code=response.status_code,
                path=suffix or "/",
                request_id=response.headers.get("sc-request-id"),
            )
        return response.json(), response.headers


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"description": response.text}


class SmartcarVehicleFactory:
    """Creates vehicle handles and lists the vehicles an access token can reach."""

    def __init__(
        self,
        settings: SmartcarSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def create(
        self,
        vehicle_id: str,
        access_token: str,
        unit_system: UnitSystem | str = UnitSystem.METRIC,
    ) -> SmartcarVehicle:
        return SmartcarVehicle(
            vehicle_id,
            access_token,
            settings=self._settings,
            unit_system=unit_system,
            transport=self._transport,
        )

    async def list_vehicle_ids(self, access_token: str) -> List[str]:
        async with httpx.AsyncClient(
            timeout=self._settings.timeout_seconds, transport=self._transport
        ) as client:
            response = await client.get(
                f"{self._settings.api_base_url}/vehicles",
                headers={"Authorization": f"Bearer {access_token}"},
            )
        if not response.is_success:
            raise SmartcarApiError.from_body(
                _safe_json(response),
                status_code=response.status_code,
                path="/vehicles",
                request_id=response.headers.get("sc-request-id"),
            )
        return list(response.json().get("vehicles", []))


__all__ = [
    "BatchResponse",
    "SmartcarApiError",
    "SmartcarVehicle",
    "SmartcarVehicleFactory",
    "UnitSystem",
]
