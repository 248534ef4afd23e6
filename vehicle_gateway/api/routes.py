"""
FastAPI routes for the vehicle gateway.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from http import HTTPStatus
from typing import Annotated, Any, List, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse

from vehicle_gateway.clients import OAuthTokenExchangeError, SmartcarApiError, UnitSystem
from vehicle_gateway.clients.smartcar_auth import OAuthStateError
from vehicle_gateway.core.config import AppSettings
from vehicle_gateway.dependencies import (
    get_app_settings,
    get_oauth_state_encoder,
    get_session_codec,
    get_smartcar_auth_client,
    get_vehicle_factory,
    get_vehicle_info_service,
    get_vehicle_token_service,
    require_vehicle_access,
)
from vehicle_gateway.models.tokens import AccessCredential
from vehicle_gateway.schemas import (
    AuthorizationResponse,
    ConnectResult,
    OAuthCallbackPayload,
    VehicleInfo,
    VehicleListResponse,
)
from vehicle_gateway.services import UnknownVehiclePropertyError

router = APIRouter()
logger = logging.getLogger(__name__)

_UPSTREAM_ERRORS = (SmartcarApiError, httpx.HTTPError)


def _wants_redirect(request: Request, redirect: bool) -> bool:
    return redirect or "text/html" in request.headers.get("accept", "").lower()


def _set_session_cookie(
    response: Response,
    credential: AccessCredential,
    session_codec: Any,
    settings: AppSettings,
) -> None:
    max_age = int((credential.expiration - datetime.now(timezone.utc)).total_seconds())
    response.set_cookie(
        key=settings.session.cookie_name,
        value=session_codec.encode(credential),
        max_age=max(max_age, 0),
        httponly=True,
        secure=settings.session.cookie_secure,
        samesite="lax",
    )


def _upstream_error(exc: Exception) -> HTTPException:
    if not isinstance(exc, SmartcarApiError):
        logger.warning("Smartcar unreachable: %s", exc)
        return HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail={"message": "Smartcar is unreachable.", "type": "NETWORK", "code": None},
        )
    return HTTPException(
        status_code=HTTPStatus.BAD_GATEWAY,
        detail={"message": str(exc), "type": exc.error_type, "code": exc.code},
    )


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/smartcar/authorize", status_code=HTTPStatus.OK, response_model=None)
async def start_connect_flow(
    request: Request,
    auth_client: Annotated[Any, Depends(get_smartcar_auth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    redirect_to: Optional[str] = Query(
        default=None,
        description="Optional URL to redirect back to once the vehicle is connected.",
    ),
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to Smartcar Connect.",
    ),
    force_prompt: bool = Query(
        default=False,
        description="Force the approval screen even for previously approved vehicles.",
    ),
) -> AuthorizationResponse | RedirectResponse:
    """Kick off Smartcar Connect with a signed state token."""
    state = state_encoder.encode(
        {
            "nonce": uuid.uuid4().hex,
            "redirect_to": redirect_to,
            "issued_at": datetime.now(timezone.utc).isoformat(),
        }
    )
    authorization_url = auth_client.build_authorization_url(state, force_prompt=force_prompt)

    if _wants_redirect(request, redirect):
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)
    return AuthorizationResponse(authorization_url=authorization_url, state=state)


async def _complete_connect(
    payload: OAuthCallbackPayload,
    *,
    auth_client: Any,
    state_encoder: Any,
    token_service: Any,
    vehicle_factory: Any,
    settings: AppSettings,
) -> tuple[ConnectResult, AccessCredential]:
    try:
        state_data = state_encoder.decode(payload.state)
    except OAuthStateError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc

    issued_at_raw = state_data.get("issued_at")
    try:
        issued_at = datetime.fromisoformat(issued_at_raw)
    except (TypeError, ValueError) as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Missing or invalid issued_at in state token.",
        ) from exc
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)

    now = datetime.now(timezone.utc)
    if now - issued_at > timedelta(seconds=settings.oauth.state_ttl_seconds):
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="OAuth state token has expired."
        )

    try:
        exchange = await auth_client.exchange_authorization_code(payload.code)
    except OAuthTokenExchangeError as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail="Failed to exchange authorization code.",
        ) from exc

    try:
        vehicle_ids: List[str] = await vehicle_factory.list_vehicle_ids(exchange.access_token)
    except _UPSTREAM_ERRORS as exc:
        raise _upstream_error(exc) from exc

    for vehicle_id in vehicle_ids:
        token_service.store_credentials(vehicle_id, exchange)
    logger.info("Connected %d vehicle(s) through Smartcar", len(vehicle_ids))

    credential = AccessCredential(
        access_token=exchange.access_token,
        expiration=exchange.expiration,
        vehicle_id=vehicle_ids[0] if vehicle_ids else None,
    )
    result = ConnectResult(vehicles=vehicle_ids, redirect_to=state_data.get("redirect_to"))
    return result, credential


@router.post("/auth/smartcar/callback", status_code=HTTPStatus.OK)
async def handle_connect_callback(
    payload: OAuthCallbackPayload,
    auth_client: Annotated[Any, Depends(get_smartcar_auth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    token_service: Annotated[Any, Depends(get_vehicle_token_service)],
    vehicle_factory: Annotated[Any, Depends(get_vehicle_factory)],
    session_codec: Annotated[Any, Depends(get_session_codec)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> JSONResponse:
    """Complete the connect exchange, store tokens per vehicle and open a session."""
    result, credential = await _complete_connect(
        payload,
        auth_client=auth_client,
        state_encoder=state_encoder,
        token_service=token_service,
        vehicle_factory=vehicle_factory,
        settings=settings,
    )
    response = JSONResponse(content=result.model_dump())
    _set_session_cookie(response, credential, session_codec, settings)
    return response


@router.get("/auth/smartcar/callback", status_code=HTTPStatus.OK)
async def handle_connect_callback_get(
    request: Request,
    auth_client: Annotated[Any, Depends(get_smartcar_auth_client)],
    state_encoder: Annotated[Any, Depends(get_oauth_state_encoder)],
    token_service: Annotated[Any, Depends(get_vehicle_token_service)],
    vehicle_factory: Annotated[Any, Depends(get_vehicle_factory)],
    session_codec: Annotated[Any, Depends(get_session_codec)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    state: str = Query(..., description="OAuth state token."),
    code: Optional[str] = Query(default=None, description="Authorization code from Smartcar."),
    error: Optional[str] = Query(default=None, description="Set when the user declined access."),
    error_description: Optional[str] = Query(default=None),
    redirect: bool = Query(
        default=False,
        description="When true, redirect browser clients instead of returning JSON.",
    ),
) -> Response:
    if error or not code:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=error_description or error or "Missing authorization code.",
        )

    result, credential = await _complete_connect(
        OAuthCallbackPayload(state=state, code=code),
        auth_client=auth_client,
        state_encoder=state_encoder,
        token_service=token_service,
        vehicle_factory=vehicle_factory,
        settings=settings,
    )

    redirect_target = result.redirect_to or settings.frontend_base_url
    response: Response
    if redirect_target and _wants_redirect(request, redirect):
        response = RedirectResponse(
            url=str(redirect_target), status_code=HTTPStatus.TEMPORARY_REDIRECT
        )
    else:
        response = JSONResponse(content=result.model_dump())
    _set_session_cookie(response, credential, session_codec, settings)
    return response


@router.post("/auth/logout", status_code=HTTPStatus.OK)
async def logout(
    _access: Annotated[AccessCredential, Depends(require_vehicle_access)],
    token_service: Annotated[Any, Depends(get_vehicle_token_service)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
) -> JSONResponse:
    """Forget every stored vehicle token and drop the session cookie."""
    token_service.disconnect_all()
    response = JSONResponse(content={"status": "disconnected"})
    response.delete_cookie(settings.session.cookie_name)
    return response


@router.get("/vehicles", response_model=VehicleListResponse)
async def list_vehicles(
    access: Annotated[AccessCredential, Depends(require_vehicle_access)],
    vehicle_factory: Annotated[Any, Depends(get_vehicle_factory)],
    info_service: Annotated[Any, Depends(get_vehicle_info_service)],
) -> VehicleListResponse:
    """List every vehicle reachable with the current access token, with attributes."""
    try:
        vehicle_ids = await vehicle_factory.list_vehicle_ids(access.access_token)
    except _UPSTREAM_ERRORS as exc:
        raise _upstream_error(exc) from exc
    vehicles = await info_service.list_vehicles_with_attributes(vehicle_ids, access.access_token)
    return VehicleListResponse(vehicles=vehicles)


@router.get("/vehicles/{vehicle_id}")
async def get_vehicle(
    vehicle_id: str,
    access: Annotated[AccessCredential, Depends(require_vehicle_access)],
    info_service: Annotated[Any, Depends(get_vehicle_info_service)],
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    properties: List[str] = Query(
        default=[],
        description="Properties to fetch; repeat the parameter or separate with commas.",
    ),
    make: Optional[str] = Query(
        default=None, description="Vehicle make, needed for brand-specific properties."
    ),
    unit_system: Optional[UnitSystem] = Query(default=None),
) -> VehicleInfo:
    """Fetch the requested properties of one vehicle with a single batch call."""
    requested = [name.strip() for value in properties for name in value.split(",") if name.strip()]
    try:
        return await info_service.fetch_vehicle_info(
            vehicle_id,
            access.access_token,
            requested,
            unit_system or settings.default_unit_system,
            make,
        )
    except UnknownVehiclePropertyError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc
    except _UPSTREAM_ERRORS as exc:
        raise _upstream_error(exc) from exc


@router.delete("/vehicles/{vehicle_id}", status_code=HTTPStatus.NO_CONTENT)
async def disconnect_vehicle(
    vehicle_id: str,
    _access: Annotated[AccessCredential, Depends(require_vehicle_access)],
    token_service: Annotated[Any, Depends(get_vehicle_token_service)],
) -> Response:
    """Forget the stored tokens of one vehicle."""
    token_service.disconnect(vehicle_id)
    return Response(status_code=HTTPStatus.NO_CONTENT)
