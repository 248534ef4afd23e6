"""
FastAPI application entrypoint for the vehicle gateway.
"""

from __future__ import annotations

from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from vehicle_gateway.api.routes import router as api_router
from vehicle_gateway.core.config import get_settings
from vehicle_gateway.core.logging import configure_logging
from vehicle_gateway.dependencies import AuthenticationRequiredError


async def _authentication_failed(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=HTTPStatus.UNAUTHORIZED, content={"error": str(exc)})


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Vehicle Gateway",
        version="0.1.0",
        description="Smartcar token management and batched vehicle data access.",
    )
    app.add_exception_handler(AuthenticationRequiredError, _authentication_failed)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
