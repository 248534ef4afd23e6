"""
Application configuration models and helpers.

Every concern gets its own settings class so the connect flow, the session
cookie and the token store can be configured (and overridden in tests)
independently of one another.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Optional

import os

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        os.environ[key] = value.strip().strip('"').strip("'")


_load_env_file()


def _split_csv(value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    if isinstance(value, (tuple, list)):
        return tuple(value)
    return tuple(item.strip() for item in value.split(",") if item.strip())


class SmartcarSettings(BaseSettings):
    """Credentials and endpoints for the Smartcar platform."""

    client_id: str = Field(..., validation_alias="SMARTCAR_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="SMARTCAR_CLIENT_SECRET")
    redirect_uri: AnyHttpUrl = Field(..., validation_alias="SMARTCAR_REDIRECT_URI")
    mode: Literal["live", "simulated"] = Field(
        "live",
        validation_alias="SMARTCAR_MODE",
        description="Use 'simulated' to connect Smartcar's simulated vehicles.",
    )
    api_base_url: str = Field(
        "https://api.smartcar.com/v2.0", validation_alias="SMARTCAR_API_BASE_URL"
    )
    connect_url: str = Field(
        "https://connect.smartcar.com/oauth/authorize",
        validation_alias="SMARTCAR_CONNECT_URL",
    )
    token_url: str = Field(
        "https://auth.smartcar.com/oauth/token", validation_alias="SMARTCAR_TOKEN_URL"
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        (
            "read_vehicle_info",
            "read_vin",
            "read_odometer",
            "read_location",
            "read_battery",
            "read_charge",
            "read_fuel",
            "read_engine_oil",
            "read_tires",
            "read_security",
        ),
        validation_alias="SMARTCAR_SCOPES",
    )
    timeout_seconds: float = Field(10.0, validation_alias="SMARTCAR_TIMEOUT")

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        return _split_csv(value)


class SessionSettings(BaseSettings):
    """Signed session cookie configuration."""

    jwt_secret_key: str = Field(..., validation_alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", validation_alias="JWT_ALGORITHM")
    cookie_name: str = Field("vehicle-session", validation_alias="SESSION_COOKIE_NAME")
    cookie_secure: bool = Field(True, validation_alias="SESSION_COOKIE_SECURE")


class SecuritySettings(BaseSettings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )
    previous_encryption_secrets: Annotated[tuple[str, ...], NoDecode] = Field(
        (),
        validation_alias="TOKEN_ENCRYPTION_PREVIOUS_SECRETS",
        description="Retired secrets still accepted for decryption during rotation.",
    )

    @field_validator("previous_encryption_secrets", mode="before")
    @classmethod
    def _split_secrets(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        return _split_csv(value)


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting users back to the front-end.",
    )
    token_db_path: str = Field("data/vehicle_tokens.db", validation_alias="TOKEN_DB_PATH")
    default_unit_system: Literal["metric", "imperial"] = Field(
        "metric", validation_alias="DEFAULT_UNIT_SYSTEM"
    )
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    smartcar: SmartcarSettings = Field(default_factory=SmartcarSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "OAuthSettings",
    "SecuritySettings",
    "SessionSettings",
    "SmartcarSettings",
    "get_settings",
]
