try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import copy
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from vehicle_gateway.clients import OAuthTokenExchangeError
from vehicle_gateway.main import app
from vehicle_gateway.models.tokens import TokenExchange


class DummyAuthClient:
    def __init__(self) -> None:
        self.states: list[str] = []
        self.codes: list[str] = []
        self.fail = False

    def build_authorization_url(self, state: str, *, force_prompt: bool = False) -> str:
        self.states.append(state)
        prompt = "force" if force_prompt else "auto"
        return f"https://connect.example.com/oauth/authorize?state={state}&approval_prompt={prompt}"

    async def exchange_authorization_code(self, code: str) -> TokenExchange:
        self.codes.append(code)
        if self.fail:
            raise OAuthTokenExchangeError("invalid_grant", status_code=400)
        now = datetime.now(timezone.utc)
        return TokenExchange(
            access_token="access-token",
            refresh_token="refresh-token",
            expiration=now + timedelta(hours=2),
            refresh_expiration=now + timedelta(days=60),
        )


class DummyVehicleFactory:
    def __init__(self, vehicle_ids: list[str]) -> None:
        self.vehicle_ids = vehicle_ids
        self.tokens: list[str] = []

    async def list_vehicle_ids(self, access_token: str) -> list[str]:
        self.tokens.append(access_token)
        return list(self.vehicle_ids)


class DummyTokenService:
    def __init__(self) -> None:
        self.stored: list[tuple[str, TokenExchange]] = []

    def store_credentials(self, vehicle_id: str, exchange: TokenExchange) -> None:
        self.stored.append((vehicle_id, exchange))


@pytest.fixture()
def connect_overrides():
    from vehicle_gateway import dependencies
    from vehicle_gateway.core.config import get_settings

    auth_client = DummyAuthClient()
    vehicle_factory = DummyVehicleFactory(["veh-1", "veh-2"])
    token_service = DummyTokenService()
    base_settings = copy.deepcopy(get_settings())
    base_settings.frontend_base_url = None

    app.dependency_overrides.update(
        {
            dependencies.get_smartcar_auth_client: lambda: auth_client,
            dependencies.get_vehicle_factory: lambda: vehicle_factory,
            dependencies.get_vehicle_token_service: lambda: token_service,
            dependencies.get_app_settings: lambda: base_settings,
        }
    )

    yield auth_client, token_service, base_settings

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


@pytest.mark.anyio
async def test_authorize_returns_json_by_default(connect_overrides):
    auth_client, _, _ = connect_overrides

    async with _client() as client:
        response = await client.get("/api/auth/smartcar/authorize", params={"force_prompt": "true"})

    assert response.status_code == 200
    data = response.json()
    assert data["state"] == auth_client.states[-1]
    assert data["authorization_url"].endswith("approval_prompt=force")


@pytest.mark.anyio
async def test_authorize_redirects_for_html_accept(connect_overrides):
    async with _client() as client:
        response = await client.get(
            "/api/auth/smartcar/authorize", headers={"accept": "text/html"}
        )

    assert response.status_code == 307
    assert response.headers["location"].startswith("https://connect.example.com/oauth/authorize")


@pytest.mark.anyio
async def test_callback_stores_tokens_per_vehicle_and_opens_session(connect_overrides):
    auth_client, token_service, settings = connect_overrides

    async with _client() as client:
        await client.get("/api/auth/smartcar/authorize")
        response = await client.post(
            "/api/auth/smartcar/callback",
            json={"state": auth_client.states[-1], "code": "connect-code"},
        )

    assert response.status_code == 200
    assert response.json() == {
        "status": "connected",
        "vehicles": ["veh-1", "veh-2"],
        "redirect_to": None,
    }
    assert auth_client.codes == ["connect-code"]
    assert [vehicle_id for vehicle_id, _ in token_service.stored] == ["veh-1", "veh-2"]
    assert settings.session.cookie_name in response.cookies


@pytest.mark.anyio
async def test_callback_rejects_tampered_state(connect_overrides):
    _, token_service, _ = connect_overrides

    async with _client() as client:
        response = await client.post(
            "/api/auth/smartcar/callback", json={"state": "garbage", "code": "connect-code"}
        )

    assert response.status_code == 400
    assert token_service.stored == []


@pytest.mark.anyio
async def test_callback_rejects_expired_state(connect_overrides):
    from vehicle_gateway.dependencies import get_oauth_state_encoder

    issued_at = datetime.now(timezone.utc) - timedelta(hours=1)
    state = get_oauth_state_encoder().encode({"nonce": "n", "issued_at": issued_at.isoformat()})

    async with _client() as client:
        response = await client.post(
            "/api/auth/smartcar/callback", json={"state": state, "code": "connect-code"}
        )

    assert response.status_code == 400
    assert response.json()["detail"] == "OAuth state token has expired."


@pytest.mark.anyio
async def test_callback_reports_failed_code_exchange(connect_overrides):
    auth_client, token_service, _ = connect_overrides
    auth_client.fail = True

    async with _client() as client:
        await client.get("/api/auth/smartcar/authorize")
        response = await client.post(
            "/api/auth/smartcar/callback",
            json={"state": auth_client.states[-1], "code": "bad-code"},
        )

    assert response.status_code == 400
    assert token_service.stored == []


@pytest.mark.anyio
async def test_callback_get_surfaces_declined_access(connect_overrides):
    auth_client, _, _ = connect_overrides

    async with _client() as client:
        await client.get("/api/auth/smartcar/authorize")
        response = await client.get(
            "/api/auth/smartcar/callback",
            params={
                "state": auth_client.states[-1],
                "error": "access_denied",
                "error_description": "User denied access to the requested scope of permissions.",
            },
        )

    assert response.status_code == 400
    assert auth_client.codes == []


@pytest.mark.anyio
async def test_callback_get_redirects_to_state_target(connect_overrides):
    auth_client, _, settings = connect_overrides

    async with _client() as client:
        await client.get(
            "/api/auth/smartcar/authorize",
            params={"redirect_to": "https://app.example.com/garage"},
        )
        response = await client.get(
            "/api/auth/smartcar/callback",
            params={"state": auth_client.states[-1], "code": "connect-code"},
            headers={"accept": "text/html"},
        )

    assert response.status_code == 307
    assert response.headers["location"] == "https://app.example.com/garage"
    assert settings.session.cookie_name in response.cookies


@pytest.mark.anyio
async def test_callback_get_redirects_to_frontend_when_available(connect_overrides):
    auth_client, _, settings = connect_overrides
    settings.frontend_base_url = "https://app.example.com/oauth/success"

    async with _client() as client:
        await client.get("/api/auth/smartcar/authorize")
        response = await client.get(
            "/api/auth/smartcar/callback",
            params={"state": auth_client.states[-1], "code": "connect-code", "redirect": "true"},
        )

    assert response.status_code == 307
    assert response.headers["location"] == "https://app.example.com/oauth/success"
