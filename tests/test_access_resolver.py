from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import jwt
import pytest

from vehicle_gateway.models.tokens import AccessCredential
from vehicle_gateway.services.access import AccessResolver, NoVehicleAccessError
from vehicle_gateway.services.session import SessionCodec, SessionTokenError

NOW = datetime.now(timezone.utc)
COOKIE = "vehicle-session"


class StubTokenService:
    def __init__(self, vehicle_ids: list[str]) -> None:
        self._vehicle_ids = vehicle_ids
        self.listed = 0
        self.ensured: list[str] = []

    def connected_vehicle_ids(self) -> list[str]:
        self.listed += 1
        return list(self._vehicle_ids)

    async def ensure_valid_access(self, vehicle_id: str) -> AccessCredential:
        self.ensured.append(vehicle_id)
        return AccessCredential(
            access_token=f"stored-{vehicle_id}",
            expiration=NOW + timedelta(hours=2),
            vehicle_id=vehicle_id,
        )


def _request(cookie: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(cookies={COOKIE: cookie} if cookie else {})


def _resolver(token_service: StubTokenService, codec: SessionCodec) -> AccessResolver:
    return AccessResolver(token_service=token_service, session_codec=codec, cookie_name=COOKIE)


@pytest.fixture()
def codec() -> SessionCodec:
    return SessionCodec(secret="session-secret")


@pytest.mark.asyncio
async def test_valid_session_cookie_short_circuits_store(codec: SessionCodec) -> None:
    tokens = StubTokenService(["veh-1"])
    cookie = codec.encode(
        AccessCredential(access_token="cookie-access", expiration=NOW + timedelta(hours=1))
    )

    access = await _resolver(tokens, codec).resolve(_request(cookie))

    assert access.access_token == "cookie-access"
    assert tokens.listed == 0
    assert tokens.ensured == []


@pytest.mark.asyncio
async def test_cookie_inside_expiry_buffer_falls_back_to_store(codec: SessionCodec) -> None:
    tokens = StubTokenService(["veh-1", "veh-2"])
    cookie = codec.encode(
        AccessCredential(access_token="cookie-access", expiration=NOW + timedelta(minutes=3))
    )

    access = await _resolver(tokens, codec).resolve(_request(cookie))

    assert access.access_token == "stored-veh-1"
    assert tokens.ensured == ["veh-1"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "cookie",
    [
        "not-a-jwt",
        jwt.encode({"access_token": "x", "expiration": NOW.isoformat()}, "wrong-secret"),
        jwt.encode({"unexpected": True}, "session-secret"),
    ],
    ids=["malformed", "bad-signature", "missing-fields"],
)
async def test_unusable_cookie_is_treated_as_absent(codec: SessionCodec, cookie: str) -> None:
    tokens = StubTokenService(["veh-1"])

    access = await _resolver(tokens, codec).resolve(_request(cookie))

    assert access.access_token == "stored-veh-1"


@pytest.mark.asyncio
async def test_no_connected_vehicle_raises_no_access(codec: SessionCodec) -> None:
    tokens = StubTokenService([])

    with pytest.raises(NoVehicleAccessError, match="connect your vehicle"):
        await _resolver(tokens, codec).resolve(_request())

    assert tokens.ensured == []


@pytest.mark.asyncio
async def test_fallback_picks_the_same_vehicle_every_time(codec: SessionCodec) -> None:
    tokens = StubTokenService(["veh-a", "veh-b"])
    resolver = _resolver(tokens, codec)

    await resolver.resolve(_request())
    await resolver.resolve(_request())

    assert tokens.ensured == ["veh-a", "veh-a"]


def test_session_codec_rejects_expired_jwt(codec: SessionCodec) -> None:
    token = codec.encode(
        AccessCredential(access_token="old", expiration=NOW - timedelta(minutes=1))
    )

    with pytest.raises(SessionTokenError):
        codec.decode(token)


def test_session_codec_round_trips_credential(codec: SessionCodec) -> None:
    credential = AccessCredential(
        access_token="abc", expiration=NOW + timedelta(hours=1), vehicle_id="veh-1"
    )

    payload = codec.decode(codec.encode(credential))

    assert AccessCredential.model_validate(payload) == credential
