from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from vehicle_gateway.clients.sqlite_store import SQLiteTokenStore
from vehicle_gateway.models.tokens import CredentialRecord
from vehicle_gateway.services.token_cipher import TokenCipherService

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


def _record(vehicle_id: str, *, created_at: datetime = NOW, refresh_days: int = 60, suffix: str = "1") -> CredentialRecord:
    return CredentialRecord(
        vehicle_id=vehicle_id,
        access_token=f"access-{suffix}",
        refresh_token=f"refresh-{suffix}",
        expiration=created_at + timedelta(hours=2),
        refresh_expiration=created_at + timedelta(days=refresh_days),
        created_at=created_at,
        updated_at=created_at,
    )


@pytest.fixture()
def store(tmp_path: Path) -> SQLiteTokenStore:
    return SQLiteTokenStore(str(tmp_path / "nested" / "tokens.db"), TokenCipherService(secret="s"))


def test_get_returns_none_for_unknown_vehicle(store: SQLiteTokenStore) -> None:
    assert store.get("missing") is None


def test_upsert_round_trips_record(store: SQLiteTokenStore) -> None:
    store.upsert(_record("veh-1"))

    loaded = store.get("veh-1")

    assert loaded is not None
    assert loaded.access_token == "access-1"
    assert loaded.refresh_token == "refresh-1"
    assert loaded.expiration == NOW + timedelta(hours=2)
    assert loaded.refresh_expiration == NOW + timedelta(days=60)


def test_tokens_are_encrypted_at_rest(tmp_path: Path) -> None:
    db_path = tmp_path / "tokens.db"
    store = SQLiteTokenStore(str(db_path), TokenCipherService(secret="s"))
    store.upsert(_record("veh-1"))

    conn = sqlite3.connect(db_path)
    try:
        access, refresh = conn.execute(
            "SELECT access_token, refresh_token FROM vehicle_tokens"
        ).fetchone()
    finally:
        conn.close()

    assert access != "access-1"
    assert refresh != "refresh-1"


def test_upsert_overwrites_tokens_and_keeps_created_at(store: SQLiteTokenStore) -> None:
    store.upsert(_record("veh-1"))
    later = NOW + timedelta(hours=3)
    store.upsert(_record("veh-1", created_at=later, suffix="2"))

    loaded = store.get("veh-1")

    assert loaded is not None
    assert loaded.access_token == "access-2"
    assert loaded.refresh_token == "refresh-2"
    assert loaded.created_at == NOW
    assert loaded.updated_at == later


def test_list_non_expired_skips_lapsed_refresh_tokens_in_stable_order(
    store: SQLiteTokenStore,
) -> None:
    store.upsert(_record("veh-b", created_at=NOW - timedelta(days=1)))
    store.upsert(_record("veh-a", created_at=NOW - timedelta(days=1)))
    store.upsert(_record("veh-old", created_at=NOW - timedelta(days=2)))
    store.upsert(_record("veh-dead", created_at=NOW - timedelta(days=90)))

    assert store.list_non_expired(NOW) == ["veh-old", "veh-a", "veh-b"]


def test_delete_and_delete_all(store: SQLiteTokenStore) -> None:
    store.upsert(_record("veh-1"))
    store.upsert(_record("veh-2"))

    store.delete("veh-1")
    assert store.get("veh-1") is None
    assert store.get("veh-2") is not None

    store.delete_all()
    assert store.list_non_expired(NOW) == []
