"""SQLite-backed persistence for per-vehicle credential records."""

from __future__ import annotations

import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from vehicle_gateway.models.tokens import CredentialRecord

if TYPE_CHECKING:
    from vehicle_gateway.services.token_cipher import TokenCipherService


def _to_db(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class SQLiteTokenStore:
    """Token table keyed by vehicle id; token columns hold Fernet ciphertext."""

    def __init__(self, db_path: str, cipher: TokenCipherService) -> None:
        self._db_path = Path(db_path)
        self._cipher = cipher
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS vehicle_tokens (
                    vehicle_id TEXT PRIMARY KEY,
                    access_token TEXT NOT NULL,
                    refresh_token TEXT NOT NULL,
                    expiration TEXT NOT NULL,
                    refresh_expiration TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def upsert(self, record: CredentialRecord) -> None:
        """Insert or overwrite the token pair; ``created_at`` survives updates."""
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """
                INSERT INTO vehicle_tokens (
                    vehicle_id, access_token, refresh_token,
                    expiration, refresh_expiration, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(vehicle_id) DO UPDATE SET
                    access_token = excluded.access_token,
                    refresh_token = excluded.refresh_token,
                    expiration = excluded.expiration,
                    refresh_expiration = excluded.refresh_expiration,
                    updated_at = excluded.updated_at
                """,
                (
                    record.vehicle_id,
                    self._cipher.encrypt(record.access_token),
                    self._cipher.encrypt(record.refresh_token),
                    _to_db(record.expiration),
                    _to_db(record.refresh_expiration),
                    _to_db(record.created_at),
                    _to_db(record.updated_at),
                ),
            )

    def get(self, vehicle_id: str) -> Optional[CredentialRecord]:
        with closing(self._connect()) as conn:
            row = conn.execute(
                "SELECT * FROM vehicle_tokens WHERE vehicle_id = ?",
                (vehicle_id,),
            ).fetchone()
        if not row:
            return None
        return CredentialRecord(
            vehicle_id=row["vehicle_id"],
            access_token=self._cipher.decrypt(row["access_token"]),
            refresh_token=self._cipher.decrypt(row["refresh_token"]),
            expiration=datetime.fromisoformat(row["expiration"]),
            refresh_expiration=datetime.fromisoformat(row["refresh_expiration"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def list_non_expired(self, now: datetime) -> list[str]:
        """Vehicle ids whose refresh token is still alive, oldest connection first."""
        with closing(self._connect()) as conn:
            rows = conn.execute(
                """
                SELECT vehicle_id FROM vehicle_tokens
                WHERE refresh_expiration > ?
                ORDER BY created_at, vehicle_id
                """,
                (_to_db(now),),
            ).fetchall()
        return [row["vehicle_id"] for row in rows]

    def delete(self, vehicle_id: str) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute("DELETE FROM vehicle_tokens WHERE vehicle_id = ?", (vehicle_id,))

    def delete_all(self) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute("DELETE FROM vehicle_tokens")


__all__ = ["SQLiteTokenStore"]
