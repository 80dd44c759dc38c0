from __future__ import annotations

import sqlite3
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from domain.errors import UnknownPlayerError
from domain.models import Player
from domain.repositories import IdentityRepository
from infrastructure.db.database_sqlite import SqliteDatabase


class SqliteIdentityRepository(IdentityRepository):
    """
    SQLite-backed implementation of `IdentityRepository`.

    Stores mappings from ledger device identifiers to internal player IDs
    in a `device_ids` table keyed by the device identifier.
    """

    def __init__(self, db: SqliteDatabase) -> None:
        self._db = db
        self._ensure_table()

    def _get_connection(self):
        return self._db.transaction()

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS device_ids (
                    device_id TEXT PRIMARY KEY,
                    player_id INTEGER NOT NULL
                        REFERENCES players (id) ON DELETE CASCADE,
                    first_seen TEXT NOT NULL
                )
                """
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_device_ids_player ON device_ids (player_id)"
            )

    def find_player_by_device(self, device_id: str) -> Optional[Player]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT p.id, p.player_name, p.created_at
                FROM players p
                JOIN device_ids d ON d.player_id = p.id
                WHERE d.device_id = ?
                """,
                (device_id,),
            )
            row = cur.fetchone()
            if not row:
                return None
            return Player(
                id=int(row[0]),
                name=row[1],
                created_at=datetime.fromisoformat(row[2]),
            )

    def link_device(self, device_id: str, player_id: int) -> None:
        """
        Upsert a mapping from device identifier to player ID.
        """

        with self._get_connection() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    """
                    INSERT INTO device_ids (device_id, player_id, first_seen)
                    VALUES (?, ?, ?)
                    ON CONFLICT (device_id)
                    DO UPDATE SET player_id = excluded.player_id
                    """,
                    (device_id, player_id, datetime.now(timezone.utc).isoformat()),
                )
            except sqlite3.IntegrityError as exc:
                raise UnknownPlayerError(player_id) from exc

    def get_device_ids_for_player(self, player_id: int) -> List[str]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT device_id
                FROM device_ids
                WHERE player_id = ?
                ORDER BY device_id
                """,
                (player_id,),
            )
            return [str(row[0]) for row in cur.fetchall()]

    def get_all_device_ids(self) -> Dict[int, List[str]]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT player_id, device_id FROM device_ids ORDER BY device_id")
            result: Dict[int, List[str]] = defaultdict(list)
            for player_id, device_id in cur.fetchall():
                result[int(player_id)].append(str(device_id))
            return dict(result)
