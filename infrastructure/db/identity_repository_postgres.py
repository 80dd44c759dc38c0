from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional

import psycopg2

from domain.errors import UnknownPlayerError
from domain.models import Player
from domain.repositories import IdentityRepository
from infrastructure.db.database_postgres import PostgresDatabase


class PostgresIdentityRepository(IdentityRepository):
    """
    Postgres-backed implementation of `IdentityRepository`.

    It uses a dedicated `device_ids` table to map ledger device identifiers
    to internal player IDs stored in the `players` table managed by
    `PostgresPlayerRepository`.
    """

    def __init__(self, db: PostgresDatabase) -> None:
        self._db = db
        self._ensure_table()

    def _get_connection(self):
        return self._db.transaction()

    def _ensure_table(self) -> None:
        """
        Ensure that the `device_ids` table exists.

        Schema (minimal):
          - device_id TEXT     -- primary key, one player per device
          - player_id INTEGER  -- matches `players.id`, cascades on delete
          - first_seen TIMESTAMPTZ
        """

        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS device_ids (
                        device_id TEXT PRIMARY KEY,
                        player_id INTEGER NOT NULL
                            REFERENCES players (id) ON DELETE CASCADE,
                        first_seen TIMESTAMPTZ NOT NULL DEFAULT now()
                    )
                    """
                )
                cur.execute(
                    "CREATE INDEX IF NOT EXISTS idx_device_ids_player ON device_ids (player_id)"
                )

    def find_player_by_device(self, device_id: str) -> Optional[Player]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT p.id, p.player_name, p.created_at
                    FROM players p
                    JOIN device_ids d ON d.player_id = p.id
                    WHERE d.device_id = %s
                    """,
                    (device_id,),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return Player(id=int(row[0]), name=row[1], created_at=row[2])

    def link_device(self, device_id: str, player_id: int) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                try:
                    cur.execute(
                        """
                        INSERT INTO device_ids (device_id, player_id)
                        VALUES (%s, %s)
                        ON CONFLICT (device_id)
                        DO UPDATE SET player_id = EXCLUDED.player_id
                        """,
                        (device_id, player_id),
                    )
                except psycopg2.IntegrityError as exc:
                    raise UnknownPlayerError(player_id) from exc

    def get_device_ids_for_player(self, player_id: int) -> List[str]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT device_id
                    FROM device_ids
                    WHERE player_id = %s
                    ORDER BY device_id
                    """,
                    (player_id,),
                )
                return [str(row[0]) for row in cur.fetchall()]

    def get_all_device_ids(self) -> Dict[int, List[str]]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT player_id, device_id FROM device_ids ORDER BY device_id")
                result: Dict[int, List[str]] = defaultdict(list)
                for player_id, device_id in cur.fetchall():
                    result[int(player_id)].append(str(device_id))
                return dict(result)
