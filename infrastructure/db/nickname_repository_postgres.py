from __future__ import annotations

from collections import defaultdict
from typing import Dict, List

import psycopg2

from domain.errors import UnknownPlayerError
from domain.repositories import NicknameRepository
from infrastructure.db.database_postgres import PostgresDatabase


class PostgresNicknameRepository(NicknameRepository):
    """Postgres-backed implementation of `NicknameRepository`."""

    def __init__(self, db: PostgresDatabase) -> None:
        self._db = db
        self._ensure_table()

    def _get_connection(self):
        return self._db.transaction()

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS nicknames (
                        player_id INTEGER NOT NULL
                            REFERENCES players (id) ON DELETE CASCADE,
                        nickname VARCHAR(255) NOT NULL,
                        first_seen TIMESTAMPTZ NOT NULL DEFAULT now(),
                        PRIMARY KEY (player_id, nickname)
                    )
                    """
                )

    def add_nickname(self, player_id: int, nickname: str) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                try:
                    cur.execute(
                        """
                        INSERT INTO nicknames (player_id, nickname)
                        VALUES (%s, %s)
                        ON CONFLICT (player_id, nickname) DO NOTHING
                        """,
                        (player_id, nickname),
                    )
                except psycopg2.IntegrityError as exc:
                    raise UnknownPlayerError(player_id) from exc

    def list_nicknames(self, player_id: int) -> List[str]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT nickname FROM nicknames WHERE player_id = %s ORDER BY nickname",
                    (player_id,),
                )
                return [row[0] for row in cur.fetchall()]

    def get_all_nicknames(self) -> Dict[int, List[str]]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT player_id, nickname FROM nicknames ORDER BY nickname")
                result: Dict[int, List[str]] = defaultdict(list)
                for player_id, nickname in cur.fetchall():
                    result[int(player_id)].append(nickname)
                return dict(result)
