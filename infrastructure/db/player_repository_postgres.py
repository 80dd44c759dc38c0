from __future__ import annotations

from typing import List, Optional

import psycopg2

from domain.errors import DuplicatePlayerError
from domain.models import Player
from domain.repositories import PlayerRepository
from infrastructure.db.database_postgres import PostgresDatabase


class PostgresPlayerRepository(PlayerRepository):
    """
    Postgres-backed implementation of `PlayerRepository`.

    Owns the `players` table. Must be constructed before the identity,
    nickname and session repositories, whose tables reference it.
    """

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
                    CREATE TABLE IF NOT EXISTS players (
                        id SERIAL PRIMARY KEY,
                        player_name VARCHAR(255) NOT NULL UNIQUE,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
                    )
                    """
                )

    @staticmethod
    def _to_domain(row: tuple) -> Player:
        return Player(id=int(row[0]), name=row[1], created_at=row[2])

    def create_player(self, name: str) -> Player:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                try:
                    cur.execute(
                        """
                        INSERT INTO players (player_name)
                        VALUES (%s)
                        RETURNING id, player_name, created_at
                        """,
                        (name,),
                    )
                except psycopg2.IntegrityError as exc:
                    raise DuplicatePlayerError(name) from exc
                return self._to_domain(cur.fetchone())

    def get_player(self, player_id: int) -> Optional[Player]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id, player_name, created_at FROM players WHERE id = %s",
                    (player_id,),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return self._to_domain(row)

    def find_player_by_name(self, name: str) -> Optional[Player]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id, player_name, created_at FROM players WHERE player_name = %s",
                    (name,),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return self._to_domain(row)

    def list_players(self) -> List[Player]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id, player_name, created_at FROM players ORDER BY player_name"
                )
                return [self._to_domain(row) for row in cur.fetchall()]

    def delete_player(self, player_id: int) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM players WHERE id = %s", (player_id,))
