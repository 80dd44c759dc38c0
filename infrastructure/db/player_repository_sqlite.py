from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from domain.errors import DuplicatePlayerError
from domain.models import Player
from domain.repositories import PlayerRepository
from infrastructure.db.database_sqlite import SqliteDatabase


class SqlitePlayerRepository(PlayerRepository):
    """
    SQLite-backed implementation of `PlayerRepository`.

    This repository owns the `players` table and maps rows to the `Player`
    domain model. It is self-initialising: the table is created if needed.
    Device links and nicknames reference this table with ON DELETE CASCADE.
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
                CREATE TABLE IF NOT EXISTS players (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    player_name TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL
                )
                """
            )

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> Player:
        return Player(
            id=int(row[0]),
            name=row[1],
            created_at=datetime.fromisoformat(row[2]),
        )

    def create_player(self, name: str) -> Player:
        created_at = datetime.now(timezone.utc)
        with self._get_connection() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    "INSERT INTO players (player_name, created_at) VALUES (?, ?)",
                    (name, created_at.isoformat()),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicatePlayerError(name) from exc
            return Player(id=int(cur.lastrowid), name=name, created_at=created_at)

    def get_player(self, player_id: int) -> Optional[Player]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT id, player_name, created_at FROM players WHERE id = ?",
                (player_id,),
            )
            row = cur.fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def find_player_by_name(self, name: str) -> Optional[Player]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT id, player_name, created_at FROM players WHERE player_name = ?",
                (name,),
            )
            row = cur.fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def list_players(self) -> List[Player]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT id, player_name, created_at FROM players ORDER BY player_name")
            return [self._to_domain(row) for row in cur.fetchall()]

    def delete_player(self, player_id: int) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute("DELETE FROM players WHERE id = ?", (player_id,))
