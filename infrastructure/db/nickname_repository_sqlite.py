from __future__ import annotations

import sqlite3
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List

from domain.errors import UnknownPlayerError
from domain.repositories import NicknameRepository
from infrastructure.db.database_sqlite import SqliteDatabase


class SqliteNicknameRepository(NicknameRepository):
    """
    SQLite-backed implementation of `NicknameRepository`.

    Manages the `nicknames` table: one row per (player, nickname) pair.
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
                CREATE TABLE IF NOT EXISTS nicknames (
                    player_id INTEGER NOT NULL
                        REFERENCES players (id) ON DELETE CASCADE,
                    nickname TEXT NOT NULL,
                    first_seen TEXT NOT NULL,
                    PRIMARY KEY (player_id, nickname)
                )
                """
            )

    def add_nickname(self, player_id: int, nickname: str) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    """
                    INSERT INTO nicknames (player_id, nickname, first_seen)
                    VALUES (?, ?, ?)
                    ON CONFLICT (player_id, nickname) DO NOTHING
                    """,
                    (player_id, nickname, datetime.now(timezone.utc).isoformat()),
                )
            except sqlite3.IntegrityError as exc:
                raise UnknownPlayerError(player_id) from exc

    def list_nicknames(self, player_id: int) -> List[str]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT nickname FROM nicknames WHERE player_id = ? ORDER BY nickname",
                (player_id,),
            )
            return [row[0] for row in cur.fetchall()]

    def get_all_nicknames(self) -> Dict[int, List[str]]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT player_id, nickname FROM nicknames ORDER BY nickname")
            result: Dict[int, List[str]] = defaultdict(list)
            for player_id, nickname in cur.fetchall():
                result[int(player_id)].append(nickname)
            return dict(result)
