from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from typing import Dict, List, Optional

from domain.errors import DuplicateParticipationError, DuplicateSessionError, UnknownPlayerError
from domain.models import PlayerTotals, SessionParticipation, SessionRecord
from domain.repositories import SessionRepository
from infrastructure.db.database_sqlite import SqliteDatabase

_SESSION_COLUMNS = "id, url, ledger_data, created_at, updated_at"
_PARTICIPATION_COLUMNS = (
    "session_id, device_id, player_id, nickname, net_amount, buy_in, buy_out, in_game"
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqliteSessionRepository(SessionRepository):
    """
    SQLite-backed implementation of `SessionRepository`.

    Owns the `sessions` table (raw ledger payload stored as JSON text) and
    the `session_participants` table. A participation row is unique per
    (session, device); its player reference is nulled, not deleted, when
    the player goes away.
    """

    def __init__(self, db: SqliteDatabase) -> None:
        self._db = db
        self._ensure_tables()

    def _get_connection(self):
        return self._db.transaction()

    def _ensure_tables(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    url TEXT NOT NULL,
                    ledger_data TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS session_participants (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    session_id TEXT NOT NULL
                        REFERENCES sessions (id) ON DELETE CASCADE,
                    device_id TEXT NOT NULL,
                    player_id INTEGER
                        REFERENCES players (id) ON DELETE SET NULL,
                    nickname TEXT NOT NULL,
                    net_amount INTEGER NOT NULL,
                    buy_in INTEGER NOT NULL,
                    buy_out INTEGER NOT NULL,
                    in_game INTEGER NOT NULL,
                    UNIQUE (session_id, device_id)
                )
                """
            )
            cur.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_session_participants_player
                ON session_participants (player_id)
                """
            )

    @staticmethod
    def _to_session(row: sqlite3.Row) -> SessionRecord:
        return SessionRecord(
            id=row[0],
            url=row[1],
            ledger_data=json.loads(row[2]),
            created_at=datetime.fromisoformat(row[3]),
            updated_at=datetime.fromisoformat(row[4]),
        )

    @staticmethod
    def _to_participation(row: sqlite3.Row) -> SessionParticipation:
        return SessionParticipation(
            session_id=row[0],
            device_id=row[1],
            player_id=None if row[2] is None else int(row[2]),
            nickname=row[3],
            net=int(row[4]),
            buy_in=int(row[5]),
            buy_out=int(row[6]),
            in_game=int(row[7]),
        )

    def session_exists(self, session_id: str) -> bool:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT 1 FROM sessions WHERE id = ?", (session_id,))
            return cur.fetchone() is not None

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE id = ?", (session_id,))
            row = cur.fetchone()
            if not row:
                return None
            return self._to_session(row)

    def list_sessions(self) -> List[SessionRecord]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT {_SESSION_COLUMNS} FROM sessions ORDER BY created_at DESC, rowid DESC")
            return [self._to_session(row) for row in cur.fetchall()]

    def create_session(self, session_id: str, url: str, ledger_data: dict) -> SessionRecord:
        now = _now()
        with self._get_connection() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    f"INSERT INTO sessions ({_SESSION_COLUMNS}) VALUES (?, ?, ?, ?, ?)",
                    (session_id, url, json.dumps(ledger_data), now, now),
                )
            except sqlite3.IntegrityError as exc:
                raise DuplicateSessionError(session_id) from exc
        return self.get_session(session_id)

    def update_session(
        self,
        session_id: str,
        url: str,
        ledger_data: dict,
    ) -> Optional[SessionRecord]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                UPDATE sessions
                SET url = ?, ledger_data = ?, updated_at = ?
                WHERE id = ?
                """,
                (url, json.dumps(ledger_data), _now(), session_id),
            )
            if cur.rowcount == 0:
                return None
            return self.get_session(session_id)

    def save_session(self, session_id: str, url: str, ledger_data: dict) -> SessionRecord:
        now = _now()
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                f"""
                INSERT INTO sessions ({_SESSION_COLUMNS})
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (id) DO UPDATE SET
                    url = excluded.url,
                    ledger_data = excluded.ledger_data,
                    updated_at = excluded.updated_at
                """,
                (session_id, url, json.dumps(ledger_data), now, now),
            )
            return self.get_session(session_id)

    def delete_session(self, session_id: str) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute("DELETE FROM sessions WHERE id = ?", (session_id,))

    def delete_participations(self, session_id: str) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute("DELETE FROM session_participants WHERE session_id = ?", (session_id,))

    def add_participation(self, participation: SessionParticipation) -> None:
        p = participation
        with self._get_connection() as conn:
            cur = conn.cursor()
            try:
                cur.execute(
                    f"""
                    INSERT INTO session_participants ({_PARTICIPATION_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        p.session_id,
                        p.device_id,
                        p.player_id,
                        p.nickname,
                        p.net,
                        p.buy_in,
                        p.buy_out,
                        p.in_game,
                    ),
                )
            except sqlite3.IntegrityError as exc:
                message = str(exc)
                if message.startswith("UNIQUE"):
                    raise DuplicateParticipationError(p.session_id, p.device_id) from exc
                if message.startswith("FOREIGN KEY"):
                    raise UnknownPlayerError(p.player_id) from exc
                raise

    def list_participations_for_session(self, session_id: str) -> List[SessionParticipation]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                f"""
                SELECT {_PARTICIPATION_COLUMNS}
                FROM session_participants
                WHERE session_id = ?
                ORDER BY id
                """,
                (session_id,),
            )
            return [self._to_participation(row) for row in cur.fetchall()]

    def list_participations_for_player(self, player_id: int) -> List[SessionParticipation]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                f"""
                SELECT {_PARTICIPATION_COLUMNS}
                FROM session_participants
                WHERE player_id = ?
                ORDER BY id
                """,
                (player_id,),
            )
            return [self._to_participation(row) for row in cur.fetchall()]

    def get_player_totals(self) -> Dict[int, PlayerTotals]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT player_id, COUNT(DISTINCT session_id), SUM(net_amount)
                FROM session_participants
                WHERE player_id IS NOT NULL
                GROUP BY player_id
                """
            )
            return {
                int(player_id): PlayerTotals(sessions=int(sessions), net_winnings=int(net))
                for player_id, sessions, net in cur.fetchall()
            }
