from __future__ import annotations

from typing import Dict, List, Optional

import psycopg2
from psycopg2 import errors
from psycopg2.extras import Json

from domain.errors import DuplicateParticipationError, DuplicateSessionError, UnknownPlayerError
from domain.models import PlayerTotals, SessionParticipation, SessionRecord
from domain.repositories import SessionRepository
from infrastructure.db.database_postgres import PostgresDatabase

_SESSION_COLUMNS = "id, url, ledger_data, created_at, updated_at"
_PARTICIPATION_COLUMNS = (
    "session_id, device_id, player_id, nickname, net_amount, buy_in, buy_out, in_game"
)


class PostgresSessionRepository(SessionRepository):
    """
    Postgres-backed implementation of `SessionRepository`.

    The raw ledger payload is kept in a JSONB column. Participations are
    unique per (session, device) and cascade with their session.
    """

    def __init__(self, db: PostgresDatabase) -> None:
        self._db = db
        self._ensure_tables()

    def _get_connection(self):
        return self._db.transaction()

    def _ensure_tables(self) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS sessions (
                        id VARCHAR(255) PRIMARY KEY,
                        url TEXT NOT NULL,
                        ledger_data JSONB NOT NULL,
                        created_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp(),
                        updated_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp()
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS session_participants (
                        id SERIAL PRIMARY KEY,
                        session_id VARCHAR(255) NOT NULL
                            REFERENCES sessions (id) ON DELETE CASCADE,
                        device_id TEXT NOT NULL,
                        player_id INTEGER
                            REFERENCES players (id) ON DELETE SET NULL,
                        nickname VARCHAR(255) NOT NULL,
                        net_amount BIGINT NOT NULL,
                        buy_in BIGINT NOT NULL,
                        buy_out BIGINT NOT NULL,
                        in_game BIGINT NOT NULL,
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
    def _to_session(row: tuple) -> SessionRecord:
        return SessionRecord(
            id=row[0],
            url=row[1],
            ledger_data=row[2],
            created_at=row[3],
            updated_at=row[4],
        )

    @staticmethod
    def _to_participation(row: tuple) -> SessionParticipation:
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
            with conn.cursor() as cur:
                cur.execute("SELECT 1 FROM sessions WHERE id = %s", (session_id,))
                return cur.fetchone() is not None

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"SELECT {_SESSION_COLUMNS} FROM sessions WHERE id = %s",
                    (session_id,),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return self._to_session(row)

    def list_sessions(self) -> List[SessionRecord]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(f"SELECT {_SESSION_COLUMNS} FROM sessions ORDER BY created_at DESC")
                return [self._to_session(row) for row in cur.fetchall()]

    def create_session(self, session_id: str, url: str, ledger_data: dict) -> SessionRecord:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                try:
                    cur.execute(
                        f"""
                        INSERT INTO sessions (id, url, ledger_data)
                        VALUES (%s, %s, %s)
                        RETURNING {_SESSION_COLUMNS}
                        """,
                        (session_id, url, Json(ledger_data)),
                    )
                except psycopg2.IntegrityError as exc:
                    raise DuplicateSessionError(session_id) from exc
                return self._to_session(cur.fetchone())

    def update_session(
        self,
        session_id: str,
        url: str,
        ledger_data: dict,
    ) -> Optional[SessionRecord]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    UPDATE sessions
                    SET url = %s, ledger_data = %s, updated_at = clock_timestamp()
                    WHERE id = %s
                    RETURNING {_SESSION_COLUMNS}
                    """,
                    (url, Json(ledger_data), session_id),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return self._to_session(row)

    def save_session(self, session_id: str, url: str, ledger_data: dict) -> SessionRecord:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO sessions (id, url, ledger_data)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (id) DO UPDATE SET
                        url = EXCLUDED.url,
                        ledger_data = EXCLUDED.ledger_data,
                        updated_at = clock_timestamp()
                    RETURNING {_SESSION_COLUMNS}
                    """,
                    (session_id, url, Json(ledger_data)),
                )
                return self._to_session(cur.fetchone())

    def delete_session(self, session_id: str) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM sessions WHERE id = %s", (session_id,))

    def delete_participations(self, session_id: str) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM session_participants WHERE session_id = %s",
                    (session_id,),
                )

    def add_participation(self, participation: SessionParticipation) -> None:
        p = participation
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                try:
                    cur.execute(
                        f"""
                        INSERT INTO session_participants ({_PARTICIPATION_COLUMNS})
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
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
                except errors.UniqueViolation as exc:
                    raise DuplicateParticipationError(p.session_id, p.device_id) from exc
                except errors.ForeignKeyViolation as exc:
                    raise UnknownPlayerError(p.player_id) from exc

    def list_participations_for_session(self, session_id: str) -> List[SessionParticipation]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    SELECT {_PARTICIPATION_COLUMNS}
                    FROM session_participants
                    WHERE session_id = %s
                    ORDER BY id
                    """,
                    (session_id,),
                )
                return [self._to_participation(row) for row in cur.fetchall()]

    def list_participations_for_player(self, player_id: int) -> List[SessionParticipation]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"""
                    SELECT {_PARTICIPATION_COLUMNS}
                    FROM session_participants
                    WHERE player_id = %s
                    ORDER BY id
                    """,
                    (player_id,),
                )
                return [self._to_participation(row) for row in cur.fetchall()]

    def get_player_totals(self) -> Dict[int, PlayerTotals]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
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
