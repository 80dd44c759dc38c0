from __future__ import annotations

from application.services import LedgerStore
from infrastructure.db.database_postgres import PostgresDatabase
from infrastructure.db.database_sqlite import SqliteDatabase
from infrastructure.db.identity_repository_postgres import PostgresIdentityRepository
from infrastructure.db.identity_repository_sqlite import SqliteIdentityRepository
from infrastructure.db.nickname_repository_postgres import PostgresNicknameRepository
from infrastructure.db.nickname_repository_sqlite import SqliteNicknameRepository
from infrastructure.db.player_repository_postgres import PostgresPlayerRepository
from infrastructure.db.player_repository_sqlite import SqlitePlayerRepository
from infrastructure.db.session_repository_postgres import PostgresSessionRepository
from infrastructure.db.session_repository_sqlite import SqliteSessionRepository


def build_sqlite_store(db_path: str) -> LedgerStore:
    db = SqliteDatabase(db_path)
    # Players first: the other tables reference it.
    players = SqlitePlayerRepository(db)
    return LedgerStore(
        database=db,
        players=players,
        identities=SqliteIdentityRepository(db),
        nicknames=SqliteNicknameRepository(db),
        sessions=SqliteSessionRepository(db),
    )


def build_postgres_store(db_params: dict) -> LedgerStore:
    db = PostgresDatabase(db_params)
    players = PostgresPlayerRepository(db)
    return LedgerStore(
        database=db,
        players=players,
        identities=PostgresIdentityRepository(db),
        nicknames=PostgresNicknameRepository(db),
        sessions=PostgresSessionRepository(db),
    )
