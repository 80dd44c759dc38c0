from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

import psycopg2
from psycopg2.extensions import ISOLATION_LEVEL_SERIALIZABLE, connection


class PostgresDatabase:
    """
    Connection and transaction management for the Postgres repositories.

    Mirrors `SqliteDatabase`: repository calls made inside `transaction()`
    on the same thread share its connection. Transactions run SERIALIZABLE
    so a resolve-then-write sequence sees one consistent snapshot.
    """

    def __init__(self, db_params: dict) -> None:
        self._db_params = db_params
        self._local = threading.local()

    def _connect(self) -> connection:
        conn = psycopg2.connect(**self._db_params)
        conn.set_isolation_level(ISOLATION_LEVEL_SERIALIZABLE)
        return conn

    @contextmanager
    def transaction(self) -> Iterator[connection]:
        active = getattr(self._local, "conn", None)
        if active is not None:
            yield active
            return

        conn = self._connect()
        self._local.conn = conn
        try:
            # Commits on success, rolls back if the block raised.
            with conn:
                yield conn
        finally:
            self._local.conn = None
            conn.close()
