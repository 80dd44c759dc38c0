from __future__ import annotations

import sqlite3
import threading
from contextlib import contextmanager
from typing import Iterator


class SqliteDatabase:
    """
    Connection and transaction management for the SQLite repositories.

    Every repository call runs inside `transaction()`. When a transaction is
    already open on the current thread the call joins it, so an application
    service can group several repository calls into one atomic unit.

    `db_path` must name a file; each transaction opens its own connection.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._local = threading.local()

    def _connect(self) -> sqlite3.Connection:
        # Autocommit mode: BEGIN/COMMIT are issued explicitly below.
        conn = sqlite3.connect(self._db_path, isolation_level=None)
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        active = getattr(self._local, "conn", None)
        if active is not None:
            yield active
            return

        conn = self._connect()
        self._local.conn = conn
        try:
            # IMMEDIATE takes the write lock up front so reads made at the
            # start of the transaction stay valid until it commits.
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            self._local.conn = None
            conn.close()
