"""SQLite adapter (sqlite3 stdlib)."""

from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from typing import Any

from sqlbridge.core.connection import ConnectionConfig
from sqlbridge.core.enums import DatabaseBackend


class SqliteAdapter:
    """SQLite adapter using stdlib sqlite3.

    The connection is opened with ``isolation_level=None`` so that sqlite3
    never opens transactions implicitly; transactions are started with an
    explicit ``BEGIN``.
    """

    @property
    def backend(self) -> DatabaseBackend:
        return DatabaseBackend.SQLITE

    @property
    def paramstyle(self) -> str:
        return "qmark"

    def connect(self, config: ConnectionConfig) -> sqlite3.Connection:
        conn = sqlite3.connect(config.database, isolation_level=None, **config.extra)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def execute(
        self,
        connection: sqlite3.Connection,
        sql: str,
        params: Sequence[Any] | None = None,
    ) -> sqlite3.Cursor:
        return connection.execute(sql, tuple(params or ()))

    def fetch_all(self, cursor: sqlite3.Cursor) -> list[dict[str, Any]]:
        return [dict(row) for row in cursor.fetchall()]

    def exec(self, connection: sqlite3.Connection, sql: str) -> int:
        return connection.execute(sql).rowcount

    def begin(self, connection: sqlite3.Connection) -> None:
        connection.execute("BEGIN")

    def commit(self, connection: sqlite3.Connection) -> None:
        connection.execute("COMMIT")

    def rollback(self, connection: sqlite3.Connection) -> None:
        connection.execute("ROLLBACK")

    def last_insert_id(
        self,
        connection: sqlite3.Connection,
        cursor: sqlite3.Cursor | None = None,
        name: str | None = None,
    ) -> int | None:
        if cursor is not None and cursor.lastrowid:
            return cursor.lastrowid
        return connection.execute("SELECT last_insert_rowid()").fetchone()[0]

    def close(self, connection: sqlite3.Connection) -> None:
        connection.close()
