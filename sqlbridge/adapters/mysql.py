"""MySQL adapter (mysql-connector-python)."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlbridge.core.connection import ConnectionConfig
from sqlbridge.core.enums import DatabaseBackend


class MysqlAdapter:
    """MySQL adapter using mysql-connector-python."""

    @property
    def backend(self) -> DatabaseBackend:
        return DatabaseBackend.MYSQL

    @property
    def paramstyle(self) -> str:
        return "format"

    def connect(self, config: ConnectionConfig) -> Any:
        import mysql.connector

        return mysql.connector.connect(
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password,
            database=config.database,
            autocommit=True,
            **config.extra,
        )

    def execute(self, connection: Any, sql: str, params: Sequence[Any] | None = None) -> Any:
        """Execute SQL and return a cursor with dictionary results."""
        cursor = connection.cursor(dictionary=True)
        cursor.execute(sql, tuple(params) if params else None)
        return cursor

    def fetch_all(self, cursor: Any) -> list[dict[str, Any]]:
        if not cursor.with_rows:
            return []
        return list(cursor.fetchall())

    def exec(self, connection: Any, sql: str) -> int:
        cursor = connection.cursor()
        try:
            cursor.execute(sql)
            return cursor.rowcount
        finally:
            cursor.close()

    def begin(self, connection: Any) -> None:
        connection.start_transaction()

    def commit(self, connection: Any) -> None:
        connection.commit()

    def rollback(self, connection: Any) -> None:
        connection.rollback()

    def last_insert_id(self, connection: Any, cursor: Any = None, name: str | None = None) -> Any:
        if cursor is not None and cursor.lastrowid:
            return cursor.lastrowid
        cur = connection.cursor()
        try:
            cur.execute("SELECT LAST_INSERT_ID()")
            return cur.fetchone()[0]
        finally:
            cur.close()

    def close(self, connection: Any) -> None:
        connection.close()
