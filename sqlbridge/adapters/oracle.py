"""Oracle adapter using oracledb."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any

from sqlbridge.core.connection import ConnectionConfig
from sqlbridge.core.enums import DatabaseBackend

_SEQUENCE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_$#.]*$")


def _build_dsn(config: ConnectionConfig) -> str:
    """Build an Oracle DSN string from config fields (host:port/database)."""
    return f"{config.host}:{config.port}/{config.database}"


def _make_row_factory(cursor: Any) -> Any:
    """Create a row factory that converts tuples to dicts using column names."""
    columns = [col[0].lower() for col in cursor.description]

    def factory(*args: Any) -> dict[str, Any]:
        return dict(zip(columns, args, strict=True))

    return factory


class OracleAdapter:
    """Oracle adapter using oracledb.

    Oracle opens transactions implicitly, so the connection toggles the
    driver's autocommit flag: on outside a transaction, off inside one.
    Positional parameters are bound as ``:1``, ``:2``, ...
    """

    @property
    def backend(self) -> DatabaseBackend:
        return DatabaseBackend.ORACLE

    @property
    def paramstyle(self) -> str:
        return "numeric"

    def connect(self, config: ConnectionConfig) -> Any:
        import oracledb

        conn = oracledb.connect(
            user=config.user, password=config.password, dsn=_build_dsn(config), **config.extra
        )
        conn.autocommit = True
        return conn

    def execute(self, connection: Any, sql: str, params: Sequence[Any] | None = None) -> Any:
        """Execute SQL and return a cursor with dict row factory."""
        cursor = connection.cursor()
        cursor.execute(sql, list(params or ()))
        if cursor.description is not None:
            cursor.rowfactory = _make_row_factory(cursor)
        return cursor

    def fetch_all(self, cursor: Any) -> list[dict[str, Any]]:
        if cursor.description is None:
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
        connection.autocommit = False

    def commit(self, connection: Any) -> None:
        connection.commit()
        connection.autocommit = True

    def rollback(self, connection: Any) -> None:
        connection.rollback()
        connection.autocommit = True

    def last_insert_id(self, connection: Any, cursor: Any = None, name: str | None = None) -> Any:
        """Current value of sequence *name*; Oracle has no implicit insert id."""
        if name is None:
            return None
        if not _SEQUENCE_NAME.match(name):
            raise ValueError(f"Invalid sequence name: {name!r}")
        cur = connection.cursor()
        try:
            cur.execute(f"SELECT {name}.CURRVAL FROM DUAL")
            row = cur.fetchone()
            return row[0] if row else None
        finally:
            cur.close()

    def close(self, connection: Any) -> None:
        connection.close()
