"""PostgreSQL adapter using psycopg (v3+)."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlbridge.core.connection import ConnectionConfig
from sqlbridge.core.enums import DatabaseBackend


def _build_conninfo(config: ConnectionConfig) -> str:
    """Build a libpq connection string from config fields."""
    parts: list[str] = []
    if config.host is not None:
        parts.append(f"host={config.host}")
    if config.port is not None:
        parts.append(f"port={config.port}")
    if config.user is not None:
        parts.append(f"user={config.user}")
    if config.password is not None:
        parts.append(f"password={config.password}")
    parts.append(f"dbname={config.database}")
    return " ".join(parts)


def _first_value(row: Any) -> Any:
    if row is None:
        return None
    if isinstance(row, dict):
        return next(iter(row.values()), None)
    return row[0]


class PostgresqlAdapter:
    """PostgreSQL adapter using psycopg (v3+).

    Connections run in psycopg's autocommit mode; transactions are controlled
    with explicit ``BEGIN``/``COMMIT``/``ROLLBACK`` statements.
    """

    @property
    def backend(self) -> DatabaseBackend:
        return DatabaseBackend.POSTGRESQL

    @property
    def paramstyle(self) -> str:
        return "format"

    def connect(self, config: ConnectionConfig) -> Any:
        import psycopg
        import psycopg.rows

        return psycopg.connect(
            _build_conninfo(config),
            autocommit=True,
            row_factory=psycopg.rows.dict_row,
            **config.extra,
        )

    def execute(self, connection: Any, sql: str, params: Sequence[Any] | None = None) -> Any:
        return connection.execute(sql, list(params) if params else None)

    def fetch_all(self, cursor: Any) -> list[dict[str, Any]]:
        if cursor.description is None:
            return []
        return list(cursor.fetchall())

    def exec(self, connection: Any, sql: str) -> int:
        return connection.execute(sql).rowcount

    def begin(self, connection: Any) -> None:
        connection.execute("BEGIN")

    def commit(self, connection: Any) -> None:
        connection.execute("COMMIT")

    def rollback(self, connection: Any) -> None:
        connection.execute("ROLLBACK")

    def last_insert_id(self, connection: Any, cursor: Any = None, name: str | None = None) -> Any:
        if name is not None:
            return _first_value(connection.execute("SELECT CURRVAL(%s)", [name]).fetchone())
        return _first_value(connection.execute("SELECT LASTVAL()").fetchone())

    def close(self, connection: Any) -> None:
        connection.close()
