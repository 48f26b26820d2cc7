"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import pytest

from sqlbridge.core.connection import Connection, ConnectionConfig
from sqlbridge.core.enums import DatabaseBackend


class RecordingDriverConnection:
    """DriverConnection fake that records every transaction primitive."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def begin_transaction(self) -> None:
        self.calls.append("BEGIN")

    def commit(self) -> None:
        self.calls.append("COMMIT")

    def rollback(self) -> None:
        self.calls.append("ROLLBACK")

    def exec(self, sql: str) -> int:
        self.calls.append(sql)
        return 0


class FakeCursor:
    def __init__(self, rows: list[dict[str, Any]], rowcount: int = -1) -> None:
        self.rows = rows
        self.rowcount = rowcount
        self.lastrowid = None


class FakeAdapter:
    """In-memory adapter recording statements and failing on demand.

    ``results`` maps a statement to the rows it returns; ``failures`` maps a
    statement to the exception raised when it runs. A ``BEGIN`` failure is
    raised once.
    """

    def __init__(
        self,
        backend: DatabaseBackend = DatabaseBackend.POSTGRESQL,
        paramstyle: str = "format",
    ) -> None:
        self._backend = backend
        self._paramstyle = paramstyle
        self.executed: list[tuple[str, list[Any] | None]] = []
        self.calls: list[str] = []
        self.results: dict[str, list[dict[str, Any]]] = {}
        self.failures: dict[str, Exception] = {}
        self.connect_error: Exception | None = None
        self.connects = 0
        self.closed = 0

    @property
    def backend(self) -> DatabaseBackend:
        return self._backend

    @property
    def paramstyle(self) -> str:
        return self._paramstyle

    def connect(self, config: ConnectionConfig) -> object:
        if self.connect_error is not None:
            raise self.connect_error
        self.connects += 1
        return object()

    def execute(self, connection: Any, sql: str, params: Sequence[Any] | None = None) -> FakeCursor:
        self.executed.append((sql, list(params) if params is not None else None))
        if sql in self.failures:
            raise self.failures[sql]
        rows = self.results.get(sql, [])
        return FakeCursor(rows, rowcount=len(rows) or 1)

    def fetch_all(self, cursor: FakeCursor) -> list[dict[str, Any]]:
        return list(cursor.rows)

    def exec(self, connection: Any, sql: str) -> int:
        self.calls.append(sql)
        if sql in self.failures:
            raise self.failures[sql]
        return 0

    def begin(self, connection: Any) -> None:
        self.calls.append("BEGIN")
        if "BEGIN" in self.failures:
            raise self.failures.pop("BEGIN")

    def commit(self, connection: Any) -> None:
        self.calls.append("COMMIT")
        if "COMMIT" in self.failures:
            raise self.failures["COMMIT"]

    def rollback(self, connection: Any) -> None:
        self.calls.append("ROLLBACK")

    def last_insert_id(self, connection: Any, cursor: Any = None, name: str | None = None) -> Any:
        return name or 42

    def close(self, connection: Any) -> None:
        self.closed += 1


@pytest.fixture
def sqlite_config() -> ConnectionConfig:
    """SQLite in-memory connection config."""
    return ConnectionConfig(driver="sqlite", database=":memory:")


@pytest.fixture
def driver_connection() -> RecordingDriverConnection:
    return RecordingDriverConnection()


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


@pytest.fixture
def make_fake_adapter() -> type[FakeAdapter]:
    return FakeAdapter


@pytest.fixture
def fake_config() -> ConnectionConfig:
    return ConnectionConfig(
        driver="postgresql", host="db.local", user="app", password="secret", database="app"
    )


@pytest.fixture
def fake_connection(fake_config: ConnectionConfig, fake_adapter: FakeAdapter) -> Connection:
    return Connection(fake_config, adapter=fake_adapter)


@pytest.fixture
def sqlite_connection(sqlite_config: ConnectionConfig):  # type: ignore[no-untyped-def]
    conn = Connection(sqlite_config)
    yield conn
    conn.close()
