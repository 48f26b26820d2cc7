"""Integration test for SQLite full workflow.

Covers: parameter expansion, error classification, nested transactions and
result caching end-to-end against a real SQLite in-memory database.
"""

from __future__ import annotations

import pytest

from sqlbridge.core.cache import ArrayCacheStore, QueryCacheProfile
from sqlbridge.core.connection import Connection, ConnectionConfig
from sqlbridge.core.enums import ErrorKind, ParameterType
from sqlbridge.core.exceptions import DriverError, RollbackOnly
from sqlbridge.core.retry import RetryWrapper

# --- Fixtures ---


@pytest.fixture
def conn(sqlite_connection: Connection) -> Connection:
    sqlite_connection.execute_statement(
        "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL, email TEXT UNIQUE)"
    )
    sqlite_connection.execute_statement(
        "CREATE TABLE orders ("
        "id INTEGER PRIMARY KEY, user_id INTEGER NOT NULL REFERENCES users(id), amount REAL)"
    )
    for name in ("Alice", "Bob", "Carol"):
        sqlite_connection.execute_statement(
            "INSERT INTO users (name, email) VALUES (:name, :email)",
            {"name": name, "email": f"{name.lower()}@example.com"},
        )
    return sqlite_connection


def _count(conn: Connection) -> int:
    return conn.fetch_scalar("SELECT COUNT(*) FROM users")


# --- Queries ---


class TestQueries:
    def test_positional(self, conn: Connection) -> None:
        row = conn.fetch_one("SELECT name FROM users WHERE id = ?", [2])
        assert row == {"name": "Bob"}

    def test_named(self, conn: Connection) -> None:
        assert conn.fetch_scalar("SELECT id FROM users WHERE name = :name", {"name": "Carol"}) == 3

    def test_array_expansion(self, conn: Connection) -> None:
        names = conn.fetch_first_column(
            "SELECT name FROM users WHERE id IN (?) ORDER BY id",
            [[1, 3]],
            [ParameterType.INTEGER_ARRAY],
        )
        assert names == ["Alice", "Carol"]

    def test_named_array_expansion(self, conn: Connection) -> None:
        ids = conn.fetch_first_column(
            "SELECT id FROM users WHERE name IN (:names) ORDER BY id",
            {"names": ["Bob", "Carol"]},
            {"names": ParameterType.STRING_ARRAY},
        )
        assert ids == [2, 3]

    def test_empty_array_matches_nothing(self, conn: Connection) -> None:
        rows = conn.fetch_all(
            "SELECT * FROM users WHERE id IN (?)", [[]], [ParameterType.INTEGER_ARRAY]
        )
        assert rows == []

    def test_placeholder_inside_literal(self, conn: Connection) -> None:
        assert conn.fetch_scalar("SELECT '?:name' || ? AS v", ["!"]) == "?:name!"

    def test_execute_statement_rowcount(self, conn: Connection) -> None:
        assert conn.execute_statement("UPDATE users SET name = upper(name) WHERE id > ?", [1]) == 2

    def test_last_insert_id(self, conn: Connection) -> None:
        conn.execute_statement("INSERT INTO users (name) VALUES (?)", ["Dave"])
        assert conn.last_insert_id() == 4


# --- Errors ---


class TestErrorClassification:
    @pytest.mark.parametrize(
        ("sql", "params", "kind"),
        [
            ("INSERT INTO users (name, email) VALUES (?, ?)", ["X", "alice@example.com"], ErrorKind.UNIQUE_CONSTRAINT_VIOLATION),
            ("INSERT INTO users (name) VALUES (?)", [None], ErrorKind.NOT_NULL_CONSTRAINT_VIOLATION),
            ("INSERT INTO orders (user_id, amount) VALUES (?, ?)", [99, 1.0], ErrorKind.FOREIGN_KEY_CONSTRAINT_VIOLATION),
            ("SELECT * FROM missing", None, ErrorKind.TABLE_NOT_FOUND),
            ("CREATE TABLE users (id INTEGER)", None, ErrorKind.TABLE_ALREADY_EXISTS),
            ("SELECT nope FROM users", None, ErrorKind.INVALID_FIELD_NAME),
            ("SELECT id FROM users, orders", None, ErrorKind.AMBIGUOUS_FIELD_NAME),
            ("SELEC 1", None, ErrorKind.SYNTAX_ERROR),
        ],
    )
    def test_kinds(self, conn: Connection, sql: str, params: list | None, kind: ErrorKind) -> None:
        with pytest.raises(DriverError) as exc_info:
            conn.execute_statement(sql, params)
        assert exc_info.value.kind is kind
        assert exc_info.value.sql == sql

    def test_connection_stays_usable(self, conn: Connection) -> None:
        with pytest.raises(DriverError):
            conn.fetch_all("SELECT * FROM missing")
        assert conn.is_connected
        assert _count(conn) == 3

    def test_retry_does_not_repeat_permanent_errors(self, conn: Connection) -> None:
        calls = []

        def insert() -> int:
            calls.append(1)
            return conn.execute_statement("INSERT INTO users (name) VALUES (NULL)")

        with pytest.raises(DriverError):
            RetryWrapper(insert, sleep=lambda _: None)()
        assert len(calls) == 1


# --- Transactions ---


class TestTransactions:
    def test_commit_persists(self, conn: Connection) -> None:
        with conn.transaction():
            conn.execute_statement("INSERT INTO users (name) VALUES (?)", ["Dave"])
        assert _count(conn) == 4

    def test_exception_rolls_back(self, conn: Connection) -> None:
        with pytest.raises(RuntimeError), conn.transaction():
            conn.execute_statement("INSERT INTO users (name) VALUES (?)", ["Dave"])
            raise RuntimeError("boom")
        assert _count(conn) == 3

    def test_nested_without_savepoints(self, conn: Connection) -> None:
        conn.begin()
        conn.execute_statement("INSERT INTO users (name) VALUES (?)", ["Dave"])
        conn.begin()
        conn.execute_statement("INSERT INTO users (name) VALUES (?)", ["Eve"])
        conn.rollback()
        with pytest.raises(RollbackOnly):
            conn.commit()
        conn.rollback()
        assert _count(conn) == 3

    def test_nested_with_savepoints(self, conn: Connection) -> None:
        conn.set_nested_with_savepoints(True)
        with conn.transaction():
            conn.execute_statement("INSERT INTO users (name) VALUES (?)", ["Dave"])
            with pytest.raises(RuntimeError), conn.transaction():
                conn.execute_statement("INSERT INTO users (name) VALUES (?)", ["Eve"])
                raise RuntimeError("inner")
            with conn.transaction():
                conn.execute_statement("INSERT INTO users (name) VALUES (?)", ["Frank"])
        names = conn.fetch_first_column("SELECT name FROM users WHERE id > 3 ORDER BY id")
        assert names == ["Dave", "Frank"]

    def test_transactional(self, conn: Connection) -> None:
        new_id = conn.transactional(
            lambda c: (c.execute_statement("INSERT INTO users (name) VALUES ('Dave')"), c.last_insert_id())[1]
        )
        assert new_id == 4


class TestAutoCommitDisabled:
    def test_work_is_discarded_without_commit(self, sqlite_config: ConnectionConfig) -> None:
        config = sqlite_config.model_copy(update={"auto_commit": False})
        with Connection(config) as conn:
            assert conn.is_transaction_active
            conn.execute_statement("CREATE TABLE t (v INTEGER)")
            conn.commit()
            conn.execute_statement("INSERT INTO t VALUES (1)")
            conn.rollback()
            assert conn.fetch_scalar("SELECT COUNT(*) FROM t") == 0
            assert conn.is_transaction_active


# --- Result cache ---


class TestResultCache:
    def test_cached_rows_survive_changes(self, conn: Connection) -> None:
        conn.result_cache_store = ArrayCacheStore()
        qcp = QueryCacheProfile(cache_key="user-count")
        sql = "SELECT COUNT(*) AS n FROM users"

        assert conn.execute_query(sql, qcp=qcp) == [{"n": 3}]
        conn.execute_statement("INSERT INTO users (name) VALUES ('Dave')")
        assert conn.execute_query(sql, qcp=qcp) == [{"n": 3}]

        conn.result_cache_store.delete("user-count")
        assert conn.execute_query(sql, qcp=qcp) == [{"n": 4}]
