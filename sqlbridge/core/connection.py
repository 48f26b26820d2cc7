"""Connection configuration and the Connection wrapper.

ConnectionConfig is a Pydantic model for type-safe connection config.
Connection drives an adapter: every call expands its parameters, converts them
to the adapter's paramstyle, and turns driver failures into classified
:class:`~sqlbridge.core.exceptions.DriverError` instances. Transactions are
delegated to a :class:`~sqlbridge.core.transaction.TransactionCoordinator`.
"""

from __future__ import annotations

import importlib
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from pydantic import BaseModel

from sqlbridge.adapters.protocol import Adapter
from sqlbridge.core.cache import CacheStore, QueryCacheProfile, ResultCache
from sqlbridge.core.classifier import classify_exception
from sqlbridge.core.enums import DatabaseBackend, ErrorKind
from sqlbridge.core.exceptions import ConnectionError, DriverError, NoResultCacheConfigured  # noqa: A004
from sqlbridge.core.params import Params, Types, expand, format_params, to_paramstyle
from sqlbridge.core.platform import Platform, get_platform
from sqlbridge.core.transaction import (
    DEFAULT_SAVEPOINT_PREFIX,
    TransactionCoordinator,
    TransactionState,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConnectionConfig(BaseModel):
    """Configuration for database connections."""

    driver: str
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str
    auto_commit: bool = True
    nest_transactions_with_savepoints: bool = False
    savepoint_prefix: str = DEFAULT_SAVEPOINT_PREFIX
    backslash_escapes: bool | None = None
    extra: dict[str, Any] = {}

    def cache_identity(self) -> dict[str, Any]:
        """Connection parameters that identify the database for result caching."""
        return self.model_dump(exclude={"password"})


# Adapter module mapping: driver name → (module_path, class_name)
_ADAPTER_MAP: dict[str, tuple[str, str]] = {
    "sqlite": ("sqlbridge.adapters.sqlite", "SqliteAdapter"),
    "postgresql": ("sqlbridge.adapters.postgresql", "PostgresqlAdapter"),
    "mysql": ("sqlbridge.adapters.mysql", "MysqlAdapter"),
    "oracle": ("sqlbridge.adapters.oracle", "OracleAdapter"),
}


def _load_adapter(driver: str) -> Adapter:
    """Load an adapter by driver name."""
    driver_lower = driver.lower()
    if driver_lower not in _ADAPTER_MAP:
        raise ConnectionError(f"Unsupported database driver: {driver}")

    module_path, cls_name = _ADAPTER_MAP[driver_lower]
    try:
        module = importlib.import_module(module_path)
        return getattr(module, cls_name)()
    except (ImportError, AttributeError) as e:
        raise ConnectionError(f"Failed to load adapter for '{driver}': {e}") from e


class _CoordinatorBridge:
    """Exposes a Connection's adapter to its TransactionCoordinator."""

    def __init__(self, connection: Connection) -> None:
        self._connection = connection

    def begin_transaction(self) -> None:
        self._connection._driver_call(self._connection.adapter.begin)

    def commit(self) -> None:
        self._connection._driver_call(self._connection.adapter.commit)

    def rollback(self) -> None:
        self._connection._driver_call(self._connection.adapter.rollback)

    def exec(self, sql: str) -> int:
        logger.debug("%s", sql)
        adapter = self._connection.adapter
        return self._connection._driver_call(lambda raw: adapter.exec(raw, sql), sql)


class Connection:
    """A lazily opened database connection.

    Args:
        config: Connection settings.
        adapter: Adapter to use. Loaded from ``config.driver`` when omitted.
        platform: Backend capabilities. Derived from the adapter's backend
            when omitted.
        result_cache_store: Default store for cached queries.
    """

    def __init__(
        self,
        config: ConnectionConfig,
        adapter: Adapter | None = None,
        platform: Platform | None = None,
        result_cache_store: CacheStore | None = None,
    ) -> None:
        self.config = config
        self._adapter = adapter if adapter is not None else _load_adapter(config.driver)
        self._platform = platform if platform is not None else get_platform(self._adapter.backend)
        self.result_cache_store = result_cache_store
        self._raw: Any = None
        self._last_cursor: Any = None
        self._transactions = TransactionCoordinator(
            _CoordinatorBridge(self),
            self._platform,
            auto_commit=config.auto_commit,
            savepoint_prefix=config.savepoint_prefix,
        )
        if config.nest_transactions_with_savepoints:
            self._transactions.set_nested_with_savepoints(True)

    @property
    def adapter(self) -> Adapter:
        return self._adapter

    @property
    def platform(self) -> Platform:
        return self._platform

    @property
    def backend(self) -> DatabaseBackend:
        return self._platform.backend

    @property
    def backslash_escapes(self) -> bool:
        if self.config.backslash_escapes is not None:
            return self.config.backslash_escapes
        return self._platform.backslash_escapes

    @property
    def transactions(self) -> TransactionCoordinator:
        return self._transactions

    # -- lifecycle --

    @property
    def is_connected(self) -> bool:
        return self._raw is not None

    def connect(self) -> bool:
        """Open the native connection if needed.

        Returns:
            True if a connection was opened, False if one was already open.
        """
        if self._raw is not None:
            return False
        try:
            self._raw = self._adapter.connect(self.config)
        except Exception as exc:
            raise self._convert_exception(exc) from exc
        logger.debug("Connected to %s database %r", self.backend.value, self.config.database)
        try:
            self._transactions.reset()
        except Exception:
            self._discard()
            raise
        return True

    def close(self) -> None:
        """Close the native connection; the next operation reconnects."""
        raw, self._raw = self._raw, None
        self._last_cursor = None
        self._transactions.reset(reopen=False)
        if raw is not None:
            self._adapter.close(raw)

    def _discard(self) -> None:
        raw, self._raw = self._raw, None
        self._last_cursor = None
        self._transactions.reset(reopen=False)
        if raw is None:
            return
        try:
            self._adapter.close(raw)
        except Exception:
            logger.warning("Failed to close lost %s connection", self.backend.value, exc_info=True)

    def __enter__(self) -> Connection:
        self.connect()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # -- driver boundary --

    def _handle(self) -> Any:
        self.connect()
        return self._raw

    def _driver_call(
        self,
        operation: Callable[[Any], T],
        sql: str | None = None,
        params: list[Any] | None = None,
    ) -> T:
        raw = self._handle()
        try:
            return operation(raw)
        except Exception as exc:
            raise self._convert_exception(exc, sql, params) from exc

    def _convert_exception(
        self,
        exc: Exception,
        sql: str | None = None,
        params: list[Any] | None = None,
    ) -> DriverError:
        shown = format_params(params) if params else None
        if sql is None:
            message = f"An exception occurred in driver: {exc}"
        elif shown is None:
            message = f'An exception occurred while executing "{sql}":\n\n{exc}'
        else:
            message = f'An exception occurred while executing "{sql}" with params {shown}:\n\n{exc}'

        classification = classify_exception(self.backend, exc, message)
        logger.warning("%s: %s", classification.kind.value, message)
        if classification.kind is ErrorKind.CONNECTION_FAILURE:
            self._discard()
        return DriverError(classification, sql, shown)

    def _prepare(self, sql: str, params: Params, types: Types) -> tuple[str, list[Any]]:
        query = expand(sql, params, types, backslash_escapes=self.backslash_escapes)
        if not query.params:
            return query.sql, []
        driver_sql = to_paramstyle(
            query.sql, self._adapter.paramstyle, backslash_escapes=self.backslash_escapes
        )
        return driver_sql, query.params

    def _fetch(self, sql: str, params: Params, types: Types) -> list[dict[str, Any]]:
        driver_sql, driver_params = self._prepare(sql, params, types)
        logger.debug("%s %s", driver_sql, format_params(driver_params))

        def run(raw: Any) -> list[dict[str, Any]]:
            cursor = self._adapter.execute(raw, driver_sql, driver_params or None)
            return self._adapter.fetch_all(cursor)

        return self._driver_call(run, driver_sql, driver_params)

    # -- queries --

    def execute_query(
        self,
        sql: str,
        params: Params = None,
        types: Types = None,
        qcp: QueryCacheProfile | None = None,
    ) -> list[dict[str, Any]]:
        """Run a query and return all rows as dicts.

        With a cache profile the rows are served from, or stored in, the
        result cache.
        """
        if qcp is not None:
            return self.execute_cache_query(sql, params, types, qcp)
        return self._fetch(sql, params, types)

    def fetch_all(self, sql: str, params: Params = None, types: Types = None) -> list[dict[str, Any]]:
        return self._fetch(sql, params, types)

    def fetch_one(self, sql: str, params: Params = None, types: Types = None) -> dict[str, Any] | None:
        """First row of the result, or None."""
        rows = self._fetch(sql, params, types)
        return rows[0] if rows else None

    def fetch_scalar(self, sql: str, params: Params = None, types: Types = None) -> Any:
        """First column of the first row, or None."""
        row = self.fetch_one(sql, params, types)
        if row is None:
            return None
        return next(iter(row.values()), None)

    def fetch_first_column(self, sql: str, params: Params = None, types: Types = None) -> list[Any]:
        return [next(iter(row.values()), None) for row in self._fetch(sql, params, types)]

    def execute_statement(self, sql: str, params: Params = None, types: Types = None) -> int:
        """Run an INSERT, UPDATE, DELETE or DDL statement.

        Returns:
            The affected row count as reported by the driver.
        """
        driver_sql, driver_params = self._prepare(sql, params, types)
        logger.debug("%s %s", driver_sql, format_params(driver_params))

        def run(raw: Any) -> int:
            cursor = self._adapter.execute(raw, driver_sql, driver_params or None)
            self._last_cursor = cursor
            return cursor.rowcount

        return self._driver_call(run, driver_sql, driver_params)

    def execute_cache_query(
        self,
        sql: str,
        params: Params,
        types: Types,
        qcp: QueryCacheProfile,
    ) -> list[dict[str, Any]]:
        """Run a query through the result cache.

        Raises:
            NoResultCacheConfigured: Neither *qcp* nor the connection has a store.
        """
        store = qcp.store if qcp.store is not None else self.result_cache_store
        if store is None:
            raise NoResultCacheConfigured()
        cache_key, real_key = qcp.generate_cache_keys(
            sql, params, types, self.config.cache_identity()
        )
        return ResultCache(store).fetch_or_populate(
            cache_key, real_key, qcp.lifetime, lambda: self._fetch(sql, params, types)
        )

    def last_insert_id(self, name: str | None = None) -> Any:
        """Id generated by the last insert on this connection, or the current
        value of sequence *name*."""
        cursor = self._last_cursor
        return self._driver_call(lambda raw: self._adapter.last_insert_id(raw, cursor, name))

    # -- transactions --

    def begin(self) -> None:
        self.connect()
        self._transactions.begin()

    def commit(self) -> None:
        self._transactions.commit()

    def rollback(self) -> None:
        self._transactions.rollback()

    def commit_all(self) -> None:
        self._transactions.commit_all()

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Run the block in a transaction level, committing on success."""
        self.begin()
        try:
            yield self
            self.commit()
        except BaseException:
            if self._transactions.is_transaction_active:
                self.rollback()
            raise

    def transactional(self, func: Callable[[Connection], T]) -> T:
        """Run ``func(connection)`` in a transaction level and return its result."""
        self.connect()
        return self._transactions.transactional(lambda: func(self))

    def set_rollback_only(self) -> None:
        self._transactions.set_rollback_only()

    def is_rollback_only(self) -> bool:
        return self._transactions.is_rollback_only()

    @property
    def is_transaction_active(self) -> bool:
        return self._transactions.is_transaction_active

    def get_transaction_nesting_level(self) -> int:
        return self._transactions.get_nesting_level()

    @property
    def transaction_state(self) -> TransactionState:
        return self._transactions.state

    def set_nested_with_savepoints(self, enabled: bool) -> None:
        self._transactions.set_nested_with_savepoints(enabled)

    def get_nested_with_savepoints(self) -> bool:
        return self._transactions.get_nested_with_savepoints()

    def is_auto_commit(self) -> bool:
        return self._transactions.auto_commit

    def set_auto_commit(self, auto_commit: bool) -> None:
        self._transactions.set_auto_commit(auto_commit)

    def create_savepoint(self, name: str) -> None:
        self.connect()
        self._transactions.create_savepoint(name)

    def release_savepoint(self, name: str) -> None:
        self.connect()
        self._transactions.release_savepoint(name)

    def rollback_savepoint(self, name: str) -> None:
        self.connect()
        self._transactions.rollback_savepoint(name)
