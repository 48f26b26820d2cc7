"""Transaction nesting.

Most backends support a single top-level transaction. The coordinator emulates
nesting on top of it: inner levels map to savepoints when enabled, and
otherwise an inner rollback marks the whole transaction rollback-only so the
outer commit cannot silently persist a partial unit of work.

With auto-commit disabled a transaction is always open: every terminal commit
or rollback immediately starts the next one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, TypeVar, runtime_checkable

from sqlbridge.core.exceptions import (
    CannotAlterNestingModeDuringTransaction,
    NoActiveTransaction,
    RollbackOnly,
    SavepointsNotSupported,
)
from sqlbridge.core.platform import Platform

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_SAVEPOINT_PREFIX = "SQLBRIDGE_SAVEPOINT_"


@runtime_checkable
class DriverConnection(Protocol):
    """Transaction primitives of an open driver connection."""

    def begin_transaction(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def exec(self, sql: str) -> int: ...


@dataclass(frozen=True)
class TransactionState:
    """Snapshot of a coordinator's state."""

    nesting_level: int = 0
    rollback_only: bool = False
    auto_commit: bool = True
    savepoints_enabled: bool = False


class TransactionCoordinator:
    """Tracks transaction nesting for one connection.

    Not thread-safe: callers must not run two transitions on the same
    coordinator concurrently.

    Args:
        connection: Driver connection receiving begin/commit/rollback and the
            savepoint statements.
        platform: Supplies savepoint support and statement text.
        auto_commit: When false a transaction is kept open at all times.
        savepoint_prefix: Savepoints are named ``<prefix><nesting level>``.
    """

    def __init__(
        self,
        connection: DriverConnection,
        platform: Platform,
        *,
        auto_commit: bool = True,
        savepoint_prefix: str = DEFAULT_SAVEPOINT_PREFIX,
    ) -> None:
        self._connection = connection
        self._platform = platform
        self._savepoint_prefix = savepoint_prefix
        self._auto_commit = auto_commit
        self._nesting_level = 0
        self._rollback_only = False
        self._savepoints_enabled = False

    # -- state --

    @property
    def nesting_level(self) -> int:
        return self._nesting_level

    def get_nesting_level(self) -> int:
        return self._nesting_level

    @property
    def is_transaction_active(self) -> bool:
        return self._nesting_level > 0

    @property
    def auto_commit(self) -> bool:
        return self._auto_commit

    @property
    def state(self) -> TransactionState:
        return TransactionState(
            nesting_level=self._nesting_level,
            rollback_only=self._rollback_only,
            auto_commit=self._auto_commit,
            savepoints_enabled=self._savepoints_enabled,
        )

    def savepoint_name(self, level: int | None = None) -> str:
        """Savepoint name for *level* (the current nesting level by default)."""
        return f"{self._savepoint_prefix}{self._nesting_level if level is None else level}"

    # -- transitions --

    def begin(self) -> None:
        """Open a transaction, or a nested level inside the current one."""
        level = self._nesting_level + 1
        if level == 1:
            logger.debug('"START TRANSACTION"')
            self._connection.begin_transaction()
        elif self._savepoints_enabled:
            logger.debug('"SAVEPOINT"')
            self.create_savepoint(self.savepoint_name(level))
        self._nesting_level = level

    def commit(self) -> None:
        """Commit the innermost level.

        Raises:
            NoActiveTransaction: No transaction is open.
            RollbackOnly: The transaction was marked rollback-only.
        """
        if self._nesting_level == 0:
            raise NoActiveTransaction()
        if self._rollback_only:
            raise RollbackOnly()

        if self._nesting_level == 1:
            logger.debug('"COMMIT"')
            self._connection.commit()
        elif self._savepoints_enabled:
            logger.debug('"RELEASE SAVEPOINT"')
            self.release_savepoint(self.savepoint_name())

        self._nesting_level -= 1

        if not self._auto_commit and self._nesting_level == 0:
            self.begin()

    def commit_all(self) -> None:
        """Commit every open level."""
        while self._nesting_level != 0:
            if not self._auto_commit and self._nesting_level == 1:
                # the final commit re-opens a transaction; stop there
                self.commit()
                return
            self.commit()

    def rollback(self) -> None:
        """Roll back the innermost level.

        Without savepoints a nested rollback cannot undo anything on its own,
        so it only marks the transaction rollback-only.

        Raises:
            NoActiveTransaction: No transaction is open.
        """
        if self._nesting_level == 0:
            raise NoActiveTransaction()

        if self._nesting_level == 1:
            logger.debug('"ROLLBACK"')
            self._nesting_level = 0
            self._rollback_only = False
            self._connection.rollback()
            if not self._auto_commit:
                self.begin()
        elif self._savepoints_enabled:
            logger.debug('"ROLLBACK TO SAVEPOINT"')
            self.rollback_savepoint(self.savepoint_name())
            self._nesting_level -= 1
        else:
            self._rollback_only = True
            self._nesting_level -= 1

    def set_rollback_only(self) -> None:
        if self._nesting_level == 0:
            raise NoActiveTransaction()
        self._rollback_only = True

    def is_rollback_only(self) -> bool:
        if self._nesting_level == 0:
            raise NoActiveTransaction()
        return self._rollback_only

    def transactional(self, func: Callable[[], T]) -> T:
        """Run *func* inside a transaction level.

        Commits when *func* returns; rolls back and re-raises when *func* or
        the commit raises. Nothing is rolled back when the failure already
        ended the transaction, e.g. a lost connection.
        """
        self.begin()
        try:
            result = func()
            self.commit()
        except BaseException:
            if self._nesting_level > 0:
                self.rollback()
            raise
        return result

    # -- configuration --

    def set_nested_with_savepoints(self, enabled: bool) -> None:
        """Choose whether nested levels are backed by savepoints.

        Raises:
            CannotAlterNestingModeDuringTransaction: A transaction is open.
            SavepointsNotSupported: Enabling on a platform without savepoints.
        """
        if self._nesting_level > 0:
            raise CannotAlterNestingModeDuringTransaction()
        if enabled and not self._platform.supports_savepoints():
            raise SavepointsNotSupported(self._platform.backend.value)
        self._savepoints_enabled = bool(enabled)

    def get_nested_with_savepoints(self) -> bool:
        return self._savepoints_enabled

    def set_auto_commit(self, auto_commit: bool) -> None:
        """Switch auto-commit mode.

        Switching while a transaction is open commits every open level. A
        call that does not change the mode is a no-op.
        """
        auto_commit = bool(auto_commit)
        if auto_commit == self._auto_commit:
            return
        self._auto_commit = auto_commit
        if self._nesting_level == 0:
            return
        self.commit_all()

    def reset(self, *, reopen: bool = True) -> None:
        """Forget all transaction state, e.g. after the connection was replaced.

        With *reopen* and auto-commit disabled a new transaction is started.
        """
        self._nesting_level = 0
        self._rollback_only = False
        if reopen and not self._auto_commit:
            self.begin()

    # -- savepoints --

    def _require_savepoints(self) -> None:
        if not self._platform.supports_savepoints():
            raise SavepointsNotSupported(self._platform.backend.value)

    def create_savepoint(self, name: str) -> None:
        self._require_savepoints()
        self._connection.exec(self._platform.create_savepoint_sql(name))

    def release_savepoint(self, name: str) -> None:
        """Release *name*; silently skipped when the platform cannot release."""
        self._require_savepoints()
        if not self._platform.supports_release_savepoints():
            return
        self._connection.exec(self._platform.release_savepoint_sql(name))

    def rollback_savepoint(self, name: str) -> None:
        self._require_savepoints()
        self._connection.exec(self._platform.rollback_savepoint_sql(name))
