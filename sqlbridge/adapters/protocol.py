"""Database adapter protocol.

Every adapter module MUST implement this protocol. Adapters are thin: they
call the native driver and nothing else. Parameter expansion, error
classification and transaction nesting live in the core.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from sqlbridge.core.enums import DatabaseBackend

if TYPE_CHECKING:
    from sqlbridge.core.connection import ConnectionConfig


@runtime_checkable
class Adapter(Protocol):
    """Synchronous database adapter protocol."""

    @property
    def backend(self) -> DatabaseBackend:
        """Backend whose error codes and platform apply to this driver."""
        ...

    @property
    def paramstyle(self) -> str:
        """DB-API placeholder style: 'qmark', 'format' or 'numeric'."""
        ...

    def connect(self, config: ConnectionConfig) -> Any:
        """Open a native connection in auto-commit mode."""
        ...

    def execute(self, connection: Any, sql: str, params: Sequence[Any] | None = None) -> Any:
        """Execute SQL with positional params and return a cursor-like object."""
        ...

    def fetch_all(self, cursor: Any) -> list[dict[str, Any]]:
        """Remaining rows of *cursor* as dicts; empty when it returns no rows."""
        ...

    def exec(self, connection: Any, sql: str) -> int:
        """Execute an unparameterized statement and return the affected row count."""
        ...

    def begin(self, connection: Any) -> None:
        """Start a transaction."""
        ...

    def commit(self, connection: Any) -> None:
        """Commit the current transaction."""
        ...

    def rollback(self, connection: Any) -> None:
        """Roll back the current transaction."""
        ...

    def last_insert_id(self, connection: Any, cursor: Any = None, name: str | None = None) -> Any:
        """Id generated by the last insert, or the current value of sequence *name*."""
        ...

    def close(self, connection: Any) -> None:
        """Close the native connection."""
        ...
