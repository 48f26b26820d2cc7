"""Database platforms.

A platform only describes what the core needs from a backend: savepoint
support, the savepoint control statements, and how string literals escape
their quotes. SQL dialect generation is not part of this package.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from sqlbridge.core.enums import DatabaseBackend


@runtime_checkable
class Platform(Protocol):
    """Backend capabilities consumed by the transaction coordinator."""

    @property
    def backend(self) -> DatabaseBackend: ...

    @property
    def backslash_escapes(self) -> bool:
        """Whether a backslash escapes a quote inside string literals."""
        ...

    def supports_savepoints(self) -> bool: ...

    def supports_release_savepoints(self) -> bool: ...

    def create_savepoint_sql(self, name: str) -> str: ...

    def release_savepoint_sql(self, name: str) -> str: ...

    def rollback_savepoint_sql(self, name: str) -> str: ...


class StandardPlatform:
    """Platform using the SQL standard savepoint statements."""

    backslash_escapes = False

    def __init__(self, backend: DatabaseBackend) -> None:
        self._backend = backend

    @property
    def backend(self) -> DatabaseBackend:
        return self._backend

    def supports_savepoints(self) -> bool:
        return True

    def supports_release_savepoints(self) -> bool:
        return self.supports_savepoints()

    def create_savepoint_sql(self, name: str) -> str:
        return f"SAVEPOINT {name}"

    def release_savepoint_sql(self, name: str) -> str:
        return f"RELEASE SAVEPOINT {name}"

    def rollback_savepoint_sql(self, name: str) -> str:
        return f"ROLLBACK TO SAVEPOINT {name}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._backend.value})"


class MySQLPlatform(StandardPlatform):
    backslash_escapes = True

    def __init__(self) -> None:
        super().__init__(DatabaseBackend.MYSQL)


class OraclePlatform(StandardPlatform):
    def __init__(self) -> None:
        super().__init__(DatabaseBackend.ORACLE)

    def supports_release_savepoints(self) -> bool:
        return False


class SQLServerPlatform(StandardPlatform):
    """SQL Server and Sybase ASE name savepoints through ``SAVE TRANSACTION``."""

    def __init__(self, backend: DatabaseBackend = DatabaseBackend.SQLSERVER) -> None:
        super().__init__(backend)

    def supports_release_savepoints(self) -> bool:
        return False

    def create_savepoint_sql(self, name: str) -> str:
        return f"SAVE TRANSACTION {name}"

    def release_savepoint_sql(self, name: str) -> str:
        return ""

    def rollback_savepoint_sql(self, name: str) -> str:
        return f"ROLLBACK TRANSACTION {name}"


class DB2Platform(StandardPlatform):
    def __init__(self) -> None:
        super().__init__(DatabaseBackend.DB2)

    def create_savepoint_sql(self, name: str) -> str:
        return f"SAVEPOINT {name} ON ROLLBACK RETAIN CURSORS"


class NoSavepointPlatform(StandardPlatform):
    """Platform for backends or configurations without savepoints."""

    def supports_savepoints(self) -> bool:
        return False


def get_platform(backend: DatabaseBackend | str) -> StandardPlatform:
    """Return the default platform for *backend*."""
    backend = DatabaseBackend(backend) if isinstance(backend, str) else backend
    if backend is DatabaseBackend.MYSQL:
        return MySQLPlatform()
    if backend is DatabaseBackend.ORACLE:
        return OraclePlatform()
    if backend in (DatabaseBackend.SQLSERVER, DatabaseBackend.SYBASE):
        return SQLServerPlatform(backend)
    if backend is DatabaseBackend.DB2:
        return DB2Platform()
    return StandardPlatform(backend)
