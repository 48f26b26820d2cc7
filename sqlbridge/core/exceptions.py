"""SQLBridge exception hierarchy.

Raw driver exceptions never reach callers unwrapped: they are classified and
re-raised as :class:`DriverError` with the original chained as ``__cause__``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqlbridge.core.classifier import ErrorClassification
    from sqlbridge.core.enums import ErrorKind


class SQLBridgeError(Exception):
    """Base exception for all SQLBridge errors."""


# --- Parameter expansion ---


class ExpansionError(SQLBridgeError):
    """Base for errors raised while rewriting a parameterized statement."""


class MissingParameterError(ExpansionError):
    """Raised when a placeholder has no bound value."""


class MissingPositionalParameter(MissingParameterError):
    """Raised when a positional placeholder has no bound value."""

    def __init__(self, index: int) -> None:
        self.index = index
        super().__init__(f"Positional parameter at index {index} does not have a bound value.")


class MissingNamedParameter(MissingParameterError):
    """Raised when a named placeholder has no bound value."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Named parameter \"{name}\" does not have a bound value.")


class ParameterStyleMismatchError(ExpansionError):
    """Raised when positional and named parameters are mixed in one call."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"Cannot mix positional and named parameters: {detail}")


class InvalidArrayParameterError(ExpansionError):
    """Raised when an array parameter type is bound to a non-sequence value."""

    def __init__(self, key: int | str, value_type: str) -> None:
        self.key = key
        super().__init__(
            f"Parameter {key!r} is declared as an array type but is bound to a {value_type}"
        )


# --- Transaction ---


class TransactionError(SQLBridgeError):
    """Base for transaction errors."""


class NoActiveTransaction(TransactionError):
    """Raised when an operation requires an open transaction."""

    def __init__(self) -> None:
        super().__init__("There is no active transaction.")


class RollbackOnly(TransactionError):
    """Raised when committing a transaction that is marked rollback-only."""

    def __init__(self) -> None:
        super().__init__("Transaction commit failed because the transaction has been marked for rollback only.")


class SavepointsNotSupported(TransactionError):
    """Raised when the platform has no savepoint support."""

    def __init__(self, backend: str) -> None:
        self.backend = backend
        super().__init__(f"Savepoints are not supported by the {backend} platform.")


class CannotAlterNestingModeDuringTransaction(TransactionError):
    """Raised when toggling savepoint nesting while a transaction is open."""

    def __init__(self) -> None:
        super().__init__("May not alter the nested transaction with savepoints behavior while a transaction is open.")


# --- Result cache ---


class CacheError(SQLBridgeError):
    """Base for result cache errors."""


class NoResultCacheConfigured(CacheError):
    """Raised when a cached query runs without any cache store."""

    def __init__(self) -> None:
        super().__init__("Trying to cache a query but no result cache store is configured.")


# --- Driver ---


class DriverError(SQLBridgeError):
    """A backend failure with its portable classification.

    Attributes:
        classification: Kind, portable message and original driver exception.
        sql: Statement text as sent to the driver, if the failure happened
            while executing one.
        params: Display rendering of the bound parameters (binary data
            hex-escaped), or ``None``.
    """

    def __init__(
        self,
        classification: ErrorClassification,
        sql: str | None = None,
        params: str | None = None,
    ) -> None:
        self.classification = classification
        self.sql = sql
        self.params = params
        super().__init__(classification.portable_message)

    @property
    def kind(self) -> ErrorKind:
        return self.classification.kind

    @property
    def is_retryable(self) -> bool:
        return self.classification.kind.is_retryable


# --- Adapter ---


class AdapterError(SQLBridgeError):
    """Base for adapter errors."""


class ConnectionError(AdapterError):  # noqa: A001
    """Raised when a driver cannot be loaded or a connection cannot be used."""
