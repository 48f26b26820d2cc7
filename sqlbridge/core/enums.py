"""Backend, parameter type and error kind enumerations."""

from __future__ import annotations

from enum import Enum


class DatabaseBackend(Enum):
    """Supported database backends."""

    MYSQL = "mysql"
    POSTGRESQL = "postgresql"
    ORACLE = "oracle"
    SQLSERVER = "sqlserver"
    SQLITE = "sqlite"
    SYBASE = "sybase"
    INFORMIX = "informix"
    DB2 = "db2"
    SQLANYWHERE = "sqlanywhere"
    FIREBIRD = "firebird"


class ParameterType(Enum):
    """Binding type of a statement parameter.

    The ``*_ARRAY`` members only annotate input parameters. They are resolved
    by :func:`sqlbridge.core.params.expand` and never reach a driver.
    """

    NULL = "null"
    INTEGER = "integer"
    STRING = "string"
    ASCII = "ascii"
    BOOLEAN = "boolean"
    LARGE_OBJECT = "large_object"
    BINARY = "binary"
    INTEGER_ARRAY = "integer_array"
    STRING_ARRAY = "string_array"
    ASCII_ARRAY = "ascii_array"

    @property
    def is_array(self) -> bool:
        return self in _ARRAY_ELEMENT_TYPES

    @property
    def element_type(self) -> ParameterType:
        """Scalar type of each element of an array type."""
        try:
            return _ARRAY_ELEMENT_TYPES[self]
        except KeyError:
            raise ValueError(f"{self.name} is not an array parameter type") from None


_ARRAY_ELEMENT_TYPES: dict[ParameterType, ParameterType] = {
    ParameterType.INTEGER_ARRAY: ParameterType.INTEGER,
    ParameterType.STRING_ARRAY: ParameterType.STRING,
    ParameterType.ASCII_ARRAY: ParameterType.ASCII,
}


class ErrorKind(Enum):
    """Portable classification of a backend failure."""

    CONNECTION_FAILURE = "connection_failure"
    UNIQUE_CONSTRAINT_VIOLATION = "unique_constraint_violation"
    FOREIGN_KEY_CONSTRAINT_VIOLATION = "foreign_key_constraint_violation"
    NOT_NULL_CONSTRAINT_VIOLATION = "not_null_constraint_violation"
    INVALID_FIELD_NAME = "invalid_field_name"
    AMBIGUOUS_FIELD_NAME = "ambiguous_field_name"
    SYNTAX_ERROR = "syntax_error"
    TABLE_NOT_FOUND = "table_not_found"
    TABLE_ALREADY_EXISTS = "table_already_exists"
    LOCK_WAIT_TIMEOUT = "lock_wait_timeout"
    DEADLOCK = "deadlock"
    READ_ONLY = "read_only"
    OTHER = "other"

    @property
    def is_retryable(self) -> bool:
        """Whether re-running the failed operation may succeed."""
        return self in (
            ErrorKind.CONNECTION_FAILURE,
            ErrorKind.DEADLOCK,
            ErrorKind.LOCK_WAIT_TIMEOUT,
        )
