"""SQLBridge - portable SQL client core.

Parameter expansion, driver error classification, nested transactions and
query result caching on top of DB-API drivers.
"""

from __future__ import annotations

from sqlbridge.core.cache import ArrayCacheStore, CacheStore, QueryCacheProfile, ResultCache
from sqlbridge.core.classifier import ErrorClassification, classify, classify_exception
from sqlbridge.core.connection import Connection, ConnectionConfig
from sqlbridge.core.enums import DatabaseBackend, ErrorKind, ParameterType
from sqlbridge.core.exceptions import (
    AdapterError,
    CacheError,
    CannotAlterNestingModeDuringTransaction,
    ConnectionError,  # noqa: A004
    DriverError,
    ExpansionError,
    InvalidArrayParameterError,
    MissingNamedParameter,
    MissingParameterError,
    MissingPositionalParameter,
    NoActiveTransaction,
    NoResultCacheConfigured,
    ParameterStyleMismatchError,
    RollbackOnly,
    SavepointsNotSupported,
    SQLBridgeError,
    TransactionError,
)
from sqlbridge.core.params import Query, expand, to_paramstyle
from sqlbridge.core.platform import get_platform
from sqlbridge.core.retry import RetryWrapper
from sqlbridge.core.scanner import Placeholder, scan
from sqlbridge.core.transaction import TransactionCoordinator, TransactionState

__all__ = [
    # Connection
    "Connection",
    "ConnectionConfig",
    # Parameters
    "Query",
    "expand",
    "to_paramstyle",
    "Placeholder",
    "scan",
    # Transactions
    "TransactionCoordinator",
    "TransactionState",
    "get_platform",
    # Result cache
    "CacheStore",
    "ArrayCacheStore",
    "QueryCacheProfile",
    "ResultCache",
    # Classification
    "ErrorClassification",
    "classify",
    "classify_exception",
    "RetryWrapper",
    # Enums
    "DatabaseBackend",
    "ErrorKind",
    "ParameterType",
    # Exceptions
    "SQLBridgeError",
    "ExpansionError",
    "MissingParameterError",
    "MissingPositionalParameter",
    "MissingNamedParameter",
    "ParameterStyleMismatchError",
    "InvalidArrayParameterError",
    "TransactionError",
    "NoActiveTransaction",
    "RollbackOnly",
    "SavepointsNotSupported",
    "CannotAlterNestingModeDuringTransaction",
    "CacheError",
    "NoResultCacheConfigured",
    "DriverError",
    "AdapterError",
    "ConnectionError",
]
