"""Driver error classification.

Converts backend-specific error codes, SQLSTATEs and messages into a portable
:class:`~sqlbridge.core.enums.ErrorKind`. Each backend is described by a data
table of rules; supporting a new backend means adding a table.

Classification is total: any input, including an unknown backend or a missing
code and message, yields a kind (``ErrorKind.OTHER`` when nothing matches).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from sqlbridge.core.enums import DatabaseBackend, ErrorKind

_INTEGER_CODE = re.compile(r"^[+-]?\d+$")
_ORACLE_CODE = re.compile(r"^ORA-(\d+)$", re.IGNORECASE)


@dataclass(frozen=True)
class ErrorClassification:
    """Portable description of one failed driver call."""

    kind: ErrorKind
    portable_message: str
    cause: BaseException | None = None


@dataclass(frozen=True)
class Rule:
    """Maps native error identifiers to an error kind.

    A rule with ``codes`` matches on the native code (refined by ``message``
    when both are given). A rule without codes matches on the message alone
    and is only consulted once every code rule has failed.
    """

    kind: ErrorKind
    codes: frozenset[str] = frozenset()
    message: re.Pattern[str] | None = None

    @property
    def is_code_rule(self) -> bool:
        return bool(self.codes)

    def matches(self, codes: frozenset[str], message: str) -> bool:
        if self.codes and not self.codes & codes:
            return False
        if self.message is not None and self.message.search(message) is None:
            return False
        return self.is_code_rule or self.message is not None


def _codes(kind: ErrorKind, *codes: int | str, message: str | None = None, flags: int = 0) -> Rule:
    pattern = re.compile(message, flags) if message is not None else None
    return Rule(kind, frozenset(str(code) for code in codes), pattern)


def _contains(kind: ErrorKind, *needles: str) -> Rule:
    return Rule(kind, message=re.compile("|".join(re.escape(needle) for needle in needles)))


def _pattern(kind: ErrorKind, pattern: str, flags: int = 0) -> Rule:
    return Rule(kind, message=re.compile(pattern, flags))


K = ErrorKind

# https://dev.mysql.com/doc/mysql-errors/8.0/en/server-error-reference.html
_MYSQL: tuple[Rule, ...] = (
    _codes(K.DEADLOCK, 1213),
    _codes(K.LOCK_WAIT_TIMEOUT, 1205),
    _codes(K.TABLE_ALREADY_EXISTS, 1050),
    _codes(K.TABLE_NOT_FOUND, 1051, 1146),
    _codes(K.FOREIGN_KEY_CONSTRAINT_VIOLATION, 1216, 1217, 1451, 1452, 1701),
    _codes(K.UNIQUE_CONSTRAINT_VIOLATION, 1062, 1557, 1569, 1586),
    _codes(K.INVALID_FIELD_NAME, 1054, 1166, 1611),
    _codes(K.AMBIGUOUS_FIELD_NAME, 1052, 1060, 1110),
    _codes(
        K.SYNTAX_ERROR,
        1064, 1149, 1287, 1341, 1342, 1343, 1344, 1382, 1479, 1541, 1554, 1626,
    ),
    _codes(
        K.CONNECTION_FAILURE,
        1044, 1045, 1046, 1049, 1095, 1142, 1143, 1227, 1370, 1429, 2002, 2005, 2006, 2013,
    ),
    _codes(K.NOT_NULL_CONSTRAINT_VIOLATION, 1048, 1121, 1138, 1171, 1252, 1263, 1364, 1566),
    _codes(K.READ_ONLY, 1792, 1836),
    _contains(K.CONNECTION_FAILURE, "MySQL server has gone away", "Lost connection to MySQL server"),
    _contains(K.DEADLOCK, "Deadlock found when trying to get lock"),
)

# SQLSTATE based, https://www.postgresql.org/docs/current/errcodes-appendix.html
_POSTGRESQL: tuple[Rule, ...] = (
    _codes(K.DEADLOCK, "40001", "40P01"),
    # foreign key violations during TRUNCATE are reported as "feature not supported"
    _codes(K.FOREIGN_KEY_CONSTRAINT_VIOLATION, "0A000", message="truncate", flags=re.IGNORECASE),
    _codes(K.NOT_NULL_CONSTRAINT_VIOLATION, "23502"),
    _codes(K.FOREIGN_KEY_CONSTRAINT_VIOLATION, "23503"),
    _codes(K.UNIQUE_CONSTRAINT_VIOLATION, "23505"),
    _codes(K.SYNTAX_ERROR, "42601"),
    _codes(K.AMBIGUOUS_FIELD_NAME, "42702"),
    _codes(K.INVALID_FIELD_NAME, "42703"),
    _codes(K.TABLE_NOT_FOUND, "42P01"),
    _codes(K.TABLE_ALREADY_EXISTS, "42P07"),
    _codes(K.LOCK_WAIT_TIMEOUT, "55P03"),
    _codes(K.READ_ONLY, "25006"),
    _codes(K.CONNECTION_FAILURE, "08000", "08001", "08003", "08004", "08006", "57P01"),
    # some drivers report connection failures with code 7 and the SQLSTATE in the text
    _codes(K.CONNECTION_FAILURE, "7", message=r"SQLSTATE\[08006\]"),
    _contains(
        K.CONNECTION_FAILURE,
        "SQLSTATE[08006]",
        "server closed the connection unexpectedly",
        "could not connect to server",
        "connection is closed",
    ),
)

_ORACLE: tuple[Rule, ...] = (
    _codes(K.UNIQUE_CONSTRAINT_VIOLATION, 1, 2299, 38911),
    _codes(K.INVALID_FIELD_NAME, 904),
    _codes(K.AMBIGUOUS_FIELD_NAME, 918, 960),
    _codes(K.SYNTAX_ERROR, 900, 923),
    _codes(K.TABLE_NOT_FOUND, 942),
    _codes(K.TABLE_ALREADY_EXISTS, 955),
    _codes(K.CONNECTION_FAILURE, 1017, 3113, 3114, 3135, 12545),
    _codes(K.NOT_NULL_CONSTRAINT_VIOLATION, 1400),
    _codes(K.FOREIGN_KEY_CONSTRAINT_VIOLATION, 2266, 2291, 2292),
    _codes(K.DEADLOCK, 60),
    _codes(K.LOCK_WAIT_TIMEOUT, 54),
    _codes(K.READ_ONLY, 16000),
    _pattern(K.CONNECTION_FAILURE, r"DPY-(1001|4011)"),
)

_SQLSERVER: tuple[Rule, ...] = (
    _codes(K.SYNTAX_ERROR, 102, 156),
    _codes(K.INVALID_FIELD_NAME, 207),
    _codes(K.TABLE_NOT_FOUND, 208, 3701, 15151),
    _codes(K.AMBIGUOUS_FIELD_NAME, 209),
    _codes(K.NOT_NULL_CONSTRAINT_VIOLATION, 515),
    _codes(K.FOREIGN_KEY_CONSTRAINT_VIOLATION, 547, 4712),
    _codes(K.DEADLOCK, 1205),
    _codes(K.LOCK_WAIT_TIMEOUT, 1222),
    _codes(K.UNIQUE_CONSTRAINT_VIOLATION, 2601, 2627),
    _codes(K.TABLE_ALREADY_EXISTS, 2714),
    _codes(K.READ_ONLY, 3906),
    _codes(K.CONNECTION_FAILURE, 11001, 18456),
    _pattern(K.CONNECTION_FAILURE, r"Login failed for user|TCP Provider|Communication link failure"),
)

# extended result codes, https://www.sqlite.org/rescode.html
_SQLITE: tuple[Rule, ...] = (
    _codes(K.UNIQUE_CONSTRAINT_VIOLATION, 1555, 2067),
    _codes(K.FOREIGN_KEY_CONSTRAINT_VIOLATION, 787),
    _codes(K.NOT_NULL_CONSTRAINT_VIOLATION, 1299),
    _codes(K.LOCK_WAIT_TIMEOUT, 5, 6, 261, 262),
    _codes(K.READ_ONLY, 8, 264, 520, 776, 1032),
    _codes(K.CONNECTION_FAILURE, 14, 270, 526, 782, 1038),
    _contains(K.LOCK_WAIT_TIMEOUT, "database is locked"),
    _contains(
        K.UNIQUE_CONSTRAINT_VIOLATION,
        "must be unique",
        "is not unique",
        "are not unique",
        "UNIQUE constraint failed",
    ),
    _contains(K.NOT_NULL_CONSTRAINT_VIOLATION, "may not be NULL", "NOT NULL constraint failed"),
    _contains(K.TABLE_NOT_FOUND, "no such table:"),
    _contains(K.TABLE_ALREADY_EXISTS, "already exists"),
    _contains(K.INVALID_FIELD_NAME, "has no column named", "no such column:"),
    _contains(K.AMBIGUOUS_FIELD_NAME, "ambiguous column name"),
    _contains(K.SYNTAX_ERROR, "syntax error"),
    _contains(K.READ_ONLY, "attempt to write a readonly database"),
    _contains(K.CONNECTION_FAILURE, "unable to open database file"),
    _contains(K.FOREIGN_KEY_CONSTRAINT_VIOLATION, "FOREIGN KEY constraint failed"),
)

# Sybase drivers rarely surface a stable code, so the table works on messages
_SYBASE: tuple[Rule, ...] = (
    _pattern(K.UNIQUE_CONSTRAINT_VIOLATION, r"^Attempt to insert duplicate key row in object", re.IGNORECASE),
    _pattern(K.TABLE_NOT_FOUND, r"not found\. Specify owner\.objectname"),
    _pattern(K.TABLE_ALREADY_EXISTS, r"There is already an object named "),
    _pattern(
        K.FOREIGN_KEY_CONSTRAINT_VIOLATION,
        r"Foreign key constraint violation occurred"
        r"|Dependent foreign key constraint violation in a referential integrity constraint"
        r"|there are referential constraints defined",
        re.IGNORECASE,
    ),
    _pattern(K.NOT_NULL_CONSTRAINT_VIOLATION, r"The column value in table .* does not allow null values", re.IGNORECASE),
    _pattern(K.INVALID_FIELD_NAME, r"Invalid column name", re.IGNORECASE),
    _pattern(K.AMBIGUOUS_FIELD_NAME, r"Ambiguous column name", re.IGNORECASE),
    _pattern(K.SYNTAX_ERROR, r"Incorrect syntax near", re.IGNORECASE),
    _pattern(K.DEADLOCK, r"Your server command .* was deadlocked", re.IGNORECASE),
    _pattern(K.CONNECTION_FAILURE, r"Sybase:\s+Unable to connect", re.IGNORECASE),
)

_INFORMIX: tuple[Rule, ...] = (
    _codes(K.UNIQUE_CONSTRAINT_VIOLATION, -239, -268),
    _codes(K.TABLE_NOT_FOUND, -206),
    _codes(K.TABLE_ALREADY_EXISTS, -310),
    _codes(K.FOREIGN_KEY_CONSTRAINT_VIOLATION, -691, -692, -26018),
    _codes(K.NOT_NULL_CONSTRAINT_VIOLATION, -391),
    _codes(K.INVALID_FIELD_NAME, -217),
    _codes(K.AMBIGUOUS_FIELD_NAME, -324),
    _codes(K.SYNTAX_ERROR, -201),
    _codes(K.CONNECTION_FAILURE, -908, -930, -951),
    _codes(K.DEADLOCK, -143),
    _codes(K.LOCK_WAIT_TIMEOUT, -154),
    # access denied errors often arrive without the native code
    _pattern(
        K.CONNECTION_FAILURE,
        r"Incorrect password or user|Cannot connect to database server"
        r"|Attempt to connect to database server (.*) failed",
    ),
)

_DB2: tuple[Rule, ...] = (
    _codes(K.SYNTAX_ERROR, -104),
    _codes(K.AMBIGUOUS_FIELD_NAME, -203),
    _codes(K.TABLE_NOT_FOUND, -204),
    _codes(K.INVALID_FIELD_NAME, -206),
    _codes(K.NOT_NULL_CONSTRAINT_VIOLATION, -407),
    _codes(K.FOREIGN_KEY_CONSTRAINT_VIOLATION, -530, -531, -532, -20356),
    _codes(K.TABLE_ALREADY_EXISTS, -601),
    _codes(K.UNIQUE_CONSTRAINT_VIOLATION, -803),
    _codes(K.DEADLOCK, -911),
    _codes(K.LOCK_WAIT_TIMEOUT, -913),
    _codes(K.CONNECTION_FAILURE, -1336, -30081, -30082),
    # ibm_db embeds SQLCODE and SQLSTATE in the message text
    _pattern(K.UNIQUE_CONSTRAINT_VIOLATION, r"SQLCODE=-803\b|SQLSTATE=23505"),
    _pattern(K.TABLE_NOT_FOUND, r"SQLCODE=-204\b|SQLSTATE=42704"),
    _pattern(K.DEADLOCK, r"SQLCODE=-911\b"),
    _pattern(K.CONNECTION_FAILURE, r"SQLCODE=-3008[12]\b|SQLSTATE=08001"),
)

_SQLANYWHERE: tuple[Rule, ...] = (
    _codes(K.DEADLOCK, -306, -307, -684),
    _codes(K.LOCK_WAIT_TIMEOUT, -210, -1175, -1281),
    _codes(K.CONNECTION_FAILURE, -100, -103, -832),
    _codes(K.INVALID_FIELD_NAME, -143),
    _codes(K.UNIQUE_CONSTRAINT_VIOLATION, -193, -196),
    _codes(K.FOREIGN_KEY_CONSTRAINT_VIOLATION, -194, -198),
    _codes(K.AMBIGUOUS_FIELD_NAME, -144),
    _codes(K.NOT_NULL_CONSTRAINT_VIOLATION, -184, -195),
    _codes(K.SYNTAX_ERROR, -131),
    _codes(K.TABLE_ALREADY_EXISTS, -110),
    _codes(K.TABLE_NOT_FOUND, -141, -1041),
)

_FIREBIRD: tuple[Rule, ...] = (
    _codes(K.SYNTAX_ERROR, -104),
    _codes(K.TABLE_NOT_FOUND, -204, message=r"dynamic sql error.*table unknown", flags=re.IGNORECASE | re.DOTALL),
    _codes(
        K.AMBIGUOUS_FIELD_NAME,
        -204,
        message=r"dynamic sql error.*ambiguous field name",
        flags=re.IGNORECASE | re.DOTALL,
    ),
    _codes(
        K.INVALID_FIELD_NAME,
        -206,
        message=r"dynamic sql error.*(table|column) unknown",
        flags=re.IGNORECASE | re.DOTALL,
    ),
    _codes(K.UNIQUE_CONSTRAINT_VIOLATION, -803),
    _codes(K.FOREIGN_KEY_CONSTRAINT_VIOLATION, -530),
    _codes(
        K.TABLE_ALREADY_EXISTS,
        -607,
        message=r"unsuccessful metadata update Table.*already exists",
        flags=re.IGNORECASE | re.DOTALL,
    ),
    _codes(K.CONNECTION_FAILURE, -902),
    _codes(K.DEADLOCK, -913),
    _pattern(K.DEADLOCK, r"\bdeadlock\b", re.IGNORECASE),
)

del K

CLASSIFICATION_TABLES: dict[DatabaseBackend, tuple[Rule, ...]] = {
    DatabaseBackend.MYSQL: _MYSQL,
    DatabaseBackend.POSTGRESQL: _POSTGRESQL,
    DatabaseBackend.ORACLE: _ORACLE,
    DatabaseBackend.SQLSERVER: _SQLSERVER,
    DatabaseBackend.SQLITE: _SQLITE,
    DatabaseBackend.SYBASE: _SYBASE,
    DatabaseBackend.INFORMIX: _INFORMIX,
    DatabaseBackend.DB2: _DB2,
    DatabaseBackend.SQLANYWHERE: _SQLANYWHERE,
    DatabaseBackend.FIREBIRD: _FIREBIRD,
}


def _candidate_codes(code: Any) -> frozenset[str]:
    """All spellings under which *code* may appear in a table."""
    if code is None:
        return frozenset()
    raw = str(code).strip()
    if not raw:
        return frozenset()
    candidates = {raw}
    oracle = _ORACLE_CODE.match(raw)
    if oracle is not None:
        raw = oracle.group(1)
        candidates.add(raw)
    if _INTEGER_CODE.match(raw):
        candidates.add(str(int(raw)))
    return frozenset(candidates)


def _resolve_backend(backend: DatabaseBackend | str) -> DatabaseBackend | None:
    if isinstance(backend, DatabaseBackend):
        return backend
    try:
        return DatabaseBackend(str(backend).lower())
    except ValueError:
        return None


def classify(
    backend: DatabaseBackend | str,
    code: int | str | None,
    message: str | None = None,
) -> ErrorKind:
    """Classify a native driver error.

    Args:
        backend: Backend the error came from.
        code: Native error code or SQLSTATE, if the driver surfaced one.
        message: Driver error message.

    Returns:
        The matching kind. Code rules are tried before message rules;
        ``ErrorKind.OTHER`` is returned when nothing matches.
    """
    resolved = _resolve_backend(backend)
    if resolved is None:
        return ErrorKind.OTHER

    rules = CLASSIFICATION_TABLES.get(resolved, ())
    codes = _candidate_codes(code)
    text = message if isinstance(message, str) else ("" if message is None else str(message))

    if codes:
        for rule in rules:
            if rule.is_code_rule and rule.matches(codes, text):
                return rule.kind
    for rule in rules:
        if not rule.is_code_rule and rule.matches(codes, text):
            return rule.kind
    return ErrorKind.OTHER


# Attributes holding the native code, most specific first, per backend
_CODE_ATTRIBUTES: dict[DatabaseBackend, tuple[str, ...]] = {
    DatabaseBackend.POSTGRESQL: ("sqlstate", "pgcode"),
    DatabaseBackend.MYSQL: ("errno",),
    DatabaseBackend.SQLITE: ("sqlite_errorcode",),
    DatabaseBackend.ORACLE: ("code",),
}
_DEFAULT_CODE_ATTRIBUTES: tuple[str, ...] = ("code", "errno", "sqlcode", "sqlstate")


def extract_error_code(backend: DatabaseBackend | str, exc: BaseException) -> int | str | None:
    """Pull the native error code out of a driver exception, if it has one."""
    resolved = _resolve_backend(backend)
    attributes = _CODE_ATTRIBUTES.get(resolved, _DEFAULT_CODE_ATTRIBUTES) if resolved else _DEFAULT_CODE_ATTRIBUTES

    for attribute in attributes:
        value = getattr(exc, attribute, None)
        if isinstance(value, (int, str)) and value != "":
            return value

    if exc.args:
        first = exc.args[0]
        # oracledb wraps an error object carrying the ORA number
        code = getattr(first, "code", None)
        if isinstance(code, (int, str)):
            return code
        if isinstance(first, int) and not isinstance(first, bool):
            return first
    return None


def classify_exception(
    backend: DatabaseBackend | str,
    exc: BaseException,
    message: str | None = None,
) -> ErrorClassification:
    """Classify a raised driver exception.

    Args:
        backend: Backend the exception came from.
        exc: The driver exception.
        message: Portable message to report. Defaults to a generic driver
            failure message built from the exception text.
    """
    text = str(exc)
    kind = classify(backend, extract_error_code(backend, exc), text)
    if message is None:
        message = f"An exception occurred in driver: {text}"
    return ErrorClassification(kind, message, exc)
