"""Placeholder scanner.

Locates the bound-parameter placeholders of a SQL statement: positional ``?``
and named ``:name``. Anything inside string literals, quoted identifiers and
comments is skipped so that its contents are never mistaken for a placeholder.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache

_NAME_CHARS = re.compile(r"[A-Za-z0-9_]+")

# ``ARRAY[...]`` is a PostgreSQL array constructor, not a bracket identifier
_ARRAY_KEYWORD = re.compile(r"\bARRAY\s*$", re.IGNORECASE)


@dataclass(frozen=True)
class Placeholder:
    """A placeholder occurrence: its offset in the statement and its text."""

    position: int
    text: str

    @property
    def name(self) -> str | None:
        """Parameter name without the colon, or ``None`` for ``?``."""
        if self.text == "?":
            return None
        return self.text[1:]

    @property
    def is_positional(self) -> bool:
        return self.text == "?"

    @property
    def end(self) -> int:
        return self.position + len(self.text)


def _skip_literal(sql: str, start: int, quote: str, backslash_escapes: bool) -> int:
    """Return the offset just past the literal opened at *start*.

    A doubled quote never closes the literal. With *backslash_escapes* a
    backslash consumes the following character. An unterminated literal runs
    to the end of the statement.
    """
    n = len(sql)
    j = start + 1
    while j < n:
        ch = sql[j]
        if backslash_escapes and ch == "\\":
            j += 2
            continue
        if ch == quote:
            if j + 1 < n and sql[j + 1] == quote:
                j += 2  # doubled quote escape
                continue
            return j + 1
        j += 1
    return n


def _skip_run(sql: str, start: int, ch: str) -> int:
    """Return the offset just past a run of *ch* starting at *start*."""
    j = start
    while j < len(sql) and sql[j] == ch:
        j += 1
    return j


@lru_cache(maxsize=512)
def _scan(sql: str, backslash_escapes: bool) -> tuple[Placeholder, ...]:
    found: list[Placeholder] = []
    i = 0
    n = len(sql)

    while i < n:
        ch = sql[i]

        if ch in ("'", '"'):
            i = _skip_literal(sql, i, ch, backslash_escapes)
        elif ch == "`":
            end = sql.find("`", i + 1)
            i = n if end == -1 else end + 1
        elif ch == "[" and not _ARRAY_KEYWORD.search(sql, 0, i):
            end = sql.find("]", i + 1)
            i = i + 1 if end == -1 else end + 1
        elif sql.startswith("--", i):
            end = sql.find("\n", i)
            i = n if end == -1 else end
        elif sql.startswith("/*", i):
            end = sql.find("*/", i + 2)
            i = i + 1 if end == -1 else end + 2
        elif ch == ":":
            if i + 1 < n and sql[i + 1] == ":":
                i = _skip_run(sql, i, ":")  # ::typecast and similar
                continue
            m = _NAME_CHARS.match(sql, i + 1)
            if m is None:
                i += 1
                continue
            found.append(Placeholder(i, sql[i : m.end()]))
            i = m.end()
        elif ch == "?":
            run_end = _skip_run(sql, i, "?")
            if run_end - i == 1:
                found.append(Placeholder(i, "?"))
            # ``??`` and longer runs are operators (e.g. PostgreSQL JSON)
            i = run_end
        else:
            i += 1

    return tuple(found)


def scan(sql: str, *, backslash_escapes: bool = False) -> list[Placeholder]:
    """Return the unquoted placeholders of *sql* in left-to-right order.

    Args:
        sql: Statement text.
        backslash_escapes: Treat ``\\`` inside string literals as an escape
            character (MySQL-family dialects). When false only doubled quotes
            escape a quote, as in standard SQL.
    """
    if "?" not in sql and ":" not in sql:
        return []
    return list(_scan(sql, backslash_escapes))


def positional_positions(sql: str, *, backslash_escapes: bool = False) -> list[int]:
    """Offsets of the positional placeholders of *sql*, 0-based in order."""
    return [p.position for p in scan(sql, backslash_escapes=backslash_escapes) if p.is_positional]


def named_positions(sql: str, *, backslash_escapes: bool = False) -> dict[int, str]:
    """Map of offset to parameter name for the named placeholders of *sql*."""
    return {
        p.position: p.text[1:]
        for p in scan(sql, backslash_escapes=backslash_escapes)
        if not p.is_positional
    }
