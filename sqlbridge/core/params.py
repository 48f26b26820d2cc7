"""SQL parameter expansion.

Rewrites a parameterized statement into the flat positional form consumed by
drivers: named ``:name`` placeholders become ``?`` and array parameters are
expanded into one ``?`` per element (``IN (?)`` bound to ``[1, 2, 3]`` becomes
``IN (?, ?, ?)``). Placeholders inside literals, quoted identifiers and
comments are left alone.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from sqlbridge.core.enums import ParameterType
from sqlbridge.core.exceptions import (
    InvalidArrayParameterError,
    MissingNamedParameter,
    MissingPositionalParameter,
    ParameterStyleMismatchError,
)
from sqlbridge.core.scanner import scan

Params = Mapping[Any, Any] | list[Any] | tuple[Any, ...] | None
Types = Mapping[Any, Any] | list[Any] | tuple[Any, ...] | None


@dataclass(frozen=True)
class Query:
    """A statement with its parameters and parameter types."""

    sql: str
    params: list[Any] = field(default_factory=list)
    types: list[ParameterType] = field(default_factory=list)


@dataclass(frozen=True)
class ParameterSet:
    """Bound values of one call, either all positional or all named.

    Positional values are keyed by their 0-based index, named values by name
    without the leading colon.
    """

    values: dict[int | str, Any]
    named: bool = False

    @classmethod
    def of(cls, params: Any) -> ParameterSet:
        """Build a ParameterSet, rejecting a mix of int and str keys."""
        coerced = coerce_params(params)
        if coerced is None:
            return cls({})
        if isinstance(coerced, tuple):
            return cls(dict(enumerate(coerced)))

        key_types = {type(key) for key in coerced}
        if not key_types:
            return cls({})
        if key_types == {int}:
            return cls(dict(coerced))
        if key_types == {str}:
            return cls({_strip_colon(key): value for key, value in coerced.items()}, named=True)
        raise ParameterStyleMismatchError(
            f"keys of types {sorted(t.__name__ for t in key_types)}"
        )

    def __len__(self) -> int:
        return len(self.values)

    def __contains__(self, key: object) -> bool:
        return key in self.values

    def __getitem__(self, key: int | str) -> Any:
        return self.values[key]


def _strip_colon(name: str) -> str:
    # keys may be given as ":name" for compatibility
    return name[1:] if name.startswith(":") else name


def _to_parameter_type(value: Any) -> ParameterType | None:
    if value is None or isinstance(value, ParameterType):
        return value
    return ParameterType(value)


def _type_map(types: Types, named: bool) -> dict[int | str, ParameterType | None]:
    if types is None:
        return {}
    if isinstance(types, Mapping):
        if named:
            return {
                _strip_colon(key) if isinstance(key, str) else key: _to_parameter_type(value)
                for key, value in types.items()
            }
        return {key: _to_parameter_type(value) for key, value in types.items()}
    return {index: _to_parameter_type(value) for index, value in enumerate(types)}


def _as_array(key: int | str, value: Any) -> list[Any]:
    if isinstance(value, (str, bytes, bytearray, Mapping)) or not isinstance(value, Iterable):
        raise InvalidArrayParameterError(key, type(value).__name__)
    return list(value)


def expand(
    sql: str,
    params: Params = None,
    types: Types = None,
    *,
    backslash_escapes: bool = False,
) -> Query:
    """Rewrite *sql* and its bindings into flat positional form.

    Args:
        sql: Statement with ``?`` or ``:name`` placeholders.
        params: Positional sequence, or a mapping keyed by index or by name.
        types: Parameter types keyed like *params*. Missing entries bind as
            ``ParameterType.STRING``. Array types expand their value.
        backslash_escapes: Literal escaping rule of the target backend.

    Returns:
        A new Query whose ``params`` and ``types`` are aligned, 0-based lists
        in the order their placeholders appear in ``sql``.

    Raises:
        MissingPositionalParameter: A ``?`` has no value at its index.
        MissingNamedParameter: A ``:name`` has no value under its name.
        ParameterStyleMismatchError: *params* mixes int and str keys.
        InvalidArrayParameterError: An array type is bound to a non-sequence.
    """
    bound = ParameterSet.of(params)
    placeholders = scan(sql, backslash_escapes=backslash_escapes)
    if not placeholders:
        return Query(sql)

    type_map = _type_map(types, bound.named)
    parts: list[str] = []
    out_params: list[Any] = []
    out_types: list[ParameterType] = []
    positional_index = 0
    last = 0

    for placeholder in placeholders:
        key: int | str
        if placeholder.is_positional:
            key = positional_index
            positional_index += 1
            if key not in bound:
                raise MissingPositionalParameter(key)
        else:
            key = placeholder.text[1:]
            if key not in bound:
                raise MissingNamedParameter(key)

        parts.append(sql[last : placeholder.position])
        last = placeholder.end
        value = bound[key]
        param_type = type_map.get(key)

        if param_type is not None and param_type.is_array:
            items = _as_array(key, value)
            if not items:
                parts.append("NULL")
                continue
            parts.append(", ".join(["?"] * len(items)))
            out_params.extend(items)
            out_types.extend([param_type.element_type] * len(items))
            continue

        parts.append("?")
        out_params.append(value)
        out_types.append(param_type or ParameterType.STRING)

    parts.append(sql[last:])
    return Query("".join(parts), out_params, out_types)


def to_paramstyle(sql: str, paramstyle: str, *, backslash_escapes: bool = False) -> str:
    """Convert the ``?`` placeholders of an expanded statement to *paramstyle*.

    Supported styles are the DB-API ``qmark`` (no change), ``format`` and
    ``pyformat`` (``%s``, with every literal ``%`` doubled) and ``numeric``
    (``:1``, ``:2``, ...).
    """
    if paramstyle == "qmark":
        return sql
    return _convert_placeholders(sql, paramstyle, backslash_escapes)


@lru_cache(maxsize=256)
def _convert_placeholders(sql: str, paramstyle: str, backslash_escapes: bool) -> str:
    if paramstyle in ("format", "pyformat"):
        escape = True
    elif paramstyle == "numeric":
        escape = False
    else:
        raise ValueError(f"Unsupported paramstyle: {paramstyle!r}")

    parts: list[str] = []
    last = 0
    number = 0
    for placeholder in scan(sql, backslash_escapes=backslash_escapes):
        if not placeholder.is_positional:
            continue
        segment = sql[last : placeholder.position]
        parts.append(segment.replace("%", "%%") if escape else segment)
        number += 1
        parts.append("%s" if escape else f":{number}")
        last = placeholder.end

    tail = sql[last:]
    parts.append(tail.replace("%", "%%") if escape else tail)
    return "".join(parts)


def _format_binary(data: bytes | bytearray | memoryview) -> str:
    return '"' + "".join(f"\\x{byte:02x}" for byte in bytes(data)) + '"'


def _format_value(value: Any) -> str:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _format_binary(value)
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return json.dumps(str(value))


def format_params(params: Iterable[Any] | Mapping[Any, Any]) -> str:
    """Human-readable rendering of bound values for logs and error messages.

    Binary values are shown as hex escapes, e.g. ``"\\x00\\xff"``.
    """
    if isinstance(params, Mapping):
        return "{" + ", ".join(f"{json.dumps(str(k))}: {_format_value(v)}" for k, v in params.items()) + "}"
    return "[" + ", ".join(_format_value(value) for value in params) + "]"


def coerce_params(
    params: dict[Any, Any] | Mapping[Any, Any] | tuple[Any, ...] | list[Any] | Any,
) -> Mapping[Any, Any] | tuple[Any, ...] | None:
    """Normalize *params* to a mapping, tuple, or None.

    * ``None`` / mapping → returned as-is.
    * ``tuple`` / ``list`` → converted to ``tuple`` (positional binding).
    * Any other scalar → wrapped in a single-element tuple.
    """
    if params is None or isinstance(params, Mapping):
        return params
    if isinstance(params, (tuple, list)):
        return tuple(params)
    return (params,)
