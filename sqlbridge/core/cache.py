"""Query result caching.

Results are stored in an external key-value store in two levels. The outer
*cache key* names a slot; the slot holds a mapping of *real key* to rows, where
the real key identifies one exact (sql, params, types, connection)
combination. Queries sharing a cache key are retrieved independently and are
invalidated together by dropping the slot.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

Rows = list[Any]
CacheSlot = dict[str, Rows]


@runtime_checkable
class CacheStore(Protocol):
    """External key-value store holding cache slots.

    ``lifetime`` is in seconds; ``0`` means the entry does not expire.
    """

    def get(self, key: str) -> CacheSlot | None: ...

    def put(self, key: str, value: CacheSlot, lifetime: int = 0) -> None: ...

    def contains(self, key: str) -> bool: ...

    def delete(self, key: str) -> None: ...


class ArrayCacheStore:
    """In-process cache store.

    Args:
        clock: Returns the current time in seconds. Defaults to
            ``time.monotonic``.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[CacheSlot, float | None]] = {}

    def _live(self, key: str) -> CacheSlot | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def get(self, key: str) -> CacheSlot | None:
        return self._live(key)

    def put(self, key: str, value: CacheSlot, lifetime: int = 0) -> None:
        expires_at = self._clock() + lifetime if lifetime > 0 else None
        self._data[key] = (value, expires_at)

    def contains(self, key: str) -> bool:
        return self._live(key) is not None

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


# Connection parameters that never take part in the connection hash
_VOLATILE_CONNECTION_PARAMS = frozenset({"password", "platform"})


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return {"__bytes__": bytes(value).hex()}
    return {"__repr__": repr(value)}


def _serialize(value: Any, *, sort_keys: bool = False) -> str:
    return json.dumps(value, default=_json_default, sort_keys=sort_keys, separators=(",", ":"))


def _is_plain(value: Any) -> bool:
    if value is None or isinstance(value, (str, int, float, bool)):
        return True
    if isinstance(value, (list, tuple)):
        return all(_is_plain(item) for item in value)
    if isinstance(value, Mapping):
        return all(isinstance(key, str) and _is_plain(item) for key, item in value.items())
    return False


def _connection_identity(connection_params: Mapping[str, Any] | None) -> dict[str, Any]:
    """Hashable subset of *connection_params*.

    Credentials and platform objects are removed, as is any value without a
    stable JSON form.
    """
    return {
        key: value
        for key, value in (connection_params or {}).items()
        if key not in _VOLATILE_CONNECTION_PARAMS and _is_plain(value)
    }


@dataclass(frozen=True)
class QueryCacheProfile:
    """How one query is cached.

    Attributes:
        lifetime: Seconds to keep the slot, ``0`` for no expiry.
        cache_key: Explicit slot name. When ``None`` the slot is derived from
            the query itself.
        store: Store to use instead of the connection's default store.
    """

    lifetime: int = 0
    cache_key: str | None = None
    store: CacheStore | None = None

    def generate_cache_keys(
        self,
        sql: str,
        params: Any,
        types: Any,
        connection_params: Mapping[str, Any] | None = None,
    ) -> tuple[str, str]:
        """Return ``(cache_key, real_key)`` for a query.

        ``connection_params`` is hashed so that no connection detail appears in
        the real key. The password and platform entries are left out of the
        hash, so rotating credentials keeps existing cache entries valid.
        """
        connection_hash = hashlib.sha256(
            _serialize(_connection_identity(connection_params), sort_keys=True).encode()
        ).hexdigest()
        real_key = (
            f"query={sql}"
            f"&params={_serialize(params)}"
            f"&types={_serialize(types)}"
            f"&connectionParams={connection_hash}"
        )
        cache_key = self.cache_key
        if cache_key is None:
            cache_key = hashlib.sha1(real_key.encode()).hexdigest()
        return cache_key, real_key

    def with_cache_key(self, cache_key: str | None) -> QueryCacheProfile:
        return replace(self, cache_key=cache_key)

    def with_lifetime(self, lifetime: int) -> QueryCacheProfile:
        return replace(self, lifetime=lifetime)

    def with_store(self, store: CacheStore | None) -> QueryCacheProfile:
        return replace(self, store=store)


class ResultCache:
    """Lazy population of cache slots in a :class:`CacheStore`."""

    def __init__(self, store: CacheStore) -> None:
        self._store = store

    @property
    def store(self) -> CacheStore:
        return self._store

    def fetch_or_populate(
        self,
        cache_key: str,
        real_key: str,
        lifetime: int,
        producer: Callable[[], Rows],
    ) -> Rows:
        """Return the rows cached under ``(cache_key, real_key)``.

        A slot holding *real_key* is a hit even when its rows are empty. On a
        miss *producer* runs once and its rows are added to the slot, keeping
        rows already stored there for other real keys. Errors raised by
        *producer* propagate and leave the store unchanged.
        """
        slot = self._store.get(cache_key)
        if slot is not None and real_key in slot:
            logger.debug("Result cache hit for %s", cache_key)
            return list(slot[real_key])

        logger.debug("Result cache miss for %s", cache_key)
        rows = producer()
        updated: CacheSlot = dict(slot) if slot is not None else {}
        updated[real_key] = list(rows)
        self._store.put(cache_key, updated, lifetime)
        return list(rows)

    cached_fetch = fetch_or_populate

    def invalidate(self, cache_key: str) -> None:
        """Drop the slot and every result stored in it."""
        self._store.delete(cache_key)
