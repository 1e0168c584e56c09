"""Per-user memoization of materialized sources, guarded for concurrent readers."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
from typing import Callable, Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ANY_PARAMS = object()


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """One materialized value and the query parameters it was built for."""

    params: Hashable
    value: T


class PerUserCache(Generic[T]):
    """Holds at most one value per user, tagged with the query that produced it.

    Each user has its own lock. A lookup with parameters that differ from the
    cached entry invalidates that entry and recomputes under the lock before
    publishing, so readers never observe a partially built value.
    """

    def __init__(self) -> None:
        self._entries: dict[Hashable, CacheEntry[T]] = {}
        self._locks: dict[Hashable, threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, user_id: Hashable, params: Hashable, loader: Callable[[], T]) -> T:
        """Return the cached value for ``(user_id, params)``, loading it on a miss."""
        with self._user_lock(user_id):
            entry = self._entries.get(user_id)
            if entry is not None and entry.params == params:
                logger.debug("Cache hit for user %s (%r)", user_id, params)
                return entry.value
            if entry is not None:
                logger.debug(
                    "Query for user %s changed from %r to %r", user_id, entry.params, params
                )
                self._drop(user_id)

            logger.debug("Cache miss for user %s (%r); loading", user_id, params)
            value = loader()
            with self._guard:
                self._entries[user_id] = CacheEntry(params, value)
            return value

    def peek(self, user_id: Hashable, params: Hashable) -> T | None:
        """Cached value for ``(user_id, params)`` without loading; ``None`` on a miss."""
        with self._user_lock(user_id):
            entry = self._entries.get(user_id)
            if entry is None or entry.params != params:
                return None
            return entry.value

    def invalidate(self, user_id: Hashable, params: Hashable = _ANY_PARAMS) -> bool:
        """Drop a user's entry; with ``params``, only if it was built for them."""
        with self._user_lock(user_id):
            entry = self._entries.get(user_id)
            if entry is None:
                return False
            if params is not _ANY_PARAMS and entry.params != params:
                return False
            self._drop(user_id)
            return True

    def clear(self) -> None:
        """Drop every entry and forget the per-user locks of idle users."""
        with self._guard:
            users = list(self._locks)
        for user_id in users:
            self.invalidate(user_id)
        with self._guard:
            for user_id in users:
                lock = self._locks.get(user_id)
                if lock is not None and not lock.locked() and user_id not in self._entries:
                    del self._locks[user_id]

    def keys(self) -> list[tuple[Hashable, Hashable]]:
        """Snapshot of cached ``(user_id, params)`` pairs."""
        with self._guard:
            return [(user_id, entry.params) for user_id, entry in self._entries.items()]

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, tuple) or len(key) != 2:
            return False
        user_id, params = key
        with self._guard:
            entry = self._entries.get(user_id)
        return entry is not None and entry.params == params

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _user_lock(self, user_id: Hashable) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(user_id, threading.Lock())

    def _drop(self, user_id: Hashable) -> None:
        with self._guard:
            self._entries.pop(user_id, None)
        logger.debug("Invalidated cache entry for user %s", user_id)
