"""Read cache keyed by (resource, filters, user).

One ``QueryCache`` is owned by the application and handed to whoever needs
it. Mutations do not reach into it; they return the resource groups they
touched and the caller passes those to ``invalidate``.
"""
from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass, replace
from typing import Any

from physio_stock.core.errors import LedgerError, TransportError


logger = logging.getLogger(__name__)

QueryKey = tuple[str, tuple[tuple[str, Hashable], ...], Hashable]


def make_key(resource: str, user_id: Hashable, **filters: Hashable) -> QueryKey:
    return (resource, tuple(sorted((k, v) for k, v in filters.items() if v is not None)), user_id)


@dataclass(frozen=True)
class QueryState:
    data: Any = None
    is_loading: bool = False
    error: str | None = None
    updated_at: float | None = None
    is_stale: bool = True

    @property
    def is_idle(self) -> bool:
        return self.updated_at is None and self.error is None and not self.is_loading


@dataclass
class _Entry:
    state: QueryState
    invalidated: bool = False
    # Bumped by every invalidation, so a load that overlaps one is not stored as fresh.
    generation: int = 0


class QueryCache:
    def __init__(
        self,
        stale_time: float = 300,
        retry: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.stale_time = stale_time
        self.retry = retry
        self.clock = clock
        self._entries: dict[QueryKey, _Entry] = {}
        self._lock = threading.Lock()

    def _fresh(self, entry: _Entry) -> bool:
        updated_at = entry.state.updated_at
        if entry.invalidated or updated_at is None or entry.state.error is not None:
            return False
        return self.clock() - updated_at < self.stale_time

    def _store(self, key: QueryKey, state: QueryState, generation: int, invalidated: bool = False) -> QueryState:
        with self._lock:
            current = self._entries.get(key)
            if current is None or current.generation != generation:
                invalidated = True
                generation = current.generation if current is not None else 0
            self._entries[key] = _Entry(state=state, invalidated=invalidated, generation=generation)
        if invalidated:
            state = replace(state, is_stale=True)
        return state

    def peek(self, key: QueryKey) -> QueryState:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return QueryState()
            return replace(entry.state, is_stale=not self._fresh(entry))

    def fetch(self, key: QueryKey, loader: Callable[[], Any], enabled: bool = True) -> QueryState:
        """Serve a fresh cached read or run ``loader`` (with retries) and store it.

        Data loaded while the key was invalidated is returned to this caller
        but stays stale, so the next fetch loads again.
        """
        if not enabled:
            return QueryState()

        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._fresh(entry):
                return replace(entry.state, is_stale=False)
            previous = entry.state if entry is not None else QueryState()
            generation = entry.generation if entry is not None else 0
            self._entries[key] = _Entry(
                state=replace(previous, is_loading=True), invalidated=True, generation=generation
            )

        error: LedgerError | None = None
        try:
            for attempt in range(self.retry + 1):
                try:
                    data = loader()
                except TransportError as exc:
                    error = exc
                    logger.warning("Query %s failed (attempt %s): %s", key[0], attempt + 1, exc.message)
                    continue
                except LedgerError as exc:
                    # Not found and similar answers will not change on retry.
                    error = exc
                    break
                return self._store(key, QueryState(data=data, updated_at=self.clock(), is_stale=False), generation)
        except BaseException:
            self._store(key, replace(previous, is_loading=False, is_stale=True), generation, invalidated=True)
            raise

        state = replace(previous, is_loading=False, error=error.message, is_stale=True)
        return self._store(key, state, generation, invalidated=True)

    def invalidate(self, *resources: str) -> list[QueryKey]:
        with self._lock:
            affected = [key for key in self._entries if key[0] in resources]
            for key in affected:
                entry = self._entries[key]
                entry.invalidated = True
                entry.generation += 1
        if affected:
            logger.debug("Invalidated %s cached queries for %s", len(affected), ", ".join(resources))
        return affected

    def clear(self, user_id: Hashable | None = None) -> None:
        with self._lock:
            if user_id is None:
                self._entries.clear()
                return
            for key in [key for key in self._entries if key[2] == user_id]:
                del self._entries[key]
