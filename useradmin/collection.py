"""Client-side snapshot of the remote users collection."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import Callable, Generic, Iterable, List, Literal, Optional, Sequence, Tuple, TypeVar

from .client import TransportError


logger = logging.getLogger("useradmin.collection")

T = TypeVar("T")

CollectionStatus = Literal["idle", "loading", "loaded"]


@dataclass(frozen=True)
class CollectionState(Generic[T]):
    """The last fetched list and the status of the newest fetch.

    ``ticket`` identifies the newest fetch issued; only its completion may
    replace ``items``.
    """

    status: CollectionStatus = "idle"
    items: Tuple[T, ...] = ()
    ticket: int = 0
    error: Optional[str] = None


def begin_fetch(state: CollectionState[T]) -> Tuple[CollectionState[T], int]:
    ticket = state.ticket + 1
    return replace(state, status="loading", ticket=ticket, error=None), ticket


def fetch_succeeded(state: CollectionState[T], ticket: int, items: Iterable[T]) -> CollectionState[T]:
    if ticket != state.ticket:
        return state
    return replace(state, status="loaded", items=tuple(items), error=None)


def fetch_failed(state: CollectionState[T], ticket: int, message: str) -> CollectionState[T]:
    if ticket != state.ticket:
        return state
    return replace(state, status="idle", error=message)


class CollectionStore(Generic[T]):
    """Refetches the whole collection on demand.

    There is no incremental patching: every refresh replaces the snapshot
    with the server's list, in server order.
    """

    def __init__(
        self,
        fetch: Callable[[], Sequence[T]],
        *,
        on_change: Optional[Callable[[CollectionState[T]], None]] = None,
    ) -> None:
        self._fetch = fetch
        self._on_change = on_change
        self._state: CollectionState[T] = CollectionState()
        self._closed = False
        self._lock = threading.RLock()

    @property
    def state(self) -> CollectionState[T]:
        with self._lock:
            return self._state

    @property
    def items(self) -> List[T]:
        return list(self.state.items)

    @property
    def closed(self) -> bool:
        return self._closed

    def refresh(self) -> CollectionState[T]:
        """Fetch the collection and apply the result if it is still current.

        :class:`TransportError` propagates after the failure is recorded.
        """

        with self._lock:
            if self._closed:
                return self._state
            self._state, ticket = begin_fetch(self._state)
            loading = self._state
        self._notify(loading)

        try:
            items = list(self._fetch())
        except TransportError as exc:
            self._apply(ticket, lambda state: fetch_failed(state, ticket, str(exc)))
            raise

        self._apply(ticket, lambda state: fetch_succeeded(state, ticket, items))
        return self.state

    def close(self) -> None:
        with self._lock:
            self._closed = True

    def _apply(self, ticket: int, reducer: Callable[[CollectionState[T]], CollectionState[T]]) -> None:
        with self._lock:
            if self._closed:
                logger.debug("Discarding fetch #%s completed after close", ticket)
                return
            if ticket != self._state.ticket:
                logger.debug(
                    "Discarding stale fetch #%s (newest is #%s)", ticket, self._state.ticket
                )
                return
            self._state = reducer(self._state)
            updated = self._state
        self._notify(updated)

    def _notify(self, state: CollectionState[T]) -> None:
        if self._on_change is not None:
            self._on_change(state)


__all__ = [
    "CollectionState",
    "CollectionStatus",
    "CollectionStore",
    "begin_fetch",
    "fetch_failed",
    "fetch_succeeded",
]
