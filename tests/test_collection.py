from __future__ import annotations

import pytest

from useradmin.client import TransportError
from useradmin.collection import (
    CollectionState,
    CollectionStore,
    begin_fetch,
    fetch_failed,
    fetch_succeeded,
)


def test_reducers_only_apply_the_newest_ticket() -> None:
    state, first = begin_fetch(CollectionState())
    state, second = begin_fetch(state)

    assert state.status == "loading"
    assert fetch_succeeded(state, first, ["old"]) is state

    loaded = fetch_succeeded(state, second, ["new"])
    assert loaded.status == "loaded"
    assert loaded.items == ("new",)
    assert fetch_failed(loaded, first, "boom") is loaded


def test_refresh_transitions_loading_then_loaded() -> None:
    seen = []
    store = CollectionStore(lambda: ["a", "b"], on_change=lambda state: seen.append(state.status))

    assert store.state.status == "idle"
    state = store.refresh()

    assert seen == ["loading", "loaded"]
    assert state.items == ("a", "b")
    assert store.items == ["a", "b"]


def test_refresh_replaces_the_snapshot_in_server_order() -> None:
    responses = [["b", "a"], ["c"]]
    store = CollectionStore(lambda: responses.pop(0))

    store.refresh()
    assert store.items == ["b", "a"]
    store.refresh()
    assert store.items == ["c"]


def test_out_of_order_completion_is_discarded() -> None:
    store: CollectionStore[str] = None  # type: ignore[assignment]
    calls = []

    def fetch():
        calls.append(len(calls))
        if len(calls) == 1:
            # A second refresh starts and finishes while the first is in flight.
            store.refresh()
            return ["stale"]
        return ["fresh"]

    store = CollectionStore(fetch)
    store.refresh()

    assert calls == [0, 1]
    assert store.state.status == "loaded"
    assert store.items == ["fresh"]
    assert store.state.ticket == 2


def test_transport_failure_is_recorded_and_raised() -> None:
    def fetch():
        raise TransportError("unreachable")

    store = CollectionStore(fetch)
    with pytest.raises(TransportError):
        store.refresh()

    assert store.state.status == "idle"
    assert store.state.error == "unreachable"


def test_failure_keeps_previous_snapshot_until_next_success() -> None:
    results = [["a"], TransportError("down"), ["a", "b"]]

    def fetch():
        result = results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    store = CollectionStore(fetch)
    store.refresh()
    with pytest.raises(TransportError):
        store.refresh()
    assert store.state.items == ("a",)

    store.refresh()
    assert store.state.error is None
    assert store.items == ["a", "b"]


def test_completion_after_close_is_ignored() -> None:
    store: CollectionStore[str] = None  # type: ignore[assignment]

    def fetch():
        store.close()
        return ["late"]

    store = CollectionStore(fetch)
    store.refresh()

    assert store.closed
    assert store.state.status == "loading"
    assert store.items == []

    # A closed store does not start new fetches.
    assert store.refresh().ticket == 1
