"""Tests for CacheStore."""

import pytest

from qsync import CacheEntry, CacheStore, QueryStatus, signature_of
from qsync.types import ErrorInfo

USER = signature_of("getUserByUsername", {"username": "ada"})
POSTS = signature_of("getAllPosts")


class TestGetSetDelete:
    """Tests for basic entry operations."""

    def test_get_missing_returns_none(self, store: CacheStore) -> None:
        assert store.get(USER) is None
        assert USER not in store

    def test_set_then_get(self, store: CacheStore) -> None:
        store.set(USER, CacheEntry.success({"username": "ada"}))
        entry = store.get(USER)
        assert entry is not None
        assert entry.status is QueryStatus.SUCCESS
        assert entry.data == {"username": "ada"}

    def test_set_touches_updated_at(self, store: CacheStore) -> None:
        store.set(USER, CacheEntry.success("x", updated_at=1))
        entry = store.get(USER)
        assert entry is not None
        assert entry.updated_at > 1

    def test_set_without_touch_keeps_timestamp(self, store: CacheStore) -> None:
        store.set(USER, CacheEntry.success("x", updated_at=1), touch=False)
        entry = store.get(USER)
        assert entry is not None
        assert entry.updated_at == 1

    def test_delete(self, store: CacheStore) -> None:
        store.set(USER, CacheEntry.success("x"))
        assert store.delete(USER) is True
        assert store.get(USER) is None
        assert store.delete(USER) is False

    def test_signatures_filtered_by_name(self, store: CacheStore) -> None:
        other = signature_of("getUserByUsername", {"username": "grace"})
        store.set(USER, CacheEntry.success("a"))
        store.set(other, CacheEntry.success("b"))
        store.set(POSTS, CacheEntry.success([]))
        assert store.signatures("getUserByUsername") == [USER, other]
        assert len(store.signatures()) == 3
        assert len(store) == 3

    def test_snapshot_preserves_insertion_order(self, store: CacheStore) -> None:
        store.set(POSTS, CacheEntry.success([]))
        store.set(USER, CacheEntry.success("a"))
        assert [s for s, _ in store.snapshot()] == [POSTS, USER]

    def test_clear(self, store: CacheStore) -> None:
        store.set(USER, CacheEntry.success("a"))
        store.set(POSTS, CacheEntry.success([]))
        store.clear()
        assert len(store) == 0


class TestSubscribe:
    """Tests for per-signature subscribers."""

    def test_listener_sees_set_and_delete(self, store: CacheStore) -> None:
        seen: list[object] = []
        store.subscribe(USER, lambda sig, entry: seen.append(entry))

        store.set(USER, CacheEntry.success("a"))
        store.delete(USER)

        assert len(seen) == 2
        assert seen[0].data == "a"  # type: ignore[attr-defined]
        assert seen[1] is None

    def test_listener_only_sees_its_signature(self, store: CacheStore) -> None:
        seen: list[object] = []
        store.subscribe(USER, lambda sig, entry: seen.append(sig))
        store.set(POSTS, CacheEntry.success([]))
        assert seen == []

    def test_disposed_listener_is_not_notified(self, store: CacheStore) -> None:
        seen: list[object] = []
        unsubscribe = store.subscribe(USER, lambda sig, entry: seen.append(entry))
        unsubscribe()
        unsubscribe()

        store.set(USER, CacheEntry.success("a"))
        assert seen == []
        assert store.subscriber_count(USER) == 0

    def test_same_listener_twice_disposes_independently(
        self, store: CacheStore
    ) -> None:
        seen: list[object] = []

        def listener(sig: object, entry: object) -> None:
            seen.append(entry)

        first = store.subscribe(USER, listener)
        store.subscribe(USER, listener)
        first()

        store.set(USER, CacheEntry.success("a"))
        assert len(seen) == 1
        assert store.subscriber_count(USER) == 1

    def test_listener_disposed_during_notify(self, store: CacheStore) -> None:
        seen: list[str] = []
        dispose_second: list[object] = []

        def first(sig: object, entry: object) -> None:
            seen.append("first")
            dispose_second[0]()  # type: ignore[operator]

        def second(sig: object, entry: object) -> None:
            seen.append("second")

        store.subscribe(USER, first)
        dispose_second.append(store.subscribe(USER, second))

        store.set(USER, CacheEntry.success("a"))
        assert seen == ["first"]

    def test_failing_listener_does_not_break_others(
        self, store: CacheStore, caplog
    ) -> None:
        seen: list[object] = []

        def broken(sig: object, entry: object) -> None:
            raise RuntimeError("boom")

        store.subscribe(USER, broken)
        store.subscribe(USER, lambda sig, entry: seen.append(entry))

        store.set(USER, CacheEntry.success("a"))
        assert len(seen) == 1
        assert "Cache listener" in caplog.text

    def test_delete_of_missing_entry_does_not_notify(self, store: CacheStore) -> None:
        seen: list[object] = []
        store.subscribe(USER, lambda sig, entry: seen.append(entry))
        store.delete(USER)
        assert seen == []


class TestCacheEntry:
    """Tests for CacheEntry invariants."""

    def test_error_entry_requires_error(self) -> None:
        with pytest.raises(ValueError):
            CacheEntry(QueryStatus.ERROR)

    def test_success_entry_rejects_error(self) -> None:
        with pytest.raises(ValueError):
            CacheEntry(QueryStatus.SUCCESS, error=ErrorInfo("X", "y"))

    def test_loading_keeps_previous_data(self) -> None:
        previous = CacheEntry.success([1, 2])
        loading = CacheEntry.loading(previous)
        assert loading.status is QueryStatus.LOADING
        assert loading.data == [1, 2]
        assert not loading.is_settled

    def test_failure_keeps_last_good_data(self) -> None:
        entry = CacheEntry.failure(ErrorInfo("NOT_FOUND", "gone"), data="old")
        assert entry.is_settled
        assert entry.data == "old"

    def test_success_allows_none_payload(self) -> None:
        entry = CacheEntry.success(None)
        assert entry.status is QueryStatus.SUCCESS
        assert entry.error is None
        assert entry.is_settled
