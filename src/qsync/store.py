"""In-memory cache store with per-signature subscribers."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Callable, Iterator

from qsync.keys import QuerySignature
from qsync.types import CacheEntry, now_ms

logger = logging.getLogger(__name__)

Listener = Callable[[QuerySignature, CacheEntry[object] | None], None]


class _Subscription:
    __slots__ = ("active", "listener")

    def __init__(self, listener: Listener) -> None:
        self.listener = listener
        self.active = True


class CacheStore:
    """Owns every cache entry of one process.

    All methods are synchronous, so a mutation of one signature and the
    notification of its subscribers run without interleaving on the event
    loop. Listeners receive ``None`` when an entry is deleted.
    """

    def __init__(self) -> None:
        self._entries: dict[QuerySignature, CacheEntry[object]] = {}
        self._listeners: dict[QuerySignature, list[_Subscription]] = {}

    def get(self, signature: QuerySignature) -> CacheEntry[object] | None:
        """Get the entry for a signature."""
        return self._entries.get(signature)

    def set(
        self,
        signature: QuerySignature,
        entry: CacheEntry[object],
        *,
        touch: bool = True,
    ) -> None:
        """Replace the entry for a signature and notify its subscribers."""
        if touch:
            entry = dataclasses.replace(entry, updated_at=now_ms())
        self._entries[signature] = entry
        self._notify(signature, entry)

    def delete(self, signature: QuerySignature) -> bool:
        """Remove the entry for a signature. Returns whether one existed."""
        existed = self._entries.pop(signature, None) is not None
        if existed:
            self._notify(signature, None)
        return existed

    def subscribe(
        self, signature: QuerySignature, listener: Listener
    ) -> Callable[[], None]:
        """Register a listener; the returned disposer unregisters it."""
        subscription = _Subscription(listener)
        self._listeners.setdefault(signature, []).append(subscription)

        def unsubscribe() -> None:
            if not subscription.active:
                return
            subscription.active = False
            subscriptions = self._listeners.get(signature, [])
            subscriptions.remove(subscription)
            if not subscriptions:
                self._listeners.pop(signature, None)

        return unsubscribe

    def subscriber_count(self, signature: QuerySignature) -> int:
        return len(self._listeners.get(signature, ()))

    def signatures(self, name: str | None = None) -> list[QuerySignature]:
        """Signatures with a live entry, optionally only those of one query."""
        return [s for s in self._entries if name is None or s.name == name]

    def snapshot(self) -> list[tuple[QuerySignature, CacheEntry[object]]]:
        """Entries in insertion order."""
        return list(self._entries.items())

    def clear(self) -> None:
        """Remove every entry, notifying subscribers of each."""
        for signature in list(self._entries):
            self.delete(signature)

    def __contains__(self, signature: object) -> bool:
        return signature in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[QuerySignature]:
        return iter(list(self._entries))

    def _notify(
        self, signature: QuerySignature, entry: CacheEntry[object] | None
    ) -> None:
        for subscription in list(self._listeners.get(signature, ())):
            # A listener may dispose another one while we iterate.
            if not subscription.active:
                continue
            try:
                subscription.listener(signature, entry)
            except Exception:
                logger.warning(
                    "Cache listener for %s failed", signature, exc_info=True
                )


__all__ = ["CacheStore", "Listener"]
