"""QueryClient - cache-first reads with request deduplication.

This module provides:
- QueryClient: owns the cache store and the in-flight request map
- QueryObserver: a view's live handle on one query signature
- create_client(): factory building a client from settings
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from qsync.config import QSyncSettings
from qsync.errors import QueryError, UnknownError, to_error_info
from qsync.hydration import DehydratedState, dehydrate, hydrate
from qsync.keys import QuerySignature
from qsync.mutation import MutationEngine
from qsync.store import CacheStore
from qsync.transports.base import Transport
from qsync.transports.http import HttpTransport
from qsync.types import (
    CacheEntry,
    InvalidationRule,
    MutationOutcome,
    QueryResult,
    QueryStatus,
)

logger = logging.getLogger(__name__)

Fetcher = Callable[[], Awaitable[Any]]
ResultCallback = Callable[[QueryResult[Any]], None]


class QueryObserver:
    """Subscription of one view to one signature.

    ``result`` is always the current snapshot; ``history`` records each
    distinct state the observer has seen, starting with the state at
    subscription time.
    """

    def __init__(
        self,
        client: QueryClient,
        signature: QuerySignature,
        on_change: ResultCallback | None = None,
    ) -> None:
        self._client = client
        self._signature = signature
        self._on_change = on_change
        self.history: list[QueryResult[Any]] = []
        self._unsubscribe: Callable[[], None] | None = client.store.subscribe(
            signature, self._handle
        )
        self._record()

    @property
    def signature(self) -> QuerySignature:
        return self._signature

    @property
    def result(self) -> QueryResult[Any]:
        return QueryResult.from_entry(
            self._client.store.get(self._signature),
            fetching=self._client.is_fetching(self._signature),
        )

    @property
    def closed(self) -> bool:
        return self._unsubscribe is None

    async def wait(self) -> QueryResult[Any]:
        """Wait until no fetch for this signature is in flight."""
        while (task := self._client._in_flight.get(self._signature)) is not None:
            await asyncio.shield(task)
        return self.result

    def refetch(self) -> None:
        """Fetch again even if the entry is cached."""
        self._client._start_fetch(self._signature)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            self._client._release(self._signature)

    def __enter__(self) -> QueryObserver:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _handle(
        self, signature: QuerySignature, entry: CacheEntry[object] | None
    ) -> None:
        if self._record() and self._on_change is not None:
            self._on_change(self.history[-1])

    def _record(self) -> bool:
        result = self.result
        if self.history and self.history[-1] == result:
            return False
        self.history.append(result)
        return True


class QueryClient:
    """Process-scoped query cache client.

    Create one per process (server render or client session) and pass it to
    every consumer. Nothing here raises across the public contract: failed
    reads become error entries, failed writes become failed outcomes.
    """

    def __init__(
        self,
        transport: Transport | None = None,
        *,
        store: CacheStore | None = None,
        refetch_on_invalidate: bool = True,
    ) -> None:
        self._transport = transport
        self._store = store if store is not None else CacheStore()
        self._in_flight: dict[QuerySignature, asyncio.Task[CacheEntry[object]]] = {}
        self._fetchers: dict[QuerySignature, Fetcher] = {}
        self._mutations = MutationEngine(
            self, refetch_on_invalidate=refetch_on_invalidate
        )

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def transport(self) -> Transport | None:
        return self._transport

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def is_fetching(self, signature: QuerySignature) -> bool:
        return signature in self._in_flight

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def use_result(
        self,
        signature: QuerySignature,
        fetcher: Fetcher | None = None,
        *,
        on_change: ResultCallback | None = None,
    ) -> QueryObserver:
        """Observe a query, fetching it only if it is not cached.

        Must be called from a running event loop. Returns immediately; on a
        miss the fetch is already started, so the first state recorded in the
        observer's ``history`` is ``loading``. Later transitions also reach
        ``on_change``.
        """
        self._remember(signature, fetcher)
        entry = self._store.get(signature)
        if entry is not None and entry.status is QueryStatus.SUCCESS:
            logger.debug("Cache hit for %s", signature)
        elif entry is not None and entry.status is QueryStatus.LOADING:
            if not self.is_fetching(signature):
                self._start_fetch(signature)
        else:
            # Missing, idle, or a failed entry that is retried on mount.
            logger.debug("Cache miss for %s", signature)
            self._start_fetch(signature)
        return QueryObserver(self, signature, on_change)

    async def fetch(
        self, signature: QuerySignature, fetcher: Fetcher | None = None
    ) -> CacheEntry[object]:
        """Read through the cache and return the settled entry."""
        self._remember(signature, fetcher)
        entry = self._store.get(signature)
        if entry is not None and entry.status is QueryStatus.SUCCESS:
            logger.debug("Cache hit for %s", signature)
            return entry
        return await asyncio.shield(self._start_fetch(signature))

    async def prefetch(
        self, signature: QuerySignature, fetcher: Fetcher | None = None
    ) -> None:
        """Populate the cache ahead of a render; failures are stored, not raised."""
        entry = await self.fetch(signature, fetcher)
        if entry.status is QueryStatus.ERROR:
            logger.info("Prefetch of %s failed: %s", signature, entry.error)
        else:
            logger.info("Prefetched %s", signature)

    def get_data(self, signature: QuerySignature) -> Any | None:
        entry = self._store.get(signature)
        return entry.data if entry is not None else None

    async def settled(self) -> None:
        """Wait until no fetch is in flight."""
        while self._in_flight:
            await asyncio.gather(*self._in_flight.values(), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Hydration
    # -------------------------------------------------------------------------

    def dehydrate(self) -> DehydratedState:
        return dehydrate(self._store)

    def hydrate(self, state: DehydratedState | Mapping[str, Any] | None) -> int:
        return hydrate(self._store, state)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def mutate(
        self,
        command: str,
        payload: Mapping[str, Any] | None = None,
        rule: InvalidationRule | None = None,
        *,
        write: Fetcher | None = None,
    ) -> MutationOutcome[Any]:
        """Run a write, then invalidate the queries named by ``rule``."""
        return await self._mutations.mutate(command, payload, rule, write=write)

    async def invalidate(
        self, *names: str, wait: bool = False
    ) -> list[QuerySignature]:
        """Drop every cached query with one of ``names``.

        Observed signatures are refetched at once; with ``wait=True`` this
        returns only after those refetches settle.
        """
        signatures = self._mutations.invalidate(names)
        if wait:
            await self.settled()
        return signatures

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _remember(self, signature: QuerySignature, fetcher: Fetcher | None) -> None:
        if fetcher is not None:
            self._fetchers[signature] = fetcher

    def _release(self, signature: QuerySignature) -> None:
        """Forget the fetcher of a signature nothing observes or caches."""
        if (
            signature in self._store
            or signature in self._in_flight
            or self._store.subscriber_count(signature)
        ):
            return
        self._fetchers.pop(signature, None)

    def _fetcher_for(self, signature: QuerySignature) -> Fetcher:
        fetcher = self._fetchers.get(signature)
        if fetcher is not None:
            return fetcher
        transport = self._transport
        if transport is None:

            async def missing() -> Any:
                raise UnknownError(f"No fetcher registered for {signature.name}")

            return missing

        async def read() -> Any:
            return await transport.read(signature.name, signature.params)

        return read

    def _start_fetch(
        self, signature: QuerySignature, *, mark_loading: bool = True
    ) -> asyncio.Task[CacheEntry[object]]:
        """Start a fetch, or join the one already in flight."""
        task = self._in_flight.get(signature)
        if task is not None:
            logger.debug("Joining in-flight fetch for %s", signature)
            return task

        task = asyncio.get_running_loop().create_task(
            self._run_fetch(signature, self._fetcher_for(signature))
        )
        self._in_flight[signature] = task
        if mark_loading:
            self._store.set(signature, CacheEntry.loading(self._store.get(signature)))
        return task

    def _supersede(self, signature: QuerySignature) -> None:
        """Detach an in-flight fetch so its result is never written."""
        if self._in_flight.pop(signature, None) is not None:
            logger.debug("Superseded in-flight fetch for %s", signature)

    async def _run_fetch(
        self, signature: QuerySignature, fetcher: Fetcher
    ) -> CacheEntry[object]:
        current = asyncio.current_task()
        entry = self._store.get(signature)
        if self._in_flight.get(signature) is current and (
            entry is None or entry.status is not QueryStatus.LOADING
        ):
            self._store.set(signature, CacheEntry.loading(entry))

        try:
            data = await fetcher()
        except asyncio.CancelledError:
            if self._in_flight.get(signature) is current:
                del self._in_flight[signature]
            raise
        except QueryError as exc:
            logger.info("Fetch of %s failed: %s", signature, exc.message)
            result = self._failure(signature, exc)
        except Exception as exc:
            logger.warning("Fetch of %s raised", signature, exc_info=True)
            result = self._failure(signature, exc)
        else:
            result = CacheEntry.success(data)

        if self._in_flight.get(signature) is not current:
            logger.debug("Discarding superseded result for %s", signature)
            return result
        del self._in_flight[signature]
        self._store.set(signature, result)
        return result

    def _failure(
        self, signature: QuerySignature, exc: BaseException
    ) -> CacheEntry[object]:
        previous = self._store.get(signature)
        return CacheEntry.failure(
            to_error_info(exc),
            data=previous.data if previous is not None else None,
        )


def create_client(
    settings: QSyncSettings | None = None,
    *,
    transport: Transport | None = None,
    store: CacheStore | None = None,
) -> QueryClient:
    """Create the process-wide query client.

    Args:
        settings: ``QSyncSettings``; read from the environment when omitted
        transport: Read/write boundary; built from ``settings.api_url`` when
            omitted and an API URL is configured
        store: Existing cache store to reuse

    Returns:
        QueryClient bound to the transport and store
    """
    if settings is None:
        settings = QSyncSettings()
    if transport is None and settings.api_url:
        transport = HttpTransport(
            settings.api_url,
            api_key=settings.api_key,
            timeout=settings.timeout,
        )
    return QueryClient(
        transport,
        store=store,
        refetch_on_invalidate=settings.refetch_on_invalidate,
    )


__all__ = ["Fetcher", "QueryClient", "QueryObserver", "create_client"]
