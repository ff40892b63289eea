"""Mutation-invalidation engine.

A write runs first; only after it succeeds are the queries named by its
invalidation rule dropped from the cache. Observed queries are refetched at
once, unobserved ones stay absent until their next read.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from qsync.errors import QueryError, UnknownError, to_error_info
from qsync.keys import QuerySignature
from qsync.types import InvalidationRule, MutationOutcome

if TYPE_CHECKING:
    from qsync.query_client import QueryClient

logger = logging.getLogger(__name__)


class MutationEngine:
    """Runs writes and applies their invalidation rules to a client's cache."""

    def __init__(
        self, client: QueryClient, *, refetch_on_invalidate: bool = True
    ) -> None:
        self._client = client
        self._refetch_on_invalidate = refetch_on_invalidate

    async def mutate(
        self,
        command: str,
        payload: Mapping[str, Any] | None = None,
        rule: InvalidationRule | None = None,
        *,
        write: Callable[[], Awaitable[Any]] | None = None,
    ) -> MutationOutcome[Any]:
        """Execute a write and invalidate on success.

        Args:
            command: Command name passed to the transport
            payload: Command input
            rule: Query names made stale by this write
            write: Overrides the transport call

        Returns:
            MutationOutcome with ``data`` on success or ``error`` on failure
        """
        if write is None:
            write = self._transport_write(command, dict(payload or {}))

        try:
            data = await write()
        except QueryError as exc:
            logger.info("Mutation %s failed: %s", command, exc.message)
            return MutationOutcome(ok=False, error=exc.to_info())
        except Exception as exc:
            logger.warning("Mutation %s raised", command, exc_info=True)
            return MutationOutcome(ok=False, error=to_error_info(exc))

        names = tuple(rule or ())
        self.invalidate(names)
        return MutationOutcome(ok=True, data=data, invalidated=names)

    def invalidate(self, names: Iterable[str]) -> list[QuerySignature]:
        """Delete every live entry whose query name is in ``names``.

        Entries with subscribers get a refetch scheduled before their delete
        is announced, so observers move straight to a loading state.
        """
        client = self._client
        store = client.store
        invalidated: list[QuerySignature] = []
        for name in dict.fromkeys(names):
            for signature in store.signatures(name):
                client._supersede(signature)
                if self._refetch_on_invalidate and store.subscriber_count(signature):
                    client._start_fetch(signature, mark_loading=False)
                store.delete(signature)
                client._release(signature)
                invalidated.append(signature)
        if invalidated:
            refetching = sum(1 for s in invalidated if client.is_fetching(s))
            logger.info(
                "Invalidated %d queries (%d refetching)", len(invalidated), refetching
            )
        return invalidated

    def _transport_write(
        self, command: str, payload: dict[str, Any]
    ) -> Callable[[], Awaitable[Any]]:
        transport = self._client.transport

        async def write() -> Any:
            if transport is None:
                raise UnknownError(f"No transport configured for {command}")
            return await transport.write(command, payload)

        return write


__all__ = ["MutationEngine"]
