"""Dehydration and hydration of the cache across a process boundary.

On the server, ``dehydrate()`` snapshots every settled entry of a store into
a ``DehydratedState``, which ``to_payload()`` turns into plain JSON-compatible
data for the page payload. On the client, ``hydrate()`` seeds a fresh store
from that payload before the first read.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Mapping
from datetime import date, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_core import PydanticSerializationError, to_jsonable_python

from qsync.errors import error_info_from_dict
from qsync.keys import QuerySignature, signature_of
from qsync.store import CacheStore
from qsync.types import CacheEntry, QueryStatus

logger = logging.getLogger(__name__)

ValueType = Literal["datetime", "date", "set", "tuple"]


class DehydratedError(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    code: str
    message: str
    field_errors: dict[str, list[str]] = Field(
        default_factory=dict, alias="fieldErrors"
    )


class DehydratedEntry(BaseModel):
    """Snapshot of one settled cache entry.

    ``data`` is plain JSON. ``meta`` lists the values that JSON cannot
    represent natively, as ``(path, type)`` pairs, so they can be revived.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    status: Literal["success", "error"]
    data: Any = None
    meta: list[tuple[list[str | int], ValueType]] = Field(default_factory=list)
    error: DehydratedError | None = None
    updated_at: int = Field(alias="updatedAt")


class DehydratedQuery(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    query_name: str = Field(alias="queryName")
    params: dict[str, Any] = Field(default_factory=dict)
    query_hash: str = Field(alias="queryHash")
    state: DehydratedEntry


class DehydratedState(BaseModel):
    """Ordered snapshot of settled queries, produced once per server render."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    queries: list[DehydratedQuery] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        """Plain data for embedding in the page payload."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> DehydratedState:
        return cls.model_validate(payload)

    def pairs(self) -> list[tuple[QuerySignature, CacheEntry[object]]]:
        """Rebuild ``(signature, entry)`` pairs in payload order.

        Queries whose hash does not match, or whose typed values cannot be
        revived, are dropped.
        """
        result: list[tuple[QuerySignature, CacheEntry[object]]] = []
        for query in self.queries:
            signature = signature_of(query.query_name, query.params)
            if signature.digest != query.query_hash:
                logger.warning(
                    "Dropping dehydrated query %s: hash mismatch", query.query_name
                )
                continue
            try:
                entry = _to_entry(query.state)
            except (KeyError, IndexError, TypeError, ValueError):
                logger.warning(
                    "Dropping dehydrated query %s: bad value metadata",
                    query.query_name,
                    exc_info=True,
                )
                continue
            result.append((signature, entry))
        return result

    def __len__(self) -> int:
        return len(self.queries)


# =============================================================================
# Value codec
# =============================================================================

_REVIVERS: dict[str, Callable[[Any], Any]] = {
    "datetime": datetime.fromisoformat,
    "date": date.fromisoformat,
    "set": set,
    "tuple": tuple,
}


def _encode(value: Any, path: list[str | int], meta: list[Any]) -> Any:
    """Reduce ``value`` to JSON data, recording the type of each lossy value.

    Raises:
        PydanticSerializationError: Some value has no JSON form
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, datetime):
        meta.append((path, "datetime"))
        return value.isoformat()
    if isinstance(value, date):
        meta.append((path, "date"))
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): _encode(v, [*path, str(k)], meta) for k, v in value.items()}
    if isinstance(value, tuple):
        meta.append((path, "tuple"))
    elif isinstance(value, (set, frozenset)):
        meta.append((path, "set"))
        value = sorted(value, key=repr)
    elif not isinstance(value, list):
        return to_jsonable_python(value)
    return [_encode(v, [*path, i], meta) for i, v in enumerate(value)]


def _revive(data: Any, meta: list[tuple[list[str | int], str]]) -> Any:
    """Undo ``_encode`` for every value listed in ``meta``."""
    data = copy.deepcopy(data)
    # Deepest first, so containers are rebuilt from revived children.
    for path, type_name in sorted(meta, key=lambda item: len(item[0]), reverse=True):
        revive = _REVIVERS[type_name]
        if not path:
            data = revive(data)
            continue
        parent = data
        for key in path[:-1]:
            parent = parent[key]
        parent[path[-1]] = revive(parent[path[-1]])
    return data


def _to_entry(state: DehydratedEntry) -> CacheEntry[object]:
    data = _revive(state.data, state.meta)
    if state.status == "success":
        return CacheEntry.success(data, updated_at=state.updated_at)
    error = state.error or DehydratedError(code="INTERNAL_SERVER_ERROR", message="")
    return CacheEntry.failure(
        error_info_from_dict(error.model_dump(by_alias=True)),
        data=data,
        updated_at=state.updated_at,
    )


def _from_entry(entry: CacheEntry[object]) -> DehydratedEntry:
    meta: list[Any] = []
    data = _encode(entry.data, [], meta)
    error = None
    if entry.error is not None:
        error = DehydratedError.model_validate(entry.error.to_dict())
    return DehydratedEntry(
        status=entry.status.value,
        data=data,
        meta=meta,
        error=error,
        updated_at=entry.updated_at,
    )


def dehydrate(store: CacheStore) -> DehydratedState:
    """Snapshot every success or error entry.

    Loading and idle entries are skipped: an in-flight request means nothing
    on the other side of the process boundary. Entries whose data has no
    JSON form are skipped too; the client fetches them on mount.
    """
    queries: list[DehydratedQuery] = []
    for signature, entry in store.snapshot():
        if entry.status not in (QueryStatus.SUCCESS, QueryStatus.ERROR):
            continue
        try:
            state = _from_entry(entry)
        except PydanticSerializationError as exc:
            logger.warning("Not dehydrating %s: %s", signature, exc)
            continue
        queries.append(
            DehydratedQuery(
                query_name=signature.name,
                params=signature.params,
                query_hash=signature.digest,
                state=state,
            )
        )
    return DehydratedState(queries=queries)


def hydrate(
    store: CacheStore,
    state: DehydratedState | Mapping[str, Any] | None,
) -> int:
    """Seed a store from a dehydrated snapshot.

    Entries already in the store win over the snapshot, so hydrating twice
    or after a client-side fetch never clobbers fresher data. Returns the
    number of entries written.
    """
    if state is None:
        return 0
    if not isinstance(state, DehydratedState):
        state = DehydratedState.from_payload(state)

    written = 0
    for signature, entry in state.pairs():
        if signature in store:
            logger.debug("Skipping hydration of %s: already cached", signature)
            continue
        store.set(signature, entry, touch=False)
        written += 1
    if written:
        logger.debug("Hydrated %d of %d queries", written, len(state))
    return written


__all__ = [
    "DehydratedEntry",
    "DehydratedError",
    "DehydratedQuery",
    "DehydratedState",
    "dehydrate",
    "hydrate",
]
