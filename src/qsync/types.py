"""Core types for the qsync query cache."""

from __future__ import annotations

import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


def now_ms() -> int:
    """Current Unix time in milliseconds."""
    return int(time.time() * 1000)


class QueryStatus(str, Enum):
    """Lifecycle state of one cached query."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    """Structured, serializable description of a failed read or write."""

    code: str
    message: str
    field_errors: dict[str, list[str]] = field(default_factory=dict)

    def first_field_message(self, name: str | None = None) -> str | None:
        """First field-level message, optionally for one field only."""
        if name is not None:
            messages = self.field_errors.get(name) or []
            return messages[0] if messages else None
        for messages in self.field_errors.values():
            if messages:
                return messages[0]
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "fieldErrors": {k: list(v) for k, v in self.field_errors.items()},
        }


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """Last known state of one query signature.

    A success entry holds the payload its query returned and never an
    error. ``None`` is a valid payload for a query that returns nothing, so
    success with ``data=None`` is allowed. An error entry always carries
    ``error``; its ``data`` is the last known good value, if any.
    """

    status: QueryStatus
    data: T | None = None
    error: ErrorInfo | None = None
    updated_at: int = 0  # Unix timestamp ms

    def __post_init__(self) -> None:
        if self.status is QueryStatus.SUCCESS and self.error is not None:
            raise ValueError("success entry cannot carry an error")
        if self.status is QueryStatus.ERROR and self.error is None:
            raise ValueError("error entry requires error info")

    @classmethod
    def success(cls, data: T, *, updated_at: int | None = None) -> CacheEntry[T]:
        return cls(
            QueryStatus.SUCCESS,
            data=data,
            updated_at=now_ms() if updated_at is None else updated_at,
        )

    @classmethod
    def failure(
        cls,
        error: ErrorInfo,
        *,
        data: T | None = None,
        updated_at: int | None = None,
    ) -> CacheEntry[T]:
        """Error entry; ``data`` is the last known good value, if any."""
        return cls(
            QueryStatus.ERROR,
            data=data,
            error=error,
            updated_at=now_ms() if updated_at is None else updated_at,
        )

    @classmethod
    def loading(cls, previous: CacheEntry[T] | None = None) -> CacheEntry[T]:
        return cls(
            QueryStatus.LOADING,
            data=previous.data if previous is not None else None,
            updated_at=now_ms(),
        )

    @property
    def is_settled(self) -> bool:
        return self.status in (QueryStatus.SUCCESS, QueryStatus.ERROR)


@dataclass(frozen=True, slots=True)
class QueryResult(Generic[T]):
    """What a view sees: the current status, data and error of one query."""

    status: QueryStatus
    data: T | None = None
    error: ErrorInfo | None = None

    @classmethod
    def from_entry(
        cls, entry: CacheEntry[T] | None, *, fetching: bool
    ) -> QueryResult[T]:
        if entry is None:
            return cls(QueryStatus.LOADING if fetching else QueryStatus.IDLE)
        return cls(entry.status, entry.data, entry.error)

    @property
    def is_loading(self) -> bool:
        return self.status is QueryStatus.LOADING

    @property
    def is_success(self) -> bool:
        return self.status is QueryStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status is QueryStatus.ERROR


@dataclass(frozen=True, slots=True)
class InvalidationRule:
    """Query names a write makes stale on success."""

    names: tuple[str, ...] = ()

    @classmethod
    def of(cls, *names: str) -> InvalidationRule:
        return cls(tuple(dict.fromkeys(names)))

    def __iter__(self) -> Iterator[str]:
        return iter(self.names)

    def __bool__(self) -> bool:
        return bool(self.names)


@dataclass(frozen=True, slots=True)
class Identity:
    """Signed-in user as reported by the identity provider."""

    signed_in: bool = False
    user_id: str | None = None
    username: str | None = None
    profile_image_url: str | None = None

    @classmethod
    def anonymous(cls) -> Identity:
        return cls()


GENERIC_WRITE_FAILURE = "Request failed. Please try again later."


@dataclass(frozen=True, slots=True)
class MutationOutcome(Generic[T]):
    """Result of a write: either ``data`` or ``error`` is set."""

    ok: bool
    data: T | None = None
    error: ErrorInfo | None = None
    invalidated: tuple[str, ...] = ()

    def user_message(
        self, name: str | None = None, *, fallback: str = GENERIC_WRITE_FAILURE
    ) -> str | None:
        """First field-level message if any, else a generic retry prompt."""
        if self.ok or self.error is None:
            return None
        return self.error.first_field_message(name) or fallback
