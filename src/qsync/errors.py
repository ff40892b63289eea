"""Error taxonomy for reads and writes.

Transports raise these; the cache layers turn them into ``ErrorInfo``
values stored on error entries, so nothing past the public contract of the
store or the query client ever raises.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from qsync.types import ErrorInfo


class ErrorCode(str, Enum):
    """Single source of truth for error codes."""

    VALIDATION = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    TRANSIENT = "TRANSIENT"
    UNKNOWN = "INTERNAL_SERVER_ERROR"


class QueryError(Exception):
    """Base class for structured read/write failures."""

    code: ErrorCode = ErrorCode.UNKNOWN
    default_message = "Something went wrong"

    def __init__(
        self,
        message: str | None = None,
        *,
        field_errors: dict[str, list[str]] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.field_errors = dict(field_errors or {})
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        return False

    def to_info(self) -> ErrorInfo:
        return ErrorInfo(
            code=self.code.value,
            message=self.message,
            field_errors={k: list(v) for k, v in self.field_errors.items()},
        )


class ValidationError(QueryError):
    """Input rejected by a procedure's constraints; user-correctable."""

    code = ErrorCode.VALIDATION
    default_message = "Invalid input"


class NotFoundError(QueryError):
    """The read target does not exist."""

    code = ErrorCode.NOT_FOUND
    default_message = "Not found"


class UnauthorizedError(QueryError):
    """A write was attempted without a signed-in identity."""

    code = ErrorCode.UNAUTHORIZED
    default_message = "Not signed in"


class TransientError(QueryError):
    """Network or backend failure; re-issuing the call may succeed."""

    code = ErrorCode.TRANSIENT
    default_message = "Service temporarily unavailable"

    @property
    def retryable(self) -> bool:
        return True


class UnknownError(QueryError):
    """Catch-all for failures outside the taxonomy."""

    code = ErrorCode.UNKNOWN


_BY_CODE: dict[str, type[QueryError]] = {
    cls.code.value: cls
    for cls in (
        ValidationError,
        NotFoundError,
        UnauthorizedError,
        TransientError,
        UnknownError,
    )
}


def to_error_info(exc: BaseException) -> ErrorInfo:
    """Convert any exception into an ``ErrorInfo``."""
    if isinstance(exc, QueryError):
        return exc.to_info()
    return UnknownError(f"{type(exc).__name__}: {exc}").to_info()


def from_error_info(info: ErrorInfo) -> QueryError:
    """Rebuild the matching exception from an ``ErrorInfo``."""
    cls = _BY_CODE.get(info.code, UnknownError)
    return cls(info.message, field_errors=info.field_errors)


def error_info_from_dict(data: dict[str, Any]) -> ErrorInfo:
    return ErrorInfo(
        code=str(data.get("code", ErrorCode.UNKNOWN.value)),
        message=str(data.get("message", "")),
        field_errors={
            k: [str(m) for m in v] for k, v in (data.get("fieldErrors") or {}).items()
        },
    )


__all__ = [
    "ErrorCode",
    "NotFoundError",
    "QueryError",
    "TransientError",
    "UnauthorizedError",
    "UnknownError",
    "ValidationError",
    "error_info_from_dict",
    "from_error_info",
    "to_error_info",
]
