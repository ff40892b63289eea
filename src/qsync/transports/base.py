"""Base protocol for the read/write boundary."""

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from qsync.types import Identity


@runtime_checkable
class Transport(Protocol):
    """Remote procedure boundary.

    Both calls raise ``qsync.errors.QueryError`` subclasses on failure.
    """

    async def read(self, query_name: str, params: dict[str, Any]) -> Any:
        """Run a side-effect-free query."""
        ...

    async def write(self, command_name: str, payload: dict[str, Any]) -> Any:
        """Run a command."""
        ...

    async def aclose(self) -> None:
        """Release transport resources."""
        ...


@dataclass(frozen=True, slots=True)
class RequestContext:
    """Per-call context handed to procedure handlers."""

    identity: Identity = field(default_factory=Identity)

    @property
    def user_id(self) -> str | None:
        return self.identity.user_id if self.identity.signed_in else None
