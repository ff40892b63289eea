"""In-process transport dispatching to registered procedure handlers."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

from qsync.errors import NotFoundError, UnauthorizedError, UnknownError
from qsync.transports.base import RequestContext
from qsync.types import Identity

if TYPE_CHECKING:
    from qsync.procedures import Procedure, Router

logger = logging.getLogger(__name__)

Handler = Callable[[RequestContext, dict[str, Any]], Any | Awaitable[Any]]
IdentitySource = Identity | Callable[[], Identity]


class LocalTransport:
    """Transport that runs procedure handlers in the current process.

    Inputs are validated against each procedure's schema before the handler
    runs, and protected procedures require a signed-in identity.

    Usage:
        transport = LocalTransport(
            AppRouter,
            {"getAllPosts": list_posts, "createPost": create_post},
            identity=lambda: current_identity,
        )
    """

    def __init__(
        self,
        router: type[Router],
        handlers: Mapping[str, Handler],
        *,
        identity: IdentitySource | None = None,
    ) -> None:
        self._procedures: dict[str, Procedure] = router.procedures()
        unknown = set(handlers) - set(self._procedures)
        if unknown:
            raise ValueError(f"Handlers for undeclared procedures: {sorted(unknown)}")
        self._handlers = dict(handlers)
        self._identity = identity if identity is not None else Identity.anonymous()

    def _context(self) -> RequestContext:
        identity = self._identity() if callable(self._identity) else self._identity
        return RequestContext(identity=identity)

    async def read(self, query_name: str, params: dict[str, Any]) -> Any:
        return await self._call("query", query_name, params)

    async def write(self, command_name: str, payload: dict[str, Any]) -> Any:
        return await self._call("mutation", command_name, payload)

    async def aclose(self) -> None:
        """Nothing to release for in-process calls."""

    async def _call(self, kind: str, name: str, params: dict[str, Any]) -> Any:
        procedure = self._procedures.get(name)
        if procedure is None or procedure.kind != kind:
            raise NotFoundError(f"No {kind} procedure named {name!r}")
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownError(f"No handler registered for {name!r}")

        ctx = self._context()
        if procedure.protected and ctx.user_id is None:
            raise UnauthorizedError()

        parsed = procedure.parse(params)
        logger.debug("Dispatching %s %s", kind, name)
        result = handler(ctx, parsed)
        if inspect.isawaitable(result):
            result = await result
        return result


__all__ = ["Handler", "IdentitySource", "LocalTransport"]
