"""Procedures - typed queries and commands bound to a query client.

Provides:
- query() / mutation(): declare a procedure with its input schema
- Router: base class grouping procedures; instances bind them to a client
- mount(): nest one router inside another
- BoundQuery / BoundMutation: what views call at runtime
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

import pydantic

from qsync.errors import ValidationError
from qsync.keys import QuerySignature, signature_of
from qsync.query_client import QueryClient, QueryObserver, ResultCallback
from qsync.types import CacheEntry, InvalidationRule, MutationOutcome

ProcedureKind = Literal["query", "mutation"]


def _field_errors(exc: pydantic.ValidationError) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for error in exc.errors():
        name = ".".join(str(part) for part in error["loc"]) or "__root__"
        message = error["msg"]
        # pydantic prefixes custom messages raised from validators.
        message = message.removeprefix("Value error, ")
        errors.setdefault(name, []).append(message)
    return errors


class Procedure:
    """Declaration of one query or command: its name and input schema."""

    __slots__ = ("input", "invalidates", "kind", "name", "protected")

    def __init__(
        self,
        name: str,
        kind: ProcedureKind,
        input: type[pydantic.BaseModel] | None = None,
        *,
        invalidates: InvalidationRule = InvalidationRule(),
        protected: bool = False,
    ) -> None:
        if kind == "query" and invalidates:
            raise TypeError(f"query {name!r} cannot declare invalidations")
        self.name = name
        self.kind = kind
        self.input = input
        self.invalidates = invalidates
        self.protected = protected

    def __get__(self, obj: Any, owner: type) -> Any:
        if obj is None:
            return self
        if self.kind == "query":
            return BoundQuery(self, obj._client)
        return BoundMutation(self, obj._client)

    def parse(self, params: Mapping[str, Any] | None) -> dict[str, Any]:
        """Validate input against the schema, raising ``ValidationError``."""
        if self.input is None:
            return {}
        try:
            model = self.input.model_validate(dict(params or {}))
        except pydantic.ValidationError as exc:
            raise ValidationError(
                f"Invalid input for {self.name}", field_errors=_field_errors(exc)
            ) from exc
        return model.model_dump(mode="json")

    def __repr__(self) -> str:
        return f"Procedure({self.kind} {self.name})"


def query(name: str, input: type[pydantic.BaseModel] | None = None) -> Procedure:
    """Declare a read query.

    Usage:
        class ProfileRouter(Router):
            get_user_by_username = query("getUserByUsername", UsernameInput)
    """
    return Procedure(name, "query", input)


def mutation(
    name: str,
    input: type[pydantic.BaseModel] | None = None,
    *,
    invalidates: tuple[str, ...] | InvalidationRule = (),
    protected: bool = False,
) -> Procedure:
    """Declare a command and the query names it makes stale.

    Usage:
        class PostsRouter(Router):
            create = mutation(
                "createPost", CreatePostInput, invalidates=("getAllPosts",)
            )
    """
    if not isinstance(invalidates, InvalidationRule):
        invalidates = InvalidationRule.of(*invalidates)
    return Procedure(
        name, "mutation", input, invalidates=invalidates, protected=protected
    )


class Mount:
    """Descriptor exposing a nested router bound to the parent's client."""

    __slots__ = ("router",)

    def __init__(self, router: type[Router]) -> None:
        self.router = router

    def __get__(self, obj: Any, owner: type) -> Any:
        if obj is None:
            return self.router
        return self.router(obj._client)


def mount(router: type[Router]) -> Mount:
    """Nest a router under an attribute of another router."""
    return Mount(router)


class Router:
    """Base class for a namespace of procedures.

    Subclass and declare procedures:

        class PostsRouter(Router):
            get_all = query("getAllPosts")

        class AppRouter(Router):
            posts = mount(PostsRouter)

    Usage:
        api = AppRouter(client)
        observer = api.posts.get_all.use_query()
    """

    def __init__(self, client: QueryClient) -> None:
        self._client = client

    @property
    def client(self) -> QueryClient:
        return self._client

    @classmethod
    def procedures(cls) -> dict[str, Procedure]:
        """Every procedure of this router and its mounted routers, by name."""
        found: dict[str, Procedure] = {}
        for klass in reversed(cls.__mro__):
            for value in vars(klass).values():
                if isinstance(value, Procedure):
                    found[value.name] = value
                elif isinstance(value, Mount):
                    found.update(value.router.procedures())
        return found


class BoundQuery:
    """A query procedure bound to a client."""

    __slots__ = ("_client", "_procedure")

    def __init__(self, procedure: Procedure, client: QueryClient) -> None:
        self._procedure = procedure
        self._client = client

    @property
    def name(self) -> str:
        return self._procedure.name

    def signature(self, **params: Any) -> QuerySignature:
        return signature_of(self._procedure.name, params)

    def use_query(
        self, *, on_change: ResultCallback | None = None, **params: Any
    ) -> QueryObserver:
        return self._client.use_result(
            self.signature(**params), on_change=on_change
        )

    async def fetch(self, **params: Any) -> CacheEntry[object]:
        return await self._client.fetch(self.signature(**params))

    async def prefetch(self, **params: Any) -> None:
        await self._client.prefetch(self.signature(**params))

    def get_data(self, **params: Any) -> Any | None:
        return self._client.get_data(self.signature(**params))

    async def invalidate(self, *, wait: bool = False) -> list[QuerySignature]:
        """Invalidate every cached call of this query, whatever its params."""
        return await self._client.invalidate(self._procedure.name, wait=wait)


class BoundMutation:
    """A command procedure bound to a client."""

    __slots__ = ("_client", "_procedure")

    def __init__(self, procedure: Procedure, client: QueryClient) -> None:
        self._procedure = procedure
        self._client = client

    @property
    def name(self) -> str:
        return self._procedure.name

    @property
    def invalidates(self) -> InvalidationRule:
        return self._procedure.invalidates

    async def mutate(self, **payload: Any) -> MutationOutcome[Any]:
        return await self._client.mutate(
            self._procedure.name, payload, self._procedure.invalidates
        )


__all__ = [
    "BoundMutation",
    "BoundQuery",
    "Mount",
    "Procedure",
    "Router",
    "mount",
    "mutation",
    "query",
]
