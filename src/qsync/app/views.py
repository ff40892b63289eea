"""Profile and home pages.

Views render plain dicts from query results; they never touch cache entries
directly, only observe them through ``QueryObserver``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from qsync.app.routers import AppRouter
from qsync.pages import NOT_FOUND, PageProps, StaticPages
from qsync.query_client import QueryClient, QueryObserver
from qsync.transports.base import Transport
from qsync.types import Identity, MutationOutcome, QueryResult, QueryStatus

logger = logging.getLogger(__name__)

POST_FAILED = "Failed to post! Please try again later."


# =============================================================================
# Profile page
# =============================================================================


def resolve_profile_slug(slug: Any) -> dict[str, str] | Any:
    """Map a ``@username`` slug to query params, or ``NOT_FOUND``."""
    if not isinstance(slug, str):
        return NOT_FOUND
    username = slug.replace("@", "", 1)
    if not username:
        return NOT_FOUND
    return {"username": username}


async def get_profile_static_props(
    params: Mapping[str, Any], transport: Transport
) -> PageProps:
    """Prefetch the profile on the server and embed the dehydrated cache."""
    client = QueryClient(transport)
    api = AppRouter(client)
    username = params["username"]
    await api.profile.get_user_by_username.prefetch(username=username)
    return {"trpc_state": client.dehydrate().to_payload(), "username": username}


def profile_pages(transport: Transport, *, paths: Iterable[str] = ()) -> StaticPages:
    """Profile pages, rendered on first request unless listed in ``paths``."""

    async def build(params: Mapping[str, Any]) -> PageProps:
        return await get_profile_static_props(params, transport)

    return StaticPages(resolve_profile_slug, build, paths=paths)


class ProfilePage:
    """Client side of the profile page: hydrate, then read from the cache."""

    def __init__(self, api: AppRouter, props: PageProps) -> None:
        self._observer: QueryObserver | None = None
        self.username: str | None = props.get("username")
        if props.get("notFound") or not self.username:
            return
        api.client.hydrate(props.get("trpc_state"))
        self._observer = api.profile.get_user_by_username.use_query(
            username=self.username
        )

    @property
    def result(self) -> QueryResult[Any]:
        if self._observer is None:
            return QueryResult(QueryStatus.IDLE)
        return self._observer.result

    def render(self) -> dict[str, Any]:
        data = self.result.data
        if not data:
            return {"title": None, "body": "404"}
        return {"title": data["username"], "body": data["username"]}

    def close(self) -> None:
        if self._observer is not None:
            self._observer.close()


# =============================================================================
# Home page
# =============================================================================


class Feed:
    """List of posts, newest first."""

    def __init__(self, api: AppRouter) -> None:
        self.observer = api.posts.get_all.use_query()

    def render(self) -> dict[str, Any]:
        result = self.observer.result
        if result.status in (QueryStatus.LOADING, QueryStatus.IDLE):
            return {"loading": True}
        if result.data is None:
            return {"error": "Something went wrong"}
        return {
            "posts": [
                {
                    "id": item["post"]["id"],
                    "content": item["post"]["content"],
                    "author": item["author"]["username"],
                }
                for item in result.data
            ]
        }

    def close(self) -> None:
        self.observer.close()


class CreatePostWizard:
    """Post composer for a signed-in user."""

    def __init__(self, api: AppRouter, identity: Identity) -> None:
        self._api = api
        self._identity = identity
        self.input = ""
        self.is_posting = False
        self.toasts: list[str] = []

    def type(self, text: str) -> None:
        self.input = text

    async def submit(self) -> MutationOutcome[Any] | None:
        if not self.input or self.is_posting:
            return None
        self.is_posting = True
        try:
            outcome = await self._api.posts.create.mutate(content=self.input)
        finally:
            self.is_posting = False
        if outcome.ok:
            self.input = ""
        else:
            message = outcome.user_message("content", fallback=POST_FAILED)
            logger.debug("Post rejected: %s", message)
            self.toasts.append(message or POST_FAILED)
        return outcome

    def render(self) -> dict[str, Any] | None:
        if not self._identity.signed_in:
            return None
        return {
            "avatar": self._identity.profile_image_url,
            "input": self.input,
            "disabled": self.is_posting,
            "show_post_button": self.input != "" and not self.is_posting,
        }


class HomePage:
    """Header (sign-in prompt or composer) above the feed.

    ``identity`` is ``None`` while the identity provider is still loading.
    """

    def __init__(self, api: AppRouter, identity: Identity | None) -> None:
        self._identity = identity
        # Start fetching as soon as possible; the feed joins this request.
        self._prefetch = api.posts.get_all.use_query()
        self.feed = Feed(api)
        self.wizard = (
            CreatePostWizard(api, identity)
            if identity is not None and identity.signed_in
            else None
        )

    def render(self) -> dict[str, Any]:
        if self._identity is None:
            return {}
        header: dict[str, Any] | None
        if self.wizard is None:
            header = {"sign_in": True}
        else:
            header = self.wizard.render()
        return {"header": header, "feed": self.feed.render()}

    def close(self) -> None:
        self._prefetch.close()
        self.feed.close()


__all__ = [
    "CreatePostWizard",
    "Feed",
    "HomePage",
    "ProfilePage",
    "get_profile_static_props",
    "profile_pages",
    "resolve_profile_slug",
]
