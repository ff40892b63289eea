"""Page generation: build-time paths plus on-demand rendering.

A page is identified by a path key. ``StaticPages`` pre-renders the keys it
is told about and renders any other key on its first request ("blocking"
fallback), caching the props it produces for later requests.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, Final

logger = logging.getLogger(__name__)


class _NotFound:
    __slots__ = ()

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND: Final = _NotFound()

PageProps = dict[str, Any]
Resolver = Callable[[Any], Mapping[str, Any] | _NotFound]
PropsBuilder = Callable[[Mapping[str, Any]], Awaitable[PageProps]]


def not_found_props() -> PageProps:
    return {"notFound": True}


class StaticPages:
    """Page props cache keyed by path.

    Args:
        resolve: Maps a path key to query params, or ``NOT_FOUND``
        build: Builds page props from resolved params
        paths: Keys rendered ahead of time by ``prerender()``
    """

    def __init__(
        self,
        resolve: Resolver,
        build: PropsBuilder,
        *,
        paths: Iterable[str] = (),
    ) -> None:
        self._resolve = resolve
        self._build = build
        self._paths = list(paths)
        self._pages: dict[str, PageProps] = {}
        self._rendering: dict[str, asyncio.Task[PageProps]] = {}

    def get_static_paths(self) -> dict[str, Any]:
        return {"paths": list(self._paths), "fallback": "blocking"}

    async def prerender(self) -> None:
        """Render every known path."""
        await asyncio.gather(*(self.render(path) for path in self._paths))

    def is_cached(self, path_key: str) -> bool:
        return path_key in self._pages

    async def render(self, path_key: Any) -> PageProps:
        """Props for a path, rendering it on first request.

        Unresolvable keys get not-found props, which are never cached.
        """
        if not isinstance(path_key, str):
            logger.info("Rejecting non-string page key %r", path_key)
            return not_found_props()
        cached = self._pages.get(path_key)
        if cached is not None:
            return cached

        task = self._rendering.get(path_key)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._render(path_key))
            self._rendering[path_key] = task
        return await asyncio.shield(task)

    def revalidate(self, path_key: str) -> None:
        """Forget a rendered page so the next request renders it again."""
        self._pages.pop(path_key, None)

    async def _render(self, path_key: str) -> PageProps:
        try:
            params = self._resolve(path_key)
            if params is NOT_FOUND:
                logger.info("No page for %r", path_key)
                return not_found_props()
            props = await self._build(params)
            self._pages[path_key] = props
            logger.info("Rendered page %r", path_key)
            return props
        finally:
            del self._rendering[path_key]


__all__ = ["NOT_FOUND", "PageProps", "StaticPages", "not_found_props"]
