"""Server-side procedure handlers over the in-memory database."""

from __future__ import annotations

from typing import Any

from qsync.app.db import Database, Post, User
from qsync.app.routers import AppRouter
from qsync.errors import NotFoundError, UnauthorizedError, UnknownError
from qsync.transports.base import RequestContext
from qsync.transports.local import Handler, IdentitySource, LocalTransport

FEED_LIMIT = 100


def user_payload(user: User) -> dict[str, Any]:
    """Public fields of a user."""
    return {
        "id": user.id,
        "username": user.username,
        "profileImageUrl": user.profile_image_url,
    }


def post_payload(post: Post, author: User) -> dict[str, Any]:
    return {
        "post": {
            "id": post.id,
            "authorId": post.author_id,
            "content": post.content,
            "createdAt": post.created_at.isoformat(),
        },
        "author": user_payload(author),
    }


def create_handlers(db: Database) -> dict[str, Handler]:
    """Handlers for every procedure of ``AppRouter``."""

    def get_user_by_username(
        ctx: RequestContext, params: dict[str, Any]
    ) -> dict[str, Any]:
        user = db.find_user_by_username(params["username"])
        if user is None:
            raise NotFoundError("User not found")
        return user_payload(user)

    def get_all_posts(
        ctx: RequestContext, params: dict[str, Any]
    ) -> list[dict[str, Any]]:
        items = []
        for post in db.list_posts(FEED_LIMIT):
            author = db.get_user(post.author_id)
            if author is None:
                raise UnknownError("Author for post not found")
            items.append(post_payload(post, author))
        return items

    def create_post(ctx: RequestContext, params: dict[str, Any]) -> dict[str, Any]:
        author = db.get_user(ctx.user_id) if ctx.user_id else None
        if author is None:
            raise UnauthorizedError("Unknown author")
        return post_payload(db.create_post(author.id, params["content"]), author)

    return {
        "getUserByUsername": get_user_by_username,
        "getAllPosts": get_all_posts,
        "createPost": create_post,
    }


def create_transport(
    db: Database, *, identity: IdentitySource | None = None
) -> LocalTransport:
    """In-process transport serving ``AppRouter`` from ``db``."""
    return LocalTransport(AppRouter, create_handlers(db), identity=identity)


__all__ = ["create_handlers", "create_transport", "post_payload", "user_payload"]
