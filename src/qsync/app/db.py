"""In-memory data layer for users and posts."""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True, slots=True)
class User:
    id: str
    username: str
    profile_image_url: str = ""


@dataclass(frozen=True, slots=True)
class Post:
    id: str
    author_id: str
    content: str
    created_at: datetime
    seq: int = field(compare=False)


class Database:
    """Users and posts held in memory, newest post first on listing."""

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._posts: list[Post] = []
        self._seq = itertools.count(1)

    def add_user(
        self, user_id: str, username: str, profile_image_url: str = ""
    ) -> User:
        user = User(user_id, username, profile_image_url)
        self._users[user_id] = user
        return user

    def get_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def find_user_by_username(self, username: str) -> User | None:
        for user in self._users.values():
            if user.username == username:
                return user
        return None

    def create_post(self, author_id: str, content: str) -> Post:
        seq = next(self._seq)
        post = Post(
            id=f"post_{seq}",
            author_id=author_id,
            content=content,
            created_at=datetime.now(timezone.utc),
            seq=seq,
        )
        self._posts.append(post)
        return post

    def list_posts(self, limit: int = 100) -> list[Post]:
        ordered = sorted(
            self._posts, key=lambda p: (p.created_at, p.seq), reverse=True
        )
        return ordered[:limit]


__all__ = ["Database", "Post", "User"]
