"""Procedure declarations of the feed application."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from qsync.procedures import Router, mount, mutation, query

MAX_POST_LENGTH = 280


class UsernameInput(BaseModel):
    username: str = Field(min_length=1)


class CreatePostInput(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def _check_length(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Post cannot be empty")
        if len(value) > MAX_POST_LENGTH:
            raise ValueError(f"Post must be at most {MAX_POST_LENGTH} characters")
        return value


class ProfileRouter(Router):
    get_user_by_username = query("getUserByUsername", UsernameInput)


class PostsRouter(Router):
    get_all = query("getAllPosts")
    create = mutation(
        "createPost",
        CreatePostInput,
        invalidates=("getAllPosts",),
        protected=True,
    )


class AppRouter(Router):
    profile = mount(ProfileRouter)
    posts = mount(PostsRouter)


__all__ = [
    "AppRouter",
    "CreatePostInput",
    "MAX_POST_LENGTH",
    "PostsRouter",
    "ProfileRouter",
    "UsernameInput",
]
