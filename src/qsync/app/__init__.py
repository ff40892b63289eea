"""Social feed application: profile pages, a post feed and post creation."""

from qsync.app.db import Database
from qsync.app.routers import AppRouter, PostsRouter, ProfileRouter
from qsync.app.server import create_handlers, create_transport
from qsync.app.views import (
    CreatePostWizard,
    Feed,
    HomePage,
    ProfilePage,
    get_profile_static_props,
    profile_pages,
    resolve_profile_slug,
)

__all__ = [
    "AppRouter",
    "CreatePostWizard",
    "Database",
    "Feed",
    "HomePage",
    "PostsRouter",
    "ProfilePage",
    "ProfileRouter",
    "create_handlers",
    "create_transport",
    "get_profile_static_props",
    "profile_pages",
    "resolve_profile_slug",
]
