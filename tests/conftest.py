"""Shared pytest fixtures."""

import pytest

from qsync import CacheStore, Identity, QueryClient
from qsync.app import AppRouter, Database, create_transport
from qsync.transports.local import LocalTransport

ADA = Identity(
    signed_in=True,
    user_id="user_ada",
    username="ada",
    profile_image_url="https://img.test/ada.png",
)


@pytest.fixture
def store() -> CacheStore:
    """Create a fresh CacheStore for each test."""
    return CacheStore()


@pytest.fixture
def db() -> Database:
    """Database with one user and one post."""
    database = Database()
    database.add_user("user_ada", "ada", "https://img.test/ada.png")
    database.add_user("user_grace", "grace")
    database.create_post("user_grace", "first")
    return database


@pytest.fixture
def transport(db: Database) -> LocalTransport:
    """In-process transport acting as the signed-in user ada."""
    return create_transport(db, identity=ADA)


@pytest.fixture
def client(transport: LocalTransport) -> QueryClient:
    return QueryClient(transport)


@pytest.fixture
def api(client: QueryClient) -> AppRouter:
    return AppRouter(client)
