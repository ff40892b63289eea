"""Tests for procedure declarations and routers."""

import pytest

from qsync import (
    InvalidationRule,
    QueryClient,
    Router,
    ValidationError,
    mount,
    mutation,
    query,
)
from qsync.app import AppRouter
from qsync.app.routers import CreatePostInput, UsernameInput
from qsync.procedures import BoundMutation, BoundQuery, Procedure


class TestDeclarations:
    """Tests for query() and mutation()."""

    def test_query_cannot_invalidate(self) -> None:
        with pytest.raises(TypeError):
            Procedure("getAllPosts", "query", invalidates=InvalidationRule.of("x"))

    def test_mutation_rule_deduplicates(self) -> None:
        procedure = mutation("createPost", invalidates=("a", "b", "a"))
        assert tuple(procedure.invalidates) == ("a", "b")

    def test_class_access_returns_procedure(self) -> None:
        assert isinstance(AppRouter.profile.get_user_by_username, Procedure)

    def test_procedures_include_mounted_routers(self) -> None:
        assert sorted(AppRouter.procedures()) == [
            "createPost",
            "getAllPosts",
            "getUserByUsername",
        ]

    def test_subclass_inherits_procedures(self) -> None:
        class Base(Router):
            ping = query("ping")

        class Child(Base):
            pong = mutation("pong")

        assert sorted(Child.procedures()) == ["ping", "pong"]


class TestParse:
    """Tests for input validation."""

    def test_valid_input_is_normalized(self) -> None:
        procedure = query("getUserByUsername", UsernameInput)
        assert procedure.parse({"username": "ada"}) == {"username": "ada"}

    def test_no_schema_ignores_input(self) -> None:
        assert query("getAllPosts").parse({"anything": 1}) == {}

    def test_missing_field(self) -> None:
        procedure = query("getUserByUsername", UsernameInput)
        with pytest.raises(ValidationError) as exc_info:
            procedure.parse({})
        assert "username" in exc_info.value.field_errors

    def test_validator_message_is_clean(self) -> None:
        procedure = mutation("createPost", CreatePostInput)
        with pytest.raises(ValidationError) as exc_info:
            procedure.parse({"content": "   "})
        assert exc_info.value.field_errors == {"content": ["Post cannot be empty"]}

    def test_too_long(self) -> None:
        procedure = mutation("createPost", CreatePostInput)
        with pytest.raises(ValidationError) as exc_info:
            procedure.parse({"content": "x" * 281})
        assert exc_info.value.field_errors["content"] == [
            "Post must be at most 280 characters"
        ]


class TestBinding:
    """Tests for router instances bound to a client."""

    def test_bound_types(self) -> None:
        api = AppRouter(QueryClient())
        assert isinstance(api.posts.get_all, BoundQuery)
        assert isinstance(api.posts.create, BoundMutation)
        assert api.posts.create.invalidates.names == ("getAllPosts",)

    def test_nested_router_shares_client(self) -> None:
        client = QueryClient()
        api = AppRouter(client)
        assert api.profile.client is client
        assert api.posts.client is client

    def test_signature_uses_procedure_name(self) -> None:
        api = AppRouter(QueryClient())
        signature = api.profile.get_user_by_username.signature(username="ada")
        assert signature.name == "getUserByUsername"
        assert signature.params == {"username": "ada"}

    def test_mount_returns_router_class(self) -> None:
        class Inner(Router):
            pass

        class Outer(Router):
            inner = mount(Inner)

        assert Outer.inner is Inner

    async def test_fetch_through_transport(self, api: AppRouter) -> None:
        entry = await api.profile.get_user_by_username.fetch(username="ada")
        assert entry.data["username"] == "ada"  # type: ignore[index]
        assert api.profile.get_user_by_username.get_data(username="ada") == entry.data
