"""Tests for HttpTransport using mocked HTTP responses."""

import json

import httpx
import pytest
import respx

from qsync import (
    NotFoundError,
    TransientError,
    Transport,
    UnauthorizedError,
    UnknownError,
    ValidationError,
)
from qsync.transports.http import HttpTransport

BASE_URL = "https://api.test.dev/api/trpc"


@pytest.fixture
def http_transport() -> HttpTransport:
    """Create an HttpTransport with test configuration."""
    return HttpTransport(BASE_URL, api_key="test-api-key")


class TestHttpTransport:
    """Tests for HttpTransport requests and responses."""

    def test_is_transport(self, http_transport: HttpTransport) -> None:
        assert isinstance(http_transport, Transport)

    @respx.mock
    async def test_read_sends_input_as_query(
        self, http_transport: HttpTransport
    ) -> None:
        route = respx.get(f"{BASE_URL}/getUserByUsername").mock(
            return_value=httpx.Response(
                200, json={"result": {"data": {"username": "ada"}}}
            )
        )

        result = await http_transport.read("getUserByUsername", {"username": "ada"})

        assert result == {"username": "ada"}
        request = route.calls.last.request
        assert json.loads(request.url.params["input"]) == {"username": "ada"}
        assert request.headers["Authorization"] == "Bearer test-api-key"

    @respx.mock
    async def test_write_sends_json_body(self, http_transport: HttpTransport) -> None:
        route = respx.post(f"{BASE_URL}/createPost").mock(
            return_value=httpx.Response(200, json={"result": {"data": {"id": "p1"}}})
        )

        result = await http_transport.write("createPost", {"content": "hi"})

        assert result == {"id": "p1"}
        assert json.loads(route.calls.last.request.content) == {"content": "hi"}

    @respx.mock
    async def test_no_api_key_no_auth_header(self) -> None:
        route = respx.get(f"{BASE_URL}/getAllPosts").mock(
            return_value=httpx.Response(200, json={"result": {"data": []}})
        )
        transport = HttpTransport(BASE_URL)

        assert await transport.read("getAllPosts", {}) == []
        assert "Authorization" not in route.calls.last.request.headers
        await transport.aclose()

    @respx.mock
    async def test_error_code_from_body(self, http_transport: HttpTransport) -> None:
        respx.post(f"{BASE_URL}/createPost").mock(
            return_value=httpx.Response(
                400,
                json={
                    "error": {
                        "message": "Invalid input",
                        "data": {
                            "code": "BAD_REQUEST",
                            "zodError": {
                                "fieldErrors": {"content": ["Post cannot be empty"]}
                            },
                        },
                    }
                },
            )
        )

        with pytest.raises(ValidationError) as exc_info:
            await http_transport.write("createPost", {"content": ""})
        assert exc_info.value.field_errors == {"content": ["Post cannot be empty"]}

    @respx.mock
    async def test_not_found_code(self, http_transport: HttpTransport) -> None:
        respx.get(f"{BASE_URL}/getUserByUsername").mock(
            return_value=httpx.Response(
                404,
                json={
                    "error": {
                        "message": "User not found",
                        "data": {"code": "NOT_FOUND"},
                    }
                },
            )
        )

        with pytest.raises(NotFoundError, match="User not found"):
            await http_transport.read("getUserByUsername", {"username": "ghost"})

    @pytest.mark.parametrize(
        ("status", "error_cls"),
        [
            (503, TransientError),
            (429, TransientError),
            (422, ValidationError),
            (401, UnauthorizedError),
            (404, NotFoundError),
            (500, UnknownError),
        ],
    )
    @respx.mock
    async def test_status_fallback(
        self, http_transport: HttpTransport, status: int, error_cls: type
    ) -> None:
        respx.get(f"{BASE_URL}/getAllPosts").mock(
            return_value=httpx.Response(status, text="oops")
        )

        with pytest.raises(error_cls):
            await http_transport.read("getAllPosts", {})

    @respx.mock
    async def test_timeout_is_transient(self, http_transport: HttpTransport) -> None:
        respx.get(f"{BASE_URL}/getAllPosts").mock(
            side_effect=httpx.ReadTimeout("slow")
        )

        with pytest.raises(TransientError) as exc_info:
            await http_transport.read("getAllPosts", {})
        assert exc_info.value.retryable

    @respx.mock
    async def test_connect_error_is_transient(
        self, http_transport: HttpTransport
    ) -> None:
        respx.get(f"{BASE_URL}/getAllPosts").mock(
            side_effect=httpx.ConnectError("refused")
        )

        with pytest.raises(TransientError):
            await http_transport.read("getAllPosts", {})

    @respx.mock
    async def test_invalid_json(self, http_transport: HttpTransport) -> None:
        respx.get(f"{BASE_URL}/getAllPosts").mock(
            return_value=httpx.Response(200, text="<html>")
        )

        with pytest.raises(UnknownError):
            await http_transport.read("getAllPosts", {})

    @pytest.mark.parametrize(
        "body",
        [
            {"error": {"message": "bad", "data": "BAD_REQUEST"}},
            {"error": {"message": "bad", "data": {"zodError": ["content"]}}},
            {"error": {"message": "bad", "data": {"zodError": {"fieldErrors": 3}}}},
            {"error": ["not", "an", "object"]},
            ["not", "an", "object"],
        ],
    )
    @respx.mock
    async def test_malformed_error_body(
        self, http_transport: HttpTransport, body: object
    ) -> None:
        respx.post(f"{BASE_URL}/createPost").mock(
            return_value=httpx.Response(400, json=body)
        )

        with pytest.raises(ValidationError) as exc_info:
            await http_transport.write("createPost", {"content": ""})
        assert exc_info.value.field_errors == {}
