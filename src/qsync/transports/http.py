"""HTTP transport for a tRPC-style procedure endpoint."""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from qsync.errors import (
    NotFoundError,
    QueryError,
    TransientError,
    UnauthorizedError,
    UnknownError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_BY_CODE: dict[str, type[QueryError]] = {
    "BAD_REQUEST": ValidationError,
    "PARSE_ERROR": ValidationError,
    "UNAUTHORIZED": UnauthorizedError,
    "FORBIDDEN": UnauthorizedError,
    "NOT_FOUND": NotFoundError,
    "TIMEOUT": TransientError,
    "TOO_MANY_REQUESTS": TransientError,
    "INTERNAL_SERVER_ERROR": UnknownError,
}

_TRANSIENT_STATUSES = {408, 425, 429, 502, 503, 504}


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _error_from_response(response: httpx.Response) -> QueryError:
    """Map an unsuccessful response onto the error taxonomy."""
    try:
        body = response.json()
    except ValueError:
        body = None
    error = _as_dict(body).get("error") or {}
    if not isinstance(error, dict):
        error = {"message": str(error)}

    data = _as_dict(error.get("data"))
    message = str(error.get("message") or f"HTTP {response.status_code}")
    zod_error = _as_dict(data.get("zodError"))
    field_errors = {
        str(name): [str(m) for m in messages]
        for name, messages in _as_dict(zod_error.get("fieldErrors")).items()
        if isinstance(messages, list)
    }

    cls = _BY_CODE.get(str(data.get("code", "")))
    if cls is None:
        status = response.status_code
        if status in _TRANSIENT_STATUSES:
            cls = TransientError
        elif status in (400, 422):
            cls = ValidationError
        elif status in (401, 403):
            cls = UnauthorizedError
        elif status == 404:
            cls = NotFoundError
        else:
            cls = UnknownError
    return cls(message, field_errors=field_errors)


class HttpTransport:
    """Async HTTP transport.

    Queries are sent as ``GET {base_url}/{name}?input=<json>`` and commands
    as ``POST {base_url}/{name}`` with a JSON body. Successful responses
    carry ``{"result": {"data": ...}}``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
        )

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method, endpoint, params=params, json=body
            )
        except httpx.TimeoutException as exc:
            raise TransientError(f"Request to {endpoint} timed out") from exc
        except httpx.TransportError as exc:
            raise TransientError(f"Request to {endpoint} failed: {exc}") from exc

        if not response.is_success:
            error = _error_from_response(response)
            logger.debug(
                "%s %s -> %s (%s)", method, endpoint, response.status_code, error.code
            )
            raise error

        try:
            payload = response.json()
        except ValueError as exc:
            raise UnknownError(f"Invalid JSON from {endpoint}") from exc
        if not isinstance(payload, dict):
            raise UnknownError(f"Unexpected response shape from {endpoint}")
        return (payload.get("result") or {}).get("data")

    async def read(self, query_name: str, params: dict[str, Any]) -> Any:
        """Run a query."""
        return await self._request(
            "GET",
            f"/{query_name}",
            params={"input": json.dumps(params, separators=(",", ":"))},
        )

    async def write(self, command_name: str, payload: dict[str, Any]) -> Any:
        """Run a command."""
        return await self._request("POST", f"/{command_name}", body=payload)

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


__all__ = ["HttpTransport"]
