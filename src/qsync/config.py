"""Settings for the query client.

Values come from keyword arguments or from ``QSYNC_*`` environment
variables, e.g. ``QSYNC_API_URL=https://example.com/api/trpc``.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class QSyncSettings(BaseSettings):
    """Query client configuration."""

    model_config = SettingsConfigDict(env_prefix="QSYNC_", extra="ignore")

    api_url: str | None = Field(
        default=None,
        description="Base URL of the procedure endpoint; in-process when unset",
    )
    api_key: str | None = Field(default=None, description="Bearer token")
    timeout: float = Field(
        default=30.0, gt=0, description="Request timeout in seconds"
    )
    refetch_on_invalidate: bool = Field(
        default=True,
        description="Refetch observed queries as soon as they are invalidated",
    )


__all__ = ["QSyncSettings"]
