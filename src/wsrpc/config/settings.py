"""Application settings."""

from __future__ import annotations

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class WsRpcSettings(BaseSettings):
    """Connection and request settings for a JSON-RPC session."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="WSRPC_",
        case_sensitive=False,
        extra="ignore",
    )

    url: str = Field(default="ws://localhost:7892")
    request_timeout_ms: int = Field(default=30_000, ge=1)
    open_timeout: float | None = Field(default=10.0)
    max_size: int | None = Field(default=2**20)
    subprotocol: str | None = Field(default=None)


def load_settings(**overrides: Any) -> WsRpcSettings:
    """Load settings from the environment, ignoring overrides that are None."""
    return WsRpcSettings(**{key: value for key, value in overrides.items() if value is not None})
