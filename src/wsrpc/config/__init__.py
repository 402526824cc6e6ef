"""Configuration package."""

from wsrpc.config.settings import WsRpcSettings, load_settings

__all__ = [
    "WsRpcSettings",
    "load_settings",
]
