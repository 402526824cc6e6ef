"""Typer CLI entrypoints."""

from __future__ import annotations

import asyncio
import json
from typing import Annotated, Any

import typer
import websockets
from loguru import logger

from wsrpc.config import load_settings
from wsrpc.logging_utils import configure_logging
from wsrpc.rpc.errors import JSONRPCErrorException
from wsrpc.rpc.session import JSONRPCWebSocket
from wsrpc.rpc.types import ErrorData, dump_message

app = typer.Typer(name="wsrpc", help="JSON-RPC 2.0 over WebSocket", add_completion=False)


def parse_params(raw: str | None) -> list[Any] | dict[str, Any] | None:
    """Parse a PARAMS argument: a JSON array or object."""
    if raw is None:
        return None
    try:
        params = json.loads(raw)
    except ValueError as exc:
        raise typer.BadParameter(f"params must be JSON: {exc}") from None
    if not isinstance(params, list | dict):
        raise typer.BadParameter("params must be a JSON array or object")
    return params


def _print_error(error: ErrorData) -> None:
    typer.echo(error.model_dump_json(exclude_none=True), err=True)


async def _call(session: JSONRPCWebSocket, method: str, params: list[Any] | dict[str, Any] | None) -> int:
    async with session:
        try:
            response = await session.call(method, params)
        except JSONRPCErrorException as exc:
            _print_error(exc.to_error())
            return 1
    typer.echo(dump_message(response))
    return 0


async def _notify(session: JSONRPCWebSocket, method: str, params: list[Any] | dict[str, Any] | None) -> int:
    async with session:
        try:
            await session.notify(method, params)
        except JSONRPCErrorException as exc:
            _print_error(exc.to_error())
            return 1
    return 0


def _build_session(url: str | None, timeout_ms: int | None) -> JSONRPCWebSocket:
    settings = load_settings(url=url, request_timeout_ms=timeout_ms)
    session = JSONRPCWebSocket.from_settings(settings)
    session.errors.subscribe(_print_error)
    return session


def _run(coro: Any, url: str) -> None:
    try:
        code = asyncio.run(coro)
    except (websockets.exceptions.WebSocketException, ConnectionRefusedError, OSError) as exc:
        typer.echo(f"Cannot connect to {url}: {exc}", err=True)
        raise typer.Exit(1) from None
    if code:
        raise typer.Exit(code)


@app.command()
def call(
    method: Annotated[str, typer.Argument(help="Method name")],
    params: Annotated[str | None, typer.Argument(help="Params as a JSON array or object")] = None,
    url: Annotated[str | None, typer.Option("--url", "-u", help="WebSocket URL")] = None,
    timeout_ms: Annotated[int | None, typer.Option("--timeout-ms", "-t", help="Request timeout in ms")] = None,
) -> None:
    """Send a request and print the response."""
    configure_logging()
    parsed = parse_params(params)
    session = _build_session(url, timeout_ms)
    logger.info("cli.call url={} method={}", session.url, method)
    _run(_call(session, method, parsed), session.url)


@app.command()
def notify(
    method: Annotated[str, typer.Argument(help="Method name")],
    params: Annotated[str | None, typer.Argument(help="Params as a JSON array or object")] = None,
    url: Annotated[str | None, typer.Option("--url", "-u", help="WebSocket URL")] = None,
) -> None:
    """Send a notification."""
    configure_logging()
    parsed = parse_params(params)
    session = _build_session(url, None)
    logger.info("cli.notify url={} method={}", session.url, method)
    _run(_notify(session, method, parsed), session.url)


def main() -> None:
    app()
