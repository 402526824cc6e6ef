"""Tests for the CLI, settings and logging helpers."""

from __future__ import annotations

import pytest
import typer
from typer.testing import CliRunner

from wsrpc.cli.app import app, parse_params
from wsrpc.config import WsRpcSettings, load_settings
from wsrpc.logging_utils import parse_log_filter

runner = CliRunner()


class TestParseParams:
    def test_array_and_object(self):
        assert parse_params("[1, 2]") == [1, 2]
        assert parse_params('{"a": 1}') == {"a": 1}
        assert parse_params(None) is None

    @pytest.mark.parametrize("raw", ["5", '"text"', "{broken"])
    def test_rejects_other_values(self, raw):
        with pytest.raises(typer.BadParameter):
            parse_params(raw)


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("WSRPC_URL", raising=False)
        monkeypatch.delenv("WSRPC_REQUEST_TIMEOUT_MS", raising=False)
        settings = WsRpcSettings(_env_file=None)

        assert settings.url == "ws://localhost:7892"
        assert settings.request_timeout_ms == 30_000

    def test_overrides_skip_none(self, monkeypatch):
        monkeypatch.setenv("WSRPC_REQUEST_TIMEOUT_MS", "750")
        settings = load_settings(url="ws://other:1", request_timeout_ms=None)

        assert settings.url == "ws://other:1"
        assert settings.request_timeout_ms == 750


class TestLogFilter:
    def test_global_level_only(self):
        assert parse_log_filter("debug") == ("debug", {})

    def test_module_levels(self):
        level, modules = parse_log_filter("info,wsrpc.rpc=debug,websockets=false")

        assert level == "info"
        assert modules == {"wsrpc.rpc": "DEBUG", "websockets": False}


class TestCli:
    def test_call_reports_connection_failure(self):
        result = runner.invoke(app, ["call", "sum", "[1, 2]", "--url", "ws://localhost:1", "--timeout-ms", "100"])

        assert result.exit_code == 1

    def test_call_rejects_bad_params(self):
        result = runner.invoke(app, ["call", "sum", "5", "--url", "ws://localhost:1"])

        assert result.exit_code != 0
