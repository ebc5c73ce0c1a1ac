"""Tests for the odamex-rcon console CLI."""

from __future__ import annotations

import asyncio
import io
import json
import os
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from odamex_rcon.cli import ConsoleSink, console_content, main, run_console
from odamex_rcon.config import RconConfig, ServerConfig, load_config
from odamex_rcon.protocol import (
    Command,
    LoginPassword,
    LoginRequest,
    Maplist,
    PrintLevel,
    ProtocolVersion,
)

CONNECT = "odamex_rcon.transport.session.websockets.connect"


@pytest.fixture
def server() -> ServerConfig:
    return ServerConfig(
        name="local", host="127.0.0.1", port=10666, password="secret", protoversion="1.2.3"
    )


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "config.yaml"


# =============================================================================
# Console line handling
# =============================================================================


class TestConsoleContent:
    def test_plain_line_is_command(self, server: ServerConfig) -> None:
        assert console_content("map MAP01", server) == Command(content="map MAP01")

    def test_quit(self, server: ServerConfig) -> None:
        assert console_content(":quit", server) is None

    def test_maplist(self, server: ServerConfig) -> None:
        assert console_content(":maplist", server) == Maplist()

    def test_login_uses_server_version(self, server: ServerConfig) -> None:
        assert console_content(":login", server) == LoginRequest(
            content=ProtocolVersion(major=1, minor=2, revision=3)
        )

    def test_password_uses_server_password(self, server: ServerConfig) -> None:
        assert console_content(":password", server) == LoginPassword(content="secret")

    def test_keywords_case_insensitive(self, server: ServerConfig) -> None:
        assert console_content(":QUIT ", server) is None

    def test_unknown_keyword(self, server: ServerConfig) -> None:
        with pytest.raises(ValueError, match="Unknown console command"):
            console_content(":teleport", server)


class TestConsoleSink:
    def test_strips_trailing_newline(self, capsys) -> None:
        ConsoleSink(RconConfig()).deliver("player joined\n", PrintLevel.HIGH)

        assert capsys.readouterr().out == "player joined\n"


# =============================================================================
# run_console
# =============================================================================


class TestRunConsole:
    @pytest.mark.asyncio
    async def test_sends_lines_until_quit(self, server, fake_ws) -> None:
        stream = io.StringIO("status\n:maplist\n\n:bogus\n:quit\nnever sent\n")

        with patch(CONNECT, new=AsyncMock(return_value=fake_ws)):
            await run_console(server, RconConfig(), stream)

        sent = [json.loads(frame) for frame in fake_ws.sent]
        assert [(m["type"], m.get("content")) for m in sent] == [
            ("command", "status"),
            ("maplist", None),
        ]
        assert fake_ws.closed is True

    @pytest.mark.asyncio
    async def test_end_of_input_disconnects(self, server, fake_ws) -> None:
        with patch(CONNECT, new=AsyncMock(return_value=fake_ws)):
            await run_console(server, RconConfig(), io.StringIO("status\n"))

        assert len(fake_ws.sent) == 1
        assert fake_ws.closed is True

    @pytest.mark.asyncio
    async def test_returns_when_server_hangs_up(self, server, fake_ws) -> None:
        """A server disconnect ends the console even while input is idle."""
        read_fd, write_fd = os.pipe()
        stream = os.fdopen(read_fd)
        asyncio.get_running_loop().call_later(0.05, fake_ws.hang_up)

        try:
            with patch(CONNECT, new=AsyncMock(return_value=fake_ws)):
                await asyncio.wait_for(run_console(server, RconConfig(), stream), 2.0)
        finally:
            os.close(write_fd)

    @pytest.mark.asyncio
    async def test_handshake_failure_returns(self, server, capsys) -> None:
        with patch(CONNECT, new=AsyncMock(side_effect=OSError("Connection refused"))):
            await run_console(server, RconConfig(), io.StringIO("status\n"))

        assert "Connection refused" in capsys.readouterr().out


# =============================================================================
# Commands
# =============================================================================


class TestServersCommands:
    def test_list_empty(self, config_path: Path) -> None:
        result = CliRunner().invoke(main, ["--config", str(config_path), "servers", "list"])

        assert result.exit_code == 0
        assert "No saved servers." in result.output

    def test_add_list_remove(self, config_path: Path) -> None:
        runner = CliRunner()
        base = ["--config", str(config_path), "servers"]

        added = runner.invoke(
            main, [*base, "add", "ctf", "--host", "ctf.example.net", "--password", "pw"]
        )
        assert added.exit_code == 0, added.output
        assert load_config(config_path).get_server("ctf").port == 10666

        listed = runner.invoke(main, [*base, "list"])
        assert "ctf.example.net" in listed.output

        as_json = runner.invoke(main, [*base, "list", "--json"])
        rows = json.loads(as_json.output)
        assert rows[0]["name"] == "ctf"
        assert "password" not in rows[0]

        removed = runner.invoke(main, [*base, "remove", "ctf"])
        assert removed.exit_code == 0
        assert load_config(config_path).servers == []

    def test_add_bad_version(self, config_path: Path) -> None:
        args = ["servers", "add", "x", "--host", "h", "--protoversion", "9"]
        result = CliRunner().invoke(main, ["--config", str(config_path), *args])

        assert result.exit_code == 2
        assert not config_path.exists()

    def test_remove_unknown(self, config_path: Path) -> None:
        result = CliRunner().invoke(
            main, ["--config", str(config_path), "servers", "remove", "ghost"]
        )

        assert result.exit_code == 1
        assert "ghost" in result.output

    def test_broken_config_reported(self, config_path: Path) -> None:
        config_path.write_text("servers: [unclosed\n")

        result = CliRunner().invoke(main, ["--config", str(config_path), "servers", "list"])

        assert result.exit_code == 1
        assert "Failed to load config" in result.output


class TestConnectCommand:
    def test_needs_name_or_host(self, config_path: Path, monkeypatch) -> None:
        monkeypatch.delenv("ODAMEX_RCON_HOST", raising=False)

        result = CliRunner().invoke(main, ["--config", str(config_path), "connect"])

        assert result.exit_code == 2

    def test_unknown_server(self, config_path: Path) -> None:
        result = CliRunner().invoke(main, ["--config", str(config_path), "connect", "ghost"])

        assert result.exit_code == 2
        assert "ghost" in result.output

    def test_invalid_host(self, config_path: Path) -> None:
        result = CliRunner().invoke(
            main, ["--config", str(config_path), "connect", "--host", "bad host"]
        )

        assert result.exit_code == 1
        assert "Invalid host" in result.output

    def test_saved_server_with_override(self, config_path: Path, fake_ws) -> None:
        runner = CliRunner()
        runner.invoke(
            main,
            ["--config", str(config_path), "servers", "add", "local", "--host", "127.0.0.1"],
        )

        with patch(CONNECT, new=AsyncMock(return_value=fake_ws)) as mock_connect:
            result = runner.invoke(
                main,
                ["--config", str(config_path), "connect", "local", "--port", "10700"],
                input="status\n",
            )

        assert result.exit_code == 0, result.output
        assert mock_connect.await_args.args[0] == "ws://127.0.0.1:10700"
        assert json.loads(fake_ws.sent[0])["content"] == "status"
