"""Odamex RCON console.

Usage:
    odamex-rcon connect local                      # Saved server
    odamex-rcon connect --host 10.0.0.5 --port 10666 --password secret
    odamex-rcon servers list                       # Show saved servers
    odamex-rcon servers add local --host 127.0.0.1 --password secret
    odamex-rcon servers remove local

In the console every line is sent to the server as a command, except:
    :login      send a login request with the server's protocol version
    :password   send the configured password
    :maplist    request the map list
    :quit       disconnect (end of input does the same)
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import sys
import threading
from pathlib import Path
from typing import TextIO

import click

from . import __version__
from .config import LATEST, RconConfig, ServerConfig, load_config, save_config
from .errors import ConnectError
from .protocol import ClientContent, Command, LoginPassword, LoginRequest, Maplist, PrintLevel
from .transport import DEFAULT_PORT, RconSession, SessionState, connect

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


class ConsoleSink:
    """Writes session output to the terminal, coloured by print level."""

    def __init__(self, config: RconConfig) -> None:
        self._config = config
        self._lock = threading.Lock()

    def deliver(self, text: str, level: PrintLevel | None) -> None:
        color = self._config.color_for(level)
        # Output arrives from the session tasks and the input thread
        with self._lock:
            click.secho(text.rstrip("\n"), fg=color)


def console_content(line: str, server: ServerConfig) -> ClientContent | None:
    """Map a console line to the content to send. Returns None for ``:quit``.

    Raises:
        ValueError: For an unknown ``:`` command
    """
    if not line.startswith(":"):
        return Command(content=line)

    keyword = line.strip().lower()
    if keyword == ":quit":
        return None
    if keyword == ":maplist":
        return Maplist()
    if keyword == ":login":
        return LoginRequest(content=server.protocol_version())
    if keyword == ":password":
        return LoginPassword(content=server.password)
    raise ValueError(f"Unknown console command: {line.strip()}")


def _read_commands(
    session: RconSession,
    server: ServerConfig,
    stream: TextIO,
    sink: ConsoleSink,
    loop: asyncio.AbstractEventLoop,
    done: asyncio.Event,
) -> None:
    """Input thread: send each line read from ``stream`` until quit or EOF."""
    try:
        for raw in stream:
            if session.state == SessionState.CLOSED:
                break
            line = raw.rstrip("\r\n")
            if not line.strip():
                continue
            try:
                content = console_content(line, server)
            except ValueError as e:
                sink.deliver(str(e), None)
                continue
            if content is None:
                break
            session.send(content)
    finally:
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(done.set)


async def run_console(server: ServerConfig, config: RconConfig, stream: TextIO) -> None:
    """Run an interactive session until input ends or the server disconnects.

    Raises:
        ConnectError: If the server's host/port are not a valid target
    """
    sink = ConsoleSink(config)
    session = connect(server.host, server.port, server.password, sink)
    if not await session.wait_ready():
        # Handshake failed; the sink has already shown why
        return

    loop = asyncio.get_running_loop()
    input_done = asyncio.Event()
    # Daemon thread: a blocked read must not keep the process alive after the
    # server hangs up
    reader = threading.Thread(
        target=_read_commands,
        args=(session, server, stream, sink, loop, input_done),
        name="rcon-input",
        daemon=True,
    )
    reader.start()

    input_task = asyncio.create_task(input_done.wait())
    closed_task = asyncio.create_task(session.wait_closed())
    try:
        await asyncio.wait({input_task, closed_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        input_task.cancel()
        closed_task.cancel()
        await session.close()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _load(ctx: click.Context) -> RconConfig:
    try:
        return load_config(ctx.obj["config_path"])
    except ValueError as e:
        raise click.ClickException(f"Failed to load config: {e}") from e


@click.group()
@click.version_option(__version__, prog_name="odamex-rcon")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file (default: $ODAMEX_RCON_CONFIG or ~/.config/odamex-rcon/config.yaml)",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    envvar="ODAMEX_RCON_LOG_LEVEL",
    help="Diagnostic log level (logs go to stderr)",
)
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, log_level: str) -> None:
    """Remote console for Odamex servers."""
    _configure_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@main.command("connect")
@click.argument("name", required=False)
@click.option("--host", envvar="ODAMEX_RCON_HOST", help="Server host")
@click.option("--port", type=int, envvar="ODAMEX_RCON_PORT", help="Server port")
@click.option("--password", envvar="ODAMEX_RCON_PASSWORD", help="RCON password")
@click.option("--protoversion", default=None, help="Protocol version (M.m.r or 'latest')")
@click.pass_context
def connect_command(
    ctx: click.Context,
    name: str | None,
    host: str | None,
    port: int | None,
    password: str | None,
    protoversion: str | None,
) -> None:
    """Open a console to a saved server NAME or to --host/--port.

    Options given alongside NAME override the saved values.
    """
    config = _load(ctx)

    if name:
        try:
            saved = config.get_server(name)
        except KeyError:
            raise click.UsageError(f"No saved server named {name!r}") from None
        values = saved.model_dump()
    elif host:
        values = {
            "name": host,
            "host": host,
            "port": DEFAULT_PORT,
            "password": "",
            "protoversion": LATEST,
        }
    else:
        raise click.UsageError("Give a saved server NAME or --host")

    overrides = {"host": host, "port": port, "password": password, "protoversion": protoversion}
    values.update({key: value for key, value in overrides.items() if value is not None})

    try:
        server = ServerConfig.model_validate(values)
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    try:
        asyncio.run(run_console(server, config, sys.stdin))
    except ConnectError as e:
        raise click.ClickException(str(e)) from e
    except KeyboardInterrupt:
        click.echo("\nDisconnected", err=True)


@main.group("servers")
def servers_group() -> None:
    """Manage saved servers."""


@servers_group.command("list")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_servers(ctx: click.Context, output_json: bool) -> None:
    """List saved servers."""
    config = _load(ctx)

    if output_json:
        # Passwords stay out of listings
        rows = [s.model_dump(exclude={"password"}) for s in config.servers]
        click.echo(json.dumps(rows, indent=2))
        return

    if not config.servers:
        click.echo("No saved servers.")
        return

    click.echo(f"{'Name':<20} {'Host':<30} {'Port':>6} {'Protocol':<10}")
    click.echo("-" * 69)
    for server in config.servers:
        click.echo(
            f"{server.name:<20} {server.host:<30} {server.port:>6} {server.protoversion:<10}"
        )


@servers_group.command("add")
@click.argument("name")
@click.option("--host", required=True, help="Server host")
@click.option("--port", type=int, default=DEFAULT_PORT, show_default=True, help="Server port")
@click.option("--password", default="", help="RCON password")
@click.option("--protoversion", default=LATEST, show_default=True, help="M.m.r or 'latest'")
@click.pass_context
def add_server(
    ctx: click.Context, name: str, host: str, port: int, password: str, protoversion: str
) -> None:
    """Save server NAME (replaces an existing entry)."""
    config = _load(ctx)
    try:
        server = ServerConfig(
            name=name, host=host, port=port, password=password, protoversion=protoversion
        )
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    config.add_server(server)
    path = save_config(config, ctx.obj["config_path"])
    click.echo(f"Saved {name} to {path}")


@servers_group.command("remove")
@click.argument("name")
@click.pass_context
def remove_server(ctx: click.Context, name: str) -> None:
    """Delete saved server NAME."""
    config = _load(ctx)
    if not config.remove_server(name):
        raise click.ClickException(f"No saved server named {name!r}")
    save_config(config, ctx.obj["config_path"])
    click.echo(f"Removed {name}")


if __name__ == "__main__":
    main()
