"""WebSocket session with a remote Odamex server.

A session owns one connection and runs two tasks over it:
- writer: drains the outbound queue in FIFO order, one text frame per message
- reader: parses inbound frames and hands them to the log sink

Errors after the handshake starts never propagate to the caller. They are
delivered to the log sink as text and the session carries on (decode and
send failures) or ends (connection closed).

State machine: CONNECTING -> OPEN -> CLOSED. A closed session is never
reopened; open a new one with ``connect``.
"""

from __future__ import annotations

import asyncio
import contextlib
import ipaddress
import logging
from enum import Enum
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosedError, InvalidURI
from websockets.typing import Subprotocol
from websockets.uri import parse_uri

from ..errors import ConnectError, DecodeError
from ..protocol import ClientContent, ClientMessage, IdSource, Print, PrintLevel, ServerMessage
from .sink import LogCallback, LogSink, as_log_sink

logger = logging.getLogger(__name__)

RCON_SUBPROTOCOL = Subprotocol("odamex-rcon")
DEFAULT_PORT = 10666

# How long close() waits for queued messages to be written
CLOSE_FLUSH_TIMEOUT = 5.0

_HOST_DELIMITERS = frozenset("/?#@\\")


class SessionState(str, Enum):
    """Session lifecycle."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


def build_uri(host: str, port: int) -> str:
    """Build the WebSocket target for ``host:port``.

    IPv6 literals may be given with or without brackets.

    Raises:
        ConnectError: If the host or port cannot form a valid target
    """
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port <= 65535:
        raise ConnectError(f"Invalid port: {port!r}")

    host = host.strip()
    if not host or any(ch.isspace() or ch in _HOST_DELIMITERS for ch in host):
        raise ConnectError(f"Invalid host: {host!r}")

    if ":" in host or "[" in host or "]" in host:
        literal = host[1:-1] if host.startswith("[") and host.endswith("]") else host
        try:
            host = f"[{ipaddress.IPv6Address(literal).compressed}]"
        except ValueError as e:
            raise ConnectError(f"Invalid host: {host!r}") from e

    uri = f"ws://{host}:{port}"
    try:
        parse_uri(uri)
    except (InvalidURI, ValueError) as e:
        raise ConnectError(f"Invalid connection target {uri}: {e}") from e
    return uri


class RconSession:
    """One live RCON connection.

    Create sessions with ``connect``. The session is bound to the event loop
    that was running when it was created; ``send`` may be called from any
    thread.
    """

    def __init__(
        self,
        uri: str,
        password: str,
        sink: LogSink,
        *,
        id_source: IdSource | None = None,
    ) -> None:
        self.uri = uri
        self._password = password
        self._sink = sink
        self._ids = id_source or IdSource()
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[str] = asyncio.Queue()
        self._state = SessionState.CONNECTING
        self._websocket: Any = None  # websockets.asyncio.client.ClientConnection
        self._task: asyncio.Task[None] | None = None
        self._ready = asyncio.Event()
        self._closed = asyncio.Event()

    @property
    def state(self) -> SessionState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state == SessionState.OPEN

    @property
    def password(self) -> str:
        """Password this session was opened with.

        It is not sent automatically; see ``LoginPassword``.
        """
        return self._password

    @property
    def id_source(self) -> IdSource:
        return self._ids

    def start(self) -> None:
        """Spawn the session task. Called once by ``connect``."""
        if self._task is not None:
            raise RuntimeError("Session already started")
        self._task = self._loop.create_task(self._run(), name=f"rcon-session {self.uri}")

    def send(self, content: ClientContent) -> ClientMessage:
        """Queue ``content`` for transmission and return the envelope built for it.

        Never blocks. Messages sent while connecting are transmitted once the
        connection opens. If the session has closed, the message is dropped
        and a notice goes to the log sink.
        """
        message = ClientMessage.new(content, self._ids)
        frame = message.serialize()

        if _running_loop() is self._loop:
            self._enqueue(frame)
            return message

        try:
            self._loop.call_soon_threadsafe(self._enqueue, frame)
        except RuntimeError as e:
            # Loop already closed
            self._deliver(f"Failed to queue message, session is gone: {e}")
        return message

    async def close(self) -> None:
        """Close the connection and wait for both tasks to finish.

        Messages already queued get up to CLOSE_FLUSH_TIMEOUT seconds to be
        written first. Closing while still connecting abandons the handshake.
        """
        if self._state == SessionState.CLOSED:
            return

        if self._websocket is not None:
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._queue.join(), CLOSE_FLUSH_TIMEOUT)
            await self._websocket.close()
        elif self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            if not self._closed.is_set():
                # Cancelled before it ever ran
                self._finish()

        await self._closed.wait()

    async def wait_ready(self) -> bool:
        """Wait for the handshake to finish. Returns True if the session is open."""
        await self._ready.wait()
        return self.is_open

    async def wait_closed(self) -> None:
        """Wait until the session reaches CLOSED."""
        await self._closed.wait()

    async def __aenter__(self) -> RconSession:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    # -------------------------------------------------------------------------
    # Tasks
    # -------------------------------------------------------------------------

    async def _run(self) -> None:
        try:
            self._deliver("Starting connection...")
            handshake = asyncio.create_task(self._open(), name=f"rcon-handshake {self.uri}")
            try:
                websocket = await handshake
            except asyncio.CancelledError:
                # Cancelled after the handshake finished but before we resumed
                if handshake.done() and not handshake.cancelled():
                    if handshake.exception() is None:
                        await handshake.result().close()
                raise
            except Exception as e:
                logger.warning(f"Failed to connect to {self.uri}: {e}")
                self._deliver(f"Failed to connect to {self.uri}: {e}")
                return

            self._websocket = websocket
            self._state = SessionState.OPEN
            self._ready.set()
            logger.info(f"Connected to {self.uri} (subprotocol: {websocket.subprotocol})")
            self._deliver("Connected to odamex server!")

            writer = asyncio.create_task(
                self._write_loop(websocket), name=f"rcon-writer {self.uri}"
            )
            try:
                await self._read_loop(websocket)
            finally:
                writer.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await writer
        finally:
            self._finish()

    async def _open(self) -> Any:
        return await websockets.connect(self.uri, subprotocols=[RCON_SUBPROTOCOL])

    async def _write_loop(self, websocket: Any) -> None:
        while True:
            frame = await self._queue.get()
            try:
                await websocket.send(frame)
            except Exception as e:
                logger.warning(f"Failed to send message to {self.uri}: {e}")
                self._deliver(f"Failed to send message: {e}")
            finally:
                self._queue.task_done()

    async def _read_loop(self, websocket: Any) -> None:
        try:
            async for frame in websocket:
                if isinstance(frame, str):
                    self._handle_text(frame)
        except ConnectionClosedError as e:
            logger.info(f"Connection to {self.uri} closed abnormally: {e}")
            self._deliver(f"Connection to server has been closed: {e}")
        else:
            logger.info(f"Connection to {self.uri} closed")
            self._deliver("Connection to server has been closed")

    def _handle_text(self, frame: str) -> None:
        try:
            message = ServerMessage.parse(frame)
        except DecodeError as e:
            logger.warning(f"Invalid message from server: {e}")
            self._deliver(f"Received invalid message: {frame}\n{e}")
            return

        content = message.content
        if isinstance(content, Print):
            self._deliver(content.text, content.printlevel)
        else:
            self._deliver(f"Received: {message.describe()}")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _enqueue(self, frame: str) -> None:
        if self._state == SessionState.CLOSED:
            self._deliver(f"Not connected, message dropped: {frame}")
            return
        self._queue.put_nowait(frame)

    def _deliver(self, text: str, level: PrintLevel | None = None) -> None:
        try:
            self._sink.deliver(text, level)
        except Exception:
            logger.exception("Log sink failed to deliver a message")

    def _finish(self) -> None:
        self._state = SessionState.CLOSED
        dropped = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            dropped += 1
        if dropped:
            logger.info(f"Discarded {dropped} unsent message(s) for {self.uri}")
            self._deliver(f"Discarded {dropped} unsent message(s)")
        self._ready.set()
        self._closed.set()


def connect(
    host: str,
    port: int,
    password: str,
    on_log: LogSink | LogCallback,
    *,
    id_source: IdSource | None = None,
) -> RconSession:
    """Open an RCON session to ``host:port``.

    Must be called while an asyncio event loop is running; the session's
    tasks run on that loop. Returns as soon as the session task is spawned,
    in the CONNECTING state. The handshake offers the ``odamex-rcon``
    sub-protocol; its outcome, and every later failure, is reported through
    ``on_log``.

    Args:
        host: Server host name or IP address
        port: Server port
        password: RCON password, kept on the session but not transmitted
        on_log: LogSink, or a callable taking ``(text, level)``
        id_source: Id allocator shared with other sessions; each session
            gets its own starting at 0 when omitted

    Raises:
        ConnectError: If ``host``/``port`` do not form a valid target. No
            task is spawned in that case.
    """
    uri = build_uri(host, port)
    session = RconSession(uri, password, as_log_sink(on_log), id_source=id_source)
    session.start()
    return session


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
