"""Transport layer: one WebSocket session per server connection.

Outbound content is queued with ``RconSession.send`` and written by a writer
task; inbound frames are parsed by a reader task and delivered to a LogSink.
"""

from .session import (
    DEFAULT_PORT,
    RCON_SUBPROTOCOL,
    RconSession,
    SessionState,
    build_uri,
    connect,
)
from .sink import CallbackLogSink, LogCallback, LogSink, as_log_sink

__all__ = [
    "CallbackLogSink",
    "DEFAULT_PORT",
    "LogCallback",
    "LogSink",
    "RCON_SUBPROTOCOL",
    "RconSession",
    "SessionState",
    "as_log_sink",
    "build_uri",
    "connect",
]
