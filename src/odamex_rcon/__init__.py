"""Remote console client for Odamex servers.

Two layers:
- protocol: tagged JSON messages exchanged with the server
- transport: a WebSocket session with concurrent reader and writer tasks
"""

from .errors import ConnectError, DecodeError, RconError
from .protocol import (
    LATEST_PROTOCOL_VERSION,
    ClientMessage,
    Command,
    IdSource,
    LoginFailure,
    LoginPassword,
    LoginRequest,
    LoginResponse,
    LoginSuccess,
    Maplist,
    Print,
    PrintLevel,
    ProtocolVersion,
    ServerMaplist,
    ServerMessage,
)
from .transport import CallbackLogSink, LogSink, RconSession, SessionState, connect

__version__ = "0.1.0"

__all__ = [
    "CallbackLogSink",
    "ClientMessage",
    "Command",
    "ConnectError",
    "DecodeError",
    "IdSource",
    "LATEST_PROTOCOL_VERSION",
    "LogSink",
    "LoginFailure",
    "LoginPassword",
    "LoginRequest",
    "LoginResponse",
    "LoginSuccess",
    "Maplist",
    "Print",
    "PrintLevel",
    "ProtocolVersion",
    "RconError",
    "RconSession",
    "ServerMaplist",
    "ServerMessage",
    "SessionState",
    "connect",
]
