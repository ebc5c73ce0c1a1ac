"""Wire protocol for Odamex RCON.

Messages are JSON objects with a ``type`` tag, an ``id`` and an optional
``content`` payload whose shape depends on the tag. This package has no I/O.
"""

from .ids import IdSource
from .messages import (
    ClientContent,
    ClientMessage,
    Command,
    LoginFailure,
    LoginPassword,
    LoginRequest,
    LoginResponse,
    LoginSuccess,
    Maplist,
    Message,
    Print,
    PrintLevel,
    PrintPayload,
    ServerContent,
    ServerMaplist,
    ServerMessage,
    parse,
    serialize,
)
from .version import LATEST_PROTOCOL_VERSION, ProtocolVersion

__all__ = [
    "ClientContent",
    "ClientMessage",
    "Command",
    "IdSource",
    "LATEST_PROTOCOL_VERSION",
    "LoginFailure",
    "LoginPassword",
    "LoginRequest",
    "LoginResponse",
    "LoginSuccess",
    "Maplist",
    "Message",
    "Print",
    "PrintLevel",
    "PrintPayload",
    "ProtocolVersion",
    "ServerContent",
    "ServerMaplist",
    "ServerMessage",
    "parse",
    "serialize",
]
