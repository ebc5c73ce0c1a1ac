"""Exception types raised by the RCON client."""

from __future__ import annotations


class RconError(Exception):
    """Base class for RCON client errors."""


class DecodeError(RconError, ValueError):
    """A frame or value could not be decoded into a protocol message."""

    def __init__(self, message: str, text: str | None = None) -> None:
        super().__init__(message)
        self.text = text


class ConnectError(RconError, ConnectionError):
    """The connection target could not be built.

    Only raised before any network activity starts. Failures after the
    handshake begins are delivered to the session's log sink instead.
    """
