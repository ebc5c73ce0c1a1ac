"""Log sink interface for delivering server output to the application.

A session hands every line it wants shown to the user to a sink: server
prints with their ``PrintLevel``, everything else (status notices, received
non-print messages, decode and transport errors) with ``None``.

Sinks are called from the session's reader and writer tasks, and from
whichever thread calls ``send`` when a message has to be dropped. A sink
that updates a UI owned by another thread must marshal the call itself.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from ..protocol import PrintLevel

LogCallback = Callable[[str, PrintLevel | None], None]


@runtime_checkable
class LogSink(Protocol):
    """Receives text for the user, with an optional print level."""

    def deliver(self, text: str, level: PrintLevel | None) -> None:
        """Deliver one line of output.

        Args:
            text: Text to show
            level: Print level for server prints, None for everything else
        """
        ...


class CallbackLogSink:
    """Adapts a plain ``(text, level)`` callable to the LogSink protocol."""

    def __init__(self, callback: LogCallback) -> None:
        self._callback = callback

    def deliver(self, text: str, level: PrintLevel | None) -> None:
        self._callback(text, level)


def as_log_sink(on_log: LogSink | LogCallback) -> LogSink:
    """Return ``on_log`` as a LogSink, wrapping bare callables."""
    if isinstance(on_log, LogSink):
        return on_log
    if callable(on_log):
        return CallbackLogSink(on_log)
    raise TypeError(f"on_log must be a LogSink or a callable, got {type(on_log).__name__}")
