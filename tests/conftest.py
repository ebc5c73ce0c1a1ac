"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import pytest

from odamex_rcon.protocol import PrintLevel


class RecordingSink:
    """LogSink that keeps every delivery."""

    def __init__(self) -> None:
        self.lines: list[tuple[str, PrintLevel | None]] = []

    def deliver(self, text: str, level: PrintLevel | None) -> None:
        self.lines.append((text, level))

    @property
    def texts(self) -> list[str]:
        return [text for text, _ in self.lines]


class _Hangup:
    def __init__(self, error: BaseException | None) -> None:
        self.error = error


class FakeWebSocket:
    """Stand-in for a websockets client connection.

    Frames passed to ``feed`` are yielded by async iteration in order;
    ``hang_up`` ends the iteration, optionally raising ``error``.
    """

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.subprotocol = "odamex-rcon"
        self.closed = False
        self.send_errors: list[Exception] = []
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()

    def feed(self, frame: str | bytes) -> None:
        self._incoming.put_nowait(frame)

    def hang_up(self, error: BaseException | None = None) -> None:
        self._incoming.put_nowait(_Hangup(error))

    async def send(self, frame: str) -> None:
        if self.send_errors:
            raise self.send_errors.pop(0)
        self.sent.append(frame)

    async def close(self) -> None:
        self.closed = True
        self.hang_up()

    def __aiter__(self) -> FakeWebSocket:
        return self

    async def __anext__(self) -> str | bytes:
        item = await self._incoming.get()
        if isinstance(item, _Hangup):
            if item.error is not None:
                raise item.error
            raise StopAsyncIteration
        return item


WaitUntil = Callable[[Callable[[], bool]], Awaitable[None]]


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def fake_ws() -> FakeWebSocket:
    return FakeWebSocket()


@pytest.fixture
def make_fake_ws() -> type[FakeWebSocket]:
    """For tests that need more than one connection."""
    return FakeWebSocket


@pytest.fixture
def wait_until() -> WaitUntil:
    """Poll a condition on the running loop, failing after two seconds."""

    async def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        async def _poll() -> None:
            while not predicate():
                await asyncio.sleep(0.005)

        await asyncio.wait_for(_poll(), timeout)

    return _wait
