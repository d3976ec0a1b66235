"""Shared test fixtures for the trickleforge test suite."""

from __future__ import annotations

import asyncio
import contextlib
import socket
import threading
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterator


DEFAULT_RESPONSE = b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\n\r\n"


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Network utilities
# =============================================================================


def get_free_port() -> int:
    """Find a port on localhost with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# =============================================================================
# Trickle sink: a raw TCP server that records every byte it receives
# =============================================================================


@dataclass
class SinkConnection:
    """Bytes received on one accepted connection and when each arrived."""

    received: bytearray = field(default_factory=bytearray)
    arrivals: list[float] = field(default_factory=list)

    @property
    def gaps(self) -> list[float]:
        return [b - a for a, b in zip(self.arrivals, self.arrivals[1:], strict=False)]


class TrickleSink:
    """Records trickled bytes per connection.

    After ``expected`` bytes (or end of input when ``expected`` is None) the
    sink writes ``response`` and closes. With ``close_immediately`` every
    connection is closed as soon as it is accepted.
    """

    def __init__(
        self,
        *,
        expected: int | None = None,
        response: bytes = DEFAULT_RESPONSE,
        close_immediately: bool = False,
    ) -> None:
        self.expected = expected
        self.response = response
        self.close_immediately = close_immediately
        self.connections: list[SinkConnection] = []
        self.port = 0
        self._server: asyncio.Server | None = None

    @property
    def url(self) -> str:
        return f"http://127.0.0.1:{self.port}/"

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def close(self) -> None:
        if self._server is None:
            return
        self._server.close()
        with contextlib.suppress(TimeoutError):
            await asyncio.wait_for(self._server.wait_closed(), timeout=2.0)

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        conn = SinkConnection()
        self.connections.append(conn)
        try:
            if self.close_immediately:
                return
            while self.expected is None or len(conn.received) < self.expected:
                chunk = await reader.read(1)
                if not chunk:
                    return
                conn.received += chunk
                conn.arrivals.append(time.monotonic())
            if self.response:
                writer.write(self.response)
                await writer.drain()
        except (ConnectionError, OSError):
            pass
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def trickle_sink() -> AsyncIterator[Callable[..., Awaitable[TrickleSink]]]:
    """Factory fixture starting TrickleSink servers on the test's event loop."""
    sinks: list[TrickleSink] = []

    async def _start(**kwargs: object) -> TrickleSink:
        sink = TrickleSink(**kwargs)  # type: ignore[arg-type]
        await sink.start()
        sinks.append(sink)
        return sink

    yield _start

    for sink in sinks:
        await sink.close()


@pytest.fixture
def sync_trickle_sink() -> Iterator[Callable[..., TrickleSink]]:
    """Factory fixture running TrickleSink servers in a background thread.

    For tests where the code under test owns the main thread's event loop
    (the CLI and ``run_trickle``).
    """
    loop = asyncio.new_event_loop()
    thread = threading.Thread(target=loop.run_forever, daemon=True)
    thread.start()
    sinks: list[TrickleSink] = []

    def _start(**kwargs: object) -> TrickleSink:
        sink = TrickleSink(**kwargs)  # type: ignore[arg-type]
        asyncio.run_coroutine_threadsafe(sink.start(), loop).result(timeout=5.0)
        sinks.append(sink)
        return sink

    yield _start

    for sink in sinks:
        asyncio.run_coroutine_threadsafe(sink.close(), loop).result(timeout=5.0)
    loop.call_soon_threadsafe(loop.stop)
    thread.join(timeout=5.0)
    loop.close()


@pytest.fixture
def closed_port() -> int:
    """A localhost port that refuses connections."""
    return get_free_port()
