"""End-to-end trickle scenarios against a recording TCP peer."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import pytest

from trickleforge._internal.config import TrickleForgeConfig
from trickleforge.engine.pool import RunOutcome, WorkerPool
from trickleforge.request.configuration import Configuration, Destination, HeaderSet

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from tests.conftest import TrickleSink

    SinkFactory = Callable[..., Awaitable[TrickleSink]]

GET_WIRE = b"GET / HTTP/1.1\nHost: x\n\n\n"


@pytest.mark.timeout(20)
async def test_get_trickled_byte_by_byte_until_countdown(trickle_sink: SinkFactory) -> None:
    sink = await trickle_sink(expected=len(GET_WIRE))
    config = Configuration(
        verb="GET",
        destination=Destination("http", "127.0.0.1", sink.port, "/"),
        protocol="HTTP/1.1",
        headers=HeaderSet.from_lines(["Host: x"]),
        trickle_wait_time=1,
        countdown=5,
    )
    pool = WorkerPool(config, 1, settings=TrickleForgeConfig(watchdog_interval=1.0))

    start = time.monotonic()
    outcome = await pool.run()
    elapsed = time.monotonic() - start

    # 22 bytes at 0.1s each need ~2.2s per attempt, so 10 attempts cannot fit in 5s.
    assert outcome is RunOutcome.COUNTDOWN_EXPIRED
    assert 5.0 <= elapsed < 5.0 + 1.0 + 1.0

    first = sink.connections[0]
    assert bytes(first.received) == GET_WIRE
    assert min(first.gaps) >= 0.08
    assert sum(first.gaps) / len(first.gaps) == pytest.approx(0.1, abs=0.05)

    finished = [c for c in sink.connections if len(c.received) == len(GET_WIRE)]
    assert 1 <= len(finished) <= 3
    assert all(bytes(c.received) == GET_WIRE for c in finished)
    for conn in sink.connections:
        assert GET_WIRE.startswith(bytes(conn.received))


@pytest.mark.timeout(20)
async def test_post_declares_repeat_but_trickles_body_once(trickle_sink: SinkFactory) -> None:
    headers = HeaderSet.from_lines(["Host: x"]).add("Content-Length: 6")
    wire = b"POST / HTTP/1.1\nHost: x\nContent-Length: 6\n\n\nab"
    sink = await trickle_sink(expected=len(wire))
    config = Configuration(
        verb="POST",
        destination=Destination("http", "127.0.0.1", sink.port, "/"),
        headers=headers,
        body_template=b"ab",
        body_template_repeat=3,
        trickle_wait_time=0.01,
        countdown=15,
    )

    outcome = await WorkerPool(config, 1, settings=TrickleForgeConfig(backoff_seconds=0.0)).run()

    assert outcome is RunOutcome.COMPLETED
    assert config.content_length == 6
    assert len(sink.connections) == 10
    for conn in sink.connections:
        assert bytes(conn.received) == wire
        assert conn.received.endswith(b"\n\n\nab")
