"""Byte-paced writer: sends a sequence one byte per delay interval."""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from trickleforge._internal.errors import WriteFailure
from trickleforge.engine.pacing import pause

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Callable


class ByteStream(Protocol):
    """The subset of :class:`asyncio.StreamWriter` the writer relies on."""

    def write(self, data: bytes) -> None: ...

    async def drain(self) -> None: ...


@dataclass(frozen=True)
class TrickleResult:
    """Outcome of trickling one byte sequence.

    Attributes:
        bytes_sent: Bytes written, always a prefix of the input.
        error: The first write failure, if any.
        interrupted: True if the stop event ended the sequence early.
    """

    bytes_sent: int
    error: WriteFailure | None = None
    interrupted: bool = False

    @property
    def complete(self) -> bool:
        return self.error is None and not self.interrupted


async def trickle(
    stream: ByteStream,
    data: bytes,
    delay: float,
    *,
    backoff: float = 10.0,
    stop_event: asyncio.Event | None = None,
    gate: asyncio.Semaphore | None = None,
    on_byte: Callable[[bytes], None] | None = None,
    on_error: Callable[[WriteFailure], None] | None = None,
) -> TrickleResult:
    """Write ``data`` to ``stream`` one byte at a time.

    Each byte is preceded by a ``delay`` pause and followed by a drain, so
    exactly one single-byte write is in flight per interval. The first
    failing write stops the sequence after a ``backoff`` pause; the failed
    byte is never re-sent.

    Args:
        stream: Destination stream.
        data: Bytes to send, in order.
        delay: Seconds to wait before each byte.
        backoff: Seconds to wait after a failed write.
        stop_event: Ends the sequence at the next pause when set.
        gate: Parallelism ceiling held around each write.
        on_byte: Called with each byte after it was written.
        on_error: Called with the failure before the backoff pause.

    Returns:
        TrickleResult with the number of bytes written and the failure, if any.
    """
    sent = 0
    for value in data:
        if not await pause(delay, stop_event):
            return TrickleResult(bytes_sent=sent, interrupted=True)

        byte = bytes((value,))
        try:
            async with gate if gate is not None else contextlib.nullcontext():
                stream.write(byte)
            await stream.drain()
        except OSError as exc:
            failure = WriteFailure(f"Write failed after {sent} bytes: {exc}", bytes_sent=sent)
            failure.__cause__ = exc
            if on_error is not None:
                on_error(failure)
            stopped = not await pause(backoff, stop_event)
            return TrickleResult(bytes_sent=sent, error=failure, interrupted=stopped)

        sent += 1
        if on_byte is not None:
            on_byte(byte)

    return TrickleResult(bytes_sent=sent)
