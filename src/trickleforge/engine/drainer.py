"""Response drainer: reads line-delimited data until the peer is done."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from trickleforge._internal.errors import ReadFailure

if TYPE_CHECKING:
    from collections.abc import Callable


async def drain(
    reader: asyncio.StreamReader,
    *,
    on_line: Callable[[str], None] | None = None,
) -> ReadFailure | None:
    """Read lines until end of input or a read error.

    Lines are handed to ``on_line`` without their terminator; without a
    callback they are discarded. Read errors end the drain and are returned,
    never raised.

    Args:
        reader: Response side of the stream.
        on_line: Receives each decoded line (diagnostic worker only).

    Returns:
        None on a clean end of input, otherwise the ReadFailure.
    """
    while True:
        try:
            raw = await reader.readline()
        except (OSError, ValueError, asyncio.IncompleteReadError, asyncio.LimitOverrunError) as exc:
            failure = ReadFailure(f"Error reading response: {exc}")
            failure.__cause__ = exc
            return failure

        if not raw:
            return None

        if on_line is not None:
            on_line(raw.decode("utf-8", errors="replace").rstrip("\r\n"))
