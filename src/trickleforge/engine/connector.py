"""Opens one plaintext or TLS stream to the destination."""

from __future__ import annotations

import asyncio
import ssl
from typing import TYPE_CHECKING

from trickleforge._internal.errors import ConnectFailure
from trickleforge._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from trickleforge.request.configuration import Destination

    Stream = tuple[asyncio.StreamReader, asyncio.StreamWriter]
    Connector = Callable[..., Awaitable[Stream]]

logger = get_logger("engine.connector")


def create_tls_context() -> ssl.SSLContext:
    """Return a verifying client context with a TLS 1.2 floor."""
    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    return context


async def open_stream(
    destination: Destination,
    *,
    timeout: float = 30.0,
    tls_context: ssl.SSLContext | None = None,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Connect to ``destination`` and return its reader/writer pair.

    Certificate and hostname verification stay enabled for https.

    Args:
        destination: Target endpoint.
        timeout: Upper bound for TCP connect plus TLS handshake.
        tls_context: Context for https. Defaults to :func:`create_tls_context`.

    Raises:
        ConnectFailure: If the connection or handshake fails or times out.
    """
    ssl_arg: ssl.SSLContext | None = None
    if destination.is_secure:
        logger.debug("Establishing TLS connection to %s:%d", destination.host, destination.port)
        ssl_arg = tls_context if tls_context is not None else create_tls_context()
    else:
        logger.debug("Establishing HTTP connection to %s:%d", destination.host, destination.port)

    try:
        return await asyncio.wait_for(
            asyncio.open_connection(
                destination.host,
                destination.port,
                ssl=ssl_arg,
                server_hostname=destination.host if ssl_arg is not None else None,
            ),
            timeout=timeout,
        )
    except TimeoutError as exc:
        msg = f"Timed out connecting to {destination.host}:{destination.port}"
        raise ConnectFailure(msg) from exc
    except (OSError, ssl.SSLError) as exc:
        kind = "TLS" if destination.is_secure else "TCP"
        msg = f"{kind} connect to {destination.host}:{destination.port} failed: {exc}"
        raise ConnectFailure(msg) from exc
