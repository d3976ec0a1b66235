"""Run configuration: what to send, where, and how slowly."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from trickleforge._internal.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from trickleforge._internal.types import HeaderEntry

# Per-byte delay is the trickle wait time divided by this.
SPEEDUP_FACTOR = 10

BODY_VERBS = frozenset({"POST", "PUT"})

_HOST_PREFIX = "Host: "
_CONTENT_LENGTH_PREFIX = "content-length:"


class TrickleMode(IntEnum):
    """Test modes. Only HTTP_BODY is implemented by the engine."""

    TCP_CONNECTIONS = 1
    TCP_BYTES = 2
    HTTP_HEADER = 3
    HTTP_BODY = 4


@dataclass(frozen=True)
class Destination:
    """Parsed target endpoint.

    Attributes:
        scheme: ``http`` or ``https``.
        host: Hostname or IP literal, without brackets.
        port: TCP port. Always explicit.
        path: Request path placed on the request line.
    """

    scheme: str
    host: str
    port: int
    path: str = "/"

    @property
    def is_secure(self) -> bool:
        """Return True if connections must be wrapped in TLS."""
        return self.scheme == "https"

    @classmethod
    def from_url(cls, url: str) -> Destination:
        """Parse and validate a destination URL.

        Only the path is kept for the request line; query and fragment are
        dropped. An empty path becomes ``/``.

        Raises:
            ConfigError: If the scheme, host or port is missing or invalid.
        """
        parts = urlsplit(url.strip())
        scheme = parts.scheme.lower()
        if scheme not in ("http", "https"):
            msg = f"Destination scheme must be http or https, got: {url!r}"
            raise ConfigError(msg)

        if not parts.hostname:
            msg = f"Destination has no host: {url!r}"
            raise ConfigError(msg)

        try:
            port = parts.port
        except ValueError:
            msg = f"Destination port is invalid: {url!r}"
            raise ConfigError(msg) from None

        if port is None:
            msg = f"Destination port is required: {url!r}"
            raise ConfigError(msg)

        return cls(scheme=scheme, host=parts.hostname, port=port, path=parts.path or "/")


@dataclass(frozen=True)
class HeaderSet:
    """Ordered set of literal header lines with insertion counts.

    A line inserted twice is counted, not emitted twice. Iteration follows
    the order in which each distinct line was first inserted.
    """

    entries: tuple[HeaderEntry, ...] = ()

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> HeaderSet:
        headers = cls()
        for line in lines:
            headers = headers.add(line)
        return headers

    def add(self, line: str) -> HeaderSet:
        """Return a new set with ``line`` inserted (or its count bumped)."""
        entries = list(self.entries)
        for index, (existing, count) in enumerate(entries):
            if existing == line:
                entries[index] = (existing, count + 1)
                return HeaderSet(tuple(entries))
        entries.append((line, 1))
        return HeaderSet(tuple(entries))

    def without_prefix(self, prefix: str) -> HeaderSet:
        """Return a new set without lines starting with ``prefix`` (case-insensitive)."""
        prefix = prefix.lower()
        return HeaderSet(
            tuple(entry for entry in self.entries if not entry[0].lower().startswith(prefix))
        )

    def count(self, line: str) -> int:
        for existing, count in self.entries:
            if existing == line:
                return count
        return 0

    def lines(self) -> list[str]:
        """Return the distinct header lines in order."""
        return [line for line, _count in self.entries]

    def __iter__(self) -> Iterator[str]:
        return iter(self.lines())

    def __len__(self) -> int:
        return len(self.entries)

    def __contains__(self, line: object) -> bool:
        return any(existing == line for existing, _count in self.entries)


@dataclass(frozen=True)
class Configuration:
    """Immutable description of one trickle run, shared by all workers.

    Attributes:
        mode: Test mode. Only ``TrickleMode.HTTP_BODY`` runs.
        verb: HTTP method token.
        destination: Target endpoint.
        protocol: HTTP version token for the request line.
        headers: Finalized header lines.
        body_template: Raw payload bytes.
        body_template_repeat: Declared repeat count of the payload. It feeds
            ``Content-Length`` but the trickled body is sent once unless
            ``apply_body_repeat`` is set.
        trickle_wait_time: Seconds; the per-byte delay is a tenth of it.
        countdown: Wall-clock budget for the whole run, in seconds.
        apply_body_repeat: Trickle the payload ``body_template_repeat`` times.
    """

    verb: str
    destination: Destination
    protocol: str = "HTTP/1.1"
    headers: HeaderSet = field(default_factory=HeaderSet)
    body_template: bytes = b""
    body_template_repeat: int = 1
    trickle_wait_time: float = 1.0
    countdown: float = 60.0
    mode: TrickleMode = TrickleMode.HTTP_BODY
    apply_body_repeat: bool = False

    @property
    def byte_delay(self) -> float:
        """Seconds to wait before each single-byte write."""
        return self.trickle_wait_time / SPEEDUP_FACTOR

    @property
    def sends_body(self) -> bool:
        """Return True if the verb carries a trickled body."""
        return self.verb in BODY_VERBS

    @property
    def content_length(self) -> int:
        """Declared payload length: template length times repeat count."""
        return len(self.body_template) * self.body_template_repeat


def build_configuration(
    destination_url: str,
    *,
    verb: str = "GET",
    protocol: str = "HTTP/1.1",
    header_lines: Iterable[str] = (),
    body: bytes | str = b"",
    body_repeat: int = 1,
    trickle_wait_time: float = 1.0,
    countdown: float = 60.0,
    mode: TrickleMode = TrickleMode.HTTP_BODY,
    apply_body_repeat: bool = False,
) -> Configuration:
    """Build a finalized Configuration from raw user input.

    Blank header lines are dropped. Every ``Host: `` line is rewritten to
    the destination hostname. For POST and PUT, caller supplied
    ``Content-Length`` lines are replaced by exactly one computed line.

    Raises:
        ConfigError: If the destination or a numeric value is invalid.
    """
    destination = Destination.from_url(destination_url)
    verb = verb.strip()
    if not verb:
        msg = "Verb must not be empty"
        raise ConfigError(msg)

    if body_repeat < 1:
        msg = f"Body repeat must be >= 1, got: {body_repeat}"
        raise ConfigError(msg)

    if trickle_wait_time < 0:
        msg = f"Trickle wait time must be non-negative, got: {trickle_wait_time}"
        raise ConfigError(msg)

    if countdown <= 0:
        msg = f"Countdown must be positive, got: {countdown}"
        raise ConfigError(msg)

    body_bytes = body.encode("utf-8") if isinstance(body, str) else bytes(body)

    lines = []
    for raw in header_lines:
        line = raw.rstrip("\r")
        if not line.strip():
            continue
        if line.startswith(_HOST_PREFIX):
            line = _HOST_PREFIX + destination.host
        lines.append(line)
    headers = HeaderSet.from_lines(lines)

    config = Configuration(
        verb=verb,
        destination=destination,
        protocol=protocol.strip(),
        headers=headers,
        body_template=body_bytes,
        body_template_repeat=body_repeat,
        trickle_wait_time=trickle_wait_time,
        countdown=countdown,
        mode=mode,
        apply_body_repeat=apply_body_repeat,
    )

    if config.sends_body:
        headers = headers.without_prefix(_CONTENT_LENGTH_PREFIX).add(
            f"Content-Length: {config.content_length}"
        )
        config = replace(config, headers=headers)

    return config
