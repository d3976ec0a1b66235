"""Builds the byte sequences a worker trickles to the target."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from trickleforge.request.configuration import Configuration

HEAD_TERMINATOR = "\n\n"


@dataclass(frozen=True)
class AssembledRequest:
    """The two sequences sent during one attempt.

    Attributes:
        head: Request line, header lines and the blank-line terminator.
        body: Payload for body-bearing verbs, otherwise None.
    """

    head: bytes
    body: bytes | None = None

    @property
    def total_length(self) -> int:
        return len(self.head) + len(self.body or b"")


def assemble_head(config: Configuration) -> bytes:
    """Render ``VERB PATH PROTOCOL``, one line per distinct header, then ``\\n\\n``.

    Lines are joined with bare ``\\n``. Header order is the insertion order
    of the configuration's header set, so every attempt sends identical bytes.
    """
    parts = [f"{config.verb} {config.destination.path} {config.protocol}\n"]
    parts.extend(f"{line}\n" for line in config.headers.lines())
    parts.append(HEAD_TERMINATOR)
    return "".join(parts).encode("utf-8")


def assemble_body(config: Configuration) -> bytes | None:
    """Return the payload to trickle, or None if the verb carries no body.

    The payload is sent once even though ``Content-Length`` announces
    ``body_template_repeat`` copies, unless ``apply_body_repeat`` is set.
    """
    if not config.sends_body:
        return None
    if config.apply_body_repeat:
        return config.body_template * config.body_template_repeat
    return config.body_template


def assemble_request(config: Configuration) -> AssembledRequest:
    """Assemble both sequences for one attempt."""
    return AssembledRequest(head=assemble_head(config), body=assemble_body(config))
