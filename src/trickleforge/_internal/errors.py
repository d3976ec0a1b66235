"""Custom exception hierarchy for trickleforge."""

from __future__ import annotations


class TrickleForgeError(Exception):
    """Base exception for all trickleforge errors.

    Every custom exception in the package inherits from this class, so a
    single except clause catches any trickleforge-specific error.
    """


class ConfigError(TrickleForgeError):
    """Raised when configuration is invalid or missing.

    Examples:
        - The destination URL has no explicit port.
        - An environment variable has a value out of range.
    """


class EngineError(TrickleForgeError):
    """Raised when the trickle engine cannot run or crashes unexpectedly."""


class AttemptFailure(TrickleForgeError):
    """Base class for failures that end one phase of a worker attempt.

    Attempt failures never leave the worker that hit them; they only
    decide whether the worker backs off and how the attempt continues.
    """


class ConnectFailure(AttemptFailure):
    """The TCP connect or TLS handshake failed. Retried on the next attempt."""


class WriteFailure(AttemptFailure):
    """A single-byte write failed mid-trickle.

    Attributes:
        bytes_sent: Bytes of the sequence written before the failure.
    """

    def __init__(self, message: str, bytes_sent: int = 0) -> None:
        super().__init__(message)
        self.bytes_sent = bytes_sent


class ReadFailure(AttemptFailure):
    """Reading the response failed. Logged, never retried."""
