"""Shared type aliases for trickleforge."""

from __future__ import annotations

from collections.abc import Callable

# One header line and how many times it was inserted.
HeaderEntry = tuple[str, int]

# Sink for diagnostic text produced by worker 0.
OutputCallback = Callable[[str], None]
