"""trickleforge: trickle requests one byte at a time to test slow-client resilience."""

from __future__ import annotations

from trickleforge._internal.config import MAX_ATTEMPTS, TrickleForgeConfig, load_config
from trickleforge.engine.pool import RunOutcome, WorkerPool
from trickleforge.engine.runner import run_trickle
from trickleforge.engine.worker import TrickleWorker
from trickleforge.request.assembler import AssembledRequest, assemble_request
from trickleforge.request.configuration import (
    Configuration,
    Destination,
    HeaderSet,
    TrickleMode,
    build_configuration,
)

__version__ = "0.1.0"

__all__ = [
    "MAX_ATTEMPTS",
    "AssembledRequest",
    "Configuration",
    "Destination",
    "HeaderSet",
    "RunOutcome",
    "TrickleForgeConfig",
    "TrickleMode",
    "TrickleWorker",
    "WorkerPool",
    "assemble_request",
    "build_configuration",
    "load_config",
    "run_trickle",
]
