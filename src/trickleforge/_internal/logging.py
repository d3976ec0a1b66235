"""Logging setup for trickleforge.

Every record can carry the id of the worker that emitted it. Worker code
logs through :func:`get_worker_logger`, which stamps ``worker_id`` on each
record; everything else logs through :func:`get_logger` and shows ``-``.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

_ROOT = "trickleforge"


class _WorkerIdFilter(logging.Filter):
    """Guarantee a ``worker_id`` attribute so format strings never fail."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "worker_id"):
            record.worker_id = "-"
        return True


class _JsonFormatter(logging.Formatter):
    """One-line JSON formatter.

    Keys: timestamp, level, logger, worker, message (plus exception).
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "worker": getattr(record, "worker_id", "-"),
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


class WorkerLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that tags records with the owning worker's id."""

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        extra = dict(kwargs.get("extra") or {})
        extra.setdefault("worker_id", self.extra["worker_id"])
        kwargs["extra"] = extra
        return msg, kwargs


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the root ``trickleforge`` logger.

    Calling it again only updates the level of the existing handler.

    Args:
        level: Logging level (e.g. ``logging.DEBUG``). Defaults to INFO.
        json_format: Emit one JSON object per line instead of plain text.

    Returns:
        The configured ``trickleforge`` logger.
    """
    logger = logging.getLogger(_ROOT)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(_WorkerIdFilter())

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s (worker %(worker_id)s): %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``trickleforge`` namespace.

    Args:
        name: Suffix after ``trickleforge.``, e.g. ``"engine.pool"``.
    """
    return logging.getLogger(f"{_ROOT}.{name}")


def get_worker_logger(name: str, worker_id: int) -> WorkerLoggerAdapter:
    """Return a logger whose records carry ``worker_id``.

    Args:
        name: Suffix after ``trickleforge.``, e.g. ``"engine.worker"``.
        worker_id: Identity of the worker that owns the logger.
    """
    return WorkerLoggerAdapter(get_logger(name), {"worker_id": worker_id})
