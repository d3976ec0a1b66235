"""Engine tuning settings for trickleforge.

The run itself (target, verb, headers...) is described by
:class:`trickleforge.request.configuration.Configuration`. The values here
only shape how the engine paces failures and shares the event loop, and are
read from the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from trickleforge._internal.errors import ConfigError

# Attempts per worker. Deliberately not a setting.
MAX_ATTEMPTS = 10


@dataclass(frozen=True)
class TrickleForgeConfig:
    """Engine tuning settings.

    Attributes:
        backoff_seconds: Pause after a failed connect or a failed byte write.
        max_parallelism: How many workers may perform socket I/O at once,
            independent of the number of workers.
        watchdog_interval: Polling cadence of the countdown watchdog.
        connect_timeout: Upper bound for one TCP connect plus TLS handshake.
    """

    backoff_seconds: float = 10.0
    max_parallelism: int = 4
    watchdog_interval: float = 1.0
    connect_timeout: float = 30.0


def _read_float(name: str, default: str, *, allow_zero: bool) -> float:
    raw = os.environ.get(name, default)
    try:
        value = float(raw)
    except ValueError:
        msg = f"{name} must be a number, got: {raw!r}"
        raise ConfigError(msg) from None

    if value < 0 or (value == 0 and not allow_zero):
        qualifier = "non-negative" if allow_zero else "positive"
        msg = f"{name} must be {qualifier}, got: {value}"
        raise ConfigError(msg)
    return value


def load_config() -> TrickleForgeConfig:
    """Load engine settings from environment variables with defaults.

    Environment variables:
        TRICKLEFORGE_BACKOFF: Failure backoff in seconds (default: 10.0).
        TRICKLEFORGE_PARALLELISM: Parallelism ceiling (default: 4).
        TRICKLEFORGE_WATCHDOG_INTERVAL: Watchdog poll in seconds (default: 1.0).
        TRICKLEFORGE_CONNECT_TIMEOUT: Connect timeout in seconds (default: 30.0).

    Returns:
        Populated TrickleForgeConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    parallelism_str = os.environ.get("TRICKLEFORGE_PARALLELISM", "4")
    try:
        parallelism = int(parallelism_str)
    except ValueError:
        msg = f"TRICKLEFORGE_PARALLELISM must be an integer, got: {parallelism_str!r}"
        raise ConfigError(msg) from None

    if parallelism < 1:
        msg = f"TRICKLEFORGE_PARALLELISM must be >= 1, got: {parallelism}"
        raise ConfigError(msg)

    return TrickleForgeConfig(
        backoff_seconds=_read_float("TRICKLEFORGE_BACKOFF", "10.0", allow_zero=True),
        max_parallelism=parallelism,
        watchdog_interval=_read_float(
            "TRICKLEFORGE_WATCHDOG_INTERVAL", "1.0", allow_zero=False
        ),
        connect_timeout=_read_float(
            "TRICKLEFORGE_CONNECT_TIMEOUT", "30.0", allow_zero=False
        ),
    )
